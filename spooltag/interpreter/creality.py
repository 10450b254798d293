"""
Creality ASCII tag interpreter.

Creality writes a whitespace-separated ASCII record across blocks 4-6:

    AAA BBBBB CCCC DDDDD #EEEEEE FFFFFF GGGG...

batch, production date (YYMDD), supplier, material id, RGB color,
spool id, then trailing data of unknown meaning. Everything else on the
FilamentInfo is a format default, since the tag does not carry it.
"""

import logging
from datetime import date
from functools import partial
from typing import Optional, Protocol

from spooltag.catalog.models import ProductEntry
from spooltag.rfid.blocks import BlockMap, clean_text
from spooltag.rfid.colors import FALLBACK_COLOR, hsv_color_name, normalize_hex
from spooltag.rfid.scan_data import DecryptedScanData, FilamentInfo, TagFormat

from .base import TagInterpreter, guarded

logger = logging.getLogger(__name__)

DISPLAY_NAME = "Creality ASCII Format"
MANUFACTURER = "Creality"

DATA_BLOCKS = (4, 5, 6)
MIN_TOKENS = 6

MATERIAL_PREFIXES = [
    ("01", "PLA"),
    ("02", "ABS"),
    ("03", "PETG"),
    ("04", "TPU"),
]

# Format defaults
DEFAULT_WEIGHT_G = 1000
DEFAULT_DIAMETER_MM = 1.75
DEFAULT_LENGTH_MM = 330000
DEFAULT_MIN_TEMP = 190
DEFAULT_MAX_TEMP = 220
DEFAULT_BED_TEMP = 60
DEFAULT_DRYING_TEMP = 45
DEFAULT_DRYING_HOURS = 8
DEFAULT_NOZZLE_MM = 0.4
DEFAULT_SPOOL_WIDTH_MM = 200.0


class ProductSource(Protocol):
    def find_products(self, vendor: str, hex: Optional[str] = None,
                      material_type: Optional[str] = None) -> list[ProductEntry]: ...


def tokenize(data: DecryptedScanData) -> list[str]:
    blocks = BlockMap(data.decrypted_blocks)
    raw = b"".join(blocks.block(i) or b"" for i in DATA_BLOCKS)
    return clean_text(raw.replace(b"\x00", b"")).split()


def can_interpret(data: DecryptedScanData) -> bool:
    if data.tag_format == TagFormat.CREALITY_ASCII:
        return True
    if data.tag_format != TagFormat.UNKNOWN:
        return False
    tokens = tokenize(data)
    return (
        len(tokens) >= MIN_TOKENS
        and tokens[4].startswith("#")
        and normalize_hex(tokens[4]) is not None
    )


def parse_manufacturing_date(value: str) -> str:
    """'24815' -> '2024-08-15'; anything else is returned as-is."""
    if len(value) != 5 or not value.isdigit():
        return value
    try:
        return date(2000 + int(value[0:2]), int(value[2]), int(value[3:5])).isoformat()
    except ValueError:
        logger.debug(f"Invalid Creality date {value!r}")
        return value


def material_type(material_id: str) -> str:
    for prefix, name in MATERIAL_PREFIXES:
        if material_id.startswith(prefix):
            return name
    return f"Unknown Material (ID: {material_id})"


def color_name(color_hex: str, products: Optional[ProductSource]) -> str:
    """Name from a Creality catalog product with this exact color, else an HSV bucket."""
    if products is not None:
        matches = products.find_products(MANUFACTURER, hex=color_hex)
        if matches:
            return matches[0].display_color_name
    return hsv_color_name(color_hex)


def extract_filament_info(
    data: DecryptedScanData,
    products: Optional[ProductSource] = None,
) -> Optional[FilamentInfo]:
    tokens = tokenize(data)
    if len(tokens) < MIN_TOKENS:
        logger.warning(f"Tag {data.tag_uid}: {len(tokens)} Creality fields, expected {MIN_TOKENS}+")
        return None

    batch, raw_date, supplier, material_id, raw_color, spool_id = tokens[:MIN_TOKENS]
    remainder = " ".join(tokens[MIN_TOKENS:])

    production_date = parse_manufacturing_date(raw_date)
    color_hex = normalize_hex(raw_color) or FALLBACK_COLOR
    filament_type = material_type(material_id)

    manufacturer = data.manufacturer_name
    if not manufacturer or manufacturer == "Unknown":
        manufacturer = MANUFACTURER

    extensions = {"batch": batch, "supplier_id": supplier, "spool_id": spool_id}
    if remainder:
        extensions["remainder"] = remainder

    return FilamentInfo(
        tag_uid=data.tag_uid,
        tray_uid=spool_id,
        tag_format=TagFormat.CREALITY_ASCII,
        manufacturer_name=manufacturer,
        filament_type=filament_type,
        detailed_filament_type=filament_type,
        color_hex=color_hex,
        color_name=color_name(color_hex, products),
        spool_weight=DEFAULT_WEIGHT_G,
        filament_diameter=DEFAULT_DIAMETER_MM,
        filament_length=DEFAULT_LENGTH_MM,
        production_date=production_date,
        min_temperature=DEFAULT_MIN_TEMP,
        max_temperature=DEFAULT_MAX_TEMP,
        bed_temperature=DEFAULT_BED_TEMP,
        drying_temperature=DEFAULT_DRYING_TEMP,
        drying_time=DEFAULT_DRYING_HOURS,
        material_variant_id=batch,
        material_id=material_id,
        nozzle_diameter=DEFAULT_NOZZLE_MM,
        spool_width=DEFAULT_SPOOL_WIDTH_MM,
        short_production_date=production_date,
        extensions=extensions,
    )


def make_interpreter(products: Optional[ProductSource] = None) -> TagInterpreter:
    """
    Creality interpreter.

    ``products`` is queried on every interpretation, so passing the live
    catalog picks up reloads without rebuilding the interpreter.
    """
    return TagInterpreter(
        tag_format=TagFormat.CREALITY_ASCII,
        display_name=DISPLAY_NAME,
        can_interpret=can_interpret,
        interpret=guarded(DISPLAY_NAME, partial(extract_filament_info, products=products)),
    )
