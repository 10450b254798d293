"""
Bambu Lab MIFARE Classic 1K tag interpreter.

Tag memory layout (decrypted, 16-byte blocks, little-endian numbers):
    Block 1:  variant id (0-7), material id (8-15)
    Block 2:  filament type, e.g. "PLA"
    Block 4:  detailed type, e.g. "PLA Basic"
    Block 5:  RGBA color (0-3), spool weight g (4-5), diameter f64 (8-15)
    Block 6:  drying temp, drying hours, bed temp type, bed temp,
              max hotend, min hotend (six uint16)
    Block 8:  nozzle diameter f32 (12-15)
    Block 9:  tray UID
    Block 10: spool width in 1/100 mm (4-5)
    Block 12: production date string
    Block 13: short production date
    Block 14: filament length m (4-5)
    Block 16: color format id (0-1), color count (2-3), secondary ABGR (4-7)
"""

import logging
from functools import partial
from typing import Optional

from spooltag.catalog.models import FilamentMappings, ProductEntry
from spooltag.config import COLOR_MATCH_THRESHOLD
from spooltag.rfid.blocks import BlockMap
from spooltag.rfid.colors import color_distance, material_default_color, rgb_to_hex
from spooltag.rfid.mifare import is_classic_1k
from spooltag.rfid.scan_data import DecryptedScanData, FilamentInfo, TagFormat

from .base import TagInterpreter, guarded

logger = logging.getLogger(__name__)

DISPLAY_NAME = "Bambu Lab Proprietary Format"
MANUFACTURER = "Bambu Lab"

DEFAULT_DIAMETER_MM = 1.75

# Erased EEPROM reads back as 0xFF
ERASED_U16 = 0xFFFF
MAX_TEMPERATURE_C = 500
MAX_DRYING_HOURS = 168
MAX_BED_TEMP_TYPE = 255

MULTI_COLOR_FORMAT = 0x0002

_TRAY_UID_EXTRA_CHARS = set("-_:")


# ──────────────────────────────────────────────
# Detection
# ──────────────────────────────────────────────

def can_interpret(data: DecryptedScanData) -> bool:
    if data.tag_format == TagFormat.BAMBU_PROPRIETARY:
        return True
    if data.tag_format != TagFormat.UNKNOWN:
        return False
    return (
        is_classic_1k(data.technology, data.sector_count, data.tag_size_bytes)
        and bool(data.decrypted_blocks)
    )


# ──────────────────────────────────────────────
# Field helpers
# ──────────────────────────────────────────────

def _bounded(value: int, upper: int) -> int:
    """Zero out erased or implausible block-6 values."""
    if value == ERASED_U16 or value > upper:
        return 0
    return value


def parse_tray_uid(blocks: BlockMap, tag_uid: str) -> str:
    """
    Tray UID from block 9.

    Accept the UTF-8 text if it is a plausible identifier (3+ characters,
    ASCII alphanumeric or -_:). Otherwise use the first 8 bytes as hex,
    and the tag UID when block 9 is missing.
    """
    raw = blocks.raw(9, 0, 16)
    if raw is not None:
        text = raw.decode("utf-8", errors="replace").replace("\x00", "").strip()
        if (
            len(text) >= 3
            and "\ufffd" not in text
            and all((ch.isascii() and ch.isalnum()) or ch in _TRAY_UID_EXTRA_CHARS for ch in text)
        ):
            return text
    head = blocks.hex(9, 0, 8)
    return head or tag_uid


def parse_color(blocks: BlockMap, filament_type: str) -> str:
    """RGB from block 5 RGBA; all-black (or missing) becomes the material's default color."""
    rgba = blocks.raw(5, 0, 4)
    if rgba is None or rgba[:3] == b"\x00\x00\x00":
        return material_default_color(filament_type)
    return rgb_to_hex(rgba[0], rgba[1], rgba[2])


def parse_secondary_color(blocks: BlockMap, format_id: int) -> Optional[str]:
    if format_id != MULTI_COLOR_FORMAT:
        return None
    abgr = blocks.raw(16, 4, 4)
    if abgr is None:
        return None
    return rgb_to_hex(abgr[3], abgr[2], abgr[1])


def nearest_product(
    mappings: FilamentMappings,
    color_hex: str,
    material_type: str,
    base_type: str,
    threshold: float,
) -> Optional[ProductEntry]:
    """Closest Bambu product color in the same material, falling back to the base material."""
    candidates: list[ProductEntry] = []
    for material in (material_type, base_type):
        if material:
            candidates = [p for p in mappings.find_products(MANUFACTURER, material_type=material)
                          if p.color_hex]
        if candidates:
            break

    best, best_distance = None, float("inf")
    for product in candidates:
        distance = color_distance(color_hex, product.color_hex)
        if distance < best_distance:
            best, best_distance = product, distance

    if best is not None and best_distance < threshold:
        logger.debug(f"Nearest product {best.variant_id} at distance {best_distance:.1f}")
        return best
    return None


# ──────────────────────────────────────────────
# Extraction
# ──────────────────────────────────────────────

def extract_filament_info(
    data: DecryptedScanData,
    mappings: Optional[FilamentMappings] = None,
    color_match_threshold: float = COLOR_MATCH_THRESHOLD,
) -> Optional[FilamentInfo]:
    blocks = BlockMap(data.decrypted_blocks)

    variant_id = blocks.string(1, 0, 8)
    material_id = blocks.string(1, 8, 8)
    if not variant_id or not material_id:
        logger.warning(f"Tag {data.tag_uid}: missing material or variant id in block 1")
        return None
    rfid_code = f"{material_id}:{variant_id}"

    base_type = blocks.string(2)
    detailed_type = blocks.string(4)
    color_hex = parse_color(blocks, base_type or detailed_type)

    diameter = blocks.float64(5, 8, DEFAULT_DIAMETER_MM)
    if diameter <= 0:
        diameter = DEFAULT_DIAMETER_MM

    format_id = blocks.uint16(16, 0)
    color_count = blocks.uint16(16, 2)
    if color_count in (0, ERASED_U16):
        color_count = 2 if format_id == MULTI_COLOR_FORMAT else 1

    filament_type = base_type
    color_name = f"Unknown Color ({color_hex})"
    exact_sku = matched_sku = product_url = None

    mapping = mappings.lookup_by_code(material_id, variant_id) if mappings else None
    if mapping is not None:
        logger.info(f"Exact SKU match {mapping.sku} for {rfid_code}")
        filament_type = detailed_type = mapping.material
        color_name = mapping.color
        color_hex = mapping.hex or color_hex
        exact_sku = mapping.sku
    elif mappings is not None and mappings.is_populated:
        product = nearest_product(
            mappings, color_hex, detailed_type, base_type, color_match_threshold
        )
        if product is not None:
            color_name = product.display_color_name
            matched_sku = product.variant_id
            product_url = product.url or None
        else:
            logger.debug(f"No catalog match for {rfid_code} ({color_hex})")

    extensions = {
        "short_production_date_hex": blocks.hex(13),
        "block17_hex": blocks.hex(17),
    }

    return FilamentInfo(
        tag_uid=data.tag_uid,
        tray_uid=parse_tray_uid(blocks, data.tag_uid),
        tag_format=TagFormat.BAMBU_PROPRIETARY,
        manufacturer_name=MANUFACTURER,
        filament_type=filament_type,
        detailed_filament_type=detailed_type,
        color_hex=color_hex,
        color_name=color_name,
        spool_weight=blocks.uint16(5, 4),
        filament_diameter=diameter,
        filament_length=blocks.uint16(14, 4),
        production_date=blocks.string(12),
        drying_temperature=_bounded(blocks.uint16(6, 0), MAX_TEMPERATURE_C),
        drying_time=_bounded(blocks.uint16(6, 2), MAX_DRYING_HOURS),
        bed_temperature_type=_bounded(blocks.uint16(6, 4), MAX_BED_TEMP_TYPE),
        bed_temperature=_bounded(blocks.uint16(6, 6), MAX_TEMPERATURE_C),
        max_temperature=_bounded(blocks.uint16(6, 8), MAX_TEMPERATURE_C),
        min_temperature=_bounded(blocks.uint16(6, 10), MAX_TEMPERATURE_C),
        material_variant_id=variant_id,
        material_id=material_id,
        nozzle_diameter=blocks.float32(8, 12),
        spool_width=blocks.uint16(10, 4) / 100,
        short_production_date=blocks.string(13),
        color_count=color_count,
        secondary_color_hex=parse_secondary_color(blocks, format_id),
        extensions={k: v for k, v in extensions.items() if v},
        rfid_code=rfid_code,
        exact_sku=exact_sku,
        matched_sku=matched_sku,
        product_url=product_url,
    )


def make_interpreter(
    mappings: Optional[FilamentMappings] = None,
    color_match_threshold: float = COLOR_MATCH_THRESHOLD,
) -> TagInterpreter:
    """Bambu interpreter bound to one mapping snapshot."""
    extract = partial(
        extract_filament_info,
        mappings=mappings,
        color_match_threshold=color_match_threshold,
    )
    return TagInterpreter(
        tag_format=TagFormat.BAMBU_PROPRIETARY,
        display_name=DISPLAY_NAME,
        can_interpret=can_interpret,
        interpret=guarded(DISPLAY_NAME, extract),
    )
