"""
OpenTag v1 interpreter.

OpenTag is an open filament tag standard on NTAG memory. Blocks are laid
back into a flat buffer (block N at N*16) and fields are read at fixed
offsets, big-endian:

    0x10  "OT" signature        0x4E  RGB (3)
    0x12  version (u16)         0x51  diameter um (u16)
    0x14  manufacturer (16)     0x53  weight g (u16)
    0x24  base material (5)     0x55  print temp / 5
    0x29  modifiers (5)         0x56  bed temp / 5
    0x2E  color name (32)       0x57  density mg/cm3 (u16)

The optional extended region holds serial (0xA0), production date
(0xB0 y16/m8/d8), spool core diameter (0xB7), length m (0xC0 u16) and
drying temperature / hours (0xC4, 0xC5).
"""

import logging
import math
import struct
from typing import Optional

from spooltag.rfid.blocks import BlockMap, clean_text
from spooltag.rfid.colors import hsv_color_name, rgb_to_hex
from spooltag.rfid.mifare import BYTES_PER_BLOCK, MAX_TAG_BLOCKS
from spooltag.rfid.scan_data import DecryptedScanData, FilamentInfo, TagFormat

from .base import TagInterpreter, guarded

logger = logging.getLogger(__name__)

DISPLAY_NAME = "OpenTag v1 Standard"

SIGNATURE = b"OT"
SIGNATURE_OFFSET = 0x10
VERSION_OFFSET = 0x12
MANUFACTURER_OFFSET = 0x14
MATERIAL_OFFSET = 0x24
MODIFIERS_OFFSET = 0x29
COLOR_NAME_OFFSET = 0x2E
RGB_OFFSET = 0x4E
DIAMETER_OFFSET = 0x51
WEIGHT_OFFSET = 0x53
PRINT_TEMP_OFFSET = 0x55
BED_TEMP_OFFSET = 0x56
DENSITY_OFFSET = 0x57
CORE_END = 0x59

SERIAL_OFFSET = 0xA0
DATE_OFFSET = 0xB0
CORE_DIAMETER_OFFSET = 0xB7
LENGTH_OFFSET = 0xC0
DRYING_TEMP_OFFSET = 0xC4
DRYING_TIME_OFFSET = 0xC5
EXTENDED_END = 0xC6

TEMP_SCALE = 5
MIN_NOZZLE_TEMP = 150
NOZZLE_TEMP_SPREAD = 20

ASSUMED_RADIUS_MM = 1.75 / 2
MIN_LENGTH_MM = 10_000
MAX_LENGTH_MM = 2_000_000
DEFAULT_LENGTH_MM = 330_000

DEFAULT_DRYING_TEMP = 45
DEFAULT_DRYING_HOURS = 8
DEFAULT_NOZZLE_MM = 0.4
DEFAULT_SPOOL_WIDTH_MM = 200.0


def flatten(data: DecryptedScanData) -> bytes:
    """Lay decoded blocks into one buffer at block*16; gaps stay zero.

    Indexes outside a real tag's block range are ignored.
    """
    indexes = [i for i in data.decrypted_blocks if 0 <= i < MAX_TAG_BLOCKS]
    if not indexes:
        return b""
    blocks = BlockMap(data.decrypted_blocks)
    buffer = bytearray((max(indexes) + 1) * BYTES_PER_BLOCK)
    for i in indexes:
        block = blocks.block(i)
        if block is None:
            continue
        start = i * BYTES_PER_BLOCK
        chunk = block[:BYTES_PER_BLOCK]
        buffer[start:start + len(chunk)] = chunk
    return bytes(buffer)


def has_signature(buffer: bytes) -> bool:
    return buffer[SIGNATURE_OFFSET:SIGNATURE_OFFSET + len(SIGNATURE)] == SIGNATURE


def can_interpret(data: DecryptedScanData) -> bool:
    if data.tag_format == TagFormat.OPENTAG_V1:
        return True
    if data.tag_format != TagFormat.UNKNOWN:
        return False
    return has_signature(flatten(data))


def estimate_length(weight_g: int, density: int) -> int:
    """Filament length in mm from spool weight and density, assuming 1.75 mm filament."""
    if weight_g <= 0 or density <= 0:
        return DEFAULT_LENGTH_MM
    grams_per_mm3 = density / 1_000_000
    length = weight_g / grams_per_mm3 / (math.pi * ASSUMED_RADIUS_MM ** 2)
    return max(MIN_LENGTH_MM, min(MAX_LENGTH_MM, int(length)))


def tray_uid(manufacturer: str, material: str, color_hex: str) -> str:
    return f"{manufacturer[:4].upper()}_{material[:3].upper()}_{color_hex.lstrip('#')[:6]}"


def _text(buffer: bytes, offset: int, length: int) -> str:
    return clean_text(buffer[offset:offset + length])


def _u16(buffer: bytes, offset: int) -> int:
    return struct.unpack_from(">H", buffer, offset)[0]


def parse_extended(buffer: bytes) -> Optional[dict]:
    """Extended region fields, or None when the buffer does not reach them."""
    if len(buffer) < EXTENDED_END:
        return None
    year = _u16(buffer, DATE_OFFSET)
    month, day = buffer[DATE_OFFSET + 2], buffer[DATE_OFFSET + 3]
    return {
        "serial": _text(buffer, SERIAL_OFFSET, 16),
        "production_date": f"{year:04d}-{month:02d}-{day:02d}" if year else None,
        "core_diameter": buffer[CORE_DIAMETER_OFFSET],
        "length_mm": _u16(buffer, LENGTH_OFFSET) * 1000,
        "drying_temp": buffer[DRYING_TEMP_OFFSET],
        "drying_time": buffer[DRYING_TIME_OFFSET],
    }


def extract_filament_info(data: DecryptedScanData) -> Optional[FilamentInfo]:
    buffer = flatten(data)
    if not has_signature(buffer):
        logger.warning(f"Tag {data.tag_uid}: OpenTag signature not found")
        return None
    if len(buffer) < CORE_END:
        logger.warning(f"Tag {data.tag_uid}: {len(buffer)} bytes, OpenTag core needs {CORE_END}")
        return None

    version = _u16(buffer, VERSION_OFFSET)
    manufacturer = _text(buffer, MANUFACTURER_OFFSET, 16)
    base_material = _text(buffer, MATERIAL_OFFSET, 5)
    modifiers = _text(buffer, MODIFIERS_OFFSET, 5)
    color_label = _text(buffer, COLOR_NAME_OFFSET, 32)
    r, g, b = buffer[RGB_OFFSET:RGB_OFFSET + 3]
    color_hex = rgb_to_hex(r, g, b)
    weight = _u16(buffer, WEIGHT_OFFSET)
    density = _u16(buffer, DENSITY_OFFSET)
    print_temp = buffer[PRINT_TEMP_OFFSET] * TEMP_SCALE
    bed_temp = buffer[BED_TEMP_OFFSET] * TEMP_SCALE

    filament_type = f"{base_material} {modifiers}" if modifiers else base_material

    ext = parse_extended(buffer) or {}
    production_date = ext.get("production_date")
    extensions = {"version": f"v{version}"}
    if ext.get("serial"):
        extensions["serial"] = ext["serial"]

    return FilamentInfo(
        tag_uid=data.tag_uid,
        tray_uid=tray_uid(manufacturer, base_material, color_hex),
        tag_format=TagFormat.OPENTAG_V1,
        manufacturer_name=manufacturer,
        filament_type=filament_type,
        detailed_filament_type=filament_type,
        color_hex=color_hex,
        color_name=color_label or hsv_color_name(color_hex),
        spool_weight=weight,
        filament_diameter=_u16(buffer, DIAMETER_OFFSET) / 1000,
        filament_length=ext.get("length_mm") or estimate_length(weight, density),
        production_date=production_date or "Unknown",
        min_temperature=max(print_temp - NOZZLE_TEMP_SPREAD, MIN_NOZZLE_TEMP),
        max_temperature=print_temp,
        bed_temperature=bed_temp,
        drying_temperature=ext.get("drying_temp") or DEFAULT_DRYING_TEMP,
        drying_time=ext.get("drying_time") or DEFAULT_DRYING_HOURS,
        material_variant_id=ext.get("serial", ""),
        material_id=base_material,
        nozzle_diameter=DEFAULT_NOZZLE_MM,
        spool_width=float(ext.get("core_diameter") or DEFAULT_SPOOL_WIDTH_MM),
        short_production_date=production_date or "",
        extensions=extensions,
    )


def make_interpreter() -> TagInterpreter:
    return TagInterpreter(
        tag_format=TagFormat.OPENTAG_V1,
        display_name=DISPLAY_NAME,
        can_interpret=can_interpret,
        interpret=guarded(DISPLAY_NAME, extract_filament_info),
    )
