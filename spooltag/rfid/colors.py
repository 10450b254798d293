"""Color normalization, naming and matching helpers."""

import colorsys
import math
import re
from typing import Optional

_HEX_RE = re.compile(r"^#?([0-9A-Fa-f]{6})$")

FALLBACK_COLOR = "#808080"

# Shown instead of black when a tag's RGBA bytes are all zero.
# Checked in order, first prefix of the material type wins.
MATERIAL_DEFAULT_COLORS = [
    ("PETG", "#2196F3"),
    ("PLA", "#4CAF50"),
    ("ABS", "#FF9800"),
    ("ASA", "#9C27B0"),
    ("TPU", "#E91E63"),
    ("PA", "#795548"),
    ("NYLON", "#795548"),
    ("PC", "#607D8B"),
]


def normalize_hex(value: Optional[str]) -> Optional[str]:
    """Return ``#RRGGBB`` upper-case, or None if the value is not a 6-digit hex color."""
    if not value:
        return None
    match = _HEX_RE.match(value.strip())
    return f"#{match.group(1).upper()}" if match else None


def rgb_to_hex(r: int, g: int, b: int) -> str:
    return "#{:02X}{:02X}{:02X}".format(r, g, b)


def hex_to_rgb(value: str) -> tuple[int, int, int]:
    normalized = normalize_hex(value)
    if normalized is None:
        raise ValueError(f"Not a #RRGGBB color: {value!r}")
    return int(normalized[1:3], 16), int(normalized[3:5], 16), int(normalized[5:7], 16)


def color_distance(a: str, b: str) -> float:
    """Euclidean distance between two colors in RGB space."""
    return math.dist(hex_to_rgb(a), hex_to_rgb(b))


def material_default_color(material_type: str) -> str:
    material = material_type.strip().upper()
    for prefix, color in MATERIAL_DEFAULT_COLORS:
        if material.startswith(prefix):
            return color
    return FALLBACK_COLOR


def hsv_color_name(value: str) -> str:
    """
    Coarse color name from HSV buckets.

    Dark colors are Black, bright unsaturated ones White, other unsaturated
    ones Grey; the rest are named by hue sextant.
    """
    try:
        r, g, b = hex_to_rgb(value)
    except ValueError:
        return "Unknown Color"

    h, s, v = colorsys.rgb_to_hsv(r / 255, g / 255, b / 255)
    hue = h * 360

    if v < 0.2:
        return "Black"
    if v > 0.9 and s < 0.1:
        return "White"
    if s < 0.2:
        return "Grey"
    if hue < 30 or hue >= 330:
        return "Red"
    if hue < 90:
        return "Yellow"
    if hue < 150:
        return "Green"
    if hue < 210:
        return "Cyan"
    if hue < 270:
        return "Blue"
    return "Magenta"
