"""Tests for color helpers."""

import pytest

from spooltag.rfid.colors import (
    FALLBACK_COLOR, color_distance, hex_to_rgb, hsv_color_name, material_default_color,
    normalize_hex, rgb_to_hex,
)


class TestNormalizeHex:
    @pytest.mark.parametrize("value,expected", [
        ("#ff6a13", "#FF6A13"),
        ("FF6A13", "#FF6A13"),
        (" #00ae42 ", "#00AE42"),
        ("#FFF", None),
        ("#GG0000", None),
        ("", None),
        (None, None),
    ])
    def test_normalize(self, value, expected):
        assert normalize_hex(value) == expected

    def test_rgb_to_hex(self):
        assert rgb_to_hex(255, 106, 19) == "#FF6A13"

    def test_hex_to_rgb_invalid_raises(self):
        with pytest.raises(ValueError):
            hex_to_rgb("not a color")


class TestDistance:
    def test_identical(self):
        assert color_distance("#123456", "#123456") == 0

    def test_black_white(self):
        assert color_distance("#000000", "#FFFFFF") == pytest.approx(441.67, abs=0.01)


class TestMaterialDefaults:
    @pytest.mark.parametrize("material,expected", [
        ("PLA", "#4CAF50"),
        ("PLA Basic", "#4CAF50"),
        ("PETG HF", "#2196F3"),
        ("ABS", "#FF9800"),
        ("ASA", "#9C27B0"),
        ("TPU 95A", "#E91E63"),
        ("PA6-CF", "#795548"),
        ("Nylon", "#795548"),
        ("PC", "#607D8B"),
        ("PVA", FALLBACK_COLOR),
        ("", FALLBACK_COLOR),
    ])
    def test_default_color(self, material, expected):
        assert material_default_color(material) == expected


class TestHsvColorName:
    @pytest.mark.parametrize("value,expected", [
        ("#000000", "Black"),
        ("#FFFFFF", "White"),
        ("#808080", "Grey"),
        ("#FF0000", "Red"),
        ("#FFFF00", "Yellow"),
        ("#00FF00", "Green"),
        ("#00FFFF", "Cyan"),
        ("#0000FF", "Blue"),
        ("#FF00FF", "Magenta"),
    ])
    def test_buckets(self, value, expected):
        assert hsv_color_name(value) == expected

    def test_invalid(self):
        assert hsv_color_name("#12") == "Unknown Color"
