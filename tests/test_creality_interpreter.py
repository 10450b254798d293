"""Tests for the Creality ASCII tag interpreter."""

from dataclasses import replace

import pytest

from builders import CREALITY_TEXT, SAMPLE_CATALOG, make_creality_blocks, make_ntag_scan
from spooltag.catalog.catalog import FilamentCatalog
from spooltag.interpreter import creality
from spooltag.rfid.scan_data import TagFormat


def creality_scan(text: str = CREALITY_TEXT, **kwargs):
    kwargs.setdefault("tag_format", TagFormat.CREALITY_ASCII)
    return make_ntag_scan(make_creality_blocks(text), **kwargs)


@pytest.fixture
def interpreter():
    return creality.make_interpreter()


class TestCanInterpret:
    def test_tagged_format(self):
        assert creality.can_interpret(creality_scan())

    def test_unknown_with_color_field(self):
        assert creality.can_interpret(creality_scan(tag_format=TagFormat.UNKNOWN))

    def test_unknown_without_color_field(self):
        scan = creality_scan("0A2 24815 0276 01001 FF0000 000001", tag_format=TagFormat.UNKNOWN)
        assert not creality.can_interpret(scan)

    def test_unknown_too_few_fields(self):
        scan = creality_scan("0A2 24815 0276 01001 #FF0000", tag_format=TagFormat.UNKNOWN)
        assert not creality.can_interpret(scan)

    def test_other_tagged_format(self):
        assert not creality.can_interpret(creality_scan(tag_format=TagFormat.OPENTAG_V1))


class TestExtraction:
    def test_full_record(self, interpreter):
        info = interpreter.interpret(creality_scan())

        assert info.tag_format == TagFormat.CREALITY_ASCII
        assert info.manufacturer_name == "Creality"
        assert info.material_variant_id == "0A2"
        assert info.production_date == "2024-08-15"
        assert info.short_production_date == "2024-08-15"
        assert info.material_id == "01001"
        assert info.filament_type == "PLA"
        assert info.detailed_filament_type == "PLA"
        assert info.color_hex == "#FF0000"
        assert info.color_name == "Red"
        assert info.tray_uid == "000001"
        assert info.extensions == {
            "batch": "0A2",
            "supplier_id": "0276",
            "spool_id": "000001",
            "remainder": "00001650",
        }

    def test_format_defaults(self, interpreter):
        info = interpreter.interpret(creality_scan())
        assert info.spool_weight == 1000
        assert info.filament_diameter == 1.75
        assert info.filament_length == 330000
        assert info.min_temperature == 190
        assert info.max_temperature == 220
        assert info.bed_temperature == 60
        assert info.drying_temperature == 45
        assert info.drying_time == 8
        assert info.nozzle_diameter == 0.4
        assert info.spool_width == 200

    def test_lower_case_color_normalized(self, interpreter):
        info = interpreter.interpret(creality_scan("0A2 24815 0276 03001 #00ae42 000001"))
        assert info.color_hex == "#00AE42"
        assert info.filament_type == "PETG"

    def test_invalid_color_falls_back_to_grey(self, interpreter):
        info = interpreter.interpret(creality_scan("0A2 24815 0276 01001 #GGGGGG 000001"))
        assert info.color_hex == "#808080"

    def test_remainder_joined_with_single_spaces(self, interpreter):
        info = interpreter.interpret(creality_scan("0A2 24815 0276 01001 #FF0000 000001 AB   CD"))
        assert info.extensions["remainder"] == "AB CD"

    def test_too_few_fields(self, interpreter):
        assert interpreter.interpret(creality_scan("0A2 24815 0276")) is None

    def test_scan_manufacturer_kept(self, interpreter):
        scan = creality_scan()
        info = interpreter.interpret(replace(scan, manufacturer_name="Ender Supplies"))
        assert info.manufacturer_name == "Ender Supplies"


class TestParsing:
    @pytest.mark.parametrize("raw,expected", [
        ("24815", "2024-08-15"),
        ("25101", "2025-01-01"),
        ("2481", "2481"),
        ("24A15", "24A15"),
        ("24035", "24035"),
        ("24932", "24932"),
    ])
    def test_manufacturing_date(self, raw, expected):
        assert creality.parse_manufacturing_date(raw) == expected

    @pytest.mark.parametrize("material_id,expected", [
        ("01001", "PLA"),
        ("02001", "ABS"),
        ("03001", "PETG"),
        ("04001", "TPU"),
        ("09001", "Unknown Material (ID: 09001)"),
    ])
    def test_material_type(self, material_id, expected):
        assert creality.material_type(material_id) == expected


class TestCatalogColorName:
    def test_exact_catalog_color(self):
        catalog = FilamentCatalog.from_dict(SAMPLE_CATALOG)
        info = creality.make_interpreter(catalog).interpret(creality_scan())
        assert info.color_name == "Fire Red"

    def test_no_catalog_match_uses_hsv(self):
        catalog = FilamentCatalog.from_dict(SAMPLE_CATALOG)
        info = creality.make_interpreter(catalog).interpret(
            creality_scan("0A2 24815 0276 01001 #0000FF 000001")
        )
        assert info.color_name == "Blue"
