"""Tests for MIFARE Classic 1K geometry helpers."""

import pytest

from spooltag.rfid.mifare import (
    BYTES_PER_BLOCK, NUM_SECTORS, TOTAL_BLOCKS, TOTAL_BYTES,
    block_to_sector, is_classic_1k, is_sector_trailer,
)


class TestGeometry:
    def test_constants(self):
        assert NUM_SECTORS == 16
        assert BYTES_PER_BLOCK == 16
        assert TOTAL_BLOCKS == 64
        assert TOTAL_BYTES == 1024

    def test_block_to_sector(self):
        assert block_to_sector(0) == 0
        assert block_to_sector(3) == 0
        assert block_to_sector(4) == 1
        assert block_to_sector(63) == 15

    def test_sector_trailers(self):
        trailers = [b for b in range(TOTAL_BLOCKS) if is_sector_trailer(b)]
        assert trailers == list(range(3, 64, 4))


class TestClassic1k:
    @pytest.mark.parametrize("technology", [
        "android.nfc.tech.MifareClassic",
        "MIFARECLASSIC",
        "mifareclassic",
    ])
    def test_matches(self, technology):
        assert is_classic_1k(technology, 16, 1024)

    @pytest.mark.parametrize("technology,sectors,size", [
        ("android.nfc.tech.NfcA", 16, 1024),
        ("android.nfc.tech.MifareClassic", 40, 4096),
        ("android.nfc.tech.MifareClassic", 16, 4096),
        ("android.nfc.tech.MifareClassic", 5, 320),
    ])
    def test_rejects(self, technology, sectors, size):
        assert not is_classic_1k(technology, sectors, size)
