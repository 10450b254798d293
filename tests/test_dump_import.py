"""Tests for building scan records from decrypted 1K dumps."""

import pytest

from spooltag.rfid.dump_import import (
    scan_from_binary, scan_from_blocks, scan_from_hex, scan_from_json_dump,
    scan_from_proxmark3,
)
from spooltag.rfid.mifare import BYTES_PER_BLOCK, TOTAL_BLOCKS, TOTAL_BYTES
from spooltag.rfid.scan_data import ScanResult, TagFormat


def make_binary_dump() -> bytes:
    """Minimal 1024-byte dump with a UID and a marker in block 1."""
    data = bytearray(TOTAL_BYTES)
    data[0:4] = bytes.fromhex("DEADBEEF")
    data[16:22] = b"A00-K0"
    return bytes(data)


def make_blocks() -> list[bytes]:
    data = make_binary_dump()
    return [data[i * BYTES_PER_BLOCK:(i + 1) * BYTES_PER_BLOCK] for i in range(TOTAL_BLOCKS)]


class TestScanFromBlocks:
    def test_uid_from_block_zero(self):
        scan = scan_from_blocks(make_blocks())
        assert scan.tag_uid == "DEADBEEF"
        assert scan.scan_result == ScanResult.SUCCESS
        assert scan.tag_size_bytes == 1024
        assert scan.sector_count == 16

    def test_explicit_uid(self):
        assert scan_from_blocks(make_blocks(), uid_hex="aabbccdd").tag_uid == "AABBCCDD"

    def test_sector_trailers_excluded(self):
        scan = scan_from_blocks(make_blocks())
        assert 3 not in scan.decrypted_blocks
        assert 63 not in scan.decrypted_blocks
        assert len(scan.decrypted_blocks) == 48

    def test_failed_sectors_excluded(self):
        scan = scan_from_blocks(make_blocks(), failed_sectors=[1, 15])
        assert not {4, 5, 6, 60, 61, 62} & set(scan.decrypted_blocks)
        assert scan.failed_sectors == frozenset({1, 15})
        assert 1 not in scan.authenticated_sectors
        assert 0 in scan.authenticated_sectors

    def test_all_sectors_failed(self):
        scan = scan_from_blocks(make_blocks(), failed_sectors=range(16))
        assert scan.scan_result == ScanResult.AUTHENTICATION_FAILED
        assert not scan.is_interpretable

    def test_blocks_are_upper_hex(self):
        scan = scan_from_blocks(make_blocks())
        assert scan.decrypted_blocks[1].startswith("4130302D4B30")

    def test_tag_format_passed_through(self):
        scan = scan_from_blocks(make_blocks(), tag_format=TagFormat.BAMBU_PROPRIETARY)
        assert scan.tag_format == TagFormat.BAMBU_PROPRIETARY

    def test_wrong_block_count_raises(self):
        with pytest.raises(ValueError):
            scan_from_blocks(make_blocks()[:10])

    def test_wrong_block_size_raises(self):
        blocks = make_blocks()
        blocks[7] = b"\x00" * 8
        with pytest.raises(ValueError):
            scan_from_blocks(blocks)

    def test_block_map_is_read_only(self):
        scan = scan_from_blocks(make_blocks())
        with pytest.raises(TypeError):
            scan.decrypted_blocks[3] = "00" * 16


class TestScanFromBinaryAndHex:
    def test_binary(self):
        assert scan_from_binary(make_binary_dump()).tag_uid == "DEADBEEF"

    def test_binary_wrong_size_raises(self):
        with pytest.raises(ValueError):
            scan_from_binary(bytes(512))

    def test_hex_with_whitespace(self):
        hex_str = make_binary_dump().hex()
        spaced = "\n".join(hex_str[i:i + 32] for i in range(0, len(hex_str), 32))
        assert scan_from_hex(spaced).tag_uid == "DEADBEEF"

    def test_invalid_hex_raises(self):
        with pytest.raises(ValueError):
            scan_from_hex("ZZ" * TOTAL_BYTES)


class TestScanFromProxmark3:
    def make_dump_text(self) -> str:
        lines = ["# Proxmark3 dump"]
        for i, block in enumerate(make_blocks()):
            lines.append(f"Block {i:02d}: " + " ".join(f"{b:02X}" for b in block))
        return "\n".join(lines)

    def test_parse(self):
        scan = scan_from_proxmark3(self.make_dump_text())
        assert scan.tag_uid == "DEADBEEF"
        assert len(scan.decrypted_blocks) == 48

    def test_too_few_blocks_raises(self):
        with pytest.raises(ValueError):
            scan_from_proxmark3("Block 00: " + "00 " * 16)


class TestScanFromJsonDump:
    def test_missing_blocks_zero_filled(self):
        scan = scan_from_json_dump({"blocks": {"0": "DEADBEEF" + "00" * 12}})
        assert scan.tag_uid == "DEADBEEF"
        assert scan.decrypted_blocks[2] == "00" * 16

    def test_card_uid_used(self):
        dump = {"Card": {"UID": "01020304"}, "blocks": {"0": "DEADBEEF" + "00" * 12}}
        assert scan_from_json_dump(dump).tag_uid == "01020304"

    def test_missing_blocks_mapping_raises(self):
        with pytest.raises(ValueError):
            scan_from_json_dump({"Card": {}})
