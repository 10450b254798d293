"""
Build ``DecryptedScanData`` from already-decrypted MIFARE Classic 1K dumps.

Supports multiple input formats:
- Block-by-block list (64 × 16 bytes)
- Raw binary dump (1024 bytes)
- Hex string dump
- Proxmark3 text dump
- JSON dump ({"blocks": {"0": "<hex>", ...}}), as published by the
  community tag library

Sector trailers and blocks of sectors listed as failed are left out of the
block map, so the result only holds data the tag actually authenticated.
"""

from collections.abc import Iterable, Mapping
from typing import Optional

from .mifare import (
    BYTES_PER_BLOCK, NUM_SECTORS, TOTAL_BLOCKS, TOTAL_BYTES,
    block_to_sector, is_sector_trailer,
)
from .scan_data import DecryptedScanData, ScanResult, TagFormat

DUMP_TECHNOLOGY = "android.nfc.tech.MifareClassic"


def scan_from_blocks(
    blocks: list[bytes],
    uid_hex: Optional[str] = None,
    failed_sectors: Iterable[int] = (),
    tag_format: TagFormat = TagFormat.UNKNOWN,
) -> DecryptedScanData:
    """
    Build a scan record from a list of 64 blocks (each 16 bytes).

    Args:
        blocks: Decrypted tag memory, block 0 first.
        uid_hex: Hardware UID; defaults to the first 4 bytes of block 0.
        failed_sectors: Sectors that did not authenticate.
        tag_format: Format tag to attach, UNKNOWN to let dispatch decide.
    """
    if len(blocks) != TOTAL_BLOCKS:
        raise ValueError(f"Expected {TOTAL_BLOCKS} blocks, got {len(blocks)}")
    for i, b in enumerate(blocks):
        if len(b) != BYTES_PER_BLOCK:
            raise ValueError(f"Block {i} must be {BYTES_PER_BLOCK} bytes, got {len(b)}")

    failed = frozenset(failed_sectors)
    decrypted = {
        i: b.hex().upper()
        for i, b in enumerate(blocks)
        if not is_sector_trailer(i) and block_to_sector(i) not in failed
    }

    return DecryptedScanData(
        tag_uid=(uid_hex or blocks[0][0:4].hex()).upper(),
        technology=DUMP_TECHNOLOGY,
        tag_format=tag_format,
        scan_result=ScanResult.SUCCESS if decrypted else ScanResult.AUTHENTICATION_FAILED,
        decrypted_blocks=decrypted,
        authenticated_sectors=frozenset(range(NUM_SECTORS)) - failed,
        failed_sectors=failed,
        tag_size_bytes=TOTAL_BYTES,
        sector_count=NUM_SECTORS,
    )


def scan_from_binary(data: bytes, **kwargs) -> DecryptedScanData:
    """Build from a raw 1024-byte binary dump."""
    if len(data) != TOTAL_BYTES:
        raise ValueError(f"Expected {TOTAL_BYTES} bytes, got {len(data)}")
    blocks = [data[i * BYTES_PER_BLOCK:(i + 1) * BYTES_PER_BLOCK]
              for i in range(TOTAL_BLOCKS)]
    return scan_from_blocks(blocks, **kwargs)


def scan_from_hex(hex_string: str, **kwargs) -> DecryptedScanData:
    """Build from a hex-encoded string (2048 hex chars = 1024 bytes)."""
    clean = "".join(hex_string.split())
    return scan_from_binary(bytes.fromhex(clean), **kwargs)


def scan_from_proxmark3(dump_text: str, **kwargs) -> DecryptedScanData:
    """
    Build from a Proxmark3 text dump.

    Expected format (one block per line, '#' comments allowed):
    Block 00: AA BB CC DD EE FF 00 11 22 33 44 55 66 77 88 99
    """
    blocks = []
    for line in dump_text.strip().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        hex_part = line.split(":", 1)[1] if ":" in line else line
        hex_clean = "".join(hex_part.split())
        if len(hex_clean) == BYTES_PER_BLOCK * 2:
            blocks.append(bytes.fromhex(hex_clean))

    if len(blocks) != TOTAL_BLOCKS:
        raise ValueError(
            f"Proxmark3 dump should have {TOTAL_BLOCKS} blocks, found {len(blocks)}"
        )
    return scan_from_blocks(blocks, **kwargs)


def scan_from_json_dump(dump_data: Mapping, **kwargs) -> DecryptedScanData:
    """
    Build from a JSON dump's ``blocks`` mapping.

    Missing blocks are zero-filled; a UID in ``Card.UID`` is used when present.
    """
    blocks_dict = dump_data.get("blocks")
    if not isinstance(blocks_dict, Mapping):
        raise ValueError("Dump has no 'blocks' mapping")
    blocks = [bytes.fromhex(blocks_dict.get(str(i), "00" * BYTES_PER_BLOCK))
              for i in range(TOTAL_BLOCKS)]

    card = dump_data.get("Card")
    if "uid_hex" not in kwargs and isinstance(card, Mapping) and card.get("UID"):
        kwargs["uid_hex"] = str(card["UID"])
    return scan_from_blocks(blocks, **kwargs)
