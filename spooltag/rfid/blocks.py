"""
Field extraction over a decrypted block map.

Every reader takes (block, offset, length) and returns a field-local
default when the block is missing, its hex is malformed, or the slice runs
past the block. One bad field never aborts the record.

All multi-byte numbers here are little-endian.
"""

import logging
import math
import struct
from typing import Mapping, Optional

from .mifare import BYTES_PER_BLOCK

logger = logging.getLogger(__name__)


def clean_text(raw: bytes) -> str:
    """Decode UTF-8 and drop NUL / control characters and outer whitespace."""
    text = raw.decode("utf-8", errors="replace")
    return "".join(ch for ch in text if ch.isprintable()).strip()


class BlockMap:
    """Read-only accessor for ``DecryptedScanData.decrypted_blocks``."""

    def __init__(self, blocks: Mapping[int, str]):
        self._blocks = blocks
        self._decoded: dict[int, Optional[bytes]] = {}

    def __contains__(self, block: int) -> bool:
        return self.block(block) is not None

    def block(self, block: int) -> Optional[bytes]:
        """Raw 16 bytes of a block, or None if absent or malformed."""
        if block not in self._decoded:
            self._decoded[block] = self._decode(block)
        return self._decoded[block]

    def raw(self, block: int, offset: int, length: int) -> Optional[bytes]:
        data = self.block(block)
        if data is None or offset < 0 or offset + length > len(data):
            return None
        return data[offset:offset + length]

    def string(self, block: int, offset: int = 0, length: int = BYTES_PER_BLOCK) -> str:
        data = self.raw(block, offset, length)
        return clean_text(data) if data is not None else ""

    def hex(self, block: int, offset: int = 0, length: int = BYTES_PER_BLOCK) -> str:
        data = self.raw(block, offset, length)
        return data.hex().upper() if data is not None else ""

    def uint16(self, block: int, offset: int, default: int = 0) -> int:
        data = self.raw(block, offset, 2)
        return struct.unpack("<H", data)[0] if data is not None else default

    def float32(self, block: int, offset: int, default: float = 0.0) -> float:
        data = self.raw(block, offset, 4)
        return self._finite(struct.unpack("<f", data)[0], default) if data is not None else default

    def float64(self, block: int, offset: int, default: float = 0.0) -> float:
        data = self.raw(block, offset, 8)
        return self._finite(struct.unpack("<d", data)[0], default) if data is not None else default

    @staticmethod
    def _finite(value: float, default: float) -> float:
        return value if math.isfinite(value) else default

    def _decode(self, block: int) -> Optional[bytes]:
        hex_data = self._blocks.get(block)
        if hex_data is None:
            return None
        try:
            data = bytes.fromhex(hex_data)
        except ValueError:
            logger.warning(f"Block {block} is not valid hex, ignoring it")
            return None
        if len(data) != BYTES_PER_BLOCK:
            logger.warning(f"Block {block} has {len(data)} bytes, expected {BYTES_PER_BLOCK}")
        return data
