"""
MIFARE Classic 1K geometry.

A MIFARE Classic 1K tag has 16 sectors of 4 blocks, 16 bytes per block.
The last block of every sector is the trailer (Key A, access bits, Key B)
and never carries filament data.
"""

NUM_SECTORS = 16
BLOCKS_PER_SECTOR = 4
BYTES_PER_BLOCK = 16
TOTAL_BLOCKS = NUM_SECTORS * BLOCKS_PER_SECTOR  # 64
TOTAL_BYTES = TOTAL_BLOCKS * BYTES_PER_BLOCK  # 1024

# Largest block map any supported tag can produce (MIFARE Classic 4K)
MAX_TAG_BLOCKS = 256

# Technology string reported by Android for MIFARE Classic tags
MIFARE_CLASSIC_TECH = "MifareClassic"


def block_to_sector(block: int) -> int:
    """Return the sector number for a given block."""
    return block // BLOCKS_PER_SECTOR


def is_sector_trailer(block: int) -> bool:
    """Check if a block number is a sector trailer."""
    return (block + 1) % BLOCKS_PER_SECTOR == 0


def is_classic_1k(technology: str, sector_count: int, tag_size_bytes: int) -> bool:
    """True when the reported tag geometry is a MIFARE Classic 1K."""
    return (
        MIFARE_CLASSIC_TECH.lower() in technology.lower()
        and sector_count == NUM_SECTORS
        and tag_size_bytes == TOTAL_BYTES
    )
