"""
Sector authentication payloads for MIFARE Classic readers.

A reader bridge authenticates each sector with its derived key before it
can return decrypted blocks. Keys come from the cached derivation so a
re-scanned spool skips the HKDF work.
"""

from dataclasses import dataclass

from .cached_kdf import CachedKeyDerivation


@dataclass(frozen=True)
class SectorAuth:
    """Authentication data for a single MIFARE Classic sector."""
    sector: int
    key_hex: str


def get_sector_auths(derivation: CachedKeyDerivation, uid: bytes) -> list[SectorAuth]:
    """Per-sector keys for a tag, ordered by sector number."""
    return [
        SectorAuth(sector=i, key_hex=k.hex().upper())
        for i, k in enumerate(derivation.derive_keys(uid))
    ]


def get_auth_payload(derivation: CachedKeyDerivation, uid: bytes) -> dict:
    """
    Build a JSON-serializable auth payload for a reader bridge.

    Returns:
        Dict with the UID and one entry per sector.
    """
    return {
        "uid": uid.hex().upper(),
        "sectors": [
            {"sector": auth.sector, "key": auth.key_hex}
            for auth in get_sector_auths(derivation, uid)
        ],
    }
