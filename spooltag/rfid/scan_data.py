"""
Scan data model: decrypted tag input and interpreted filament output.

``DecryptedScanData`` is produced by the (external) authentication and
decryption step: one immutable record per scan, holding only the blocks
whose sector authenticated. Interpreters turn it into ``FilamentInfo``.
Keeping the raw block map separate from its interpretation lets old scans
be re-interpreted as the mapping catalog improves.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional


class TagFormat(str, Enum):
    BAMBU_PROPRIETARY = "BAMBU_PROPRIETARY"
    CREALITY_ASCII = "CREALITY_ASCII"
    OPENTAG_V1 = "OPENTAG_V1"
    UNKNOWN = "UNKNOWN"


class ScanResult(str, Enum):
    SUCCESS = "SUCCESS"
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"
    PARSING_FAILED = "PARSING_FAILED"
    NO_NFC_TAG = "NO_NFC_TAG"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


@dataclass(frozen=True)
class DecryptedScanData:
    """Decrypted block map of one tag scan, plus authentication metadata."""

    tag_uid: str                        # Hardware UID, hex
    technology: str                     # e.g. "android.nfc.tech.MifareClassic"
    scan_result: ScanResult
    decrypted_blocks: Mapping[int, str]  # block index -> 32 hex chars (16 bytes)
    tag_format: TagFormat = TagFormat.UNKNOWN
    manufacturer_name: str = "Unknown"
    authenticated_sectors: frozenset[int] = frozenset()
    failed_sectors: frozenset[int] = frozenset()
    derived_keys: tuple[str, ...] = ()  # Diagnostic only
    tag_size_bytes: int = 0
    sector_count: int = 0
    errors: tuple[str, ...] = ()
    key_derivation_time_ms: int = 0
    authentication_time_ms: int = 0
    timestamp: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        # Freeze the block map so the record stays immutable once built
        object.__setattr__(
            self, "decrypted_blocks", MappingProxyType(dict(self.decrypted_blocks))
        )
        object.__setattr__(self, "authenticated_sectors", frozenset(self.authenticated_sectors))
        object.__setattr__(self, "failed_sectors", frozenset(self.failed_sectors))
        object.__setattr__(self, "derived_keys", tuple(self.derived_keys))
        object.__setattr__(self, "errors", tuple(self.errors))

    @property
    def is_interpretable(self) -> bool:
        """Successful scan with at least one decrypted block."""
        return self.scan_result == ScanResult.SUCCESS and bool(self.decrypted_blocks)


@dataclass(frozen=True)
class FilamentInfo:
    """Filament metadata interpreted from a tag."""

    # Identifiers
    tag_uid: str
    tray_uid: str
    tag_format: TagFormat
    manufacturer_name: str

    # Material, color, physical
    filament_type: str
    detailed_filament_type: str
    color_hex: str                      # Always upper-case #RRGGBB
    color_name: str
    spool_weight: int                   # grams
    filament_diameter: float            # mm
    filament_length: int
    production_date: str

    # Temperature profile (°C, hours)
    min_temperature: int
    max_temperature: int
    bed_temperature: int
    drying_temperature: int
    drying_time: int
    bed_temperature_type: int = 0

    # Manufacturer extension fields
    material_variant_id: str = ""
    material_id: str = ""
    nozzle_diameter: float = 0.0
    spool_width: float = 0.0
    short_production_date: str = ""
    color_count: int = 1
    secondary_color_hex: Optional[str] = None
    extensions: Mapping[str, str] = field(default_factory=dict)

    # Catalog enrichment
    rfid_code: Optional[str] = None
    exact_sku: Optional[str] = None
    matched_sku: Optional[str] = None
    product_url: Optional[str] = None

    def to_dict(self) -> dict:
        """Serialize to a JSON-compatible dict."""
        return {
            "tag_uid": self.tag_uid,
            "tray_uid": self.tray_uid,
            "tag_format": self.tag_format.value,
            "manufacturer_name": self.manufacturer_name,
            "filament_type": self.filament_type,
            "detailed_filament_type": self.detailed_filament_type,
            "color_hex": self.color_hex,
            "color_name": self.color_name,
            "spool_weight": self.spool_weight,
            "filament_diameter": round(self.filament_diameter, 3),
            "filament_length": self.filament_length,
            "production_date": self.production_date,
            "min_temperature": self.min_temperature,
            "max_temperature": self.max_temperature,
            "bed_temperature": self.bed_temperature,
            "bed_temperature_type": self.bed_temperature_type,
            "drying_temperature": self.drying_temperature,
            "drying_time": self.drying_time,
            "material_variant_id": self.material_variant_id,
            "material_id": self.material_id,
            "nozzle_diameter": round(self.nozzle_diameter, 2),
            "spool_width": round(self.spool_width, 2),
            "short_production_date": self.short_production_date,
            "color_count": self.color_count,
            "secondary_color_hex": self.secondary_color_hex,
            "extensions": dict(self.extensions),
            "rfid_code": self.rfid_code,
            "exact_sku": self.exact_sku,
            "matched_sku": self.matched_sku,
            "product_url": self.product_url,
        }
