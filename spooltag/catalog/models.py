"""Mapping and product catalog records used to enrich interpreted tags."""

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

from spooltag.rfid.colors import normalize_hex

_PACKAGING_SUFFIX = re.compile(r"\s*\([^)]+\)\s*/.*$")
_PACKAGING_WORDS = re.compile(r"\s*/\s*(Refill|Filament with spool).*$", re.IGNORECASE)


def normalize_material_type(value: str) -> str:
    """'PLA Basic' / 'pla-basic' / 'PLA_BASIC' -> 'PLA_BASIC'."""
    return re.sub(r"[\s\-]+", "_", value.strip()).upper()


@dataclass(frozen=True)
class RfidMapping:
    """Exact product identity for one Bambu RFID code."""
    rfid_code: str              # "<material_id>:<variant_id>", e.g. "GFA00:A00-K0"
    sku: str
    material: str               # e.g. "PLA Basic"
    color: str                  # e.g. "Black"
    hex: Optional[str] = None
    sample_count: int = 1

    @property
    def material_id(self) -> str:
        return self.rfid_code.split(":", 1)[0]

    @property
    def variant_id(self) -> str:
        parts = self.rfid_code.split(":", 1)
        return parts[1] if len(parts) > 1 else ""

    @classmethod
    def from_dict(cls, rfid_code: str, d: Mapping) -> "RfidMapping":
        return cls(
            rfid_code=rfid_code,
            sku=str(d["sku"]),
            material=d["material"],
            color=d["color"],
            hex=normalize_hex(d.get("hex")),
            sample_count=int(d.get("sample_count", 1)),
        )

    def to_dict(self) -> dict:
        return {
            "sku": self.sku,
            "material": self.material,
            "color": self.color,
            "hex": self.hex,
            "sample_count": self.sample_count,
        }


@dataclass(frozen=True)
class ProductEntry:
    """A purchasable filament product (one SKU)."""
    variant_id: str             # SKU
    product_name: str
    color_name: str             # May carry packaging, e.g. "Jade White (10100) / Refill / 1 kg"
    material_type: str          # e.g. "PLA_MATTE"
    manufacturer: str
    color_hex: Optional[str] = None
    url: str = ""
    internal_code: str = ""
    available: bool = True

    @property
    def display_color_name(self) -> str:
        """Color name without the SKU / packaging suffix."""
        name = _PACKAGING_SUFFIX.sub("", self.color_name)
        return _PACKAGING_WORDS.sub("", name).strip()

    @property
    def base_material_type(self) -> str:
        """'PLA_MATTE' -> 'PLA'."""
        return normalize_material_type(self.material_type).split("_")[0]

    def matches_material(self, material_type: str) -> bool:
        wanted = normalize_material_type(material_type)
        return wanted in (normalize_material_type(self.material_type), self.base_material_type)

    @classmethod
    def from_dict(cls, d: Mapping) -> "ProductEntry":
        return cls(
            variant_id=str(d["variant_id"]),
            product_name=d.get("product_name", ""),
            color_name=d.get("color_name", ""),
            material_type=d.get("material_type", ""),
            manufacturer=d.get("manufacturer", ""),
            color_hex=normalize_hex(d.get("color_hex")),
            url=d.get("url", ""),
            internal_code=d.get("internal_code", ""),
            available=bool(d.get("available", True)),
        )

    def to_dict(self) -> dict:
        return {
            "variant_id": self.variant_id,
            "product_name": self.product_name,
            "color_name": self.color_name,
            "material_type": self.material_type,
            "manufacturer": self.manufacturer,
            "color_hex": self.color_hex,
            "url": self.url,
            "internal_code": self.internal_code,
            "available": self.available,
        }


@dataclass(frozen=True)
class FilamentMappings:
    """
    Immutable snapshot of the catalog.

    Interpreters hold a snapshot, so re-interpreting old scans against new
    mapping data means building a new snapshot, not mutating this one.
    """
    rfid_mappings: Mapping[str, RfidMapping] = field(default_factory=dict)
    products: tuple[ProductEntry, ...] = ()
    version: int = 0

    def __post_init__(self):
        object.__setattr__(self, "rfid_mappings", MappingProxyType(dict(self.rfid_mappings)))
        object.__setattr__(self, "products", tuple(self.products))

    @property
    def is_populated(self) -> bool:
        return bool(self.rfid_mappings) or bool(self.products)

    def lookup_by_code(self, material_id: str, variant_id: str) -> Optional[RfidMapping]:
        return self.rfid_mappings.get(f"{material_id}:{variant_id}")

    def find_products(
        self,
        vendor: str,
        hex: Optional[str] = None,
        material_type: Optional[str] = None,
    ) -> list[ProductEntry]:
        """Products of a vendor, optionally filtered by exact color and material (or base material)."""
        wanted_hex = normalize_hex(hex) if hex else None
        return [
            p for p in self.products
            if p.manufacturer.lower() == vendor.lower()
            and (hex is None or p.color_hex == wanted_hex)
            and (material_type is None or p.matches_material(material_type))
        ]

    @classmethod
    def from_dict(cls, data: Mapping) -> "FilamentMappings":
        return cls(
            rfid_mappings={
                code: RfidMapping.from_dict(code, d)
                for code, d in data.get("rfid_mappings", {}).items()
            },
            products=tuple(ProductEntry.from_dict(d) for d in data.get("products", [])),
            version=int(data.get("version", 0)),
        )

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "rfid_mappings": {code: m.to_dict() for code, m in self.rfid_mappings.items()},
            "products": [p.to_dict() for p in self.products],
        }
