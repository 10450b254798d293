"""
Filament catalog: RFID code mappings and product entries used to enrich
interpreted tags.

The catalog is loaded from a local JSON cache and, when a source URL is
configured, refreshed from it. Callers read through immutable
``FilamentMappings`` snapshots; a reload swaps the snapshot in one step.
"""

import json
import logging
from pathlib import Path
from typing import Optional

import aiofiles
import httpx

from spooltag.config import CATALOG_PATH, CATALOG_URL
from .models import FilamentMappings, ProductEntry, RfidMapping

logger = logging.getLogger(__name__)


class FilamentCatalog:
    """Holds the current mapping snapshot and knows how to reload it."""

    def __init__(
        self,
        mappings: Optional[FilamentMappings] = None,
        cache_file: Path = CATALOG_PATH,
        source_url: str = CATALOG_URL,
    ):
        self._mappings = mappings or FilamentMappings()
        self.cache_file = Path(cache_file)
        self.source_url = source_url

    @classmethod
    def from_dict(cls, data: dict, **kwargs) -> "FilamentCatalog":
        return cls(FilamentMappings.from_dict(data), **kwargs)

    @property
    def is_loaded(self) -> bool:
        return self._mappings.is_populated

    def current_mappings(self) -> FilamentMappings:
        return self._mappings

    def lookup_by_code(self, material_id: str, variant_id: str) -> Optional[RfidMapping]:
        return self._mappings.lookup_by_code(material_id, variant_id)

    def find_products(
        self,
        vendor: str,
        hex: Optional[str] = None,
        material_type: Optional[str] = None,
    ) -> list[ProductEntry]:
        return self._mappings.find_products(vendor, hex, material_type)

    def load_file(self, path: Optional[Path] = None) -> bool:
        """
        Load mappings from a JSON file (the local cache by default).

        Returns:
            True if the file was read; on any failure the current
            mappings are kept.
        """
        path = Path(path) if path else self.cache_file
        if not path.exists():
            logger.info(f"No catalog file at {path}")
            return False
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            self._mappings = FilamentMappings.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Catalog load from {path} failed: {e}")
            return False
        logger.info(
            f"Loaded catalog v{self._mappings.version}: "
            f"{len(self._mappings.rfid_mappings)} RFID mappings, "
            f"{len(self._mappings.products)} products"
        )
        return True

    async def load(self, force_refresh: bool = False) -> bool:
        """
        Load the catalog from the local cache, or fetch it from the source URL.

        A fetched catalog is written back to the local cache. Returns True if
        new mappings were installed.
        """
        if not force_refresh and self.cache_file.exists():
            try:
                async with aiofiles.open(str(self.cache_file), "r", encoding="utf-8") as f:
                    data = json.loads(await f.read())
                self._mappings = FilamentMappings.from_dict(data)
                logger.info(f"Loaded catalog from cache ({len(self._mappings.rfid_mappings)} mappings)")
                return True
            except (OSError, ValueError, KeyError, TypeError) as e:
                logger.warning(f"Catalog cache load failed: {e}")

        if not self.source_url:
            logger.info("No catalog source URL configured")
            return False

        try:
            async with httpx.AsyncClient() as client:
                resp = await client.get(self.source_url, timeout=30)
                resp.raise_for_status()
                data = resp.json()
            mappings = FilamentMappings.from_dict(data)
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Catalog fetch from {self.source_url} failed: {e}")
            return False

        self._mappings = mappings
        self.cache_file.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(str(self.cache_file), "w", encoding="utf-8") as f:
            await f.write(json.dumps(mappings.to_dict()))

        logger.info(f"Fetched catalog with {len(mappings.rfid_mappings)} mappings from {self.source_url}")
        return True
