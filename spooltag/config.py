"""Application configuration."""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent
DATABASE_URL = os.getenv("SPOOLTAG_DATABASE_URL", f"sqlite:///{BASE_DIR / 'spooltag.db'}")

# Derived key cache
KEY_CACHE_NAMESPACE = os.getenv("SPOOLTAG_KEY_CACHE_NAMESPACE", "derived_key_cache")
KEY_CACHE_MEMORY_SIZE = int(os.getenv("SPOOLTAG_KEY_CACHE_MEMORY_SIZE", "5000"))
KEY_CACHE_PERSISTENT_SIZE = int(os.getenv("SPOOLTAG_KEY_CACHE_PERSISTENT_SIZE", "20000"))
KEY_CACHE_TTL_DAYS = float(os.getenv("SPOOLTAG_KEY_CACHE_TTL_DAYS", "30"))
KEY_CACHE_TTL_SECONDS = KEY_CACHE_TTL_DAYS * 24 * 60 * 60

# Interpretation
COLOR_MATCH_THRESHOLD = float(os.getenv("SPOOLTAG_COLOR_MATCH_THRESHOLD", "100"))

# Mapping / product catalog
CATALOG_PATH = Path(os.getenv("SPOOLTAG_CATALOG_PATH", str(BASE_DIR / "catalog_cache" / "catalog.json")))
CATALOG_URL = os.getenv("SPOOLTAG_CATALOG_URL", "")
