"""
spooltag: filament spool RFID key derivation and tag interpretation.

FastAPI service providing APIs for:
- HKDF sector key derivation for MIFARE Classic, behind a two-tier cache
- Interpreting decrypted tag memory (Bambu Lab, Creality, OpenTag)
- Importing already-decrypted 1K dumps
- Reloading the filament mapping catalog used for enrichment
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from spooltag.api import keys, scans
from spooltag.catalog.catalog import FilamentCatalog
from spooltag.config import (
    COLOR_MATCH_THRESHOLD, DATABASE_URL, KEY_CACHE_MEMORY_SIZE, KEY_CACHE_NAMESPACE,
    KEY_CACHE_PERSISTENT_SIZE, KEY_CACHE_TTL_SECONDS,
)
from spooltag.crypto.cached_kdf import CachedKeyDerivation
from spooltag.interpreter.factory import InterpreterFactory
from spooltag.storage.database import init_db, make_engine, make_session_factory
from spooltag.storage.kv_store import SqlKeyValueStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
    database_url: str = DATABASE_URL,
    catalog: Optional[FilamentCatalog] = None,
) -> FastAPI:
    """Build the app; services are created in the lifespan and live on ``app.state``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting spooltag...")
        engine = make_engine(database_url)
        init_db(engine)
        store = SqlKeyValueStore(make_session_factory(engine), KEY_CACHE_NAMESPACE)

        derivation = CachedKeyDerivation()
        derivation.initialize(
            store,
            memory_size=KEY_CACHE_MEMORY_SIZE,
            persistent_size=KEY_CACHE_PERSISTENT_SIZE,
            ttl_seconds=KEY_CACHE_TTL_SECONDS,
        )

        filament_catalog = catalog or FilamentCatalog()
        if not filament_catalog.is_loaded:
            await filament_catalog.load()

        app.state.key_derivation = derivation
        app.state.catalog = filament_catalog
        app.state.interpreter_factory = InterpreterFactory(
            filament_catalog, color_match_threshold=COLOR_MATCH_THRESHOLD
        )
        logger.info("Key cache and interpreters ready")
        try:
            yield
        finally:
            derivation.log_cache_statistics()
            derivation.shutdown()
            engine.dispose()
            logger.info("Shutting down spooltag")

    app = FastAPI(
        title="spooltag",
        description="Filament spool RFID key derivation and tag interpretation",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.include_router(keys.router)
    app.include_router(scans.router)
    return app


app = create_app()
