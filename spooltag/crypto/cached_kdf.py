"""
Cached access point for sector key derivation.

Construct one ``CachedKeyDerivation`` at application startup, call
``initialize(store)`` once, hand the instance to whatever needs keys, and
call ``shutdown()`` on exit. Until ``initialize`` runs, ``derive_keys``
computes keys directly, so early callers still get correct results.
"""

import logging
import threading
from typing import Optional

from spooltag.storage.kv_store import KeyValueStore
from .kdf import derive_keys
from .key_cache import CacheSizeInfo, CacheStatistics, DerivedKeyCache

logger = logging.getLogger(__name__)


class CachedKeyDerivation:
    """Drop-in replacement for :func:`derive_keys` with a two-tier cache."""

    def __init__(self):
        self._cache: Optional[DerivedKeyCache] = None
        self._init_lock = threading.Lock()

    def initialize(self, store: KeyValueStore, **cache_options):
        """
        Build the cache on first call; later calls are no-ops.

        Args:
            store: Persistent key-value store for the second tier.
            **cache_options: Passed to :class:`DerivedKeyCache`
                (memory_size, persistent_size, ttl_seconds, clock).
        """
        if self._cache is not None:
            return
        with self._init_lock:
            if self._cache is None:
                self._cache = DerivedKeyCache(store, **cache_options)
                logger.info("Initialized cached key derivation")

    def is_cache_initialized(self) -> bool:
        return self._cache is not None

    def derive_keys(self, uid: bytes) -> list[bytes]:
        """
        Derive the 16 sector keys for a UID, using the cache when available.

        Args:
            uid: The tag UID as bytes.

        Returns:
            16 six-byte keys, identical to :func:`spooltag.crypto.kdf.derive_keys`.
        """
        cache = self._cache
        if cache is not None:
            return cache.get_derived_keys(uid)
        logger.warning("Key cache not initialized, falling back to direct computation")
        return derive_keys(uid)

    def derive_keys_hex(self, uid_hex: str) -> list[str]:
        """Hex-in, hex-out variant of :meth:`derive_keys`."""
        return [k.hex().upper() for k in self.derive_keys(bytes.fromhex(uid_hex))]

    def is_cached(self, uid: bytes) -> bool:
        return self._cache is not None and self._cache.contains(uid)

    def preload_keys(self, uid: bytes):
        """Warm the cache in the background, for a tag that is about to be read."""
        if self._cache is not None:
            self._cache.preload_keys(uid)

    def invalidate_uid(self, uid: bytes):
        if self._cache is not None:
            self._cache.invalidate_uid(uid)

    def clear_cache(self):
        if self._cache is not None:
            self._cache.clear_all()
            logger.info("Key cache cleared")

    def get_cache_statistics(self) -> Optional[CacheStatistics]:
        return self._cache.get_statistics() if self._cache is not None else None

    def get_cache_sizes(self) -> Optional[CacheSizeInfo]:
        return self._cache.get_cache_sizes() if self._cache is not None else None

    def get_cache_hit_rate(self) -> float:
        stats = self.get_cache_statistics()
        return stats.hit_rate if stats is not None else 0.0

    def log_cache_statistics(self):
        """Log the current counters and tier sizes."""
        stats = self.get_cache_statistics()
        sizes = self.get_cache_sizes()
        if stats is None or sizes is None:
            logger.warning("Cache statistics not available - cache is not initialized")
            return
        logger.info(
            f"Key cache: hit rate {stats.hit_rate:.0%} ({stats.total_hits}/{stats.total_requests}), "
            f"memory hits {stats.memory_hits}, persistent hits {stats.persistent_hits}, "
            f"misses {stats.misses}, errors {stats.errors}, "
            f"memory {sizes.memory_size}/{sizes.memory_max_size}, "
            f"persistent {sizes.persistent_size}/{sizes.persistent_max_size}"
        )

    def shutdown(self):
        """Stop background work and return to the uninitialized state."""
        with self._init_lock:
            cache, self._cache = self._cache, None
        if cache is not None:
            cache.close()
            logger.info("Cached key derivation shut down")
