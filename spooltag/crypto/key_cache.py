"""
Thread-safe two-tier cache for HKDF-derived MIFARE sector keys.

Tier 1 is an in-memory LRU (``OrderedDict``) sized for the UIDs seen in a
session. Tier 2 is a namespaced key-value store that survives restarts.
Every UID record lives under its own key. The persistent tier's recency
order is held in memory and written to a separate index record every
``INDEX_FLUSH_INTERVAL`` changes and on ``close()``; on startup it is
reconciled with the records actually stored.

Lookup order for ``get_derived_keys``:
  1. memory tier   -> memory hit
  2. persistent    -> persistent hit, promoted into memory
  3. derive_keys() -> miss, stored in both tiers

Entries older than the TTL are never served. Entries evicted from memory
are written back to the persistent tier instead of being dropped.
Corrupted persisted payloads are deleted and treated as misses.
"""

import logging
import threading
import time
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Generic, Optional, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError, field_validator

from spooltag.storage.kv_store import KeyValueStore
from .kdf import KEY_LENGTH, NUM_SECTORS, derive_keys, uid_to_hex

logger = logging.getLogger(__name__)

DEFAULT_MEMORY_SIZE = 5000
DEFAULT_PERSISTENT_SIZE = 20000
DEFAULT_TTL_SECONDS = 30 * 24 * 60 * 60

# UID records are keyed by hex strings, so this name cannot collide
INDEX_KEY = "__index__"

# Index changes held in memory before the index record is rewritten
INDEX_FLUSH_INTERVAL = 100

_INDEX_ADAPTER = TypeAdapter(list[str])

T = TypeVar("T")


# ──────────────────────────────────────────────
# Entries and statistics
# ──────────────────────────────────────────────

@dataclass
class CacheEntry(Generic[T]):
    """A cached value with its creation time and access bookkeeping."""
    data: T
    timestamp: float
    access_count: int = 0
    last_accessed: float = 0.0

    def is_expired(self, now: float, ttl_seconds: float) -> bool:
        return now - self.timestamp > ttl_seconds

    def touch(self, now: float):
        self.access_count += 1
        self.last_accessed = now


class PersistedKeyEntry(BaseModel):
    """Wire form of a key entry in the persistent tier."""
    keys: list[str]
    timestamp: float
    access_count: int = 0
    last_accessed: float = 0.0

    @field_validator("keys")
    @classmethod
    def _check_keys(cls, keys: list[str]) -> list[str]:
        if len(keys) != NUM_SECTORS:
            raise ValueError(f"expected {NUM_SECTORS} keys, got {len(keys)}")
        for key in keys:
            if len(key) != KEY_LENGTH * 2:
                raise ValueError(f"key {key!r} is not {KEY_LENGTH} bytes")
            bytes.fromhex(key)
        return keys

    @classmethod
    def from_entry(cls, entry: CacheEntry[list[bytes]]) -> "PersistedKeyEntry":
        return cls(
            keys=[k.hex().upper() for k in entry.data],
            timestamp=entry.timestamp,
            access_count=entry.access_count,
            last_accessed=entry.last_accessed,
        )

    def to_entry(self) -> CacheEntry[list[bytes]]:
        return CacheEntry(
            data=[bytes.fromhex(k) for k in self.keys],
            timestamp=self.timestamp,
            access_count=self.access_count,
            last_accessed=self.last_accessed,
        )


class CacheLevel(str, Enum):
    MEMORY = "memory"
    PERSISTENT = "persistent"


@dataclass(frozen=True)
class CacheStatistics:
    """Snapshot of the cache counters."""
    memory_hits: int = 0
    persistent_hits: int = 0
    misses: int = 0
    invalidations: int = 0
    errors: int = 0

    @property
    def total_hits(self) -> int:
        return self.memory_hits + self.persistent_hits

    @property
    def total_requests(self) -> int:
        return self.total_hits + self.misses

    @property
    def hit_rate(self) -> float:
        total = self.total_requests
        return self.total_hits / total if total else 0.0

    def to_dict(self) -> dict:
        return {
            "memory_hits": self.memory_hits,
            "persistent_hits": self.persistent_hits,
            "misses": self.misses,
            "invalidations": self.invalidations,
            "errors": self.errors,
            "total_hits": self.total_hits,
            "total_requests": self.total_requests,
            "hit_rate": round(self.hit_rate, 4),
        }


@dataclass(frozen=True)
class CacheSizeInfo:
    memory_size: int
    persistent_size: int
    memory_max_size: int
    persistent_max_size: int

    def to_dict(self) -> dict:
        return {
            "memory_size": self.memory_size,
            "persistent_size": self.persistent_size,
            "memory_max_size": self.memory_max_size,
            "persistent_max_size": self.persistent_max_size,
        }


# ──────────────────────────────────────────────
# Cache
# ──────────────────────────────────────────────

class DerivedKeyCache:
    """Memory + persistent cache in front of :func:`derive_keys`."""

    def __init__(
        self,
        store: KeyValueStore,
        derive: Callable[[bytes], list[bytes]] = derive_keys,
        memory_size: int = DEFAULT_MEMORY_SIZE,
        persistent_size: int = DEFAULT_PERSISTENT_SIZE,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        if memory_size < 1 or persistent_size < 1:
            raise ValueError("Cache capacities must be at least 1")
        if ttl_seconds <= 0:
            raise ValueError("Cache TTL must be positive")

        self._store = store
        self._derive = derive
        self._memory_size = memory_size
        self._persistent_size = persistent_size
        self._ttl = ttl_seconds
        self._clock = clock

        self._lock = threading.RLock()
        self._memory: OrderedDict[str, CacheEntry[list[bytes]]] = OrderedDict()
        self._stats = CacheStatistics()
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="key-cache")

        self._index_changes = 0
        with self._lock:
            self._index = self._load_index()
            self._enforce_persistent_bound()
            self._flush_index()

        logger.info(
            f"Initialized DerivedKeyCache (memory={memory_size}, "
            f"persistent={persistent_size}, ttl={ttl_seconds}s, "
            f"{len(self._index)} persisted entries)"
        )
        self._executor.submit(self._purge_in_background)

    # ── Public API ──

    def get_derived_keys(self, uid: bytes) -> list[bytes]:
        """
        Return the sector keys for a UID, deriving and caching on a miss.

        The result is identical whichever tier serves it. Failures of the
        backing store are counted as errors and the keys are derived
        directly, so the caller always gets a correct answer.
        """
        uid_hex = uid_to_hex(uid)

        try:
            cached = self._lookup(uid_hex)
        except Exception:
            logger.exception(f"Key cache lookup failed for UID {uid_hex}, deriving directly")
            self._record(errors=1)
            return self._derive(uid)
        if cached is not None:
            return cached

        start = time.perf_counter()
        keys = list(self._derive(uid))
        elapsed_ms = (time.perf_counter() - start) * 1000

        try:
            self._store_new(uid_hex, keys)
        except Exception:
            logger.exception(f"Failed to cache derived keys for UID {uid_hex}")
            self._record(errors=1)
        else:
            logger.debug(f"Derived and cached keys for UID {uid_hex} in {elapsed_ms:.1f}ms")
        return list(keys)

    def preload_keys(self, uid: bytes):
        """Warm the cache for a UID on a background worker. Never raises."""
        uid_hex = uid_to_hex(uid)
        with self._lock:
            entry = self._memory.get(uid_hex)
            if entry is not None and not entry.is_expired(self._clock(), self._ttl):
                logger.debug(f"Keys already cached for UID {uid_hex}")
                return
        try:
            self._executor.submit(self._preload, uid)
        except RuntimeError:
            logger.warning(f"Preload for UID {uid_hex} ignored, cache is closed")

    def invalidate_uid(self, uid: bytes):
        """Drop a UID from both tiers; its next lookup is a miss."""
        uid_hex = uid_to_hex(uid)
        with self._lock:
            self._memory.pop(uid_hex, None)
            try:
                self._remove_persistent(uid_hex)
            except Exception:
                logger.exception(f"Failed to remove UID {uid_hex} from persistent storage")
                self._record(errors=1)
            self._record(invalidations=1)
            self._maybe_flush_index()
        logger.debug(f"Invalidated cache for UID {uid_hex}")

    def clear_all(self):
        """Empty both tiers and reset the statistics."""
        with self._lock:
            self._memory.clear()
            self._index.clear()
            self._store.clear()
            self._index_changes = 0
            self._stats = CacheStatistics()
        logger.info("Cleared all cached keys")

    def get_statistics(self) -> CacheStatistics:
        with self._lock:
            return self._stats

    def get_cache_sizes(self) -> CacheSizeInfo:
        with self._lock:
            return CacheSizeInfo(
                memory_size=len(self._memory),
                persistent_size=len(self._index),
                memory_max_size=self._memory_size,
                persistent_max_size=self._persistent_size,
            )

    def contains(self, uid: bytes) -> bool:
        """Whether a UID is held in either tier. Does not touch recency or statistics."""
        uid_hex = uid_to_hex(uid)
        with self._lock:
            return uid_hex in self._memory or uid_hex in self._index

    def purge_expired(self) -> int:
        """Remove expired entries from both tiers. Returns the number removed."""
        removed = 0
        with self._lock:
            now = self._clock()
            for uid_hex in [u for u, e in self._memory.items() if e.is_expired(now, self._ttl)]:
                del self._memory[uid_hex]
            uids = list(self._index)

        for uid_hex in uids:
            with self._lock:
                if uid_hex not in self._index:
                    continue
                entry = self._load_persistent(uid_hex)
                if entry is not None and entry.is_expired(self._clock(), self._ttl):
                    self._remove_persistent(uid_hex)
                    removed += 1

        with self._lock:
            if self._index_changes:
                self._flush_index()

        if removed:
            logger.info(f"Purged {removed} expired entries from persistent storage")
        return removed

    def close(self):
        """Wait for background work, stop the worker pool and write the index."""
        self._executor.shutdown(wait=True)
        with self._lock:
            if self._index_changes:
                self._flush_index()

    # ── Lookup path ──

    def _lookup(self, uid_hex: str) -> Optional[list[bytes]]:
        with self._lock:
            now = self._clock()

            entry = self._memory.get(uid_hex)
            if entry is not None:
                if not entry.is_expired(now, self._ttl):
                    self._memory.move_to_end(uid_hex)
                    entry.touch(now)
                    self._record_hit(CacheLevel.MEMORY)
                    logger.debug(f"Cache HIT (memory) for UID {uid_hex}")
                    return list(entry.data)
                logger.debug(f"Memory cache entry expired for UID {uid_hex}")
                del self._memory[uid_hex]

            entry = self._load_persistent(uid_hex)
            if entry is not None:
                if not entry.is_expired(now, self._ttl):
                    entry.touch(now)
                    self._index_touch(uid_hex)
                    self._put_memory(uid_hex, entry)
                    self._record_hit(CacheLevel.PERSISTENT)
                    logger.debug(f"Cache HIT (persistent) for UID {uid_hex}")
                    self._maybe_flush_index()
                    return list(entry.data)
                logger.debug(f"Persistent cache entry expired for UID {uid_hex}")
                self._remove_persistent(uid_hex)

            self._record(misses=1)
            logger.debug(f"Cache MISS for UID {uid_hex}")
            self._maybe_flush_index()
            return None

    def _store_new(self, uid_hex: str, keys: list[bytes]):
        now = self._clock()
        entry = CacheEntry(data=list(keys), timestamp=now, access_count=1, last_accessed=now)
        with self._lock:
            self._save_persistent(uid_hex, entry)
            self._put_memory(uid_hex, entry)
            self._maybe_flush_index()

    def _preload(self, uid: bytes):
        try:
            self.get_derived_keys(uid)
        except Exception:
            logger.exception(f"Failed to preload keys for UID {uid_to_hex(uid)}")

    def _purge_in_background(self):
        try:
            self.purge_expired()
        except Exception:
            logger.exception("Error during key cache cleanup")

    # ── Memory tier ──

    def _put_memory(self, uid_hex: str, entry: CacheEntry[list[bytes]]):
        self._memory[uid_hex] = entry
        self._memory.move_to_end(uid_hex)
        while len(self._memory) > self._memory_size:
            evicted_uid, evicted = self._memory.popitem(last=False)
            logger.debug(f"Evicted UID {evicted_uid} from memory, writing back")
            self._save_persistent(evicted_uid, evicted)

    # ── Persistent tier ──

    def _load_persistent(self, uid_hex: str) -> Optional[CacheEntry[list[bytes]]]:
        raw = self._store.get(uid_hex)
        if raw is None:
            if uid_hex in self._index:
                del self._index[uid_hex]
                self._index_changes += 1
            return None
        try:
            entry = PersistedKeyEntry.model_validate_json(raw).to_entry()
        except ValidationError as e:
            logger.warning(f"Discarding corrupted cache entry for UID {uid_hex}: {e.error_count()} error(s)")
            self._remove_persistent(uid_hex)
            return None
        if uid_hex not in self._index:
            # Record survived a lost index; adopt it
            self._index_touch(uid_hex)
        return entry

    def _save_persistent(self, uid_hex: str, entry: CacheEntry[list[bytes]]):
        self._store.put(uid_hex, PersistedKeyEntry.from_entry(entry).model_dump_json())
        self._index_touch(uid_hex)

    def _remove_persistent(self, uid_hex: str):
        self._store.delete(uid_hex)
        if uid_hex in self._index:
            del self._index[uid_hex]
            self._index_changes += 1

    def _index_touch(self, uid_hex: str):
        self._index[uid_hex] = None
        self._index.move_to_end(uid_hex)
        self._index_changes += 1
        self._enforce_persistent_bound()

    def _enforce_persistent_bound(self):
        while len(self._index) > self._persistent_size:
            oldest, _ = self._index.popitem(last=False)
            self._store.delete(oldest)
            self._index_changes += 1
            logger.debug(f"Evicted UID {oldest} from persistent storage")

    # ── Recency index ──

    def _load_index(self) -> "OrderedDict[str, None]":
        """
        Recency order of the persistent tier, reconciled with the stored records.

        The index record is only rewritten every ``INDEX_FLUSH_INTERVAL``
        changes, so after an unclean stop it can miss recent records or name
        deleted ones. Unknown records are appended as most recent.
        """
        stored = [k for k in self._store.keys() if k != INDEX_KEY]
        order: list[str] = []
        raw = self._store.get(INDEX_KEY)
        if raw is not None:
            try:
                order = _INDEX_ADAPTER.validate_json(raw)
            except ValidationError:
                logger.warning("Key cache index is corrupted, rebuilding from stored records")
        present = set(stored)
        index = OrderedDict.fromkeys(k for k in order if k in present)
        for uid_hex in stored:
            if uid_hex not in index:
                index[uid_hex] = None
        return index

    def _maybe_flush_index(self):
        if self._index_changes >= INDEX_FLUSH_INTERVAL:
            self._flush_index()

    def _flush_index(self):
        self._store.put(INDEX_KEY, _INDEX_ADAPTER.dump_json(list(self._index)).decode("ascii"))
        self._index_changes = 0

    # ── Statistics ──

    def _record_hit(self, level: CacheLevel):
        if level is CacheLevel.MEMORY:
            self._record(memory_hits=1)
        else:
            self._record(persistent_hits=1)

    def _record(self, **increments: int):
        with self._lock:
            self._stats = replace(
                self._stats,
                **{name: getattr(self._stats, name) + n for name, n in increments.items()},
            )
