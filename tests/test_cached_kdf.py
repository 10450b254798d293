"""Tests for the cached key derivation facade and sector auth payloads."""

import pytest

from spooltag.crypto.cached_kdf import CachedKeyDerivation
from spooltag.crypto.kdf import derive_keys, derive_keys_from_hex
from spooltag.crypto.tag_auth import get_auth_payload, get_sector_auths
from spooltag.storage.database import init_db, make_engine, make_session_factory
from spooltag.storage.kv_store import MemoryKeyValueStore, SqlKeyValueStore

UID = bytes.fromhex("7AD43F1C")


@pytest.fixture
def derivation():
    facade = CachedKeyDerivation()
    yield facade
    facade.shutdown()


class TestUninitialized:
    def test_falls_back_to_direct_derivation(self, derivation):
        assert not derivation.is_cache_initialized()
        assert derivation.derive_keys(UID) == derive_keys(UID)

    def test_statistics_unavailable(self, derivation):
        assert derivation.get_cache_statistics() is None
        assert derivation.get_cache_sizes() is None
        assert derivation.get_cache_hit_rate() == 0.0
        assert not derivation.is_cached(UID)

    def test_management_calls_are_noops(self, derivation):
        derivation.preload_keys(UID)
        derivation.invalidate_uid(UID)
        derivation.clear_cache()
        derivation.log_cache_statistics()


class TestInitialized:
    def test_cached_result_matches_direct(self, derivation):
        uncached = derivation.derive_keys(UID)
        derivation.initialize(MemoryKeyValueStore("keys"))

        assert derivation.derive_keys(UID) == uncached
        assert derivation.derive_keys(UID) == uncached
        stats = derivation.get_cache_statistics()
        assert stats.misses == 1
        assert stats.memory_hits == 1
        assert derivation.get_cache_hit_rate() == pytest.approx(0.5)

    def test_initialize_is_idempotent(self, derivation):
        derivation.initialize(MemoryKeyValueStore("keys"), memory_size=3)
        derivation.initialize(MemoryKeyValueStore("other"), memory_size=99)
        assert derivation.get_cache_sizes().memory_max_size == 3

    def test_derive_keys_hex(self, derivation):
        derivation.initialize(MemoryKeyValueStore("keys"))
        assert derivation.derive_keys_hex("7ad43f1c") == derive_keys_from_hex("7AD43F1C")

    def test_is_cached_and_invalidate(self, derivation):
        derivation.initialize(MemoryKeyValueStore("keys"))
        derivation.derive_keys(UID)
        assert derivation.is_cached(UID)

        derivation.invalidate_uid(UID)
        assert not derivation.is_cached(UID)
        assert derivation.get_cache_statistics().invalidations == 1

    def test_clear_cache(self, derivation):
        derivation.initialize(MemoryKeyValueStore("keys"))
        derivation.derive_keys(UID)
        derivation.clear_cache()
        assert derivation.get_cache_statistics().total_requests == 0
        assert derivation.get_cache_sizes().memory_size == 0

    def test_shutdown_returns_to_uninitialized(self, derivation):
        derivation.initialize(MemoryKeyValueStore("keys"))
        derivation.shutdown()
        assert not derivation.is_cache_initialized()
        assert derivation.derive_keys(UID) == derive_keys(UID)

    def test_persists_through_sql_store(self, derivation):
        engine = make_engine("sqlite://")
        init_db(engine)
        store = SqlKeyValueStore(make_session_factory(engine), "derived_key_cache")

        derivation.initialize(store)
        derivation.derive_keys(UID)
        derivation.shutdown()

        derivation.initialize(store)
        assert derivation.derive_keys(UID) == derive_keys(UID)
        assert derivation.get_cache_statistics().persistent_hits == 1
        derivation.shutdown()
        engine.dispose()


class TestTagAuth:
    def test_sector_auths(self, derivation):
        auths = get_sector_auths(derivation, UID)
        assert [a.sector for a in auths] == list(range(16))
        assert auths[0].key_hex == derive_keys(UID)[0].hex().upper()

    def test_auth_payload(self, derivation):
        derivation.initialize(MemoryKeyValueStore("keys"))
        payload = get_auth_payload(derivation, UID)
        assert payload["uid"] == "7AD43F1C"
        assert len(payload["sectors"]) == 16
        assert payload["sectors"][5] == {
            "sector": 5,
            "key": derive_keys(UID)[5].hex().upper(),
        }
