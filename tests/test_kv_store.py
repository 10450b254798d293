"""Tests for the namespaced key-value stores."""

import pytest

from spooltag.storage.database import init_db, make_engine, make_session_factory
from spooltag.storage.kv_store import MemoryKeyValueStore, SqlKeyValueStore


@pytest.fixture
def session_factory():
    engine = make_engine("sqlite://")
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture(params=["sql", "memory"])
def store(request, session_factory):
    if request.param == "sql":
        return SqlKeyValueStore(session_factory, "keys")
    return MemoryKeyValueStore("keys")


class TestKeyValueStore:
    def test_get_missing_returns_none(self, store):
        assert store.get("nope") is None

    def test_put_and_get(self, store):
        store.put("7AD43F1C", '{"keys": []}')
        assert store.get("7AD43F1C") == '{"keys": []}'

    def test_put_overwrites(self, store):
        store.put("k", "one")
        store.put("k", "two")
        assert store.get("k") == "two"
        assert store.keys() == ["k"]

    def test_delete(self, store):
        store.put("k", "v")
        store.delete("k")
        assert store.get("k") is None

    def test_delete_missing_is_noop(self, store):
        store.delete("missing")

    def test_keys_and_clear(self, store):
        store.put("a", "1")
        store.put("b", "2")
        assert sorted(store.keys()) == ["a", "b"]
        store.clear()
        assert store.keys() == []


class TestSqlNamespaces:
    def test_namespaces_are_isolated(self, session_factory):
        first = SqlKeyValueStore(session_factory, "first")
        second = SqlKeyValueStore(session_factory, "second")
        first.put("k", "1")
        second.put("k", "2")

        assert first.get("k") == "1"
        assert second.get("k") == "2"

        first.clear()
        assert first.keys() == []
        assert second.keys() == ["k"]

    def test_data_survives_new_store_instance(self, session_factory):
        SqlKeyValueStore(session_factory, "cache").put("k", "v")
        assert SqlKeyValueStore(session_factory, "cache").get("k") == "v"
