"""Tests for the key-value stores."""

import pytest

from semdex.errors import PersistenceError
from semdex.storage import InMemoryKeyValueStore, SQLiteKeyValueStore, open_store


@pytest.fixture(params=["memory", "sqlite"])
def kv(request, tmp_path):
    if request.param == "memory":
        store = InMemoryKeyValueStore()
    else:
        store = SQLiteKeyValueStore(str(tmp_path / "kv.db"))
    yield store
    store.close()


def test_get_set_remove(kv):
    assert kv.get("missing") is None
    kv.set("doc", {"title": "Notes", "tags": ["a", "b"]})
    assert kv.get("doc") == {"title": "Notes", "tags": ["a", "b"]}
    kv.set("doc", [1, 2])
    assert kv.get("doc") == [1, 2]
    assert kv.remove("doc")
    assert not kv.remove("doc")
    assert kv.get("doc") is None


def test_ttl_expiry(kv):
    kv.set("short", "gone", ttl=0)
    kv.set("long", "kept", ttl=3600)
    kv.set("forever", "kept")
    assert kv.get("short") is None
    assert kv.get("long") == "kept"
    assert sorted(kv.keys()) == ["forever", "long"]


def test_purge_expired(kv):
    kv.set("a", 1, ttl=0)
    kv.set("b", 2, ttl=0)
    kv.set("c", 3)
    assert kv.purge_expired() == 2
    assert kv.keys() == ["c"]


def test_keys_prefix(kv):
    for key in ("document_a", "document_b", "chunks_a", "doc%x"):
        kv.set(key, True)
    assert sorted(kv.keys("document_")) == ["document_a", "document_b"]
    assert kv.keys("doc%") == ["doc%x"]


def test_unserializable_value(kv):
    with pytest.raises(PersistenceError):
        kv.set("bad", object())


def test_sqlite_persists_across_instances(tmp_path):
    path = str(tmp_path / "kv.db")
    first = SQLiteKeyValueStore(path)
    first.set("indexed_documents", ["doc1"])
    first.close()

    second = SQLiteKeyValueStore(path)
    assert second.get("indexed_documents") == ["doc1"]
    second.close()


def test_open_store(tmp_path):
    assert isinstance(open_store(), InMemoryKeyValueStore)
    assert isinstance(open_store(":memory:"), InMemoryKeyValueStore)
    store = open_store(str(tmp_path / "x.db"))
    assert isinstance(store, SQLiteKeyValueStore)
    store.close()
