"""Tests for the durable key/value stores."""

from repo_metadata.infrastructure.durable_stores import FileSystemStore, InMemoryStore


def test_filesystem_store_roundtrip(tmp_path):
    store = FileSystemStore(tmp_path / "cache")
    key = "cache-repo-metadata:GITLAB:group/sub/project"

    store.set(key, '{"a": 1}')

    assert store.get(key) == '{"a": 1}'
    assert list(store.keys()) == [key]
    assert not list(tmp_path.glob("cache/*.tmp"))


def test_filesystem_store_survives_new_instance(tmp_path):
    FileSystemStore(tmp_path).set("k", "v")

    assert FileSystemStore(tmp_path).get("k") == "v"


def test_filesystem_store_delete_is_idempotent(tmp_path):
    store = FileSystemStore(tmp_path)
    store.set("k", "v")

    store.delete("k")
    store.delete("k")

    assert store.get("k") is None
    assert list(store.keys()) == []


def test_in_memory_store():
    store = InMemoryStore()
    store.set("a", "1")
    store.set("b", "2")
    store.delete("a")

    assert store.get("a") is None
    assert list(store.keys()) == ["b"]
    assert len(store) == 1
