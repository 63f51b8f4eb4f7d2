"""Tests for the ledger persistence backends."""

import json
from pathlib import Path

import portalocker
import pytest

from carbon_offsets.errors import PersistenceUnavailable
from carbon_offsets.ledger.storage import JsonFileStore, KeyValueStore, MemoryStore


def test_memory_store_copies_values():
    store = MemoryStore()
    value = {"items": [1, 2]}
    store.set("bucket", value)
    value["items"].append(3)

    loaded = store.get("bucket")
    assert loaded == {"items": [1, 2]}
    loaded["items"].append(4)
    assert store.get("bucket") == {"items": [1, 2]}
    assert store.get("missing", "fallback") == "fallback"


def test_stores_satisfy_protocol(tmp_path: Path):
    assert isinstance(MemoryStore(), KeyValueStore)
    assert isinstance(JsonFileStore(tmp_path / "store.json"), KeyValueStore)


def test_json_store_round_trip(tmp_path: Path):
    path = tmp_path / "nested" / "store.json"
    store = JsonFileStore(path)

    assert store.get("carbonStats") is None
    store.set("carbonStats", {"totalOffsetCount": 2})
    store.set("autoOffsetEnabled", True)

    document = json.loads(path.read_text(encoding="utf-8"))
    assert document == {"carbonStats": {"totalOffsetCount": 2}, "autoOffsetEnabled": True}

    reopened = JsonFileStore(path)
    assert reopened.get("carbonStats") == {"totalOffsetCount": 2}
    assert reopened.get("autoOffsetEnabled") is True


def test_json_store_leaves_no_temp_files(tmp_path: Path):
    store = JsonFileStore(tmp_path / "store.json")
    for index in range(3):
        store.set("bucket", index)
    assert sorted(p.name for p in tmp_path.iterdir()) == ["store.json", "store.json.lock"]


def test_empty_file_reads_as_empty(tmp_path: Path):
    path = tmp_path / "store.json"
    path.write_text("  \n", encoding="utf-8")
    assert JsonFileStore(path).get("bucket", 7) == 7


CORRUPT_DOCUMENTS = ["{not json", "[1, 2, 3]"]


@pytest.mark.parametrize("content", CORRUPT_DOCUMENTS)
def test_corrupt_document_is_unreadable(tmp_path: Path, content: str):
    path = tmp_path / "store.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(PersistenceUnavailable):
        JsonFileStore(path).get("bucket")


@pytest.mark.parametrize("content", CORRUPT_DOCUMENTS)
def test_write_moves_corrupt_document_aside(tmp_path: Path, content: str):
    path = tmp_path / "store.json"
    path.write_text(content, encoding="utf-8")
    store = JsonFileStore(path)

    store.set("bucket", 1)

    assert store.get("bucket") == 1
    assert json.loads(path.read_text(encoding="utf-8")) == {"bucket": 1}
    assert store.quarantine_path.read_text(encoding="utf-8") == content


def test_undecodable_document_is_moved_aside(tmp_path: Path):
    path = tmp_path / "store.json"
    path.write_bytes(b"\xff\xfe\x00garbage")
    store = JsonFileStore(path)

    with pytest.raises(PersistenceUnavailable):
        store.get("bucket")
    store.update({"bucket": 2})
    assert store.get("bucket") == 2
    assert store.quarantine_path.exists()


def test_unserialisable_value_is_unavailable(tmp_path: Path):
    path = tmp_path / "store.json"
    store = JsonFileStore(path)
    store.set("bucket", 1)

    with pytest.raises(PersistenceUnavailable):
        store.set("bucket", object())

    assert store.get("bucket") == 1
    assert sorted(p.name for p in tmp_path.iterdir()) == ["store.json", "store.json.lock"]


def test_update_replaces_several_buckets(tmp_path: Path):
    path = tmp_path / "store.json"
    store = JsonFileStore(path)
    store.set("autoOffsetEnabled", True)

    store.update({"carbonStats": {"totalOffsetCount": 1}, "recentOffsets": []})

    document = json.loads(path.read_text(encoding="utf-8"))
    assert document == {
        "autoOffsetEnabled": True,
        "carbonStats": {"totalOffsetCount": 1},
        "recentOffsets": [],
    }


def test_memory_store_update_copies_values():
    store = MemoryStore({"keep": 1})
    values = {"items": [1]}
    store.update({"bucket": values})
    values["items"].append(2)

    assert store.get("bucket") == {"items": [1]}
    assert store.get("keep") == 1


def test_write_holds_the_store_file_lock(tmp_path: Path, monkeypatch):
    store = JsonFileStore(tmp_path / "store.json")
    write_document = store._write_document
    contended = []

    def write_while_checking(document):
        with store.lock_path.open("a+b") as other:
            try:
                portalocker.lock(other, portalocker.LOCK_EX | portalocker.LOCK_NB)
            except portalocker.LockException:
                contended.append(True)
            else:
                portalocker.unlock(other)
                contended.append(False)
        write_document(document)

    monkeypatch.setattr(store, "_write_document", write_while_checking)
    store.set("bucket", 1)

    assert contended == [True]
    with store.lock_path.open("a+b") as other:
        portalocker.lock(other, portalocker.LOCK_EX | portalocker.LOCK_NB)
        portalocker.unlock(other)


def test_lock_failure_is_unavailable(tmp_path: Path, monkeypatch):
    path = tmp_path / "store.json"
    store = JsonFileStore(path)

    def refuse(_fp, _flags):
        raise portalocker.LockException("held elsewhere")

    monkeypatch.setattr(portalocker, "lock", refuse)

    with pytest.raises(PersistenceUnavailable):
        store.set("bucket", 1)
    assert not path.exists()
