# tests/test_store.py

from __future__ import annotations

from pathlib import Path

from tasksheet.core.store import JsonFileStore, MemoryStore


def test_memory_store_copies_values() -> None:
    store = MemoryStore({"a": [1, 2]})
    value = store.get("a")
    value.append(3)

    assert store.get("a") == [1, 2]
    assert store.get("missing", "default") == "default"

    store.delete("a")
    store.delete("a")
    assert store.keys() == []


def test_json_file_store_persists_across_instances(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "state.json"
    store = JsonFileStore(path)

    store.set("connected_sheet", {"id": "abc", "name": "Team"})
    store.set("users/local/connected_sheets", [{"id": "abc"}])

    reopened = JsonFileStore(path)
    assert reopened.get("connected_sheet") == {"id": "abc", "name": "Team"}
    assert reopened.get("users/local/connected_sheets") == [{"id": "abc"}]

    reopened.delete("connected_sheet")
    assert JsonFileStore(path).get("connected_sheet") is None
    assert not path.with_suffix(".json.tmp").exists()


def test_json_file_store_tolerates_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    path.write_text("{not json", encoding="utf-8")
    store = JsonFileStore(path)

    assert store.get("connected_sheet") is None

    store.set("connected_sheet", {"id": "abc"})
    assert store.get("connected_sheet") == {"id": "abc"}
