from __future__ import annotations

import json
from pathlib import Path

import pytest

from clubsite.config import DEFAULT_SEED_USERS
from clubsite.errors import StoreError
from clubsite.store import FlatFileStore


@pytest.fixture()
def store(tmp_path: Path) -> FlatFileStore:
    file_store = FlatFileStore(tmp_path / "data")
    file_store.initialize(DEFAULT_SEED_USERS)
    return file_store


def test_initialize_seeds_every_collection(store: FlatFileStore) -> None:
    assert store.load("events") == []
    assert store.load("team") == []
    assert store.load("achievements") == []

    users = store.load("users")
    assert [entry["email"] for entry in users["bearers"]] == [
        "chair@s.smvitm.ac.in",
        "secretary@s.smvitm.ac.in",
    ]
    assert len(users["members"]) == 2


def test_initialize_leaves_existing_files_alone(store: FlatFileStore) -> None:
    store.save("team", [{"id": 1, "name": "Ada", "position": "Chair"}])
    store.initialize({"members": [], "bearers": []})

    assert store.load("team") == [{"id": 1, "name": "Ada", "position": "Chair"}]
    assert len(store.load("users")["members"]) == 2


def test_save_rewrites_the_whole_collection(store: FlatFileStore) -> None:
    store.save("events", [{"id": 1}, {"id": 2}])
    store.save("events", [{"id": 3}])

    assert store.load("events") == [{"id": 3}]
    on_disk = json.loads(store.path_for("events").read_text(encoding="utf-8"))
    assert on_disk == [{"id": 3}]


def test_malformed_collection_raises_store_error(store: FlatFileStore) -> None:
    store.path_for("achievements").write_text("{not json", encoding="utf-8")

    with pytest.raises(StoreError):
        store.load("achievements")
    with pytest.raises(StoreError):
        store.verify()


def test_missing_collection_raises_io_error(store: FlatFileStore) -> None:
    store.path_for("events").unlink()

    with pytest.raises(IOError):
        store.load("events")


def test_unknown_collection_is_rejected(store: FlatFileStore) -> None:
    with pytest.raises(KeyError):
        store.load("sponsors")
