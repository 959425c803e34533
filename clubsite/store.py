"""Whole-file JSON persistence for the site collections."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .errors import StoreError

logger = logging.getLogger("clubsite.store")

COLLECTIONS: Dict[str, str] = {
    "users": "users.json",
    "events": "events.json",
    "team": "team.json",
    "achievements": "achievements.json",
}


def resolve_data_dir(env_value: Optional[str]) -> Path:
    """Resolve the directory holding the collection files."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (Path(__file__).resolve().parent.parent / "data").resolve(strict=False)


def _empty_document(collection: str) -> Any:
    if collection == "users":
        return {"members": [], "bearers": []}
    return []


class FlatFileStore:
    """Load and save collections as whole JSON documents.

    There is no locking and no caching: every ``load`` re-reads the file and
    every ``save`` rewrites it, so two overlapping read-modify-write sequences
    on the same collection resolve as last-write-wins.
    """

    def __init__(self, directory: Path) -> None:
        self._directory = directory

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, collection: str) -> Path:
        try:
            filename = COLLECTIONS[collection]
        except KeyError as exc:
            raise KeyError(f"Unknown collection '{collection}'") from exc
        return self._directory / filename

    def initialize(self, seed_users: Optional[Mapping[str, Any]] = None) -> None:
        """Create the data directory and any missing collection files."""

        self._directory.mkdir(parents=True, exist_ok=True)
        for collection in COLLECTIONS:
            path = self.path_for(collection)
            if path.exists():
                continue
            if collection == "users" and seed_users is not None:
                document: Any = dict(seed_users)
            else:
                document = _empty_document(collection)
            self.save(collection, document)
            logger.info("Created %s collection at %s", collection, path)

    def verify(self) -> None:
        """Parse every collection once, raising :class:`StoreError` on the first bad file."""

        for collection in COLLECTIONS:
            self.load(collection)

    def load(self, collection: str) -> Any:
        path = self.path_for(collection)
        try:
            with path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except FileNotFoundError as exc:
            raise StoreError(f"Collection file {path} does not exist") from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise StoreError(f"Collection file {path} could not be read: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise StoreError(f"Collection file {path} is malformed: {exc}") from exc

    def save(self, collection: str, document: Any) -> None:
        path = self.path_for(collection)
        try:
            with path.open("w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2, ensure_ascii=False)
        except OSError as exc:
            raise StoreError(f"Collection file {path} could not be written: {exc}") from exc


__all__ = ["COLLECTIONS", "FlatFileStore", "resolve_data_dir"]
