"""Storage for photo and image attachments."""
from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import Callable, Iterable, List, Optional

import anyio

from .config import MAX_UPLOADS
from .errors import BadRequest
from .models import Photo

logger = logging.getLogger("clubsite.uploads")

_UNSAFE_CHARACTERS = re.compile(r"[^a-zA-Z0-9_.-]")


@dataclass(frozen=True)
class IncomingFile:
    """An uploaded file detached from the web framework."""

    filename: str
    content: bytes


def sanitise_filename(filename: str) -> str:
    base = PureWindowsPath(PurePosixPath(filename).name).name
    cleaned = _UNSAFE_CHARACTERS.sub("_", base)
    return cleaned or "upload"


def _millis() -> int:
    return int(time.time() * 1000)


class UploadStorage:
    """Write attachments to the uploads directory and expose them by URL."""

    def __init__(
        self,
        directory: Path,
        base_url: str,
        *,
        limit: int = MAX_UPLOADS,
        millis: Optional[Callable[[], int]] = None,
    ) -> None:
        self._directory = directory
        self._base_url = base_url.rstrip("/")
        self._limit = limit
        self._millis = millis or _millis
        self._last_stamp = 0

    @property
    def directory(self) -> Path:
        return self._directory

    def url_for(self, stored_name: str) -> str:
        return f"{self._base_url}/uploads/{stored_name}"

    def _next_stamp(self) -> int:
        # Strictly increasing so files saved within one millisecond never share a name.
        stamp = max(self._millis(), self._last_stamp + 1)
        self._last_stamp = stamp
        return stamp

    def _write(self, stored_name: str, content: bytes) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        with (self._directory / stored_name).open("xb") as handle:
            handle.write(content)

    def _store_one(self, item: IncomingFile) -> str:
        while True:
            stored_name = f"{self._next_stamp()}-{sanitise_filename(item.filename)}"
            try:
                self._write(stored_name, item.content)
            except FileExistsError:
                continue
            return stored_name

    def _remove(self, urls: List[str]) -> None:
        prefix = f"{self._base_url}/uploads/"
        for url in urls:
            if url.startswith(prefix):
                (self._directory / url[len(prefix):]).unlink(missing_ok=True)

    async def save(self, files: Iterable[IncomingFile]) -> List[Photo]:
        pending = [item for item in files if item.filename]
        if len(pending) > self._limit:
            raise BadRequest(f"At most {self._limit} files may be uploaded")

        stored: List[Photo] = []
        for item in pending:
            stored_name = await anyio.to_thread.run_sync(self._store_one, item)
            logger.info("Stored upload %s (%d bytes)", stored_name, len(item.content))
            stored.append(Photo(name=item.filename, url=self.url_for(stored_name)))
        return stored

    async def discard(self, photos: Iterable[Photo]) -> None:
        """Delete files written by :meth:`save` whose record was never persisted."""
        urls = [photo.url for photo in photos]
        if not urls:
            return
        await anyio.to_thread.run_sync(self._remove, urls)
        logger.info("Discarded %d unreferenced upload(s)", len(urls))


__all__ = ["IncomingFile", "UploadStorage", "sanitise_filename"]
