"""Raw message storage. Keys look like "emails/<id>.eml"."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional, Protocol

import config

logger = logging.getLogger("mailportal.blobs")


class BlobStore(Protocol):
    async def put(self, key: str, data: bytes) -> None: ...

    async def delete(self, key: str) -> None: ...


class FilesystemBlobStore:
    """Blobs as files under a root directory. File I/O runs in a worker thread."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"Blob key escapes store root: {key!r}")
        return path

    def _write(self, key: str, data: bytes) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    async def put(self, key: str, data: bytes) -> None:
        await asyncio.to_thread(self._write, key, data)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._path(key).unlink, missing_ok=True)


def get_blob_store() -> Optional[BlobStore]:
    """Configured store, or None when MAIL_BLOB_DIR is unset."""
    if not config.MAIL_BLOB_DIR:
        return None
    return FilesystemBlobStore(config.MAIL_BLOB_DIR)
