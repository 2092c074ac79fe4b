# src/storage/local_blob_store.py - v1
"""Local filesystem blob store (default backend)."""

from __future__ import annotations

import asyncio
from pathlib import Path

from schedulebud.storage.base_blob_store import BaseBlobStore, BlobNotFoundError


class LocalBlobStore(BaseBlobStore):
    """Blobs as files under a root directory."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).expanduser()

    def _resolve(self, path: str) -> Path:
        target = (self._root / path.lstrip("/")).resolve()
        if not target.is_relative_to(self._root.resolve()):
            raise ValueError(f"Blob path escapes store root: {path!r}")
        return target

    async def download(self, path: str) -> bytes:
        p = self._resolve(path)
        try:
            return await asyncio.to_thread(p.read_bytes)
        except FileNotFoundError as e:
            raise BlobNotFoundError(path) from e

    async def upload(self, path: str, data: bytes) -> None:
        p = self._resolve(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(p.write_bytes, data)

    async def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()
