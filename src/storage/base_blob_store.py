# src/storage/base_blob_store.py - v1
"""Abstract blob store for class files."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BlobNotFoundError(FileNotFoundError):
    """Raised when a blob does not exist."""


class BaseBlobStore(ABC):
    """Unified interface for file storage backends."""

    @abstractmethod
    async def download(self, path: str) -> bytes:
        """Return the content stored at ``path``.

        Raises:
            BlobNotFoundError: Nothing stored at ``path``.
        """

    @abstractmethod
    async def upload(self, path: str, data: bytes) -> None:
        """Store ``data`` at ``path``, replacing existing content."""

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check if a blob exists."""
