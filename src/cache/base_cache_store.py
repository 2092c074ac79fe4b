# src/cache/base_cache_store.py - v2
"""Abstract fingerprint cache backing store.

Backends raise StoreError subclasses; the FingerprintCacheService is the
layer that turns failures into cache misses.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from schedulebud.cache.models import FingerprintCacheEntry


class BaseFingerprintStore(ABC):
    """Unified interface for fingerprint cache backends."""

    @abstractmethod
    async def get(self, content_hash: str) -> FingerprintCacheEntry | None:
        """Retrieve the entry for ``content_hash``, or None."""

    @abstractmethod
    async def insert(self, entry: FingerprintCacheEntry) -> FingerprintCacheEntry:
        """Insert a new entry.

        Raises:
            UniqueViolationError: An entry with this content hash exists.
            ForeignKeyViolationError: class_id/user_id references are invalid.
        """

    @abstractmethod
    async def update(self, content_hash: str, patch: dict[str, Any]) -> bool:
        """Apply a partial update; returns False when no entry matched."""

    @abstractmethod
    async def delete_expired(self, now: datetime) -> int:
        """Delete entries with ``expires_at <= now``; returns the count."""

    @abstractmethod
    async def list_entries(self) -> list[FingerprintCacheEntry]:
        """List all cached entries (statistics, diagnostics)."""


def serialize_patch(patch: dict[str, Any]) -> dict[str, Any]:
    """Convert datetimes and models in a partial update to JSON-safe values."""
    out: dict[str, Any] = {}
    for key, value in patch.items():
        if isinstance(value, datetime):
            out[key] = value.isoformat()
        elif isinstance(value, list):
            out[key] = [
                v.model_dump(mode="json") if hasattr(v, "model_dump") else v
                for v in value
            ]
        elif hasattr(value, "model_dump"):
            out[key] = value.model_dump(mode="json")
        else:
            out[key] = value
    return out
