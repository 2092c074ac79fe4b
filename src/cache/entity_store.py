# src/cache/entity_store.py - v1
"""Fingerprint cache kept as rows of the entity store (CACHE_BACKEND=entity).

This mirrors the hosted deployment, where fingerprints live in the
``file_fingerprints`` table next to classes and tasks, so uniqueness and
class foreign keys are enforced by the store itself.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from schedulebud.cache.base_cache_store import BaseFingerprintStore, serialize_patch
from schedulebud.cache.models import FingerprintCacheEntry
from schedulebud.core.errors import StoreError
from schedulebud.core.models import FILE_FINGERPRINTS
from schedulebud.store.base_entity_store import BaseEntityStore

logger = logging.getLogger(__name__)


class EntityFingerprintStore(BaseFingerprintStore):
    """Fingerprint cache on top of a BaseEntityStore."""

    def __init__(self, entity_store: BaseEntityStore, kind: str = FILE_FINGERPRINTS) -> None:
        self._store = entity_store
        self._kind = kind

    async def get(self, content_hash: str) -> FingerprintCacheEntry | None:
        rows = await self._store.get(self._kind, {"content_hash": content_hash})
        if not rows:
            return None
        return _row_to_entry(rows[0])

    async def insert(self, entry: FingerprintCacheEntry) -> FingerprintCacheEntry:
        row = await self._store.insert(self._kind, entry.to_row())
        return _row_to_entry(row)

    async def update(self, content_hash: str, patch: dict[str, Any]) -> bool:
        rows = await self._store.get(self._kind, {"content_hash": content_hash})
        if not rows:
            return False
        await self._store.update(self._kind, rows[0]["id"], serialize_patch(patch))
        return True

    async def delete_expired(self, now: datetime) -> int:
        deleted = 0
        for row in await self._store.get(self._kind):
            expires_at = row.get("expires_at")
            if expires_at and _parse_dt(expires_at) <= now:
                if await self._store.delete(self._kind, row["id"]):
                    deleted += 1
        return deleted

    async def list_entries(self) -> list[FingerprintCacheEntry]:
        entries: list[FingerprintCacheEntry] = []
        for row in await self._store.get(self._kind):
            try:
                entries.append(_row_to_entry(row))
            except StoreError:
                continue
        return entries


def _row_to_entry(row: dict[str, Any]) -> FingerprintCacheEntry:
    try:
        return FingerprintCacheEntry.model_validate(row)
    except ValidationError as e:
        raise StoreError(f"Malformed fingerprint row: {e.error_count()} errors") from e


def _parse_dt(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
