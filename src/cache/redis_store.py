# src/cache/redis_store.py - v2
"""Redis-based fingerprint cache store (CACHE_BACKEND=redis).

Requires 'redis' package: pip install redis.
Suitable for multi-instance deployments sharing one cache. Uniqueness of
content_hash is enforced with SET NX.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from schedulebud.cache.base_cache_store import BaseFingerprintStore, serialize_patch
from schedulebud.cache.models import FingerprintCacheEntry
from schedulebud.core.errors import StoreError, UniqueViolationError
from schedulebud.logging.logger import short_hash

logger = logging.getLogger(__name__)

_KEY_PREFIX = "schedulebud:fingerprint:"
_INDEX_KEY = "schedulebud:fingerprint:__index__"


class RedisFingerprintStore(BaseFingerprintStore):
    """Redis-backed fingerprint cache."""

    def __init__(self, redis_url: str, client: Any = None) -> None:
        if client is None:
            try:
                import redis
            except ImportError as e:
                raise ImportError(
                    "redis package required: pip install redis"
                ) from e
            client = redis.Redis.from_url(redis_url, decode_responses=True)
        self._client = client

    async def get(self, content_hash: str) -> FingerprintCacheEntry | None:
        data = self._call("get", f"{_KEY_PREFIX}{content_hash}")
        if data is None:
            return None
        return _decode(data)

    async def insert(self, entry: FingerprintCacheEntry) -> FingerprintCacheEntry:
        stored = entry.model_copy(update={"id": entry.id or entry.content_hash})
        created = self._call(
            "set", f"{_KEY_PREFIX}{stored.content_hash}", stored.model_dump_json(), nx=True
        )
        if not created:
            raise UniqueViolationError(
                f"fingerprint {short_hash(stored.content_hash)} already cached"
            )
        self._call("sadd", _INDEX_KEY, stored.content_hash)
        return stored

    async def update(self, content_hash: str, patch: dict[str, Any]) -> bool:
        key = f"{_KEY_PREFIX}{content_hash}"
        data = self._call("get", key)
        if data is None:
            return False
        merged = json.loads(data)
        merged.update(serialize_patch(patch))
        try:
            entry = FingerprintCacheEntry.model_validate(merged)
        except ValidationError as e:
            raise StoreError(f"Invalid fingerprint update: {e.error_count()} errors") from e
        self._call("set", key, entry.model_dump_json(), xx=True)
        return True

    async def delete_expired(self, now: datetime) -> int:
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        deleted = 0
        for entry in await self.list_entries():
            if entry.is_expired(now):
                self._call("delete", f"{_KEY_PREFIX}{entry.content_hash}")
                self._call("srem", _INDEX_KEY, entry.content_hash)
                deleted += 1
        return deleted

    async def list_entries(self) -> list[FingerprintCacheEntry]:
        """Scan the index set; Redis has no secondary index on entry fields."""
        entries: list[FingerprintCacheEntry] = []
        for content_hash in self._call("smembers", _INDEX_KEY) or ():
            data = self._call("get", f"{_KEY_PREFIX}{content_hash}")
            if data is None:
                # Stale index member
                self._call("srem", _INDEX_KEY, content_hash)
                continue
            try:
                entries.append(_decode(data))
            except StoreError as e:
                logger.warning("Skipping cache entry %s: %s", short_hash(content_hash), e)
        return entries

    def _call(self, method: str, *args: Any, **kwargs: Any) -> Any:
        try:
            return getattr(self._client, method)(*args, **kwargs)
        except Exception as e:
            raise StoreError(f"Redis {method} failed: {e}") from e


def _decode(data: str) -> FingerprintCacheEntry:
    try:
        return FingerprintCacheEntry.model_validate_json(data)
    except ValidationError as e:
        raise StoreError(f"Corrupt fingerprint entry: {e.error_count()} errors") from e
