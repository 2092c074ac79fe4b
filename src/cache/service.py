# src/cache/service.py - v2
"""Fingerprint cache service.

Wraps a BaseFingerprintStore so that cache failures never interrupt the
upload path: every public method returns a neutral value (None, False, 0)
when the backing store fails, and logs why.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any, TypeVar

from pydantic import ValidationError

from schedulebud.cache.base_cache_store import BaseFingerprintStore
from schedulebud.cache.models import (
    CacheConfig,
    CacheStatistics,
    CachedTaskData,
    FileFingerprint,
    FingerprintCacheEntry,
    ProcessingStatus,
    can_transition,
)
from schedulebud.core.errors import ForeignKeyViolationError, UniqueViolationError
from schedulebud.logging.logger import short_hash

logger = logging.getLogger(__name__)

T = TypeVar("T")
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FingerprintCacheService:
    """Lookup, store and lifecycle updates for fingerprint cache entries."""

    def __init__(
        self,
        store: BaseFingerprintStore,
        config: CacheConfig | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._config = config or CacheConfig()
        self._clock = clock
        self._pending: set[asyncio.Task[None]] = set()
        self._hits = 0
        self._misses = 0

    @property
    def config(self) -> CacheConfig:
        return self._config

    async def check_fingerprint(self, content_hash: str) -> FingerprintCacheEntry | None:
        """Look up an entry by content hash.

        A hit schedules a background bump of ``last_used_at``/``use_count``;
        the lookup does not wait for it.
        """
        entry = await self._guarded(
            "check_fingerprint", content_hash, self._store.get(content_hash), None
        )
        if entry is None:
            self._misses += 1
            logger.debug("Cache miss for %s", short_hash(content_hash))
            return None

        self._hits += 1
        logger.info(
            "Cache hit for %s (status=%s, uses=%d)",
            short_hash(content_hash), entry.processing_status, entry.use_count,
        )
        task = asyncio.create_task(self._bump_usage(entry))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return entry

    async def drain(self) -> None:
        """Wait for outstanding usage bumps."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def store_fingerprint(
        self,
        fingerprint: FileFingerprint,
        *,
        class_id: str | None = None,
        user_id: str | None = None,
        status: ProcessingStatus = "pending",
    ) -> FingerprintCacheEntry | None:
        """Create a cache entry for a freshly fingerprinted file.

        When another writer stored the same hash first, the existing entry
        is returned instead.
        """
        now = self._clock()
        entry = FingerprintCacheEntry(
            content_hash=fingerprint.content_hash,
            filename=fingerprint.filename,
            file_size=fingerprint.size,
            mime_type=fingerprint.mime_type,
            processing_status=status,
            created_at=now,
            last_used_at=now,
            expires_at=now + self._config.default_ttl,
            use_count=1,
            class_id=class_id,
            user_id=user_id,
        )
        label = short_hash(fingerprint.content_hash)
        try:
            stored = await self._store.insert(entry)
        except UniqueViolationError:
            logger.info("Fingerprint %s already cached, reusing entry", label)
            return await self._guarded(
                "store_fingerprint.refetch",
                fingerprint.content_hash,
                self._store.get(fingerprint.content_hash),
                None,
            )
        except ForeignKeyViolationError as e:
            logger.error(
                "Cannot cache fingerprint %s: class %r or user %r does not exist (%s)",
                label, class_id, user_id, e,
            )
            return None
        except Exception as e:
            logger.warning("store_fingerprint failed for %s: %s", label, e)
            return None
        logger.debug("Stored fingerprint %s for %s", label, fingerprint.filename)
        return stored

    async def update_processing_status(
        self,
        content_hash: str,
        status: ProcessingStatus,
        extra: dict[str, Any] | None = None,
    ) -> bool:
        """Record lifecycle progress and any produced artifacts.

        Recognised ``extra`` keys: extracted_text, extraction_method,
        generated_tasks, task_generation_metadata, embedding_chunks,
        processing_duration. The patched entry is validated before it is
        written; an invalid patch is logged and nothing is stored.
        """
        label = short_hash(content_hash)
        try:
            patch = self._build_patch(content_hash, status, extra or {})
        except Exception as e:
            logger.warning("Rejected cache update for %s: %s", label, e)
            return False

        current = await self._guarded(
            "update_processing_status.read", content_hash,
            self._store.get(content_hash), None,
        )
        if current is not None:
            try:
                FingerprintCacheEntry.model_validate({**current.model_dump(), **patch})
            except ValidationError as e:
                logger.warning(
                    "Rejected cache update for %s: %d invalid fields", label, e.error_count()
                )
                return False
            if not can_transition(current.processing_status, status):
                logger.warning(
                    "Unusual status transition for %s: %s -> %s",
                    label, current.processing_status, status,
                )

        updated = await self._guarded(
            "update_processing_status", content_hash,
            self._store.update(content_hash, patch), False,
        )
        if not updated:
            logger.debug("No cache entry updated for %s", label)
        return bool(updated)

    def _build_patch(
        self, content_hash: str, status: ProcessingStatus, extra: dict[str, Any]
    ) -> dict[str, Any]:
        patch: dict[str, Any] = {
            "processing_status": status,
            "last_used_at": self._clock(),
        }

        text = extra.get("extracted_text")
        if text is not None:
            if len(text) > self._config.max_text_length:
                logger.warning(
                    "Truncating cached text for %s from %d to %d chars",
                    short_hash(content_hash), len(text), self._config.max_text_length,
                )
                text = text[: self._config.max_text_length]
            patch["extracted_text"] = text
            patch["extracted_text_length"] = len(text)
            patch["extraction_method"] = extra.get("extraction_method") or "pdfjs"
        elif extra.get("extraction_method"):
            patch["extraction_method"] = extra["extraction_method"]

        tasks = extra.get("generated_tasks")
        if tasks is not None:
            patch["generated_tasks"] = [
                t if isinstance(t, CachedTaskData) else CachedTaskData.model_validate(t)
                for t in tasks[: self._config.max_tasks_per_file]
            ]

        if extra.get("task_generation_metadata") is not None:
            patch["task_generation_metadata"] = extra["task_generation_metadata"]

        chunks = extra.get("embedding_chunks")
        if chunks is not None:
            patch["embedding_chunks"] = chunks
            patch["embeddings_created"] = chunks > 0

        if extra.get("processing_duration") is not None:
            patch["last_processing_duration"] = extra["processing_duration"]
        return patch

    async def get_cached_text(self, content_hash: str) -> str | None:
        entry = await self._guarded(
            "get_cached_text", content_hash, self._store.get(content_hash), None
        )
        if entry is None or entry.processing_status == "failed":
            return None
        return entry.extracted_text or None

    async def get_cached_tasks(
        self, content_hash: str, class_id: str | None = None
    ) -> list[CachedTaskData] | None:
        """Tasks from a completed run, scoped to ``class_id`` when given."""
        entry = await self._guarded(
            "get_cached_tasks", content_hash, self._store.get(content_hash), None
        )
        if entry is None or not entry.tasks_trusted or not entry.generated_tasks:
            return None
        if class_id is not None and entry.class_id != class_id:
            logger.debug(
                "Cached tasks for %s belong to another class", short_hash(content_hash)
            )
            return None
        return list(entry.generated_tasks)

    async def cleanup_expired_entries(self) -> int:
        deleted = await self._guarded(
            "cleanup_expired_entries", None,
            self._store.delete_expired(self._clock()), 0,
        )
        if deleted:
            logger.info("Removed %d expired cache entries", deleted)
        return deleted

    async def get_statistics(self) -> CacheStatistics | None:
        entries = await self._guarded(
            "get_statistics", None, self._store.list_entries(), None
        )
        if entries is None:
            return None
        now = self._clock()
        stats = CacheStatistics(hits=self._hits, misses=self._misses)
        for entry in entries:
            stats.total_entries += 1
            if entry.is_expired(now):
                stats.expired_entries += 1
            stats.total_text_bytes += entry.extracted_text_length or 0
            status = entry.processing_status
            stats.status_counts[status] = stats.status_counts.get(status, 0) + 1
        return stats

    async def _bump_usage(self, entry: FingerprintCacheEntry) -> None:
        try:
            await self._store.update(
                entry.content_hash,
                {"last_used_at": self._clock(), "use_count": entry.use_count + 1},
            )
        except Exception as e:
            logger.debug("Usage bump failed for %s: %s", short_hash(entry.content_hash), e)

    async def _guarded(
        self,
        op: str,
        content_hash: str | None,
        coro: Awaitable[T],
        default: T,
    ) -> T:
        try:
            return await coro
        except Exception as e:
            logger.warning("Cache %s failed for %s: %s", op, short_hash(content_hash), e)
            return default
