# src/pipeline/upload.py - v1
"""Upload path: fingerprint, consult the cache, process only on a miss.

Text extraction and task generation are external collaborators supplied as
a TaskProcessor; this module only decides when they run and records their
results in the fingerprint cache.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Protocol

from pydantic import BaseModel, Field

from schedulebud.cache.fingerprint import FileSource, FingerprintOptions, create_file_fingerprint
from schedulebud.cache.models import (
    CachedTaskData,
    FileFingerprint,
    TaskGenerationMetadata,
)
from schedulebud.cache.service import FingerprintCacheService
from schedulebud.logging.context import set_operation_context, set_step
from schedulebud.logging.logger import short_hash

logger = logging.getLogger(__name__)


class TaskProcessor(Protocol):
    """Extracts text from a file and turns it into task drafts."""

    extraction_method: str

    async def extract_text(self, source: FileSource) -> str: ...

    async def generate_tasks(
        self, text: str, class_id: str | None
    ) -> list[CachedTaskData]: ...


class UploadOutcome(BaseModel):
    """Result of processing one upload."""

    fingerprint: FileFingerprint
    tasks: list[CachedTaskData] = Field(default_factory=list)
    from_cache: bool = False
    text_from_cache: bool = False
    processing_duration: int | None = None  # milliseconds


class UploadPipeline:
    """Cache-aware processing of uploaded files."""

    def __init__(
        self,
        cache: FingerprintCacheService | None,
        processor: TaskProcessor,
        options: FingerprintOptions | None = None,
    ) -> None:
        self._cache = cache
        self._processor = processor
        self._options = options or FingerprintOptions()

    async def process(
        self,
        source: FileSource,
        class_id: str | None = None,
        user_id: str | None = None,
    ) -> UploadOutcome:
        """Return tasks for ``source``, reusing cached results when possible.

        Raises:
            Exception: Whatever the processor raised; the entry is marked failed.
        """
        set_operation_context("upload", "fingerprint")
        fingerprint = await create_file_fingerprint(source, self._options)
        content_hash = fingerprint.content_hash
        label = short_hash(content_hash)

        if self._cache is None:
            return await self._run_uncached(source, fingerprint, class_id)

        text: str | None = None
        entry = await self._cache.check_fingerprint(content_hash)
        if entry is not None:
            cached_tasks = await self._cache.get_cached_tasks(content_hash, class_id)
            if cached_tasks:
                logger.info("Reusing %d cached tasks for %s", len(cached_tasks), label)
                return UploadOutcome(
                    fingerprint=fingerprint, tasks=cached_tasks, from_cache=True,
                    text_from_cache=True,
                )
            text = await self._cache.get_cached_text(content_hash)
        else:
            await self._cache.store_fingerprint(
                fingerprint, class_id=class_id, user_id=user_id
            )

        text_from_cache = text is not None
        started = time.monotonic()
        try:
            if text is None:
                set_step("extracting")
                await self._cache.update_processing_status(content_hash, "extracting")
                text = await self._processor.extract_text(source)
                await self._cache.update_processing_status(
                    content_hash, "extracted",
                    {
                        "extracted_text": text,
                        "extraction_method": self._processor.extraction_method,
                    },
                )
            else:
                logger.info("Reusing cached text for %s", label)

            set_step("generating")
            await self._cache.update_processing_status(content_hash, "generating")
            tasks = await self._processor.generate_tasks(text, class_id)
        except Exception:
            logger.exception("Processing failed for %s", label)
            await self._cache.update_processing_status(content_hash, "failed")
            raise

        duration = int((time.monotonic() - started) * 1000)
        confidences = [t.confidence for t in tasks]
        metadata = TaskGenerationMetadata(
            average_confidence=sum(confidences) / len(confidences) if confidences else 0.0,
            total_tasks=len(tasks),
            processing_duration=duration,
            generated_at=datetime.now(timezone.utc),
        )
        await self._cache.update_processing_status(
            content_hash, "completed",
            {
                "generated_tasks": tasks,
                "task_generation_metadata": metadata,
                "processing_duration": duration,
            },
        )
        logger.info("Generated %d tasks for %s in %d ms", len(tasks), label, duration)
        return UploadOutcome(
            fingerprint=fingerprint,
            tasks=tasks,
            text_from_cache=text_from_cache,
            processing_duration=duration,
        )

    async def _run_uncached(
        self, source: FileSource, fingerprint: FileFingerprint, class_id: str | None
    ) -> UploadOutcome:
        started = time.monotonic()
        text = await self._processor.extract_text(source)
        tasks = await self._processor.generate_tasks(text, class_id)
        return UploadOutcome(
            fingerprint=fingerprint,
            tasks=tasks,
            processing_duration=int((time.monotonic() - started) * 1000),
        )
