# tests/unit/pipeline/test_unit_upload.py - v2
"""Tests for UploadPipeline: cache hits skip the processor."""

from __future__ import annotations

import pytest

from schedulebud.cache.entity_store import EntityFingerprintStore
from schedulebud.cache.fingerprint import FileSource
from schedulebud.cache.models import CachedTaskData
from schedulebud.cache.service import FingerprintCacheService
from schedulebud.core.models import FILE_FINGERPRINTS
from schedulebud.pipeline.upload import UploadPipeline


class FakeProcessor:
    """Counts calls; optionally fails during generation."""

    extraction_method = "enhanced"

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.extract_calls = 0
        self.generate_calls = 0

    async def extract_text(self, source: FileSource) -> str:
        self.extract_calls += 1
        return f"Syllabus text of {source.filename}"

    async def generate_tasks(self, text: str, class_id: str | None) -> list[CachedTaskData]:
        self.generate_calls += 1
        if self.fail:
            raise RuntimeError("model unavailable")
        return [
            CachedTaskData(title="Midterm", task_type="Exam", due_date="2024-03-15",
                           confidence=0.9),
            CachedTaskData(title="Essay", task_type="Homework", confidence=0.7),
        ]


def _source(content: bytes = b"%PDF-1.7 syllabus") -> FileSource:
    return FileSource.from_bytes(content, "syllabus.pdf")


@pytest.fixture
def cache(memory_store, clock) -> FingerprintCacheService:
    return FingerprintCacheService(EntityFingerprintStore(memory_store), clock=clock)


class TestUploadPipeline:
    @pytest.mark.asyncio
    async def test_miss_processes_and_caches(self, cache):
        processor = FakeProcessor()
        outcome = await UploadPipeline(cache, processor).process(_source(), user_id="user-1")

        assert not outcome.from_cache
        assert [t.title for t in outcome.tasks] == ["Midterm", "Essay"]
        assert outcome.processing_duration is not None
        entry = await cache.check_fingerprint(outcome.fingerprint.content_hash)
        assert entry.processing_status == "completed"
        assert entry.extraction_method == "enhanced"
        assert entry.task_generation_metadata.total_tasks == 2
        assert entry.task_generation_metadata.average_confidence == pytest.approx(0.8)
        await cache.drain()

    @pytest.mark.asyncio
    async def test_identical_upload_skips_processing(self, cache):
        processor = FakeProcessor()
        pipeline = UploadPipeline(cache, processor)
        await pipeline.process(_source())

        outcome = await pipeline.process(_source())
        await cache.drain()

        assert outcome.from_cache
        assert [t.title for t in outcome.tasks] == ["Midterm", "Essay"]
        assert processor.extract_calls == 1
        assert processor.generate_calls == 1

    @pytest.mark.asyncio
    async def test_different_content_is_processed(self, cache):
        processor = FakeProcessor()
        pipeline = UploadPipeline(cache, processor)
        await pipeline.process(_source(b"one"))
        await pipeline.process(_source(b"two"))
        await cache.drain()
        assert processor.extract_calls == 2

    @pytest.mark.asyncio
    async def test_failure_marks_entry_failed(self, cache, memory_store):
        processor = FakeProcessor(fail=True)
        pipeline = UploadPipeline(cache, processor)
        with pytest.raises(RuntimeError, match="model unavailable"):
            await pipeline.process(_source())

        (row,) = await memory_store.get(FILE_FINGERPRINTS)
        assert row["processing_status"] == "failed"

        processor.fail = False
        outcome = await pipeline.process(_source())
        await cache.drain()
        assert not outcome.from_cache
        assert processor.extract_calls == 2
        assert processor.generate_calls == 2

    @pytest.mark.asyncio
    async def test_degraded_cache_still_processes(self, failing_store, clock):
        processor = FakeProcessor()
        cache = FingerprintCacheService(failing_store, clock=clock)
        outcome = await UploadPipeline(cache, processor).process(_source())
        assert len(outcome.tasks) == 2
        assert processor.generate_calls == 1

    @pytest.mark.asyncio
    async def test_without_cache(self):
        processor = FakeProcessor()
        pipeline = UploadPipeline(None, processor)
        await pipeline.process(_source())
        outcome = await pipeline.process(_source())
        assert not outcome.from_cache
        assert processor.extract_calls == 2

    @pytest.mark.asyncio
    async def test_custom_extraction_method_keeps_cache_usable(self, cache):
        processor = FakeProcessor()
        processor.extraction_method = "ocr"
        pipeline = UploadPipeline(cache, processor)
        await pipeline.process(_source())

        outcome = await pipeline.process(_source())
        await cache.drain()

        assert outcome.from_cache
        assert processor.generate_calls == 1
        entry = await cache.check_fingerprint(outcome.fingerprint.content_hash)
        assert entry.extraction_method == "ocr"
        await cache.drain()
