# tests/unit/cache/test_unit_cache_models.py - v1

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from schedulebud.cache.models import (
    CacheStatistics,
    CachedTaskData,
    FingerprintCacheEntry,
    can_transition,
)

NOW = datetime(2024, 3, 1, tzinfo=timezone.utc)


def _entry(**kw) -> FingerprintCacheEntry:
    return FingerprintCacheEntry(content_hash="a" * 64, created_at=NOW, last_used_at=NOW, **kw)


class TestStatusTransitions:
    @pytest.mark.parametrize("current,target", [
        ("pending", "extracting"),
        ("extracting", "extracted"),
        ("extracted", "generating"),
        ("generating", "completed"),
        ("completed", "extracting"),
        ("failed", "pending"),
        ("pending", "pending"),
    ])
    def test_known(self, current, target):
        assert can_transition(current, target)

    @pytest.mark.parametrize("current,target", [
        ("pending", "completed"),
        ("completed", "generating"),
        ("expired", "completed"),
    ])
    def test_unusual(self, current, target):
        assert not can_transition(current, target)


class TestFingerprintCacheEntry:
    def test_defaults(self):
        entry = _entry()
        assert entry.processing_status == "pending"
        assert entry.use_count == 0
        assert entry.embeddings_created is False

    def test_embeddings_need_chunks(self):
        with pytest.raises(ValidationError, match="embedding_chunks"):
            _entry(embeddings_created=True)
        assert _entry(embeddings_created=True, embedding_chunks=3).embedding_chunks == 3

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            _entry(processing_status="done")

    def test_is_expired(self):
        assert not _entry().is_expired(NOW)
        assert _entry(expires_at=NOW).is_expired(NOW)
        assert not _entry(expires_at=NOW + timedelta(seconds=1)).is_expired(NOW)

    def test_tasks_trusted_only_when_completed(self):
        assert _entry(processing_status="completed").tasks_trusted
        assert not _entry(processing_status="generating").tasks_trusted

    def test_to_row_is_json_safe(self):
        row = _entry(generated_tasks=[CachedTaskData(title="Quiz", task_type="Exam")]).to_row()
        assert row["created_at"].startswith("2024-03-01")
        assert row["generated_tasks"][0]["priority"] == "medium"
        assert "class_id" not in row


class TestCachedTaskData:
    def test_confidence_bounds(self):
        with pytest.raises(ValidationError):
            CachedTaskData(title="x", task_type="y", confidence=1.5)


class TestCacheStatistics:
    def test_hit_rate(self):
        assert CacheStatistics().hit_rate == 0.0
        assert CacheStatistics(hits=3, misses=1).hit_rate == 0.75
