# src/cache/models.py - v2
"""Cache domain models: FileFingerprint, FingerprintCacheEntry and friends.

A cache entry records how far a fingerprinted upload got through the
processing pipeline (extraction, embeddings, task generation) so that a
re-upload of identical content can reuse the results.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

ProcessingStatus = Literal[
    "pending",      # fingerprinted, not processed
    "processing",
    "extracting",
    "extracted",
    "embedding",
    "embedded",
    "generating",
    "completed",
    "failed",
    "expired",
]

STATUS_TRANSITIONS: dict[str, tuple[str, ...]] = {
    "pending": ("extracting", "processing", "failed"),
    "processing": ("extracting", "completed", "failed"),
    "extracting": ("extracted", "failed"),
    "extracted": ("embedding", "generating", "completed"),
    "embedding": ("embedded", "failed"),
    "embedded": ("generating", "completed"),
    "generating": ("completed", "failed"),
    "completed": ("extracting",),   # reprocessing
    "failed": ("pending", "extracting"),   # retry
    "expired": ("pending",),
}


def can_transition(current: str, target: str) -> bool:
    """Whether ``current -> target`` is a known lifecycle transition."""
    if current == target:
        return True
    return target in STATUS_TRANSITIONS.get(current, ())


class FileFingerprint(BaseModel):
    """Content-derived identity of an uploaded file."""

    content_hash: str
    filename: str
    size: int
    mime_type: str = "application/octet-stream"
    created_at: datetime


class CachedTaskData(BaseModel):
    """A task draft generated from a file, cached for reuse."""

    title: str
    description: str | None = None
    due_date: str | None = None
    assignment_date: str | None = None
    session_date: str | None = None
    task_type: str
    priority: Literal["low", "medium", "high"] = "medium"
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    tags: list[str] = Field(default_factory=list)
    estimated_duration: int | None = None


class TaskGenerationMetadata(BaseModel):
    """Summary of one task-generation pass."""

    average_confidence: float
    total_tasks: int
    processing_duration: int  # milliseconds
    generated_at: datetime
    warnings: list[str] = Field(default_factory=list)
    duplicates_detected: int = 0
    duplicates_removed: int = 0


class FingerprintCacheEntry(BaseModel):
    """Fingerprint -> processing state record."""

    id: str | None = None
    content_hash: str
    filename: str = ""
    file_size: int = 0
    mime_type: str = "application/octet-stream"

    processing_status: ProcessingStatus = "pending"
    created_at: datetime
    last_used_at: datetime
    expires_at: datetime | None = None

    extracted_text: str | None = None
    extracted_text_length: int | None = None
    # pdfjs, enhanced, fallback or whatever the TaskProcessor reports
    extraction_method: str | None = None

    generated_tasks: list[CachedTaskData] | None = None
    task_generation_metadata: TaskGenerationMetadata | None = None

    embedding_chunks: int = 0
    embeddings_created: bool = False

    use_count: int = 0
    last_processing_duration: int | None = None

    class_id: str | None = None
    user_id: str | None = None

    @model_validator(mode="after")
    def _embeddings_need_chunks(self) -> FingerprintCacheEntry:
        if self.embeddings_created and self.embedding_chunks <= 0:
            raise ValueError("embeddings_created requires embedding_chunks > 0")
        return self

    @property
    def tasks_trusted(self) -> bool:
        """Generated tasks are only reusable once processing completed."""
        return self.processing_status == "completed"

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def to_row(self) -> dict[str, Any]:
        """Flat JSON-safe row for table-style backends."""
        return self.model_dump(mode="json", exclude_none=True)


class CacheStatistics(BaseModel):
    """Aggregate view of the fingerprint cache."""

    total_entries: int = 0
    expired_entries: int = 0
    total_text_bytes: int = 0
    status_counts: dict[str, int] = Field(default_factory=dict)
    hits: int = 0
    misses: int = 0

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0


class CacheConfig(BaseModel):
    """Service-level cache limits."""

    default_ttl: timedelta = timedelta(days=30)
    max_text_length: int = 1_000_000
    max_tasks_per_file: int = 100
