# src/importer/models.py - v1
"""Import options, progress events, issues and results."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from schedulebud.core.errors import IssueType, Severity

ImportFormat = Literal["json", "csv", "ics"]
ConflictResolution = Literal["skip", "overwrite", "merge"]
ConflictKind = Literal["class", "task_type", "task"]

ImportStage = Literal[
    "reading",
    "decoding",
    "validating",
    "detecting_conflicts",
    "preview",
    "importing",
    "complete",
    "failed",
]

SECONDS_PER_ITEM = 0.1


class ImportOptions(BaseModel):
    """Caller-selected import behaviour."""

    format: ImportFormat = "json"
    preview: bool = False
    skip_duplicates: bool = True
    conflict_resolution: ConflictResolution = "merge"
    validate_data: bool = True
    class_mapping: dict[str, str] = Field(default_factory=dict)
    task_type_mapping: dict[str, str] = Field(default_factory=dict)


class ImportProgress(BaseModel):
    """One progress event; ``percent`` never decreases within a run."""

    step: str
    percent: int
    message: str = ""
    processed: int | None = None
    total: int | None = None


class ImportIssue(BaseModel):
    """A format, validation, database or conflict problem."""

    type: IssueType
    item: str | None = None
    field: str | None = None
    message: str
    severity: Severity = "medium"


class ImportConflict(BaseModel):
    """An imported item colliding with an existing one."""

    type: ConflictKind
    existing: dict[str, Any]
    imported: dict[str, Any]
    field: str
    suggested_resolution: ConflictResolution


class ValidationResult(BaseModel):
    is_valid: bool = True
    errors: list[ImportIssue] = Field(default_factory=list)
    warnings: list[ImportIssue] = Field(default_factory=list)

    @property
    def has_blocking_errors(self) -> bool:
        return any(e.severity == "high" for e in self.errors)


class KindCounts(BaseModel):
    tasks: int = 0
    classes: int = 0
    task_types: int = 0


class ImportSummary(BaseModel):
    """Per-kind counts for one run."""

    total_processed: int = 0
    imported: KindCounts = Field(default_factory=KindCounts)
    skipped: KindCounts = Field(default_factory=KindCounts)
    duplicates: int = 0
    errors: int = 0


class ImportResult(BaseModel):
    """Terminal result of an import run."""

    success: bool
    stage: ImportStage = "complete"
    summary: ImportSummary = Field(default_factory=ImportSummary)
    errors: list[ImportIssue] = Field(default_factory=list)
    warnings: list[ImportIssue] = Field(default_factory=list)
    conflicts: list[ImportConflict] = Field(default_factory=list)
    preview: bool = False


class ImportPreview(BaseModel):
    """What an import would do, without writing anything."""

    summary: ImportSummary
    conflicts: list[ImportConflict] = Field(default_factory=list)
    errors: list[ImportIssue] = Field(default_factory=list)
    warnings: list[ImportIssue] = Field(default_factory=list)
    estimated_import_time: float = 0.0
