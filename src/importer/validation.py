# src/importer/validation.py - v1
"""Record validation before any write."""

from __future__ import annotations

from schedulebud.codecs.models import DecodedImport
from schedulebud.core.models import parse_date_value
from schedulebud.importer.models import ImportIssue, ValidationResult


def validate_records(decoded: DecodedImport) -> ValidationResult:
    """Flag records missing a title or carrying an unparseable due date.

    High-severity decode warnings (e.g. a missing tasks array) are promoted
    to errors so they block a non-preview run.
    """
    result = ValidationResult()
    for issue in decoded.warnings:
        (result.errors if issue.severity == "high" else result.warnings).append(issue)

    for idx, record in enumerate(decoded.records):
        item = record.label(idx)
        if not isinstance(record.title, str) or not record.title.strip():
            result.errors.append(ImportIssue(
                type="validation", item=item, field="title", severity="high",
                message="Task title is required",
            ))
        if record.due_date in (None, ""):
            result.errors.append(ImportIssue(
                type="validation", item=item, field="due_date", severity="high",
                message="Due date is required",
            ))
        elif parse_date_value(record.due_date) is None:
            result.errors.append(ImportIssue(
                type="validation", item=item, field="due_date", severity="high",
                message=f"Invalid due date: {record.due_date!r}",
            ))

    result.is_valid = not result.errors
    return result
