# src/importer/conflicts.py - v1
"""Conflict detection between decoded input and existing rows.

The detector only reports collisions; the caller's ImportOptions decide
what happens to them.
"""

from __future__ import annotations

import logging
from typing import Any

from schedulebud.codecs.models import DecodedImport
from schedulebud.core.models import parse_date_value
from schedulebud.importer.models import ImportConflict

logger = logging.getLogger(__name__)

Row = dict[str, Any]


def normalise_name(name: Any) -> str:
    return str(name or "").strip().lower()


def task_key(title: Any, due: Any) -> tuple[str, str | None]:
    """Identity used for duplicate tasks: case-insensitive title plus due date."""
    parsed = parse_date_value(due)
    return normalise_name(title), parsed.isoformat() if parsed else None


class ConflictDetector:
    """Finds name collisions for classes/task types and duplicate tasks."""

    def detect(
        self,
        decoded: DecodedImport,
        existing_classes: list[Row],
        existing_types: list[Row],
        existing_tasks: list[Row],
    ) -> list[ImportConflict]:
        conflicts: list[ImportConflict] = []

        by_class = {normalise_name(r.get("name")): r for r in existing_classes}
        for record in decoded.classes:
            match = by_class.get(normalise_name(record.name))
            if match is not None:
                conflicts.append(ImportConflict(
                    type="class", existing=match, imported=record.model_dump(),
                    field="name", suggested_resolution="merge",
                ))

        by_type = {normalise_name(r.get("name")): r for r in existing_types}
        for record in decoded.task_types:
            match = by_type.get(normalise_name(record.name))
            if match is not None:
                conflicts.append(ImportConflict(
                    type="task_type", existing=match, imported=record.model_dump(),
                    field="name", suggested_resolution="merge",
                ))

        by_task = {
            task_key(r.get("title"), r.get("dueDate", r.get("due_date"))): r
            for r in existing_tasks
        }
        for record in decoded.records:
            match = by_task.get(task_key(record.title, record.due_date))
            if match is not None:
                conflicts.append(ImportConflict(
                    type="task", existing=match, imported=record.model_dump(),
                    field="title", suggested_resolution="skip",
                ))

        if conflicts:
            logger.info("Detected %d import conflicts", len(conflicts))
        return conflicts
