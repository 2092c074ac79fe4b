# src/exporter/filters.py - v1
"""Task filter chain applied before encoding."""

from __future__ import annotations

from schedulebud.core.models import Task
from schedulebud.exporter.models import ExportOptions


def filter_tasks(tasks: list[Task], options: ExportOptions) -> list[Task]:
    """Completion, then date range, then class allow-list.

    Tasks without a due date always pass the date filter; both bounds are
    inclusive. With a non-empty allow-list, tasks without a class are dropped.
    """
    result = list(tasks)
    if not options.include_completed:
        result = [t for t in result if not t.completed]

    if options.start_date or options.end_date:
        kept: list[Task] = []
        for task in result:
            due = task.due()
            if due is None:
                kept.append(task)
            elif options.start_date and due < options.start_date:
                continue
            elif options.end_date and due > options.end_date:
                continue
            else:
                kept.append(task)
        result = kept

    if options.class_ids:
        allowed = set(options.class_ids)
        result = [t for t in result if t.class_id and t.class_id in allowed]
    return result
