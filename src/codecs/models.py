# src/codecs/models.py - v1
"""Codec input and output shapes.

Decoders normalise every format into ImportRecord/ClassRecord/
TaskTypeRecord. Raw values are kept (e.g. an unparseable due date) so that
validation can report them.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from schedulebud.core.models import SchoolClass, Task, TaskType
from schedulebud.importer.models import ImportIssue


class ImportRecord(BaseModel):
    """A task as decoded from an input file."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    title: Any = None
    description: str | None = None
    due_date: Any = None
    due_time: str | None = None
    class_ref: str | None = None   # class id or class name, depending on format
    type_ref: str | None = None
    completed: bool = False
    priority: str | None = None
    uid: str | None = None

    def label(self, index: int) -> str:
        title = self.title if isinstance(self.title, str) and self.title else "<untitled>"
        return f"Task {index + 1}: {title}"


class ClassRecord(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | None = None
    name: str


class TaskTypeRecord(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | None = None
    name: str
    color: str | None = None
    completed_color: str | None = None


class DecodedImport(BaseModel):
    """Everything a decoder recovered from one file."""

    records: list[ImportRecord] = Field(default_factory=list)
    classes: list[ClassRecord] = Field(default_factory=list)
    task_types: list[TaskTypeRecord] = Field(default_factory=list)
    warnings: list[ImportIssue] = Field(default_factory=list)
    version: str | None = None
    exported_at: str | None = None
    user_id: str | None = None

    @property
    def item_count(self) -> int:
        return len(self.records) + len(self.classes) + len(self.task_types)


class ExportBundle(BaseModel):
    """Filtered entities handed to exactly one encoder."""

    user_id: str
    exported_at: datetime
    tasks: list[Task] = Field(default_factory=list)
    classes: list[SchoolClass] = Field(default_factory=list)
    task_types: list[TaskType] = Field(default_factory=list)

    def class_name(self, class_id: str | None) -> str | None:
        for cls in self.classes:
            if cls.id == class_id:
                return cls.name
        return None

    def type_name(self, type_ref: str | None) -> str | None:
        for task_type in self.task_types:
            if task_type.id == type_ref or task_type.name == type_ref:
                return task_type.name
        return type_ref


class CodecOptions(BaseModel):
    """Encoding knobs; each codec reads the ones it understands."""

    data_types: list[str] | None = None
    calendar_name: str = "ScheduleBud Academic Calendar"
    timezone: str = "America/Los_Angeles"
    delimiter: str = ","
    include_headers: bool = True
