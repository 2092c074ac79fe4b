# src/core/models.py - v1
"""Planner entities exchanged with the entity store and the codecs.

Field aliases follow the stored row shape (``class``, ``dueDate``) so rows
round-trip through the JSON export unchanged.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Priority = Literal["low", "medium", "high"]

TASKS = "tasks"
CLASSES = "classes"
TASK_TYPES = "task_types"
CLASS_FILES = "class_files"
FILE_FINGERPRINTS = "file_fingerprints"


class User(BaseModel):
    """Authenticated identity."""

    id: str
    email: str | None = None


class Task(BaseModel):
    """A planner task row."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str | None = None
    user_id: str | None = None
    title: str
    completed: bool = False
    class_id: str | None = Field(default=None, alias="class")
    type: str | None = None
    due_date: str | None = Field(default=None, alias="dueDate")
    due_time: str | None = Field(default=None, alias="dueTime")
    priority: Priority = "medium"
    canvas_uid: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def due(self) -> date | None:
        """Parse ``due_date`` into a date, or None when absent/invalid."""
        return parse_date_value(self.due_date)

    def to_row(self) -> dict[str, Any]:
        """Serialize with store aliases, dropping unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True)


class SchoolClass(BaseModel):
    """A class (course) row."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str | None = None
    user_id: str | None = None
    name: str
    istaskclass: bool | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def to_row(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class TaskType(BaseModel):
    """A task type row (Homework, Exam, ...)."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str | None = None
    user_id: str | None = None
    name: str
    color: str | None = None
    completed_color: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def to_row(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ClassFile(BaseModel):
    """A file attached to a class, stored in blob storage under ``path``."""

    id: str | None = None
    class_id: str
    owner: str | None = None
    name: str
    path: str
    size: int | None = None
    type: str | None = None
    uploaded_at: str | None = None


def parse_date_value(value: Any) -> date | None:
    """Parse a due-date value (date, datetime, ISO string, M/D/YYYY).

    Returns None when the value is empty or cannot be interpreted.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass

    for fmt in ("%m/%d/%Y", "%m/%d/%y", "%Y/%m/%d"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None
