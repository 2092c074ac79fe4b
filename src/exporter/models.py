# src/exporter/models.py - v1
"""Export options, progress events and artifacts."""

from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field

ExportFormat = Literal["json", "csv", "ics"]


class ExportOptions(BaseModel):
    """What to export and how."""

    format: ExportFormat = "json"
    include_completed: bool = True
    start_date: date | None = None
    end_date: date | None = None
    class_ids: list[str] = Field(default_factory=list)
    data_types: list[str] | None = None
    calendar_name: str = "ScheduleBud Academic Calendar"
    timezone: str = "America/Los_Angeles"
    delimiter: str = ","
    include_headers: bool = True


class ExportProgress(BaseModel):
    step: str
    percent: int
    message: str = ""


class ExportArtifact(BaseModel):
    """Encoded export ready to be written or downloaded."""

    content: bytes
    filename: str
    mime_type: str
    format: str
    record_count: int = 0
