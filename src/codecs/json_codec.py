# src/codecs/json_codec.py - v1
"""Versioned JSON envelope codec.

Decoding resolves the outer shape once: either the envelope itself, or a
wrapper holding it under ``rawResponse`` or ``data``.
"""

from __future__ import annotations

import json
import logging
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from schedulebud.codecs.base_codec import BaseCodec, as_text
from schedulebud.codecs.models import (
    ClassRecord,
    CodecOptions,
    DecodedImport,
    ExportBundle,
    ImportRecord,
    TaskTypeRecord,
)
from schedulebud.core.errors import ImportFormatError
from schedulebud.importer.models import ImportIssue

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0"
SUPPORTED_VERSIONS = {"1.0"}
OPTIONAL_ARRAYS = {"grades": "grades", "assignments": "assignments", "sessions": "studySessions"}


class Envelope(BaseModel):
    """Top-level export document."""

    model_config = ConfigDict(extra="allow")

    kind: Literal["envelope"] = "envelope"
    version: Any = None
    export_date: Any = Field(default=None, alias="exportDate")
    user_id: Any = Field(default=None, alias="userId")
    tasks: Any = None
    classes: Any = None
    task_types: Any = Field(default=None, alias="taskTypes")


class NestedEnvelope(BaseModel):
    """An envelope wrapped by an API response object."""

    kind: Literal["nested"] = "nested"
    envelope: Envelope


DecodedShape = TypeAdapter(
    Annotated[Union[Envelope, NestedEnvelope], Field(discriminator="kind")]
)


def resolve_shape(doc: dict[str, Any]) -> Envelope | NestedEnvelope:
    """Pick the variant for a parsed document."""
    for key in ("rawResponse", "data"):
        inner = doc.get(key)
        if isinstance(inner, dict) and "tasks" not in doc:
            return DecodedShape.validate_python(
                {"kind": "nested", "envelope": {**inner, "kind": "envelope"}}
            )
    return DecodedShape.validate_python({**doc, "kind": "envelope"})


class JsonCodec(BaseCodec):
    """JSON export/import."""

    @property
    def format_name(self) -> str:
        return "json"

    @property
    def file_extension(self) -> str:
        return "json"

    @property
    def mime_type(self) -> str:
        return "application/json"

    def encode(self, bundle: ExportBundle, options: CodecOptions | None = None) -> bytes:
        options = options or CodecOptions()
        doc: dict[str, Any] = {
            "version": EXPORT_VERSION,
            "exportDate": bundle.exported_at.isoformat(),
            "userId": bundle.user_id,
            "tasks": [t.to_row() for t in bundle.tasks],
            "classes": [c.to_row() for c in bundle.classes],
            "taskTypes": [t.to_row() for t in bundle.task_types],
        }
        for data_type, key in OPTIONAL_ARRAYS.items():
            if options.data_types and data_type in options.data_types:
                doc[key] = []
        return json.dumps(doc, indent=2, ensure_ascii=False).encode("utf-8")

    def decode(self, data: bytes | str) -> DecodedImport:
        try:
            doc = json.loads(as_text(data))
        except json.JSONDecodeError as e:
            raise ImportFormatError(
                f"Invalid JSON: {e.msg} at line {e.lineno}",
                [_issue("format", f"Invalid JSON: {e.msg}", "high")],
            ) from e
        if not isinstance(doc, dict):
            raise ImportFormatError(
                "JSON export must be an object",
                [_issue("format", "Top-level value is not an object", "high")],
            )

        try:
            shape = resolve_shape(doc)
        except ValidationError as e:
            raise ImportFormatError(f"Unrecognised JSON layout: {e.error_count()} errors") from e
        envelope = shape.envelope if isinstance(shape, NestedEnvelope) else shape

        decoded = DecodedImport(
            version=None if envelope.version is None else str(envelope.version),
            exported_at=None if envelope.export_date is None else str(envelope.export_date),
            user_id=None if envelope.user_id is None else str(envelope.user_id),
        )

        if envelope.version is None or str(envelope.version) not in SUPPORTED_VERSIONS:
            decoded.warnings.append(_issue(
                "format",
                f"Unrecognised export version {envelope.version!r}; importing anyway",
                "medium", field="version",
            ))

        if envelope.tasks is None:
            decoded.warnings.append(_issue(
                "validation", "No tasks array found in export", "high", field="tasks",
            ))
        elif not isinstance(envelope.tasks, list):
            raise ImportFormatError(
                "'tasks' must be an array",
                [_issue("format", "'tasks' must be an array", "high", field="tasks")],
            )
        else:
            decoded.records = [_task_record(t) for t in envelope.tasks if isinstance(t, dict)]

        decoded.classes = [
            ClassRecord.model_validate({**c, "id": _str_or_none(c.get("id"))})
            for c in _optional_array(envelope.classes, "classes", decoded)
            if isinstance(c, dict) and isinstance(c.get("name"), str)
        ]
        decoded.task_types = [
            TaskTypeRecord.model_validate({
                **t,
                "id": _str_or_none(t.get("id")),
                "color": _text(t.get("color")),
                "completed_color": _text(t.get("completed_color")),
            })
            for t in _optional_array(envelope.task_types, "taskTypes", decoded)
            if isinstance(t, dict) and isinstance(t.get("name"), str)
        ]
        logger.debug(
            "Decoded JSON export: %d tasks, %d classes, %d task types",
            len(decoded.records), len(decoded.classes), len(decoded.task_types),
        )
        return decoded


def _optional_array(value: Any, name: str, decoded: DecodedImport) -> list[Any]:
    if isinstance(value, list):
        return value
    decoded.warnings.append(_issue(
        "format", f"No {name} array found; defaulting to empty", "low", field=name,
    ))
    return []


def _task_record(row: dict[str, Any]) -> ImportRecord:
    """Accept both the export's camelCase and the store's snake_case keys."""
    return ImportRecord(
        id=_str_or_none(row.get("id")),
        title=row.get("title"),
        description=_text(row.get("description")),
        due_date=row.get("dueDate", row.get("due_date")),
        due_time=_text(row.get("dueTime", row.get("due_time"))),
        class_ref=_str_or_none(row.get("class", row.get("class_id"))),
        type_ref=_str_or_none(row.get("type")),
        completed=bool(row.get("completed", False)),
        priority=_text(row.get("priority")),
        uid=_text(row.get("canvas_uid")),
    )


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _str_or_none(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _issue(type_: str, message: str, severity: str, field: str | None = None) -> ImportIssue:
    return ImportIssue(type=type_, message=message, severity=severity, field=field)
