# src/codecs/csv_codec.py - v2
"""CSV export/import of tasks.

Decoding splits each line naively on the delimiter: a quoted field that
contains the delimiter is split into two cells. Columns are located by
header substring, so exports from spreadsheets and other planners load too.
"""

from __future__ import annotations

import logging
from datetime import date

from schedulebud.codecs.base_codec import BaseCodec, as_text
from schedulebud.codecs.models import CodecOptions, DecodedImport, ExportBundle, ImportRecord
from schedulebud.core.errors import ImportFormatError
from schedulebud.core.models import parse_date_value
from schedulebud.importer.models import ImportIssue

logger = logging.getLogger(__name__)

HEADERS = [
    "Class", "Course Code", "Task Title", "Task Type", "Due Date",
    "Completed", "Grade", "Points", "Total Points", "Percentage",
]
UNASSIGNED = "Unassigned"
TRUTHY = {"yes", "y", "true", "1", "x", "completed", "done"}


def quote_field(value: str, delimiter: str = ",") -> str:
    """RFC 4180 quoting for one field."""
    if any(ch in value for ch in (delimiter, '"', "\n", "\r")):
        return '"' + value.replace('"', '""') + '"'
    return value


def us_date(value: date) -> str:
    """M/D/YYYY without zero padding."""
    return f"{value.month}/{value.day}/{value.year}"


class CsvCodec(BaseCodec):
    """Spreadsheet-friendly task list."""

    @property
    def format_name(self) -> str:
        return "csv"

    @property
    def file_extension(self) -> str:
        return "csv"

    @property
    def mime_type(self) -> str:
        return "text/csv"

    def encode(self, bundle: ExportBundle, options: CodecOptions | None = None) -> bytes:
        options = options or CodecOptions()
        sep = options.delimiter
        lines: list[str] = []
        if options.include_headers:
            lines.append(sep.join(quote_field(h, sep) for h in HEADERS))

        for task in bundle.tasks:
            due = task.due()
            row = [
                bundle.class_name(task.class_id) or UNASSIGNED,
                "",
                task.title,
                bundle.type_name(task.type) or "",
                us_date(due) if due else "",
                "Yes" if task.completed else "No",
                "", "", "", "",
            ]
            lines.append(sep.join(quote_field(cell, sep) for cell in row))
        return ("\n".join(lines) + "\n").encode("utf-8")

    def decode(self, data: bytes | str, delimiter: str = ",") -> DecodedImport:
        rows = [
            [_clean(cell) for cell in line.split(delimiter)]
            for line in as_text(data).split("\n")
            if line.strip()
        ]
        if not rows:
            raise ImportFormatError(
                "CSV file appears to be empty or invalid",
                [ImportIssue(type="format", message="Empty CSV file", severity="high")],
            )

        header = [h.lower() for h in rows[0]]
        title_col = _find(header, "title", "name")
        due_col = _find(header, "due")
        if title_col is None or due_col is None:
            missing = [n for n, c in (("title", title_col), ("due date", due_col)) if c is None]
            raise ImportFormatError(
                f"CSV header is missing required column(s): {', '.join(missing)}",
                [ImportIssue(
                    type="format", field=m, severity="high",
                    message=f"No {m} column found in CSV header",
                ) for m in missing],
            )
        class_col = _find(header, "class", "course")
        type_col = _find(header, "type")
        done_col = _find(header, "complete")
        desc_col = _find(header, "description")

        decoded = DecodedImport()
        for line_no, cells in enumerate(rows[1:], start=2):
            title = _cell(cells, title_col)
            if not title:
                logger.debug("Skipping CSV line %d without a title", line_no)
                continue
            class_name = _cell(cells, class_col)
            decoded.records.append(ImportRecord(
                title=title,
                description=_cell(cells, desc_col) or None,
                due_date=_normalise_date(_cell(cells, due_col)),
                class_ref=class_name if class_name and class_name != UNASSIGNED else None,
                type_ref=_cell(cells, type_col) or None,
                completed=_cell(cells, done_col).lower() in TRUTHY,
            ))
        return decoded


def _clean(cell: str) -> str:
    """Strip surrounding quotes and undo doubled inner quotes."""
    cell = cell.strip()
    quoted = cell.startswith('"')
    if quoted:
        cell = cell[1:]
    if cell.endswith('"'):
        cell = cell[:-1]
    return cell.replace('""', '"') if quoted else cell


def _find(header: list[str], *needles: str) -> int | None:
    for idx, name in enumerate(header):
        if any(n in name for n in needles):
            return idx
    return None


def _cell(cells: list[str], col: int | None) -> str:
    if col is None or col >= len(cells):
        return ""
    return cells[col]


def _normalise_date(raw: str) -> str | None:
    """ISO date when parseable, else the raw text for validation to flag."""
    if not raw:
        return None
    parsed = parse_date_value(raw)
    return parsed.isoformat() if parsed else raw
