# src/codecs/ics_codec.py - v1
"""iCalendar (RFC 5545) export/import of tasks as all-day events."""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, timezone

from schedulebud.codecs.base_codec import BaseCodec, as_text
from schedulebud.codecs.models import CodecOptions, DecodedImport, ExportBundle, ImportRecord
from schedulebud.core.errors import ImportFormatError
from schedulebud.importer.models import ImportIssue

logger = logging.getLogger(__name__)

CRLF = "\r\n"
PRODID = "-//ScheduleBud//Academic Calendar//EN"
UID_DOMAIN = "schedulebud.app"

_VTIMEZONE_PACIFIC = [
    "BEGIN:STANDARD",
    "DTSTART:20201101T020000",
    "RRULE:FREQ=YEARLY;BYMONTH=11;BYDAY=1SU",
    "TZNAME:PST",
    "TZOFFSETFROM:-0700",
    "TZOFFSETTO:-0800",
    "END:STANDARD",
    "BEGIN:DAYLIGHT",
    "DTSTART:20210314T020000",
    "RRULE:FREQ=YEARLY;BYMONTH=3;BYDAY=2SU",
    "TZNAME:PDT",
    "TZOFFSETFROM:-0800",
    "TZOFFSETTO:-0700",
    "END:DAYLIGHT",
]

_DATE_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})$")
_DATETIME_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})T(\d{2})(\d{2})(\d{2})(Z?)$")
_PROPERTIES = {"SUMMARY", "DESCRIPTION", "DTSTART", "DTEND", "LOCATION", "UID", "STATUS"}


def escape_text(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r", "")
        .replace("\n", "\\n")
    )


def unescape_text(value: str) -> str:
    out: list[str] = []
    chars = iter(value)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        nxt = next(chars, "")
        out.append("\n" if nxt in ("n", "N") else nxt)
    return "".join(out)


def format_ics_datetime(value: datetime) -> str:
    """UTC ``YYYYMMDDTHHMMSSZ``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def parse_ics_date(value: str) -> date | datetime | None:
    """Parse ``YYYYMMDD`` or ``YYYYMMDDTHHMMSS[Z]``; None for anything else."""
    value = value.strip()
    try:
        m = _DATE_RE.match(value)
        if m:
            return date(int(m[1]), int(m[2]), int(m[3]))
        m = _DATETIME_RE.match(value)
        if m:
            tz = timezone.utc if m[7] else None
            return datetime(
                int(m[1]), int(m[2]), int(m[3]), int(m[4]), int(m[5]), int(m[6]), tzinfo=tz
            )
    except ValueError:
        return None
    return None


def unfold_lines(text: str) -> list[str]:
    """Normalise line endings and join folded continuation lines."""
    lines: list[str] = []
    for line in text.replace("\r\n", "\n").replace("\r", "\n").split("\n"):
        if line[:1] in (" ", "\t") and lines:
            lines[-1] += line[1:]
        else:
            lines.append(line)
    return lines


class IcsCodec(BaseCodec):
    """Calendar feed of tasks."""

    def __init__(self, today: date | None = None) -> None:
        self._today = today

    @property
    def format_name(self) -> str:
        return "ics"

    @property
    def file_extension(self) -> str:
        return "ics"

    @property
    def mime_type(self) -> str:
        return "text/calendar"

    def encode(self, bundle: ExportBundle, options: CodecOptions | None = None) -> bytes:
        options = options or CodecOptions()
        today = self._today or bundle.exported_at.date()
        lines = [
            "BEGIN:VCALENDAR",
            "VERSION:2.0",
            f"PRODID:{PRODID}",
            f"X-WR-CALNAME:{escape_text(options.calendar_name)}",
            f"X-WR-TIMEZONE:{options.timezone}",
            "CALSCALE:GREGORIAN",
            "BEGIN:VTIMEZONE",
            f"TZID:{options.timezone}",
            *_VTIMEZONE_PACIFIC,
            "END:VTIMEZONE",
        ]
        for task in bundle.tasks:
            due = task.due() or today
            created = _created(task.created_at) or bundle.exported_at
            lines += [
                "BEGIN:VEVENT",
                f"UID:task-{task.id}@{UID_DOMAIN}",
                f"DTSTAMP:{format_ics_datetime(created)}",
                f"DTSTART;VALUE=DATE:{due.strftime('%Y%m%d')}",
                f"SUMMARY:{escape_text(task.title)}",
                f"DESCRIPTION:{escape_text(getattr(task, 'description', None) or '')}",
                f"LOCATION:{escape_text(bundle.class_name(task.class_id) or '')}",
                f"CATEGORIES:{escape_text(bundle.type_name(task.type) or '')}",
                f"STATUS:{'COMPLETED' if task.completed else 'CONFIRMED'}",
                "END:VEVENT",
            ]
        lines.append("END:VCALENDAR")
        return (CRLF.join(lines) + CRLF).encode("utf-8")

    def decode(self, data: bytes | str) -> DecodedImport:
        text = as_text(data)
        if "BEGIN:VCALENDAR" not in text and "BEGIN:VEVENT" not in text:
            raise ImportFormatError(
                "Not an iCalendar file",
                [ImportIssue(type="format", message="No VCALENDAR or VEVENT found", severity="high")],
            )

        decoded = DecodedImport()
        event: dict[str, str] | None = None
        for line in unfold_lines(text):
            line = line.strip()
            if line == "BEGIN:VEVENT":
                event = {}
                continue
            if line == "END:VEVENT":
                if event is not None:
                    record = _to_record(event)
                    if record is not None:
                        decoded.records.append(record)
                event = None
                continue
            if event is None or ":" not in line:
                continue
            key, value = line.split(":", 1)
            name = key.split(";", 1)[0].upper()
            if name in _PROPERTIES:
                event[name] = value
        logger.debug("Decoded %d calendar events", len(decoded.records))
        return decoded


def _to_record(event: dict[str, str]) -> ImportRecord | None:
    summary = unescape_text(event.get("SUMMARY", "")).strip()
    if not summary:
        return None
    raw_due = event.get("DTSTART") or event.get("DTEND")
    due: str | None = None
    if raw_due:
        parsed = parse_ics_date(raw_due)
        if isinstance(parsed, datetime):
            due = parsed.date().isoformat()
        elif isinstance(parsed, date):
            due = parsed.isoformat()
        else:
            due = raw_due
    location = unescape_text(event.get("LOCATION", "")).strip()
    return ImportRecord(
        title=summary,
        description=unescape_text(event.get("DESCRIPTION", "")) or None,
        due_date=due,
        class_ref=location or None,
        completed=event.get("STATUS", "").upper() == "COMPLETED",
        uid=event.get("UID"),
    )


def _created(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
