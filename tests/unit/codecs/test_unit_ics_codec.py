# tests/unit/codecs/test_unit_ics_codec.py - v1

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from schedulebud.codecs.ics_codec import (
    IcsCodec,
    escape_text,
    format_ics_datetime,
    parse_ics_date,
    unescape_text,
    unfold_lines,
)
from schedulebud.codecs.models import CodecOptions, ExportBundle
from schedulebud.core.errors import ImportFormatError
from schedulebud.core.models import SchoolClass, Task, TaskType

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

CALENDAR = "\r\n".join([
    "BEGIN:VCALENDAR",
    "VERSION:2.0",
    "BEGIN:VEVENT",
    "UID:abc@canvas",
    "SUMMARY:Midterm",
    "DTSTART;VALUE=DATE:20240315",
    "LOCATION:CS101",
    "DESCRIPTION:Chapters 1\\, 2 and 3\\nBring a pencil",
    "STATUS:COMPLETED",
    "END:VEVENT",
    "BEGIN:VEVENT",
    "SUMMARY:Project due",
    "DTEND:20240401T235900Z",
    "END:VEVENT",
    "BEGIN:VEVENT",
    "DTSTART:20240402",
    "END:VEVENT",
    "END:VCALENDAR",
    "",
])


class TestIcsHelpers:
    def test_escape_round_trip(self):
        raw = "a;b,c\\d\nnext"
        assert escape_text(raw) == "a\\;b\\,c\\\\d\\nnext"
        assert unescape_text(escape_text(raw)) == raw

    def test_format_datetime(self):
        assert format_ics_datetime(NOW) == "20240301T120000Z"
        assert format_ics_datetime(datetime(2024, 3, 1, 12, 0)) == "20240301T120000Z"

    @pytest.mark.parametrize("value,expected", [
        ("20240315", date(2024, 3, 15)),
        ("20240315T093000Z", datetime(2024, 3, 15, 9, 30, tzinfo=timezone.utc)),
        ("20240315T093000", datetime(2024, 3, 15, 9, 30)),
        ("2024-03-15", None),
        ("20241345", None),
        ("", None),
    ])
    def test_parse_ics_date(self, value, expected):
        assert parse_ics_date(value) == expected

    def test_unfold(self):
        assert unfold_lines("SUMMARY:Long\r\n  title\r\nEND") == ["SUMMARY:Long title", "END"]


class TestIcsEncode:
    @pytest.fixture
    def content(self) -> str:
        bundle = ExportBundle(
            user_id="user-1", exported_at=NOW,
            tasks=[
                Task(id="t1", title="Essay, part 1", class_id="c1", type="tt1",
                     due_date="2024-03-15", completed=True),
                Task(id="t2", title="Reading"),
            ],
            classes=[SchoolClass(id="c1", name="CS101")],
            task_types=[TaskType(id="tt1", name="Homework")],
        )
        return IcsCodec().encode(bundle, CodecOptions(calendar_name="Spring")).decode("utf-8")

    def test_calendar_wrapper(self, content):
        assert content.startswith("BEGIN:VCALENDAR\r\nVERSION:2.0\r\n")
        assert content.endswith("END:VCALENDAR\r\n")
        assert "X-WR-CALNAME:Spring\r\n" in content
        assert "TZID:America/Los_Angeles\r\n" in content
        assert content.count("BEGIN:VTIMEZONE") == 1

    def test_events(self, content):
        assert content.count("BEGIN:VEVENT") == 2
        assert "UID:task-t1@schedulebud.app\r\n" in content
        assert "DTSTART;VALUE=DATE:20240315\r\n" in content
        assert "SUMMARY:Essay\\, part 1\r\n" in content
        assert "LOCATION:CS101\r\n" in content
        assert "CATEGORIES:Homework\r\n" in content
        assert "STATUS:COMPLETED\r\n" in content
        assert "STATUS:CONFIRMED\r\n" in content
        assert "DTSTAMP:20240301T120000Z\r\n" in content

    def test_undated_task_uses_today(self, content):
        assert "DTSTART;VALUE=DATE:20240301\r\n" in content


class TestIcsDecode:
    def test_events(self):
        decoded = IcsCodec().decode(CALENDAR.encode("utf-8"))
        assert len(decoded.records) == 2

        midterm = decoded.records[0]
        assert midterm.title == "Midterm"
        assert midterm.due_date == "2024-03-15"
        assert midterm.class_ref == "CS101"
        assert midterm.description == "Chapters 1, 2 and 3\nBring a pencil"
        assert midterm.completed is True
        assert midterm.uid == "abc@canvas"

        project = decoded.records[1]
        assert project.due_date == "2024-04-01"
        assert project.class_ref is None
        assert project.completed is False

    def test_lf_line_endings(self):
        decoded = IcsCodec().decode(CALENDAR.replace("\r\n", "\n"))
        assert [r.title for r in decoded.records] == ["Midterm", "Project due"]

    def test_bad_date_kept_raw(self):
        text = "BEGIN:VCALENDAR\nBEGIN:VEVENT\nSUMMARY:X\nDTSTART:soon\nEND:VEVENT\nEND:VCALENDAR\n"
        assert IcsCodec().decode(text).records[0].due_date == "soon"

    def test_not_a_calendar(self):
        with pytest.raises(ImportFormatError):
            IcsCodec().decode("Title,Due\nA,B\n")
