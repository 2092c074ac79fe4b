# tests/unit/importer/test_unit_validation_conflicts.py - v2

from __future__ import annotations

import pytest
from pydantic import ValidationError

from schedulebud.codecs.models import ClassRecord, DecodedImport, ImportRecord, TaskTypeRecord
from schedulebud.importer.conflicts import ConflictDetector, normalise_name, task_key
from schedulebud.importer.models import ImportConflict, ImportIssue, ValidationResult
from schedulebud.importer.validation import validate_records


class TestValidateRecords:
    def test_valid(self):
        decoded = DecodedImport(records=[ImportRecord(title="Essay", due_date="2024-03-15")])
        result = validate_records(decoded)
        assert result.is_valid
        assert result.errors == []

    def test_missing_title_and_bad_date(self):
        decoded = DecodedImport(records=[
            ImportRecord(title="", due_date="2024-03-15"),
            ImportRecord(title=42, due_date="2024-03-15"),
            ImportRecord(title="Quiz", due_date="someday"),
            ImportRecord(title="Lab"),
        ])
        result = validate_records(decoded)
        assert not result.is_valid
        assert result.has_blocking_errors
        assert [(e.item, e.field) for e in result.errors] == [
            ("Task 1: <untitled>", "title"),
            ("Task 2: <untitled>", "title"),
            ("Task 3: Quiz", "due_date"),
            ("Task 4: Lab", "due_date"),
        ]
        assert "someday" in result.errors[2].message

    def test_us_dates_accepted(self):
        decoded = DecodedImport(records=[ImportRecord(title="A", due_date="3/15/2024")])
        assert validate_records(decoded).is_valid

    def test_decode_warnings_sorted_by_severity(self):
        decoded = DecodedImport(warnings=[
            ImportIssue(type="validation", message="No tasks", severity="high", field="tasks"),
            ImportIssue(type="format", message="old version", severity="medium"),
        ])
        result = validate_records(decoded)
        assert [e.field for e in result.errors] == ["tasks"]
        assert [w.message for w in result.warnings] == ["old version"]

    def test_low_errors_do_not_block(self):
        result = ValidationResult(
            errors=[ImportIssue(type="validation", message="minor", severity="low")]
        )
        assert not result.has_blocking_errors


class TestConflictDetector:
    def test_helpers(self):
        assert normalise_name("  CS101 ") == "cs101"
        assert normalise_name(None) == ""
        assert task_key("Essay", "3/15/2024") == ("essay", "2024-03-15")
        assert task_key("Essay", None) == ("essay", None)

    def test_class_name_collision_is_case_insensitive(self):
        decoded = DecodedImport(classes=[ClassRecord(id="x", name="cs101")])
        conflicts = ConflictDetector().detect(
            decoded, [{"id": "c1", "name": "CS101"}], [], []
        )
        assert len(conflicts) == 1
        conflict = conflicts[0]
        assert conflict.type == "class"
        assert conflict.field == "name"
        assert conflict.suggested_resolution == "merge"
        assert conflict.existing["id"] == "c1"
        assert conflict.imported["name"] == "cs101"

    def test_task_type_and_task(self):
        decoded = DecodedImport(
            task_types=[TaskTypeRecord(name="Homework")],
            records=[
                ImportRecord(title="ESSAY", due_date="2024-03-15"),
                ImportRecord(title="Essay", due_date="2024-03-16"),
            ],
        )
        conflicts = ConflictDetector().detect(
            decoded,
            [],
            [{"id": "tt1", "name": "homework"}],
            [{"id": "t1", "title": "Essay", "dueDate": "2024-03-15"}],
        )
        assert [(c.type, c.suggested_resolution) for c in conflicts] == [
            ("task_type", "merge"), ("task", "skip"),
        ]

    def test_conflict_kind_uses_snake_case(self):
        with pytest.raises(ValidationError):
            ImportConflict(
                type="taskType", existing={}, imported={}, field="name",
                suggested_resolution="merge",
            )

    def test_no_conflicts(self):
        decoded = DecodedImport(classes=[ClassRecord(name="Math")])
        assert ConflictDetector().detect(decoded, [{"id": "c1", "name": "CS101"}], [], []) == []
