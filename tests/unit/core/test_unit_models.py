# tests/unit/core/test_unit_models.py - v2
"""Tests for core/models.py, core/errors.py and auth/identity.py.

Also covers version.py.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError

from schedulebud.auth.identity import IdentityProvider, StaticIdentityProvider, require_user
from schedulebud.core.errors import (
    FOREIGN_KEY_VIOLATION,
    UNIQUE_VIOLATION,
    AuthenticationRequiredError,
    ForeignKeyViolationError,
    ImportFormatError,
    ScheduleBudError,
    StoreError,
    UniqueViolationError,
)
from schedulebud.core.models import ClassFile, SchoolClass, Task, parse_date_value
from schedulebud.version import __version__


# === VERSION ===


class TestVersion:
    def test_version_format(self):
        parts = __version__.split(".")
        assert len(parts) == 3
        assert all(p.isdigit() for p in parts)


# === MODELS ===


class TestTask:
    def test_store_aliases(self):
        task = Task.model_validate(
            {"title": "Essay", "class": "c1", "dueDate": "2024-03-15", "dueTime": "23:59"}
        )
        assert task.class_id == "c1"
        assert task.due_date == "2024-03-15"
        assert task.due() == date(2024, 3, 15)

    def test_to_row_uses_aliases_and_drops_none(self):
        row = Task(title="Essay", class_id="c1").to_row()
        assert row == {"title": "Essay", "class": "c1", "completed": False, "priority": "medium"}

    def test_extra_columns_kept(self):
        task = Task.model_validate({"title": "Essay", "description": "Two pages"})
        assert task.to_row()["description"] == "Two pages"

    def test_invalid_priority(self):
        with pytest.raises(ValidationError):
            Task(title="Essay", priority="urgent")

    def test_due_invalid(self):
        assert Task(title="x", due_date="soon").due() is None

    def test_class_and_file(self):
        assert SchoolClass(name="CS101").to_row() == {"name": "CS101"}
        with pytest.raises(ValidationError):
            ClassFile(name="a.pdf", path="x/a.pdf")


class TestParseDateValue:
    @pytest.mark.parametrize("value,expected", [
        ("2024-03-15", date(2024, 3, 15)),
        ("2024-03-15T10:00:00Z", date(2024, 3, 15)),
        ("3/15/2024", date(2024, 3, 15)),
        ("3/15/24", date(2024, 3, 15)),
        ("2024/03/15", date(2024, 3, 15)),
        (date(2024, 3, 15), date(2024, 3, 15)),
        (datetime(2024, 3, 15, 8, tzinfo=timezone.utc), date(2024, 3, 15)),
        ("", None),
        ("   ", None),
        (None, None),
        ("tomorrow", None),
        ("2024-02-30", None),
        (20240315, None),
    ])
    def test_values(self, value, expected):
        assert parse_date_value(value) == expected


# === ERRORS ===


class TestErrors:
    def test_hierarchy(self):
        assert issubclass(UniqueViolationError, StoreError)
        assert issubclass(ForeignKeyViolationError, StoreError)
        assert issubclass(StoreError, ScheduleBudError)
        assert issubclass(ImportFormatError, ScheduleBudError)

    def test_codes(self):
        assert UniqueViolationError("dup").code == UNIQUE_VIOLATION == "23505"
        assert ForeignKeyViolationError("fk").code == FOREIGN_KEY_VIOLATION == "23503"
        assert str(StoreError("down", code="08006")) == "down (code 08006)"
        assert str(StoreError("down")) == "down"

    def test_import_format_error_issues(self):
        assert ImportFormatError("bad").issues == []


# === IDENTITY ===


class TestIdentity:
    @pytest.mark.asyncio
    async def test_static_user(self):
        provider = StaticIdentityProvider("user-1", "a@b.edu")
        assert isinstance(provider, IdentityProvider)
        user = await require_user(provider)
        assert (user.id, user.email) == ("user-1", "a@b.edu")

    @pytest.mark.asyncio
    async def test_no_user(self):
        with pytest.raises(AuthenticationRequiredError, match="not authenticated"):
            await require_user(StaticIdentityProvider(None))

    @pytest.mark.asyncio
    async def test_empty_id_is_anonymous(self):
        assert await StaticIdentityProvider("").get_current_user() is None
