# src/core/errors.py - v1
"""Error taxonomy shared by the cache, codecs, importer and exporter.

Store failures carry the backing store's error code so callers can tell a
uniqueness violation ("23505") from a foreign-key violation ("23503").
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from schedulebud.importer.models import ImportIssue

IssueType = Literal["format", "validation", "database", "conflict"]
Severity = Literal["low", "medium", "high"]

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"


class ScheduleBudError(Exception):
    """Base class for all schedulebud errors."""


class StoreError(ScheduleBudError):
    """Entity or cache store read/write failure."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self) -> str:
        if self.code:
            return f"{self.message} (code {self.code})"
        return self.message


class UniqueViolationError(StoreError):
    """A row with the same unique key already exists."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code=UNIQUE_VIOLATION)


class ForeignKeyViolationError(StoreError):
    """A row references a parent row that does not exist."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code=FOREIGN_KEY_VIOLATION)


class ImportFormatError(ScheduleBudError):
    """Input file is malformed beyond any recoverable interpretation."""

    def __init__(
        self, message: str, issues: list[ImportIssue] | None = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.issues = list(issues or [])


class AuthenticationRequiredError(ScheduleBudError):
    """No authenticated user is available for a user-scoped operation."""

    def __init__(self, message: str = "User not authenticated") -> None:
        super().__init__(message)
