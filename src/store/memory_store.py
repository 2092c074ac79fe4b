# src/store/memory_store.py - v1
"""In-process entity store with unique and foreign-key constraints.

Constraint violations raise the same typed errors (and codes) the hosted
backend reports, so callers exercise their real error paths in tests and in
the CLI's local mode.
"""

from __future__ import annotations

import copy
import logging
import uuid
from datetime import datetime, timezone

from schedulebud.core.errors import (
    ForeignKeyViolationError,
    StoreError,
    UniqueViolationError,
)
from schedulebud.core.models import (
    CLASS_FILES,
    CLASSES,
    FILE_FINGERPRINTS,
    TASK_TYPES,
    TASKS,
)
from schedulebud.store.base_entity_store import BaseEntityStore, Row

logger = logging.getLogger(__name__)

DEFAULT_UNIQUE: dict[str, tuple[str, ...]] = {
    FILE_FINGERPRINTS: ("content_hash",),
}

# kind -> {column: parent kind}
DEFAULT_FOREIGN_KEYS: dict[str, dict[str, str]] = {
    TASKS: {"class": CLASSES},
    CLASS_FILES: {"class_id": CLASSES},
    FILE_FINGERPRINTS: {"class_id": CLASSES},
}

KNOWN_KINDS = (TASKS, CLASSES, TASK_TYPES, CLASS_FILES, FILE_FINGERPRINTS)


class InMemoryEntityStore(BaseEntityStore):
    """Dict-backed entity store."""

    def __init__(
        self,
        unique: dict[str, tuple[str, ...]] | None = None,
        foreign_keys: dict[str, dict[str, str]] | None = None,
    ) -> None:
        self._tables: dict[str, dict[str, Row]] = {k: {} for k in KNOWN_KINDS}
        self._unique = DEFAULT_UNIQUE if unique is None else unique
        self._foreign_keys = (
            DEFAULT_FOREIGN_KEYS if foreign_keys is None else foreign_keys
        )

    async def get(self, kind: str, filters: Row | None = None) -> list[Row]:
        table = self._tables.get(kind, {})
        return [
            copy.deepcopy(row)
            for row in table.values()
            if _matches(row, filters or {})
        ]

    async def insert(self, kind: str, row: Row) -> Row:
        table = self._tables.setdefault(kind, {})
        new_row = copy.deepcopy(row)
        row_id = new_row.get("id") or str(uuid.uuid4())
        if row_id in table:
            raise UniqueViolationError(f"duplicate key value violates {kind}_pkey")
        new_row["id"] = row_id
        new_row.setdefault("created_at", _now_iso())

        self._check_constraints(kind, new_row, exclude_id=None)
        table[row_id] = new_row
        self._after_write()
        logger.debug("Inserted %s row %s", kind, row_id)
        return copy.deepcopy(new_row)

    async def update(self, kind: str, row_id: str, patch: Row) -> Row:
        table = self._tables.get(kind, {})
        if row_id not in table:
            raise StoreError(f"{kind} row {row_id} not found", code="not_found")
        updated = {**table[row_id], **copy.deepcopy(patch), "id": row_id}
        self._check_constraints(kind, updated, exclude_id=row_id)
        table[row_id] = updated
        self._after_write()
        return copy.deepcopy(updated)

    async def delete(self, kind: str, row_id: str) -> bool:
        table = self._tables.get(kind, {})
        if row_id not in table:
            return False
        del table[row_id]
        self._after_write()
        return True

    def snapshot(self) -> dict[str, list[Row]]:
        """Return a deep copy of every table (for persistence and tests)."""
        return {
            kind: [copy.deepcopy(r) for r in rows.values()]
            for kind, rows in self._tables.items()
        }

    def load(self, data: dict[str, list[Row]]) -> None:
        """Replace table contents from a snapshot, bypassing constraints."""
        for kind, rows in data.items():
            self._tables[kind] = {
                r["id"]: copy.deepcopy(r) for r in rows if r.get("id")
            }

    def _after_write(self) -> None:
        """Hook for persistent subclasses."""

    def _check_constraints(
        self, kind: str, row: Row, exclude_id: str | None
    ) -> None:
        table = self._tables.get(kind, {})
        for column in self._unique.get(kind, ()):
            value = row.get(column)
            if value is None:
                continue
            for other_id, other in table.items():
                if other_id != exclude_id and other.get(column) == value:
                    raise UniqueViolationError(
                        f"duplicate key value violates unique constraint "
                        f"{kind}_{column}_key"
                    )

        for column, parent_kind in self._foreign_keys.get(kind, {}).items():
            value = row.get(column)
            if value in (None, ""):
                continue
            if value not in self._tables.get(parent_kind, {}):
                raise ForeignKeyViolationError(
                    f"insert or update on {kind} violates foreign key "
                    f"{kind}_{column}_fkey ({column}={value!r})"
                )


def _matches(row: Row, filters: Row) -> bool:
    for key, expected in filters.items():
        actual = row.get(key)
        if isinstance(expected, (list, tuple, set, frozenset)):
            if actual not in expected:
                return False
        elif actual != expected:
            return False
    return True


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
