# src/cache/sqlite_store.py - v2
"""SQLite-based fingerprint cache store (CACHE_BACKEND=sqlite).

Uses stdlib sqlite3. The UNIQUE constraint on content_hash is what
reconciles concurrent stores of the same file: the first row wins.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Callable, Collection
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from schedulebud.cache.base_cache_store import BaseFingerprintStore, serialize_patch
from schedulebud.cache.models import FingerprintCacheEntry
from schedulebud.core.errors import (
    ForeignKeyViolationError,
    StoreError,
    UniqueViolationError,
)

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS file_fingerprints (
    content_hash TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    processing_status TEXT NOT NULL,
    class_id TEXT,
    expires_at TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_fp_expires_at ON file_fingerprints(expires_at);
"""

ClassCheck = Callable[[str], bool]


class SqliteFingerprintStore(BaseFingerprintStore):
    """SQLite-backed fingerprint cache."""

    def __init__(
        self,
        db_path: Path | str,
        known_classes: Collection[str] | ClassCheck | None = None,
    ) -> None:
        """Open (and create) the cache database.

        Args:
            db_path: SQLite file path, or ":memory:".
            known_classes: Optional set of valid class ids, or a predicate.
                When given, inserts referencing other class ids raise
                ForeignKeyViolationError.
        """
        if str(db_path) == ":memory:":
            target = ":memory:"
        else:
            path = Path(db_path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            target = str(path)
        self._conn = sqlite3.connect(target)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)
        if known_classes is None or callable(known_classes):
            self._class_check = known_classes
        else:
            allowed = set(known_classes)
            self._class_check = allowed.__contains__

    async def get(self, content_hash: str) -> FingerprintCacheEntry | None:
        row = self._fetch_data(content_hash)
        if row is None:
            return None
        return _decode(row)

    async def insert(self, entry: FingerprintCacheEntry) -> FingerprintCacheEntry:
        if entry.class_id and self._class_check and not self._class_check(entry.class_id):
            raise ForeignKeyViolationError(
                f"class_id {entry.class_id!r} does not reference a known class"
            )
        stored = entry.model_copy(update={"id": entry.id or entry.content_hash})
        try:
            self._conn.execute(
                """INSERT INTO file_fingerprints
                   (content_hash, data, processing_status, class_id, expires_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    stored.content_hash,
                    stored.model_dump_json(),
                    stored.processing_status,
                    stored.class_id,
                    _iso(stored.expires_at),
                ),
            )
            self._conn.commit()
        except sqlite3.IntegrityError as e:
            raise UniqueViolationError(str(e)) from e
        except sqlite3.Error as e:
            raise StoreError(f"SQLite insert failed: {e}") from e
        return stored

    async def update(self, content_hash: str, patch: dict[str, Any]) -> bool:
        row = self._fetch_data(content_hash)
        if row is None:
            return False
        data = json.loads(row)
        data.update(serialize_patch(patch))
        try:
            entry = FingerprintCacheEntry.model_validate(data)
        except ValidationError as e:
            raise StoreError(f"Invalid fingerprint update: {e.error_count()} errors") from e
        try:
            cursor = self._conn.execute(
                """UPDATE file_fingerprints
                   SET data = ?, processing_status = ?, class_id = ?, expires_at = ?
                   WHERE content_hash = ?""",
                (
                    entry.model_dump_json(),
                    entry.processing_status,
                    entry.class_id,
                    _iso(entry.expires_at),
                    content_hash,
                ),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"SQLite update failed: {e}") from e
        return cursor.rowcount > 0

    async def delete_expired(self, now: datetime) -> int:
        try:
            cursor = self._conn.execute(
                "DELETE FROM file_fingerprints WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (_iso(now),),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"SQLite cleanup failed: {e}") from e
        return cursor.rowcount

    async def list_entries(self) -> list[FingerprintCacheEntry]:
        cursor = self._conn.execute("SELECT data FROM file_fingerprints")
        entries: list[FingerprintCacheEntry] = []
        for (data,) in cursor.fetchall():
            try:
                entries.append(_decode(data))
            except StoreError:
                continue
        return entries

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def _fetch_data(self, content_hash: str) -> str | None:
        try:
            cursor = self._conn.execute(
                "SELECT data FROM file_fingerprints WHERE content_hash = ?",
                (content_hash,),
            )
            row = cursor.fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"SQLite read failed: {e}") from e
        return row[0] if row else None


def _decode(data: str) -> FingerprintCacheEntry:
    try:
        return FingerprintCacheEntry.model_validate_json(data)
    except ValidationError as e:
        raise StoreError(f"Corrupt fingerprint entry: {e.error_count()} errors") from e


def _iso(value: datetime | None) -> str | None:
    """UTC ISO string so lexical comparison in SQL matches time order."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()
