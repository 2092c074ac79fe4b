# src/exporter/service.py - v2
"""Export orchestrator.

Loads the user's rows, runs the filter chain and hands the result to
exactly one codec. Term and file archives are built on top of the JSON
export.
"""

from __future__ import annotations

import io
import logging
import uuid
import zipfile
from collections.abc import Callable
from datetime import date, datetime, timezone
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from schedulebud.auth.identity import IdentityProvider, require_user
from schedulebud.codecs.codec_factory import create_codec
from schedulebud.codecs.models import CodecOptions, ExportBundle
from schedulebud.core.errors import ScheduleBudError
from schedulebud.core.models import (
    CLASS_FILES,
    CLASSES,
    TASK_TYPES,
    TASKS,
    ClassFile,
    SchoolClass,
    Task,
    TaskType,
)
from schedulebud.exporter.filters import filter_tasks
from schedulebud.exporter.models import ExportArtifact, ExportOptions, ExportProgress
from schedulebud.exporter.terms import term_date_range
from schedulebud.logging.context import set_operation_context, set_run_context, set_step
from schedulebud.storage.base_blob_store import BaseBlobStore
from schedulebud.store.base_entity_store import BaseEntityStore, Row

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ExportProgress], None]
M = TypeVar("M", bound=BaseModel)

ARCHIVE_DATA_TYPES = ["tasks", "classes", "grades", "sessions"]
MISSING_FILES_NAME = "missing_files.txt"

_KIND_BY_FORMAT = {"json": "export", "csv": "tasks", "ics": "calendar"}


def generate_export_filename(
    ext: str,
    kind: str,
    term: str | None = None,
    year: int | None = None,
    today: date | None = None,
) -> str:
    """``schedulebud_<kind>[_<term>_<year>]_<YYYY-MM-DD>.<ext>``"""
    parts = ["schedulebud", kind]
    if term and year:
        parts += [term.strip().replace(" ", "_"), str(year)]
    parts.append((today or date.today()).isoformat())
    return f"{'_'.join(parts)}.{ext}"


class ExportService:
    """Exports the current user's planner data."""

    def __init__(
        self,
        store: BaseEntityStore,
        identity: IdentityProvider,
        blob_store: BaseBlobStore | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._identity = identity
        self._blob_store = blob_store
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def export(
        self,
        options: ExportOptions | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ExportArtifact:
        """Export tasks in the requested format.

        Raises:
            AuthenticationRequiredError: No current user.
            StoreError: Rows could not be loaded.
        """
        options = options or ExportOptions()
        user = await require_user(self._identity)
        set_run_context(user.id, uuid.uuid4().hex[:12])
        set_operation_context(f"export_{options.format}", "loading")
        _emit(on_progress, "Loading", 10, "Fetching tasks...")

        tasks = _parse_rows(Task, await self._store.get(TASKS, {"user_id": user.id}))
        classes = _parse_rows(SchoolClass, await self._store.get(CLASSES, {"user_id": user.id}))
        task_types = _parse_rows(TaskType, await self._store.get(TASK_TYPES, {"user_id": user.id}))
        _emit(on_progress, "Filtering", 40, f"Filtering {len(tasks)} tasks...")

        set_step("filtering")
        selected = filter_tasks(tasks, options)
        if options.format == "json":
            if options.class_ids:
                allowed = set(options.class_ids)
                classes = [c for c in classes if c.id in allowed]
            if options.data_types is not None and "classes" not in options.data_types:
                classes = []

        set_step("encoding")
        _emit(on_progress, "Encoding", 70, f"Encoding {len(selected)} tasks as {options.format}...")
        now = self._clock()
        codec = create_codec(options.format)
        content = codec.encode(
            ExportBundle(
                user_id=user.id,
                exported_at=now,
                tasks=selected,
                classes=classes,
                task_types=task_types,
            ),
            CodecOptions(
                data_types=options.data_types,
                calendar_name=options.calendar_name,
                timezone=options.timezone,
                delimiter=options.delimiter,
                include_headers=options.include_headers,
            ),
        )

        artifact = ExportArtifact(
            content=content,
            filename=generate_export_filename(
                codec.file_extension, _KIND_BY_FORMAT[options.format], today=now.date()
            ),
            mime_type=codec.mime_type,
            format=options.format,
            record_count=len(selected),
        )
        _emit(on_progress, "Complete", 100, "Export complete!")
        logger.info(
            "Exported %d of %d tasks as %s (%d bytes)",
            len(selected), len(tasks), options.format, len(content),
        )
        return artifact

    async def export_term_archive(
        self,
        term: str,
        year: int,
        on_progress: ProgressCallback | None = None,
    ) -> ExportArtifact:
        """JSON export limited to one academic term."""
        start, end = term_date_range(term, year)
        options = ExportOptions(
            format="json", start_date=start, end_date=end, data_types=ARCHIVE_DATA_TYPES,
        )
        _emit(on_progress, "Archive Setup", 5, f"Creating {term} {year} archive...")

        def scaled(event: ExportProgress) -> None:
            _emit(on_progress, event.step, max(5, event.percent * 9 // 10),
                  f"Archive: {event.message}")

        artifact = await self.export(options, scaled if on_progress else None)
        _emit(on_progress, "Archive Complete", 100, f"{term} {year} archive ready!")
        return artifact.model_copy(update={
            "filename": generate_export_filename(
                "json", "archive", term, year, today=self._clock().date()
            ),
        })

    async def export_file_archive(
        self, term: str | None = None, year: int | None = None
    ) -> ExportArtifact:
        """Zip of the JSON export plus every class file.

        Files that cannot be downloaded are listed in ``missing_files.txt``.

        Raises:
            ScheduleBudError: No blob store is configured.
        """
        if self._blob_store is None:
            raise ScheduleBudError("File archive export requires a blob store")
        user = await require_user(self._identity)

        if term and year:
            data = await self.export_term_archive(term, year)
        else:
            data = await self.export(ExportOptions(format="json"))
        set_operation_context("export_files", "collecting")

        classes = {
            c.id: c.name
            for c in _parse_rows(SchoolClass, await self._store.get(CLASSES, {"user_id": user.id}))
        }
        files = _parse_rows(ClassFile, await self._store.get(CLASS_FILES, {"owner": user.id}))

        buffer = io.BytesIO()
        missing: list[str] = []
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            zf.writestr(data.filename, data.content)
            for class_file in files:
                folder = _safe_name(classes.get(class_file.class_id, "Unassigned"))
                try:
                    content = await self._blob_store.download(class_file.path)
                except Exception as e:
                    logger.warning("Could not download %s: %s", class_file.path, e)
                    missing.append(f"{folder}/{class_file.name}: {e}")
                    continue
                zf.writestr(f"files/{folder}/{_safe_name(class_file.name)}", content)
            if missing:
                zf.writestr(MISSING_FILES_NAME, "\n".join(missing) + "\n")

        logger.info(
            "Built file archive with %d files (%d missing)",
            len(files) - len(missing), len(missing),
        )
        return ExportArtifact(
            content=buffer.getvalue(),
            filename=generate_export_filename(
                "zip", "files", term, year, today=self._clock().date()
            ),
            mime_type="application/zip",
            format="zip",
            record_count=len(files) - len(missing),
        )


def _parse_rows(model: type[M], rows: list[Row]) -> list[M]:
    parsed: list[M] = []
    for row in rows:
        try:
            parsed.append(model.model_validate(row))
        except ValidationError as e:
            logger.warning("Skipping malformed %s row %s: %s", model.__name__, row.get("id"), e)
    return parsed


def _safe_name(name: str) -> str:
    return name.replace("/", "_").replace("\\", "_").strip() or "_"


def _emit(callback: ProgressCallback | None, step: str, percent: int, message: str) -> None:
    if callback is None:
        return
    try:
        callback(ExportProgress(step=step, percent=percent, message=message))
    except Exception as e:
        logger.debug("Progress callback failed: %s", e)
