# src/importer/service.py - v1
"""Import orchestrator.

A run moves through reading -> decoding -> validating -> detecting_conflicts
and then either stops at preview or writes classes, task types and tasks,
in that order, since tasks reference the other two by id.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from schedulebud.auth.identity import IdentityProvider, require_user
from schedulebud.codecs.codec_factory import create_codec
from schedulebud.codecs.models import ClassRecord, DecodedImport, ImportRecord, TaskTypeRecord
from schedulebud.core.errors import StoreError
from schedulebud.core.models import CLASSES, TASK_TYPES, TASKS, Task, parse_date_value
from schedulebud.importer.conflicts import ConflictDetector, normalise_name, task_key
from schedulebud.importer.models import (
    SECONDS_PER_ITEM,
    ImportConflict,
    ImportIssue,
    ImportOptions,
    ImportPreview,
    ImportProgress,
    ImportResult,
    ImportSummary,
    ValidationResult,
)
from schedulebud.importer.validation import validate_records
from schedulebud.logging.context import set_operation_context, set_run_context, set_step
from schedulebud.store.base_entity_store import BaseEntityStore, Row

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ImportProgress], None]
ImportSource = bytes | str | Path

# (start, end) percent per stage
BANDS = {
    "reading": (0, 10),
    "decoding": (10, 20),
    "validating": (20, 30),
    "detecting_conflicts": (30, 40),
    "classes": (40, 70),
    "task_types": (70, 90),
    "tasks": (90, 100),
}

_PRIORITIES = {"low", "medium", "high"}


class ProgressReporter:
    """Forwards progress events, never letting the percentage go backwards."""

    def __init__(self, callback: ProgressCallback | None) -> None:
        self._callback = callback
        self.percent = 0

    def stage(self, step: str, message: str, processed: int = 0, total: int = 0) -> None:
        start, end = BANDS[step]
        if total:
            percent = start + (end - start) * processed // total
        else:
            percent = end if processed else start
        self.emit(step, percent, message, processed if total else None, total or None)

    def emit(
        self,
        step: str,
        percent: int,
        message: str,
        processed: int | None = None,
        total: int | None = None,
    ) -> None:
        self.percent = max(self.percent, min(percent, 100))
        if self._callback is None:
            return
        try:
            self._callback(ImportProgress(
                step=step, percent=self.percent, message=message,
                processed=processed, total=total,
            ))
        except Exception as e:
            logger.debug("Progress callback failed: %s", e)


class _ImportRun:
    """Mutable state of one non-preview run."""

    def __init__(self, user_id: str, options: ImportOptions, refs_are_names: bool) -> None:
        self.user_id = user_id
        self.options = options
        self.refs_are_names = refs_are_names
        self.summary = ImportSummary()
        self.errors: list[ImportIssue] = []
        self.warnings: list[ImportIssue] = []
        # imported id or normalised name -> stored id
        self.class_ids: dict[str, str] = {}
        self.type_ids: dict[str, str] = {}

    def database_issue(self, item: str, error: Exception) -> None:
        logger.warning("Import of %s failed: %s", item, error)
        self.errors.append(ImportIssue(
            type="database", item=item, message=str(error), severity="medium",
        ))


class ImportService:
    """Imports JSON/CSV/ICS files into the entity store."""

    def __init__(
        self,
        store: BaseEntityStore,
        identity: IdentityProvider,
        clock: Callable[[], datetime] | None = None,
        detector: ConflictDetector | None = None,
    ) -> None:
        self._store = store
        self._identity = identity
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._detector = detector or ConflictDetector()

    async def import_file(
        self,
        data: ImportSource,
        options: ImportOptions | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ImportResult:
        """Run a full import (or a preview when ``options.preview``).

        Raises:
            AuthenticationRequiredError: No current user.
            ImportFormatError: The file cannot be decoded.
            StoreError: Existing rows could not be loaded.
        """
        options = options or ImportOptions()
        user = await require_user(self._identity)
        set_run_context(user.id, uuid.uuid4().hex[:12])
        set_operation_context(f"import_{options.format}", "reading")
        progress = ProgressReporter(on_progress)

        decoded, validation, conflicts = await self._analyse(data, options, user.id, progress)

        if options.preview:
            set_step("preview")
            progress.emit("preview", 100, "Preview ready")
            return ImportResult(
                success=True,
                stage="preview",
                preview=True,
                summary=self._preview_summary(decoded, conflicts),
                errors=validation.errors,
                warnings=validation.warnings,
                conflicts=conflicts,
            )

        if validation.has_blocking_errors:
            logger.warning(
                "Import blocked by %d validation errors", len(validation.errors)
            )
            return ImportResult(
                success=False,
                stage="failed",
                summary=ImportSummary(errors=len(validation.errors)),
                errors=validation.errors,
                warnings=validation.warnings,
                conflicts=conflicts,
            )

        set_step("importing")
        run = _ImportRun(user.id, options, refs_are_names=options.format != "json")
        run.errors.extend(validation.errors)
        run.warnings.extend(validation.warnings)

        existing = await self._load_existing(user.id)
        await self._import_classes(run, decoded, existing[CLASSES], progress)
        await self._import_task_types(run, decoded, existing[TASK_TYPES], progress)
        await self._import_tasks(run, decoded, existing[TASKS], progress)

        run.summary.errors = len(run.errors)
        set_step("complete")
        progress.emit("complete", 100, "Import complete")
        logger.info(
            "Import complete: %d tasks, %d classes, %d task types imported; %d errors",
            run.summary.imported.tasks, run.summary.imported.classes,
            run.summary.imported.task_types, len(run.errors),
        )
        return ImportResult(
            success=True,
            summary=run.summary,
            errors=run.errors,
            warnings=run.warnings,
            conflicts=conflicts,
        )

    async def preview_import(
        self, data: ImportSource, options: ImportOptions | None = None
    ) -> ImportPreview:
        """Decode, validate and detect conflicts without writing."""
        options = (options or ImportOptions()).model_copy(update={"preview": True})
        user = await require_user(self._identity)
        set_operation_context(f"preview_{options.format}", "reading")
        decoded, validation, conflicts = await self._analyse(
            data, options, user.id, ProgressReporter(None)
        )
        return ImportPreview(
            summary=self._preview_summary(decoded, conflicts),
            conflicts=conflicts,
            errors=validation.errors,
            warnings=validation.warnings,
            estimated_import_time=round(decoded.item_count * SECONDS_PER_ITEM, 1),
        )

    # --- Analysis ---

    async def _analyse(
        self,
        data: ImportSource,
        options: ImportOptions,
        user_id: str,
        progress: ProgressReporter,
    ) -> tuple[DecodedImport, ValidationResult, list[ImportConflict]]:
        progress.emit("reading", 0, "Reading file...")
        raw = await _read(data)
        progress.stage("reading", "File read", 1)

        set_step("decoding")
        codec = create_codec(options.format)
        decoded = codec.decode(raw)
        progress.stage("decoding", f"Decoded {len(decoded.records)} tasks", 1)

        set_step("validating")
        if options.validate_data:
            validation = validate_records(decoded)
        else:
            validation = ValidationResult(warnings=list(decoded.warnings))
        progress.stage("validating", f"{len(validation.errors)} validation errors", 1)

        set_step("detecting_conflicts")
        existing = await self._load_existing(user_id)
        conflicts = self._detector.detect(
            decoded, existing[CLASSES], existing[TASK_TYPES], existing[TASKS]
        )
        progress.stage("detecting_conflicts", f"{len(conflicts)} conflicts found", 1)
        return decoded, validation, conflicts

    async def _load_existing(self, user_id: str) -> dict[str, list[Row]]:
        return {
            kind: await self._store.get(kind, {"user_id": user_id})
            for kind in (CLASSES, TASK_TYPES, TASKS)
        }

    @staticmethod
    def _preview_summary(
        decoded: DecodedImport, conflicts: list[ImportConflict]
    ) -> ImportSummary:
        summary = ImportSummary(total_processed=decoded.item_count)
        summary.imported.tasks = len(decoded.records)
        summary.imported.classes = len(decoded.classes)
        summary.imported.task_types = len(decoded.task_types)
        summary.duplicates = sum(1 for c in conflicts if c.type == "task")
        return summary

    # --- Stages ---

    async def _import_classes(
        self,
        run: _ImportRun,
        decoded: DecodedImport,
        existing: list[Row],
        progress: ProgressReporter,
    ) -> None:
        by_name = {normalise_name(r.get("name")): r for r in existing}
        known_ids = {r["id"] for r in existing if r.get("id")}
        for row in existing:
            if row.get("id"):
                run.class_ids[row["id"]] = row["id"]
                run.class_ids[normalise_name(row.get("name"))] = row["id"]
        records = list(decoded.classes)
        if run.refs_are_names:
            declared = {normalise_name(c.name) for c in records}
            for record in decoded.records:
                ref = record.class_ref
                if (
                    ref
                    and ref not in run.options.class_mapping
                    and ref not in known_ids
                    and normalise_name(ref) not in declared
                ):
                    declared.add(normalise_name(ref))
                    records.append(ClassRecord(name=ref.strip()))

        set_step("classes")
        total = len(records)
        for idx, record in enumerate(records):
            item = f"Class: {record.name}"
            try:
                stored_id = await self._write_named(
                    run, CLASSES, record, by_name, counts_attr="classes"
                )
                run.class_ids[normalise_name(record.name)] = stored_id
                if record.id:
                    run.class_ids[record.id] = stored_id
            except StoreError as e:
                run.summary.skipped.classes += 1
                run.database_issue(item, e)
            run.summary.total_processed += 1
            await asyncio.sleep(0)
            progress.stage("classes", f"Processed {idx + 1} of {total} classes", idx + 1, total)
        if not total:
            progress.stage("classes", "No classes to import", 1)

    async def _import_task_types(
        self,
        run: _ImportRun,
        decoded: DecodedImport,
        existing: list[Row],
        progress: ProgressReporter,
    ) -> None:
        by_name = {normalise_name(r.get("name")): r for r in existing}
        for row in existing:
            if row.get("id"):
                run.type_ids[normalise_name(row.get("name"))] = row["id"]

        set_step("task_types")
        total = len(decoded.task_types)
        for idx, record in enumerate(decoded.task_types):
            item = f"Task type: {record.name}"
            try:
                stored_id = await self._write_named(
                    run, TASK_TYPES, record, by_name, counts_attr="task_types"
                )
                run.type_ids[normalise_name(record.name)] = stored_id
                if record.id:
                    run.type_ids[record.id] = stored_id
            except StoreError as e:
                run.summary.skipped.task_types += 1
                run.database_issue(item, e)
            run.summary.total_processed += 1
            await asyncio.sleep(0)
            progress.stage(
                "task_types", f"Processed {idx + 1} of {total} task types", idx + 1, total
            )
        if not total:
            progress.stage("task_types", "No task types to import", 1)

    async def _import_tasks(
        self,
        run: _ImportRun,
        decoded: DecodedImport,
        existing: list[Row],
        progress: ProgressReporter,
    ) -> None:
        by_key = {
            task_key(r.get("title"), r.get("dueDate", r.get("due_date"))): r
            for r in existing
        }

        set_step("tasks")
        total = len(decoded.records)
        for idx, record in enumerate(decoded.records):
            item = record.label(idx)
            key = task_key(record.title, record.due_date)
            try:
                row = self._task_row(run, record)
                match = by_key.get(key)
                if match is None:
                    stored = await self._store.insert(TASKS, row)
                    by_key[key] = stored
                    run.summary.imported.tasks += 1
                elif run.options.skip_duplicates:
                    run.summary.duplicates += 1
                    run.summary.skipped.tasks += 1
                    logger.debug("Skipping duplicate %s", item)
                else:
                    await self._resolve_existing(run, TASKS, match, row, "tasks")
            except StoreError as e:
                run.summary.skipped.tasks += 1
                run.database_issue(item, e)
            run.summary.total_processed += 1
            await asyncio.sleep(0)
            progress.stage("tasks", f"Processed {idx + 1} of {total} tasks", idx + 1, total)
        if not total:
            progress.stage("tasks", "No tasks to import", 1)

    # --- Helpers ---

    async def _write_named(
        self,
        run: _ImportRun,
        kind: str,
        record: ClassRecord | TaskTypeRecord,
        by_name: dict[str, Row],
        counts_attr: str,
    ) -> str:
        """Insert a class/task type, or apply the conflict policy to a match."""
        fields = record.model_dump(exclude={"id", "user_id", "created_at", "updated_at"},
                                   exclude_none=True)
        name = normalise_name(record.name)
        match = by_name.get(name)
        if match is not None:
            await self._resolve_existing(run, kind, match, fields, counts_attr)
            return match["id"]

        stored = await self._store.insert(kind, {**fields, "user_id": run.user_id})
        by_name[name] = stored
        setattr(run.summary.imported, counts_attr,
                getattr(run.summary.imported, counts_attr) + 1)
        return stored["id"]

    async def _resolve_existing(
        self, run: _ImportRun, kind: str, match: Row, fields: Row, counts_attr: str
    ) -> None:
        policy = run.options.conflict_resolution
        if policy == "overwrite":
            patch = {k: v for k, v in fields.items() if k != "user_id"}
            await self._store.update(kind, match["id"], patch)
            counts = run.summary.imported
        elif policy == "merge":
            patch = {
                k: v for k, v in fields.items()
                if k != "user_id" and match.get(k) in (None, "")
            }
            if patch:
                await self._store.update(kind, match["id"], patch)
            counts = run.summary.skipped
        else:
            counts = run.summary.skipped
        setattr(counts, counts_attr, getattr(counts, counts_attr) + 1)

    def _task_row(self, run: _ImportRun, record: ImportRecord) -> Row:
        due = parse_date_value(record.due_date)
        priority = record.priority if record.priority in _PRIORITIES else "medium"
        task = Task(
            user_id=run.user_id,
            title=str(record.title).strip(),
            completed=record.completed,
            class_id=self._resolve_class(run, record),
            type=self._resolve_type(run, record.type_ref),
            due_date=due.isoformat() if due else None,
            due_time=record.due_time,
            priority=priority,
            canvas_uid=record.uid,
        )
        row = task.to_row()
        if record.description:
            row["description"] = record.description
        return row

    def _resolve_class(self, run: _ImportRun, record: ImportRecord) -> str | None:
        ref = record.class_ref
        if not ref:
            return None
        mapped = run.options.class_mapping.get(ref)
        if mapped:
            return mapped
        for key in (ref, normalise_name(ref)):
            if key in run.class_ids:
                return run.class_ids[key]
        if ref in run.class_ids.values():
            return ref
        run.warnings.append(ImportIssue(
            type="validation", item=str(record.title), field="class", severity="low",
            message=f"Unknown class reference {ref!r}; task imported without a class",
        ))
        return None

    @staticmethod
    def _resolve_type(run: _ImportRun, ref: str | None) -> str | None:
        if not ref:
            return None
        mapped = run.options.task_type_mapping.get(ref)
        if mapped:
            return mapped
        return run.type_ids.get(ref) or run.type_ids.get(normalise_name(ref)) or ref


async def _read(data: ImportSource) -> bytes | str:
    if isinstance(data, Path):
        return await asyncio.to_thread(data.read_bytes)
    return data
