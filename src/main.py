# src/main.py - v3
"""CLI entry point: export, import, fingerprint and cache commands.

Usage:
    schedulebud export --format ics [-o calendar.ics]
    schedulebud export --term Fall --year 2024
    schedulebud import <file> [--preview] [--conflict skip|overwrite|merge]
    schedulebud fingerprint <file> [--algorithm sha1]
    schedulebud cache cleanup|stats
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from schedulebud.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = _load_settings(args)
    except Exception as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2
    _setup_logging(settings, args.verbose)

    from schedulebud.logging.context import log_scope

    try:
        with log_scope(operation=f"cli_{args.command}"):
            return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="schedulebud",
        description=f"ScheduleBud v{__version__} - planner import/export and file cache",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--user", default=None,
        help="User id (overrides SCHEDULEBUD_USER_ID)",
    )
    parser.add_argument(
        "--data", type=Path, default=None,
        help="Entity store JSON file (overrides SCHEDULEBUD_DATA_PATH)",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- export ---
    p_export = subparsers.add_parser("export", help="Export tasks")
    p_export.add_argument(
        "-f", "--format", choices=["json", "csv", "ics"], default="json",
        help="Output format (default: json)",
    )
    p_export.add_argument("--term", default=None, help="Academic term (e.g. Fall)")
    p_export.add_argument("--year", type=int, default=None, help="Term year")
    p_export.add_argument(
        "--exclude-completed", action="store_true",
        help="Leave out completed tasks",
    )
    p_export.add_argument(
        "--class-id", action="append", dest="class_ids", default=[],
        help="Only export tasks of this class (repeatable)",
    )
    p_export.add_argument(
        "-o", "--output", type=Path, default=None,
        help="Output file or directory (default: generated name in cwd)",
    )
    p_export.set_defaults(func=_cmd_export)

    # --- import ---
    p_import = subparsers.add_parser("import", help="Import a JSON, CSV or ICS file")
    p_import.add_argument("file", type=Path, help="File to import")
    p_import.add_argument(
        "-f", "--format", choices=["json", "csv", "ics"], default=None,
        help="Input format (default: from file extension)",
    )
    p_import.add_argument(
        "--preview", action="store_true",
        help="Report what would be imported without writing",
    )
    p_import.add_argument(
        "--conflict", choices=["skip", "overwrite", "merge"], default=None,
        help="Policy for name collisions (default: from settings)",
    )
    p_import.add_argument(
        "--allow-duplicates", action="store_true",
        help="Do not skip tasks matching existing title and due date",
    )
    p_import.set_defaults(func=_cmd_import)

    # --- fingerprint ---
    p_fp = subparsers.add_parser("fingerprint", help="Print a file's content fingerprint")
    p_fp.add_argument("file", type=Path, help="File to fingerprint")
    p_fp.add_argument(
        "--algorithm", choices=["sha256", "sha1"], default=None,
        help="Digest algorithm (default: from settings)",
    )
    p_fp.set_defaults(func=_cmd_fingerprint)

    # --- cache ---
    p_cache = subparsers.add_parser("cache", help="Fingerprint cache maintenance")
    cache_sub = p_cache.add_subparsers(dest="cache_command", required=True)
    cache_sub.add_parser("cleanup", help="Delete expired entries").set_defaults(
        func=_cmd_cache_cleanup
    )
    cache_sub.add_parser("stats", help="Show cache statistics").set_defaults(
        func=_cmd_cache_stats
    )

    return parser


def _load_settings(args: argparse.Namespace):
    from schedulebud.config.settings import load_settings

    overrides: dict[str, object] = {}
    if args.user:
        overrides["user_id"] = args.user
    if args.data:
        overrides["data_path"] = args.data
    if getattr(args, "algorithm", None):
        overrides["hash_algorithm"] = args.algorithm
    return load_settings(**overrides)


async def _cmd_export(args: argparse.Namespace, settings) -> int:
    """Export tasks to a file."""
    from schedulebud.api.facade import build_services
    from schedulebud.exporter.models import ExportOptions
    from schedulebud.exporter.terms import parse_term

    services = build_services(settings)
    if (args.term is None) != (args.year is None):
        logger.error("--term and --year must be given together")
        return 1

    if args.term:
        term = parse_term(args.term) or args.term
        artifact = await services.exporter.export_term_archive(term, args.year)
    else:
        artifact = await services.exporter.export(ExportOptions(
            format=args.format,
            include_completed=not args.exclude_completed,
            class_ids=args.class_ids,
            calendar_name=settings.export_calendar_name,
            timezone=settings.export_timezone,
            delimiter=settings.export_csv_delimiter,
        ))

    target: Path = args.output or Path(artifact.filename)
    if target.is_dir():
        target = target / artifact.filename
    target.write_bytes(artifact.content)
    print(f"Exported {artifact.record_count} tasks to {target}")
    return 0


async def _cmd_import(args: argparse.Namespace, settings) -> int:
    """Import a file into the entity store."""
    from schedulebud.api.facade import build_services
    from schedulebud.codecs.codec_factory import format_from_path
    from schedulebud.importer.models import ImportOptions

    file_path: Path = args.file
    if not file_path.exists():
        logger.error("File not found: %s", file_path)
        return 1

    services = build_services(settings)
    options = ImportOptions(
        format=args.format or format_from_path(file_path),
        preview=args.preview,
        skip_duplicates=settings.import_skip_duplicates and not args.allow_duplicates,
        conflict_resolution=args.conflict or settings.import_conflict_resolution,
    )

    def show(progress) -> None:
        logger.debug("[%3d%%] %s: %s", progress.percent, progress.step, progress.message)

    result = await services.importer.import_file(file_path, options, show)
    _print_import_result(result)
    return 0 if result.success else 1


async def _cmd_fingerprint(args: argparse.Namespace, settings) -> int:
    """Print the fingerprint of a file."""
    from schedulebud.cache.fingerprint import (
        FileSource,
        FingerprintOptions,
        create_file_fingerprint,
        hash_method,
    )

    file_path: Path = args.file
    if not file_path.is_file():
        logger.error("File not found: %s", file_path)
        return 1

    fp = await create_file_fingerprint(
        FileSource.from_path(file_path),
        FingerprintOptions(
            algorithm=settings.hash_algorithm, chunk_size=settings.hash_chunk_size,
        ),
    )
    print(f"{fp.content_hash}  {fp.filename}")
    print(f"  method: {hash_method(fp.content_hash)}  size: {fp.size}  type: {fp.mime_type}")
    return 0


async def _cmd_cache_cleanup(args: argparse.Namespace, settings) -> int:
    """Delete expired fingerprint cache entries."""
    from schedulebud.api.facade import build_services

    services = build_services(settings)
    if services.cache is None:
        logger.error("Fingerprint cache is disabled")
        return 1
    deleted = await services.cache.cleanup_expired_entries()
    print(f"Removed {deleted} expired cache entries")
    return 0


async def _cmd_cache_stats(args: argparse.Namespace, settings) -> int:
    """Display fingerprint cache statistics."""
    from schedulebud.api.facade import build_services

    services = build_services(settings)
    if services.cache is None:
        logger.error("Fingerprint cache is disabled")
        return 1
    stats = await services.cache.get_statistics()
    if stats is None:
        logger.error("Cache statistics unavailable")
        return 1

    print(f"\nFingerprint cache ({settings.cache_backend}):")
    print(f"  Entries:     {stats.total_entries}")
    print(f"  Expired:     {stats.expired_entries}")
    print(f"  Cached text: {stats.total_text_bytes} chars")
    for status, count in sorted(stats.status_counts.items()):
        print(f"  {status + ':':<12} {count}")
    return 0


def _print_import_result(result: object) -> None:
    """Print a human-readable summary of an ImportResult."""
    summary = result.summary
    title = "Import preview" if result.preview else "Import complete"
    if not result.success:
        title = "Import failed"
    print(f"\n{title}:")
    print(f"  Tasks:       {summary.imported.tasks} imported, {summary.skipped.tasks} skipped")
    print(f"  Classes:     {summary.imported.classes} imported, {summary.skipped.classes} skipped")
    print(
        f"  Task types:  {summary.imported.task_types} imported, "
        f"{summary.skipped.task_types} skipped"
    )
    print(f"  Duplicates:  {summary.duplicates}")
    print(f"  Conflicts:   {len(result.conflicts)}")
    for issue in result.errors[:20]:
        where = f"{issue.item}: " if issue.item else ""
        print(f"  [{issue.severity}] {where}{issue.message}")
    if len(result.errors) > 20:
        print(f"  ... and {len(result.errors) - 20} more errors")


def _setup_logging(settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from schedulebud.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
