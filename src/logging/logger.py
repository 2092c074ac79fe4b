# src/logging/logger.py - v3
"""Log formatters and the ``schedulebud`` root logger setup.

Records carry the run context (user, run id, operation, step) from
:mod:`schedulebud.logging.context`. Cache code logs content hashes through
:func:`short_hash` so full digests never reach the log.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from schedulebud.logging.context import get_context

ROOT_LOGGER = "schedulebud"

# Client libraries that log every request at DEBUG/INFO.
_CHATTY_LIBRARIES = ("botocore", "boto3", "s3transfer", "urllib3", "redis")


def short_hash(content_hash: str | None) -> str:
    """Shorten a content hash for log output."""
    if not content_hash:
        return "<none>"
    return content_hash[:12] + "..."


def _timestamp(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JsonFormatter(logging.Formatter):
    """One JSON object per line: level, logger, message and run context."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": _timestamp(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = get_context().as_dict()
        if context:
            entry["context"] = context

        # logger.info(..., extra={"data": {...}, "content_hash": "..."})
        data = getattr(record, "data", None)
        if data:
            entry["data"] = data
        content_hash = getattr(record, "content_hash", None)
        if content_hash:
            entry["content_hash"] = short_hash(content_hash)

        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """``<time> [LEVEL] logger [operation] (step) - message`` for terminals."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_context()
        line = (
            f"{_timestamp(record):%Y-%m-%d %H:%M:%S} "
            f"[{record.levelname:8s}] {record.name}"
        )
        if ctx.run_id:
            line += f" <{ctx.run_id[:8]}>"
        if ctx.operation:
            line += f" [{ctx.operation}]"
        if ctx.step:
            line += f" ({ctx.step})"
        line += f" - {record.getMessage()}"
        if record.exc_info and record.exc_info[1] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``schedulebud`` namespace."""
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: str | None = None,
    rotation: str = "10MB",
    retention: int = 30,
) -> None:
    """Configure the ``schedulebud`` logger.

    Safe to call more than once; previous handlers are replaced.

    Args:
        level: DEBUG, INFO, WARNING or ERROR.
        log_format: "json" or "text".
        log_file: Optional rotating log file next to the stderr stream.
        rotation: Max file size before rotation (e.g. "10MB").
        retention: Number of rotated files to keep.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(numeric_level)
    root.handlers.clear()

    formatter: logging.Formatter = (
        JsonFormatter() if log_format == "json" else TextFormatter()
    )
    stream = logging.StreamHandler(sys.stderr)
    stream.setFormatter(formatter)
    root.addHandler(stream)

    if log_file:
        from schedulebud.logging.handlers import create_rotating_handler

        file_handler = create_rotating_handler(
            log_file, rotation=rotation, retention=retention
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    library_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in _CHATTY_LIBRARIES:
        logging.getLogger(name).setLevel(library_level)
