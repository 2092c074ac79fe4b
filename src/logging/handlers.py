# src/logging/handlers.py - v2
"""Rotating file handler for the optional SCHEDULEBUD_LOG_FILE."""

from __future__ import annotations

import re
from logging.handlers import RotatingFileHandler
from pathlib import Path

_UNITS = {"B": 1, "KB": 1024, "MB": 1024**2, "GB": 1024**3}
_SIZE_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*(B|KB|MB|GB)?$", re.IGNORECASE)


def parse_size(size: str | int) -> int:
    """Parse '10MB', '512KB', '1.5GB' or a bare byte count into bytes."""
    if isinstance(size, int):
        if size <= 0:
            raise ValueError("Log rotation size must be positive")
        return size

    match = _SIZE_RE.match(size.strip())
    if not match:
        raise ValueError(f"Invalid size format: {size!r}. Use e.g. '10MB'.")
    value = float(match.group(1))
    unit = (match.group(2) or "B").upper()
    result = int(value * _UNITS[unit])
    if result <= 0:
        raise ValueError("Log rotation size must be positive")
    return result


def create_rotating_handler(
    log_file: str | Path,
    rotation: str | int = "10MB",
    retention: int = 30,
) -> RotatingFileHandler:
    """Create a size-based rotating file handler.

    The parent directory is created on demand; the file itself is opened
    lazily on first emit.
    """
    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)

    return RotatingFileHandler(
        filename=str(path),
        maxBytes=parse_size(rotation),
        backupCount=max(retention, 0),
        encoding="utf-8",
        delay=True,
    )
