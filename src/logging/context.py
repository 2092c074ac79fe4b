# src/logging/context.py - v3
"""Per-run logging context (user, run id, operation, step).

The context lives in one ContextVar holding a frozen LogContext, so each
asyncio task sees its own copy and a nested scope restores the outer one on
exit.
"""

from __future__ import annotations

import contextvars
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, replace
from typing import Any


@dataclass(frozen=True)
class LogContext:
    """Immutable snapshot of the current logging context."""

    user_id: str | None = None
    run_id: str | None = None
    operation: str | None = None
    step: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Non-None fields, for JSON log injection."""
        return {k: v for k, v in asdict(self).items() if v is not None}


_EMPTY = LogContext()
_context: contextvars.ContextVar[LogContext] = contextvars.ContextVar(
    "schedulebud_log_context", default=_EMPTY
)


def get_context() -> LogContext:
    return _context.get()


def _update(**fields: str | None) -> None:
    _context.set(replace(_context.get(), **fields))


def set_run_context(user_id: str, run_id: str) -> None:
    """Set run-level context (once per import/export run)."""
    _update(user_id=user_id, run_id=run_id)


def set_operation_context(operation: str, step: str | None = None) -> None:
    """Set the operation (import_json, export_csv, upload...) and reset the step."""
    _update(operation=operation, step=step)


def set_step(step: str | None) -> None:
    _update(step=step)


def clear_context() -> None:
    _context.set(_EMPTY)


@contextmanager
def log_scope(**fields: str | None) -> Iterator[LogContext]:
    """Overlay ``fields`` on the current context until the block exits."""
    token = _context.set(replace(_context.get(), **fields))
    try:
        yield _context.get()
    finally:
        _context.reset(token)
