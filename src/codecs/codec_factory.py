# src/codecs/codec_factory.py - v1
"""Factory for codec instantiation by format name."""

from __future__ import annotations

import importlib
from pathlib import Path

from schedulebud.codecs.base_codec import BaseCodec

_CODECS: dict[str, str] = {
    "json": "schedulebud.codecs.json_codec.JsonCodec",
    "csv": "schedulebud.codecs.csv_codec.CsvCodec",
    "ics": "schedulebud.codecs.ics_codec.IcsCodec",
}

_EXTENSION_ALIASES = {"ical": "ics", "ifb": "ics", "icalendar": "ics"}


class UnsupportedFormatError(ValueError):
    """Raised when no codec is registered for a format."""


def create_codec(fmt: str) -> BaseCodec:
    """Create the codec for ``fmt`` ("json", "csv" or "ics").

    Raises:
        UnsupportedFormatError: If no codec is registered.
    """
    key = fmt.lower().lstrip(".")
    key = _EXTENSION_ALIASES.get(key, key)
    fqcn = _CODECS.get(key)
    if fqcn is None:
        raise UnsupportedFormatError(
            f"Unsupported format {fmt!r}. Supported: {', '.join(available_formats())}"
        )
    module_path, class_name = fqcn.rsplit(".", 1)
    mod = importlib.import_module(module_path)
    return getattr(mod, class_name)()


def format_from_path(path: str | Path) -> str:
    """Infer the format from a file extension."""
    suffix = Path(path).suffix.lower().lstrip(".")
    fmt = _EXTENSION_ALIASES.get(suffix, suffix)
    if fmt not in _CODECS:
        raise UnsupportedFormatError(f"Cannot infer format from {str(path)!r}")
    return fmt


def available_formats() -> list[str]:
    return sorted(_CODECS)
