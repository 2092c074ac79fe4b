# src/codecs/base_codec.py - v1
"""Abstract codec interface for import/export formats."""

from __future__ import annotations

from abc import ABC, abstractmethod

from schedulebud.codecs.models import CodecOptions, DecodedImport, ExportBundle


class BaseCodec(ABC):
    """Unified interface for JSON, CSV and ICS codecs."""

    @property
    @abstractmethod
    def format_name(self) -> str:
        """Format identifier (e.g. "json")."""

    @property
    @abstractmethod
    def file_extension(self) -> str:
        """Extension without dot (e.g. "ics")."""

    @property
    @abstractmethod
    def mime_type(self) -> str:
        """MIME type of encoded output."""

    @abstractmethod
    def encode(self, bundle: ExportBundle, options: CodecOptions | None = None) -> bytes:
        """Serialize entities to bytes."""

    @abstractmethod
    def decode(self, data: bytes | str) -> DecodedImport:
        """Parse bytes into normalised records.

        Raises:
            ImportFormatError: If the input cannot be interpreted at all.
        """


def as_text(data: bytes | str) -> str:
    """Decode input as UTF-8, tolerating a BOM."""
    if isinstance(data, bytes):
        return data.decode("utf-8-sig", errors="replace")
    return data.lstrip("\ufeff")
