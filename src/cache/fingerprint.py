# src/cache/fingerprint.py - v3
"""Content fingerprinting for upload deduplication.

Hashing is an ordered list of strategies with a uniform ``HashOutcome``
signature, tried in sequence until one succeeds:

  1. Cryptographic digest (SHA-256 default, SHA-1 allowed) over the full
     content. Content is hashed from a single in-memory buffer; files in the
     hundreds of MB are out of scope.
  2. 32-bit FNV-1a over the text content, extended with a length field and a
     first/middle/last checksum (14 hex chars). Pure and deterministic.
  3. Files only: FNV-1a over "name_size_mtime_mime_sample", where sample is
     the first and last 1 KiB of content.

The public hash functions never raise and never return an empty string.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import mimetypes
import re
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel

from schedulebud.cache.models import FileFingerprint
from schedulebud.logging.logger import short_hash

logger = logging.getLogger(__name__)

FNV_OFFSET_BASIS = 2166136261
FNV_PRIME = 16777619
FALLBACK_HASH_LENGTH = 14
SAMPLE_SIZE = 1024
DEFAULT_CHUNK_SIZE = 1024 * 1024
DEFAULT_MIME_TYPE = "application/octet-stream"
MIN_HASH_LENGTH = 8

_DIGEST_NAMES = {"sha256": "sha256", "sha-256": "sha256", "sha1": "sha1", "sha-1": "sha1"}


class FingerprintOptions(BaseModel):
    """Hashing options."""

    algorithm: Literal["sha256", "sha1"] = "sha256"
    chunk_size: int = DEFAULT_CHUNK_SIZE


@dataclass(frozen=True)
class HashOutcome:
    """Result of one hashing strategy: a value or an error, never both."""

    strategy: str
    value: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return bool(self.value)


@dataclass
class FileSource:
    """An uploaded file: in-memory bytes or a path on disk, plus metadata."""

    filename: str
    data: bytes | None = None
    path: Path | None = None
    mime_type: str = DEFAULT_MIME_TYPE
    modified_at: int = 0  # epoch milliseconds
    size_hint: int | None = None

    @classmethod
    def from_path(cls, path: Path | str, mime_type: str | None = None) -> FileSource:
        p = Path(path)
        stat = p.stat()
        guessed, _ = mimetypes.guess_type(p.name)
        return cls(
            filename=p.name,
            path=p,
            mime_type=mime_type or guessed or DEFAULT_MIME_TYPE,
            modified_at=int(stat.st_mtime * 1000),
            size_hint=stat.st_size,
        )

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        filename: str,
        mime_type: str | None = None,
        modified_at: int = 0,
    ) -> FileSource:
        guessed, _ = mimetypes.guess_type(filename)
        return cls(
            filename=filename,
            data=data,
            mime_type=mime_type or guessed or DEFAULT_MIME_TYPE,
            modified_at=modified_at,
        )

    @property
    def size(self) -> int:
        if self.data is not None:
            return len(self.data)
        if self.size_hint is not None:
            return self.size_hint
        if self.path is not None:
            return self.path.stat().st_size
        return 0

    async def read(self) -> bytes:
        """Read the full content (off the event loop for paths)."""
        if self.data is not None:
            return self.data
        if self.path is None:
            raise FileNotFoundError(f"No content for {self.filename}")
        return await asyncio.to_thread(self.path.read_bytes)

    async def read_sample(self, sample_size: int = SAMPLE_SIZE) -> bytes:
        """First ``sample_size`` bytes plus the last ``sample_size`` when larger."""
        if self.data is not None:
            return _head_tail(self.data, sample_size)
        if self.path is None:
            return b""
        return await asyncio.to_thread(_read_head_tail, self.path, sample_size)


Payload = bytes | str
HashStrategy = Callable[[Payload, FingerprintOptions], Awaitable[HashOutcome]]


# ---------------------------------------------------------------------------
# FNV-1a fallback
# ---------------------------------------------------------------------------


def _code_units(text: str) -> list[int]:
    """UTF-16 code units, matching browser ``charCodeAt`` semantics."""
    raw = text.encode("utf-16-le", errors="surrogatepass")
    return [raw[i] | (raw[i + 1] << 8) for i in range(0, len(raw), 2)]


def fnv1a_hash(text: str) -> str:
    """Deterministic 14-hex-char fallback hash.

    8 hex of 32-bit FNV-1a, 4 hex of the length (mod 2**16) and 2 hex of
    first ^ middle ^ last code unit (mod 2**8).
    """
    units = _code_units(text)
    h = FNV_OFFSET_BASIS
    for unit in units:
        h ^= unit
        h = (h * FNV_PRIME) & 0xFFFFFFFF

    length = len(units) & 0xFFFF
    if units:
        checksum = (units[0] ^ units[len(units) // 2] ^ units[-1]) & 0xFF
    else:
        checksum = 0
    return f"{h:08x}{length:04x}{checksum:02x}"


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


async def digest_strategy(payload: Payload, options: FingerprintOptions) -> HashOutcome:
    """Strategy 1: hashlib digest over the full content."""
    name = _DIGEST_NAMES.get(options.algorithm.lower(), "sha256")
    try:
        data = payload.encode("utf-8") if isinstance(payload, str) else payload
        if len(data) > options.chunk_size:
            hexdigest = await asyncio.to_thread(_digest, name, data)
        else:
            hexdigest = _digest(name, data)
        return HashOutcome(strategy=name, value=hexdigest)
    except Exception as e:
        return HashOutcome(strategy=name, error=str(e) or type(e).__name__)


async def fnv1a_strategy(payload: Payload, options: FingerprintOptions) -> HashOutcome:
    """Strategy 2: FNV-1a over the content as text."""
    try:
        text = payload if isinstance(payload, str) else payload.decode("latin-1")
        return HashOutcome(strategy="fnv1a", value=fnv1a_hash(text))
    except Exception as e:
        return HashOutcome(strategy="fnv1a", error=str(e) or type(e).__name__)


def _digest(name: str, data: bytes) -> str:
    return hashlib.new(name, data).hexdigest()


async def run_strategies(
    strategies: list[HashStrategy],
    payload: Payload,
    options: FingerprintOptions,
) -> HashOutcome:
    """Try each strategy in order, stopping at the first success."""
    failures: list[HashOutcome] = []
    for strategy in strategies:
        outcome = await strategy(payload, options)
        if outcome.ok:
            if failures:
                logger.debug(
                    "Hash fell back to %s after: %s",
                    outcome.strategy,
                    ", ".join(f"{f.strategy} ({f.error})" for f in failures),
                )
            return outcome
        failures.append(outcome)

    # fnv1a over str always succeeds
    text = payload if isinstance(payload, str) else repr(payload)
    return HashOutcome(strategy="fnv1a", value=fnv1a_hash(text))


TEXT_STRATEGIES: list[HashStrategy] = [digest_strategy, fnv1a_strategy]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def hash_text(text: str, options: FingerprintOptions | None = None) -> str:
    """Hash text content. Never raises, never returns an empty string."""
    opts = options or FingerprintOptions()
    outcome = await run_strategies(TEXT_STRATEGIES, text, opts)
    logger.debug(
        "Text hash generated (%s): len=%d hash=%s",
        outcome.strategy, len(text), short_hash(outcome.value),
    )
    return outcome.value  # type: ignore[return-value]


async def hash_bytes(data: bytes, options: FingerprintOptions | None = None) -> str:
    """Hash raw bytes. Never raises, never returns an empty string."""
    opts = options or FingerprintOptions()
    outcome = await run_strategies(TEXT_STRATEGIES, data, opts)
    return outcome.value  # type: ignore[return-value]


async def hash_file(
    source: FileSource, options: FingerprintOptions | None = None
) -> str:
    """Hash a file's content, degrading to a metadata+sample hash.

    Full-content FNV-1a is only attempted up to ``chunk_size`` bytes; larger
    files go straight from the digest to the metadata+sample strategy.
    """
    opts = options or FingerprintOptions()

    async def full_digest(_: Payload, o: FingerprintOptions) -> HashOutcome:
        try:
            content = await source.read()
        except Exception as e:
            return HashOutcome(strategy="digest", error=f"read failed: {e}")
        return await digest_strategy(content, o)

    async def full_fnv(_: Payload, o: FingerprintOptions) -> HashOutcome:
        if source.size > o.chunk_size:
            return HashOutcome(strategy="fnv1a", error="content above chunk size")
        try:
            content = await source.read()
        except Exception as e:
            return HashOutcome(strategy="fnv1a", error=f"read failed: {e}")
        return await fnv1a_strategy(content, o)

    async def metadata_sample(_: Payload, o: FingerprintOptions) -> HashOutcome:
        return await metadata_sample_strategy(source, o)

    outcome = await run_strategies(
        [full_digest, full_fnv, metadata_sample], source.filename, opts
    )
    logger.debug(
        "File hash generated (%s): file=%s size=%d hash=%s",
        outcome.strategy, source.filename, source.size, short_hash(outcome.value),
    )
    return outcome.value  # type: ignore[return-value]


async def metadata_sample_strategy(
    source: FileSource, options: FingerprintOptions
) -> HashOutcome:
    """Strategy 3: FNV-1a over file metadata plus a content sample."""
    try:
        sample = await source.read_sample(SAMPLE_SIZE)
    except Exception as e:
        logger.debug("Sample read failed for %s: %s", source.filename, e)
        sample = b""
    try:
        size = source.size
    except OSError:
        size = 0
    text = sample.decode("utf-8", errors="replace")
    metadata = f"{source.filename}_{size}_{source.modified_at}_{source.mime_type}_{text}"
    return HashOutcome(strategy="metadata_sample", value=fnv1a_hash(metadata))


async def create_file_fingerprint(
    source: FileSource, options: FingerprintOptions | None = None
) -> FileFingerprint:
    """Create a complete fingerprint with metadata for ``source``."""
    content_hash = await hash_file(source, options)
    fingerprint = FileFingerprint(
        content_hash=content_hash,
        filename=source.filename,
        size=source.size,
        mime_type=source.mime_type or DEFAULT_MIME_TYPE,
        created_at=datetime.now(timezone.utc),
    )
    logger.info(
        "File fingerprint created: file=%s hash=%s method=%s size=%d",
        source.filename, short_hash(content_hash),
        hash_method(content_hash), fingerprint.size,
    )
    return fingerprint


def fingerprints_equal(a: FileFingerprint, b: FileFingerprint) -> bool:
    """Equal iff content hash, size and MIME type all match."""
    return (
        a.content_hash == b.content_hash
        and a.size == b.size
        and a.mime_type == b.mime_type
    )


def is_valid_fingerprint(obj: Any) -> bool:
    """Structural check for a fingerprint model or mapping."""
    if isinstance(obj, FileFingerprint):
        data: Mapping[str, Any] = obj.__dict__
    elif isinstance(obj, Mapping):
        data = obj
    else:
        return False

    content_hash = data.get("content_hash")
    size = data.get("size")
    return (
        isinstance(content_hash, str)
        and len(content_hash) >= MIN_HASH_LENGTH
        and isinstance(data.get("filename"), str)
        and isinstance(data.get("mime_type"), str)
        and isinstance(size, (int, float))
        and not isinstance(size, bool)
        and isinstance(data.get("created_at"), datetime)
    )


def hash_method(content_hash: str) -> str:
    """Label the strategy that produced a hash, judging by its length."""
    if len(content_hash) == 64:
        return "sha256"
    if len(content_hash) == 40:
        return "sha1"
    return "fnv1a"


def short_fingerprint(fingerprint: FileFingerprint) -> str:
    """Short display form: first 8 hash chars and the size."""
    return f"{fingerprint.content_hash[:8]}-{fingerprint.size}"


def quick_content_check(a: FileSource, b: FileSource) -> bool:
    """Cheap likely-identical check without reading content."""
    return (
        a.size == b.size
        and a.mime_type == b.mime_type
        and a.modified_at == b.modified_at
    )


def generate_cache_key(fingerprint: FileFingerprint, prefix: str = "file") -> str:
    return f"{prefix}:{fingerprint.content_hash}:{fingerprint.size}"


def sanitize_filename(filename: str) -> str:
    """Replace unsafe characters and collapse underscores, capped at 255."""
    cleaned = re.sub(r"[^a-zA-Z0-9.\-_]", "_", filename)
    cleaned = re.sub(r"_{2,}", "_", cleaned)
    return cleaned[:255]


def _head_tail(data: bytes, sample_size: int) -> bytes:
    if len(data) <= sample_size:
        return data
    return data[:sample_size] + data[-sample_size:]


def _read_head_tail(path: Path, sample_size: int) -> bytes:
    with path.open("rb") as f:
        head = f.read(sample_size)
        size = path.stat().st_size
        if size <= sample_size:
            return head
        f.seek(max(size - sample_size, 0))
        return head + f.read(sample_size)
