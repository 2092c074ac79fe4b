# tests/conftest.py - v2
"""Shared test fixtures for all unit tests.

Provides an in-memory entity store, a fixed identity, a fixed clock and a
fingerprint store that always fails. No external services are needed.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest

from schedulebud.auth.identity import StaticIdentityProvider
from schedulebud.cache.base_cache_store import BaseFingerprintStore
from schedulebud.cache.models import FingerprintCacheEntry
from schedulebud.core.errors import StoreError
from schedulebud.logging.context import clear_context
from schedulebud.store.memory_store import InMemoryEntityStore

USER_ID = "user-1"
FIXED_NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class FailingFingerprintStore(BaseFingerprintStore):
    """Backend that behaves like an unreachable database."""

    def __init__(self) -> None:
        self.calls = 0

    def _fail(self) -> None:
        self.calls += 1
        raise StoreError("connection refused", code="08006")

    async def get(self, content_hash: str) -> FingerprintCacheEntry | None:
        self._fail()

    async def insert(self, entry: FingerprintCacheEntry) -> FingerprintCacheEntry:
        self._fail()

    async def update(self, content_hash: str, patch: dict[str, Any]) -> bool:
        self._fail()

    async def delete_expired(self, now: datetime) -> int:
        self._fail()

    async def list_entries(self) -> list[FingerprintCacheEntry]:
        self._fail()


# === FIXTURES ===


@pytest.fixture(autouse=True)
def _reset_log_context():
    yield
    clear_context()


@pytest.fixture
def memory_store() -> InMemoryEntityStore:
    return InMemoryEntityStore()


@pytest.fixture
def identity() -> StaticIdentityProvider:
    return StaticIdentityProvider(USER_ID, "student@example.edu")


@pytest.fixture
def anonymous() -> StaticIdentityProvider:
    return StaticIdentityProvider(None)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def failing_store() -> FailingFingerprintStore:
    return FailingFingerprintStore()
