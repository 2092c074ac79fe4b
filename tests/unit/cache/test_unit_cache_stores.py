# tests/unit/cache/test_unit_cache_stores.py - v1
"""Tests for the fingerprint cache backends (entity, sqlite, redis)."""

from __future__ import annotations

import json
import sys
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from schedulebud.cache.entity_store import EntityFingerprintStore
from schedulebud.cache.models import CachedTaskData, FingerprintCacheEntry
from schedulebud.cache.redis_store import RedisFingerprintStore
from schedulebud.cache.sqlite_store import SqliteFingerprintStore
from schedulebud.core.errors import ForeignKeyViolationError, StoreError, UniqueViolationError
from schedulebud.core.models import CLASSES

NOW = datetime(2024, 3, 1, tzinfo=timezone.utc)


def _entry(content_hash: str = "f" * 64, **overrides) -> FingerprintCacheEntry:
    data = dict(
        content_hash=content_hash, filename="syllabus.pdf", file_size=10,
        created_at=NOW, last_used_at=NOW, expires_at=NOW + timedelta(days=30),
    )
    data.update(overrides)
    return FingerprintCacheEntry(**data)


class _FakeRedis:
    """Just enough of redis.Redis for the store."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.sets: dict[str, set[str]] = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, nx=False, xx=False):
        if nx and key in self.data:
            return None
        if xx and key not in self.data:
            return None
        self.data[key] = value
        return True

    def delete(self, key):
        return 1 if self.data.pop(key, None) is not None else 0

    def sadd(self, key, member):
        self.sets.setdefault(key, set()).add(member)

    def srem(self, key, member):
        self.sets.get(key, set()).discard(member)

    def smembers(self, key):
        return set(self.sets.get(key, set()))


@pytest.fixture(params=["entity", "sqlite", "redis"])
def backend(request, tmp_path, memory_store):
    if request.param == "entity":
        return EntityFingerprintStore(memory_store)
    if request.param == "sqlite":
        return SqliteFingerprintStore(tmp_path / "fp.db")
    return RedisFingerprintStore("redis://unused", client=_FakeRedis())


class TestFingerprintStoreContract:
    @pytest.mark.asyncio
    async def test_insert_and_get(self, backend):
        await backend.insert(_entry())
        got = await backend.get("f" * 64)
        assert got is not None
        assert got.filename == "syllabus.pdf"
        assert got.id

    @pytest.mark.asyncio
    async def test_get_missing(self, backend):
        assert await backend.get("0" * 64) is None

    @pytest.mark.asyncio
    async def test_duplicate_hash(self, backend):
        await backend.insert(_entry())
        with pytest.raises(UniqueViolationError):
            await backend.insert(_entry(filename="copy.pdf"))

    @pytest.mark.asyncio
    async def test_partial_update(self, backend):
        await backend.insert(_entry())
        tasks = [CachedTaskData(title="Essay", task_type="Homework")]
        assert await backend.update("f" * 64, {
            "processing_status": "completed",
            "generated_tasks": tasks,
            "last_used_at": NOW + timedelta(hours=1),
        })
        got = await backend.get("f" * 64)
        assert got.processing_status == "completed"
        assert got.generated_tasks[0].title == "Essay"
        assert got.filename == "syllabus.pdf"

    @pytest.mark.asyncio
    async def test_update_missing(self, backend):
        assert await backend.update("0" * 64, {"processing_status": "failed"}) is False

    @pytest.mark.asyncio
    async def test_delete_expired_is_idempotent(self, backend):
        await backend.insert(_entry("a" * 64, expires_at=NOW - timedelta(days=1)))
        await backend.insert(_entry("b" * 64))
        assert await backend.delete_expired(NOW) == 1
        assert await backend.delete_expired(NOW) == 0
        assert [e.content_hash for e in await backend.list_entries()] == ["b" * 64]


class TestEntityFingerprintStore:
    @pytest.mark.asyncio
    async def test_foreign_key(self, memory_store):
        store = EntityFingerprintStore(memory_store)
        with pytest.raises(ForeignKeyViolationError):
            await store.insert(_entry(class_id="missing"))
        cls = await memory_store.insert(CLASSES, {"name": "CS101"})
        stored = await store.insert(_entry(class_id=cls["id"]))
        assert stored.class_id == cls["id"]

    @pytest.mark.asyncio
    async def test_malformed_row(self, memory_store):
        await memory_store.insert("file_fingerprints", {"content_hash": "x" * 64})
        with pytest.raises(StoreError):
            await EntityFingerprintStore(memory_store).get("x" * 64)


class TestSqliteFingerprintStore:
    @pytest.mark.asyncio
    async def test_known_classes(self, tmp_path):
        store = SqliteFingerprintStore(tmp_path / "fp.db", known_classes={"c1"})
        with pytest.raises(ForeignKeyViolationError):
            await store.insert(_entry(class_id="c2"))
        await store.insert(_entry(class_id="c1"))
        store.close()

    @pytest.mark.asyncio
    async def test_persists(self, tmp_path):
        store = SqliteFingerprintStore(tmp_path / "fp.db")
        await store.insert(_entry())
        store.close()
        reopened = SqliteFingerprintStore(tmp_path / "fp.db")
        assert (await reopened.get("f" * 64)) is not None
        reopened.close()

    @pytest.mark.asyncio
    async def test_in_memory(self):
        store = SqliteFingerprintStore(":memory:")
        await store.insert(_entry())
        assert len(await store.list_entries()) == 1


class TestRedisFingerprintStore:
    def test_import_error_without_redis(self):
        """Clear ImportError when redis is not available."""
        redis_mod = sys.modules.get("redis")
        sys.modules["redis"] = None  # type: ignore[assignment]
        try:
            with pytest.raises(ImportError, match="redis"):
                RedisFingerprintStore(redis_url="redis://localhost")
        finally:
            if redis_mod is not None:
                sys.modules["redis"] = redis_mod
            else:
                sys.modules.pop("redis", None)

    @pytest.mark.asyncio
    async def test_client_errors_become_store_errors(self):
        client = MagicMock()
        client.get.side_effect = ConnectionError("down")
        store = RedisFingerprintStore("redis://x", client=client)
        with pytest.raises(StoreError, match="down"):
            await store.get("f" * 64)

    @pytest.mark.asyncio
    async def test_stale_index_members_dropped(self):
        client = _FakeRedis()
        store = RedisFingerprintStore("redis://x", client=client)
        await store.insert(_entry())
        client.data.clear()
        assert await store.list_entries() == []
        assert client.smembers("schedulebud:fingerprint:__index__") == set()

    @pytest.mark.asyncio
    async def test_entries_stored_as_json(self):
        client = _FakeRedis()
        await RedisFingerprintStore("redis://x", client=client).insert(_entry())
        raw = client.data["schedulebud:fingerprint:" + "f" * 64]
        assert json.loads(raw)["filename"] == "syllabus.pdf"
