# tests/unit/cache/test_unit_cache_factory.py - v1

from __future__ import annotations

from unittest.mock import patch

import pytest

from schedulebud.cache.cache_factory import create_fingerprint_store
from schedulebud.cache.entity_store import EntityFingerprintStore
from schedulebud.cache.sqlite_store import SqliteFingerprintStore
from schedulebud.config.settings import Settings


class TestCreateFingerprintStore:
    def test_default_is_entity(self):
        assert isinstance(create_fingerprint_store(), EntityFingerprintStore)

    def test_entity_uses_given_store(self, memory_store):
        store = create_fingerprint_store(Settings(_env_file=None), memory_store)
        assert isinstance(store, EntityFingerprintStore)
        assert store._store is memory_store

    def test_sqlite(self, tmp_path):
        settings = Settings(_env_file=None, cache_backend="sqlite", cache_root=tmp_path)
        store = create_fingerprint_store(settings)
        assert isinstance(store, SqliteFingerprintStore)
        assert (tmp_path / "fingerprints.db").exists()
        store.close()

    def test_redis(self):
        settings = Settings(
            _env_file=None, cache_backend="redis", cache_redis_url="redis://localhost:6379/0"
        )
        with patch("schedulebud.cache.redis_store.RedisFingerprintStore") as mock_cls:
            create_fingerprint_store(settings)
        mock_cls.assert_called_once_with(redis_url="redis://localhost:6379/0")

    def test_redis_without_url(self):
        settings = Settings.model_construct(cache_backend="redis", cache_redis_url="")
        with pytest.raises(ValueError, match="CACHE_REDIS_URL"):
            create_fingerprint_store(settings)

    def test_unknown_backend(self):
        settings = Settings.model_construct(cache_backend="memcached")
        with pytest.raises(ValueError, match="memcached"):
            create_fingerprint_store(settings)
