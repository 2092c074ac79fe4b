# src/cache/cache_factory.py - v3
"""Factory for fingerprint cache store instantiation."""

from __future__ import annotations

from schedulebud.cache.base_cache_store import BaseFingerprintStore
from schedulebud.config.settings import Settings
from schedulebud.store.base_entity_store import BaseEntityStore


def create_fingerprint_store(
    settings: Settings | None = None,
    entity_store: BaseEntityStore | None = None,
) -> BaseFingerprintStore:
    """Instantiate the configured fingerprint cache backend.

    Args:
        settings: Application settings. Defaults to the entity backend.
        entity_store: Entity store used by the entity backend. An in-memory
            store is created when omitted.

    Returns:
        Configured BaseFingerprintStore implementation.
    """
    backend = "entity" if settings is None else settings.cache_backend

    if backend == "entity":
        from schedulebud.cache.entity_store import EntityFingerprintStore
        if entity_store is None:
            from schedulebud.store.store_factory import create_entity_store
            entity_store = create_entity_store(None)
        return EntityFingerprintStore(entity_store)

    if backend == "sqlite":
        from schedulebud.cache.sqlite_store import SqliteFingerprintStore
        cache_root = settings.cache_root.expanduser()
        return SqliteFingerprintStore(db_path=cache_root / "fingerprints.db")

    if backend == "redis":
        from schedulebud.cache.redis_store import RedisFingerprintStore
        if not settings.cache_redis_url:
            raise ValueError(
                "CACHE_REDIS_URL must be set when CACHE_BACKEND=redis"
            )
        return RedisFingerprintStore(redis_url=settings.cache_redis_url)

    raise ValueError(f"Unsupported cache backend: {backend!r}")
