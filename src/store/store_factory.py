# src/store/store_factory.py - v1
"""Factory for entity store instantiation."""

from __future__ import annotations

from schedulebud.config.settings import Settings
from schedulebud.store.base_entity_store import BaseEntityStore


def create_entity_store(settings: Settings | None = None) -> BaseEntityStore:
    """Instantiate the configured entity store backend.

    Args:
        settings: Application settings. Defaults to the in-memory backend.

    Returns:
        Configured BaseEntityStore implementation.
    """
    backend = "memory" if settings is None else settings.entity_store_backend

    if backend == "memory":
        from schedulebud.store.memory_store import InMemoryEntityStore
        return InMemoryEntityStore()

    if backend == "json":
        from schedulebud.store.json_store import JsonEntityStore
        return JsonEntityStore(data_path=settings.data_path)  # type: ignore[union-attr]

    raise ValueError(f"Unsupported entity store backend: {backend!r}")
