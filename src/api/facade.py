# src/api/facade.py - v2
"""Composition root: wires stores, cache, importer and exporter.

Usage:
    from schedulebud.api.facade import build_services
    services = build_services(load_settings())
    artifact = await services.exporter.export(ExportOptions(format="ics"))

Every component is constructed here and passed explicitly; nothing is held
in module globals.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from schedulebud.auth.identity import IdentityProvider, StaticIdentityProvider
from schedulebud.cache.cache_factory import create_fingerprint_store
from schedulebud.cache.fingerprint import FingerprintOptions
from schedulebud.cache.models import CacheConfig
from schedulebud.cache.service import FingerprintCacheService
from schedulebud.config.settings import Settings
from schedulebud.exporter.service import ExportService
from schedulebud.importer.service import ImportService
from schedulebud.pipeline.upload import TaskProcessor, UploadPipeline
from schedulebud.storage.base_blob_store import BaseBlobStore
from schedulebud.storage.blob_factory import create_blob_store
from schedulebud.store.base_entity_store import BaseEntityStore
from schedulebud.store.store_factory import create_entity_store

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Explicitly constructed application components."""

    settings: Settings
    entity_store: BaseEntityStore
    identity: IdentityProvider
    blob_store: BaseBlobStore
    cache: FingerprintCacheService | None
    importer: ImportService
    exporter: ExportService
    fingerprint_options: FingerprintOptions

    def upload_pipeline(self, processor: TaskProcessor) -> UploadPipeline:
        """Upload pipeline around a caller-supplied processor."""
        return UploadPipeline(self.cache, processor, self.fingerprint_options)


def build_services(
    settings: Settings | None = None,
    *,
    entity_store: BaseEntityStore | None = None,
    identity: IdentityProvider | None = None,
    blob_store: BaseBlobStore | None = None,
) -> Services:
    """Build every service from settings, allowing collaborators to be injected."""
    settings = settings or Settings()
    entity_store = entity_store or create_entity_store(settings)
    identity = identity or StaticIdentityProvider(settings.user_id, settings.user_email)
    blob_store = blob_store or create_blob_store(settings)

    cache = None
    if settings.cache_enabled:
        cache = FingerprintCacheService(
            create_fingerprint_store(settings, entity_store),
            CacheConfig(
                default_ttl=timedelta(days=settings.cache_ttl_days),
                max_text_length=settings.cache_max_text_length,
                max_tasks_per_file=settings.cache_max_tasks_per_file,
            ),
        )
    logger.debug(
        "Services built: store=%s cache=%s blob=%s",
        settings.entity_store_backend, settings.cache_backend, settings.blob_backend,
    )
    return Services(
        settings=settings,
        entity_store=entity_store,
        identity=identity,
        blob_store=blob_store,
        cache=cache,
        importer=ImportService(entity_store, identity),
        exporter=ExportService(entity_store, identity, blob_store),
        fingerprint_options=FingerprintOptions(
            algorithm=settings.hash_algorithm, chunk_size=settings.hash_chunk_size,
        ),
    )
