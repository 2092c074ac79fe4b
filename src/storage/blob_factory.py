# src/storage/blob_factory.py - v1
"""Factory: instantiate blob store from configuration."""

from __future__ import annotations

from schedulebud.config.settings import Settings
from schedulebud.storage.base_blob_store import BaseBlobStore
from schedulebud.storage.local_blob_store import LocalBlobStore


def create_blob_store(settings: Settings) -> BaseBlobStore:
    """Create the blob store selected by BLOB_BACKEND.

    Raises:
        ValueError: If the backend is not supported.
    """
    if settings.blob_backend == "local":
        return LocalBlobStore(settings.blob_root)

    if settings.blob_backend == "s3":
        from schedulebud.storage.s3_blob_store import S3BlobStore
        if not settings.blob_s3_bucket:
            raise ValueError("BLOB_S3_BUCKET must be set when BLOB_BACKEND=s3")
        return S3BlobStore(
            bucket=settings.blob_s3_bucket,
            prefix=settings.blob_s3_prefix,
            region=settings.blob_s3_region or None,
        )

    raise ValueError(f"Unsupported blob backend: {settings.blob_backend!r}")
