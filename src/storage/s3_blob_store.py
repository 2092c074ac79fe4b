# src/storage/s3_blob_store.py - v1
"""S3-compatible blob store (BLOB_BACKEND=s3).

Supports AWS S3, MinIO, and other S3-compatible storage.
Requires 'boto3' package: pip install boto3.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from schedulebud.storage.base_blob_store import BaseBlobStore, BlobNotFoundError

logger = logging.getLogger(__name__)


class S3BlobStore(BaseBlobStore):
    """Class files in an S3 bucket."""

    def __init__(
        self,
        bucket: str,
        prefix: str = "schedulebud/",
        region: str | None = None,
        endpoint_url: str | None = None,
        client: Any = None,
    ) -> None:
        """Initialize S3 blob store.

        Args:
            bucket: S3 bucket name.
            prefix: Key prefix for all objects (e.g. "schedulebud/").
            region: AWS region (optional, uses boto3 default if not set).
            endpoint_url: Custom endpoint for MinIO/compatible storage.
            client: Pre-built S3 client (tests).
        """
        if client is None:
            try:
                import boto3
            except ImportError as e:
                raise ImportError(
                    "boto3 package required for S3 blob store: pip install boto3"
                ) from e

            kwargs: dict = {}
            if region:
                kwargs["region_name"] = region
            if endpoint_url:
                kwargs["endpoint_url"] = endpoint_url
            client = boto3.client("s3", **kwargs)

        self._s3 = client
        self._bucket = bucket
        self._prefix = prefix.rstrip("/") + "/" if prefix else ""

    def _full_key(self, path: str) -> str:
        return f"{self._prefix}{path.lstrip('/')}"

    async def download(self, path: str) -> bytes:
        key = self._full_key(path)
        try:
            response = await asyncio.to_thread(
                self._s3.get_object, Bucket=self._bucket, Key=key
            )
        except self._s3.exceptions.NoSuchKey as e:
            raise BlobNotFoundError(path) from e
        return response["Body"].read()

    async def upload(self, path: str, data: bytes) -> None:
        key = self._full_key(path)
        await asyncio.to_thread(
            self._s3.put_object, Bucket=self._bucket, Key=key, Body=data
        )
        logger.debug("S3 upload: s3://%s/%s (%d bytes)", self._bucket, key, len(data))

    async def exists(self, path: str) -> bool:
        try:
            await asyncio.to_thread(
                self._s3.head_object, Bucket=self._bucket, Key=self._full_key(path)
            )
            return True
        except self._s3.exceptions.ClientError:
            return False
