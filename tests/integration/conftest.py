# tests/integration/conftest.py - v1
"""Shared fixtures for integration tests.

No external services: every backend here is file based (JSON entity store,
SQLite fingerprint cache, local blob store) under ``tmp_path``.
"""

from __future__ import annotations

import pytest

from schedulebud.config.settings import Settings


@pytest.fixture
def file_settings(tmp_path) -> Settings:
    """Settings with every persistent backend rooted in tmp_path."""
    return Settings(
        _env_file=None,
        user_id="user-1",
        entity_store_backend="json",
        data_path=tmp_path / "data.json",
        cache_backend="sqlite",
        cache_root=tmp_path / "cache",
        blob_root=tmp_path / "files",
    )
