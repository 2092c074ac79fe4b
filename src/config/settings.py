# src/config/settings.py - v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for stores, cache, hashing, import/export defaults,
blob storage and logging.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SCHEDULEBUD_",
        extra="ignore",
    )

    # === Identity ===
    user_id: str = ""
    user_email: str = ""

    # === Entity store ===
    entity_store_backend: Literal["memory", "json"] = "json"
    data_path: Path = Path("~/.schedulebud/data.json")

    # === Fingerprint cache ===
    cache_enabled: bool = True
    cache_backend: Literal["entity", "sqlite", "redis"] = "entity"
    cache_root: Path = Path("~/.schedulebud/cache")
    cache_redis_url: str = ""
    cache_ttl_days: int = 30
    cache_max_text_length: int = 1_000_000
    cache_max_tasks_per_file: int = 100

    # === Hashing ===
    hash_algorithm: Literal["sha256", "sha1"] = "sha256"
    hash_chunk_size: int = 1024 * 1024

    # === Export ===
    export_calendar_name: str = "ScheduleBud Academic Calendar"
    export_timezone: str = "America/Los_Angeles"
    export_csv_delimiter: str = ","

    # === Import ===
    import_conflict_resolution: Literal["skip", "overwrite", "merge"] = "merge"
    import_skip_duplicates: bool = True

    # === Blob storage ===
    blob_backend: Literal["local", "s3"] = "local"
    blob_root: Path = Path("~/.schedulebud/files")
    blob_s3_bucket: str = ""
    blob_s3_prefix: str = "schedulebud/"
    blob_s3_region: str = ""

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("export_csv_delimiter")
    @classmethod
    def validate_delimiter(cls, v: str) -> str:  # noqa: N805
        if len(v) != 1:
            raise ValueError("export_csv_delimiter must be a single character")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.cache_backend == "redis" and not self.cache_redis_url:
            errors.append("CACHE_REDIS_URL must be set when CACHE_BACKEND=redis")

        if self.blob_backend == "s3" and not self.blob_s3_bucket:
            errors.append("BLOB_S3_BUCKET must be set when BLOB_BACKEND=s3")

        if self.cache_ttl_days <= 0:
            errors.append("CACHE_TTL_DAYS must be > 0")

        if self.hash_chunk_size <= 0:
            errors.append("HASH_CHUNK_SIZE must be > 0")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or the CLI).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
