"""Environment-based configuration for imgshare."""

from __future__ import annotations

import os
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_concurrency() -> int:
    return os.cpu_count() or 1


class Settings(BaseSettings):
    """Application settings loaded from IMGSHARE_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="IMGSHARE_",
        case_sensitive=False,
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8080

    # Authentication (None = disabled)
    api_key: str | None = None

    # Input limits
    max_upload_bytes: int = Field(default=32 * 1024 * 1024, ge=1)
    max_image_pixels: int = Field(default=89_478_485, ge=1)

    # Concurrency
    max_concurrent: int = Field(default_factory=_default_concurrency, ge=1)
    queue_timeout: float = Field(default=5.0, gt=0)
    request_timeout: float = Field(default=60.0, gt=0)

    # Object storage
    storage_backend: Literal["memory", "s3"] = "memory"
    s3_bucket: str = "imgshare"
    s3_endpoint_url: str | None = None
    s3_region: str | None = None
    s3_access_key_id: str | None = None
    s3_secret_access_key: str | None = None
    public_base_url: str | None = None

    # Record defaults
    default_public: bool = True


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
