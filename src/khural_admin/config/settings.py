# src/khural_admin/config/settings.py
# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Khural Admin Configuration (Pydantic Settings, v2)

Summary:
    Typed, validated configuration for the admin override layer. Only
    adapters, infrastructure and the CLI should read the process environment;
    other layers receive `Settings` (or the objects built from it) via DI.

Design:
    - Pydantic v2 BaseSettings with the ``KHURAL_`` env prefix.
    - Storage backend enumeration (``redis`` for shared state, ``memory`` for
      single-process use and tests).
    - Singleton accessor `get_settings()` with LRU cache.
"""

from __future__ import annotations

import logging
from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class OverridesBackend(str, Enum):
    """Where override records are persisted."""

    REDIS = "redis"
    MEMORY = "memory"


class Settings(BaseSettings):
    """Typed configuration for the admin override layer."""

    # ---------------------------
    # Backend REST API
    # ---------------------------
    api_base_url: str = Field(
        default="http://localhost:4000",
        description="Base URL of the Khural REST API.",
    )
    api_token: SecretStr | None = Field(
        default=None,
        description="Bearer token sent on every API request, if set.",
    )
    api_timeout_s: float = Field(
        default=10.0,
        ge=0.1,
        le=120.0,
        description="Per-request timeout in seconds.",
    )
    api_max_retries: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Retries for transient failures on idempotent calls.",
    )

    # ---------------------------
    # Override storage
    # ---------------------------
    overrides_backend: OverridesBackend = Field(
        default=OverridesBackend.REDIS,
        description="Persistence backend for override records.",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis URL holding override records and change channels.",
    )
    redis_socket_timeout_s: float = Field(
        default=3.0,
        ge=0.1,
        le=60.0,
        description="Socket timeout in seconds for Redis commands.",
    )
    overrides_key_namespace: str = Field(
        default="",
        description="Optional prefix prepended to override storage keys.",
    )

    # ---------------------------
    # Logging
    # ---------------------------
    log_level: str = Field(
        default="INFO",
        description="Root log level name.",
    )

    model_config = SettingsConfigDict(
        env_prefix="KHURAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        """Normalize the API base URL (no trailing slash)."""
        return value.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        """Normalize log level names to upper case."""
        return value.strip().upper() or "INFO"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings singleton.

    Returns:
        Settings: Parsed configuration.
    """
    settings = Settings()
    logger.debug(
        "settings loaded",
        extra={
            "extra": {
                "api_base_url": settings.api_base_url,
                "overrides_backend": settings.overrides_backend.value,
            }
        },
    )
    return settings
