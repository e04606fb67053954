"""Configuration management for the short-link service.

This module provides centralized configuration management using Pydantic BaseSettings
with environment variable support and caching for performance.

Flow Diagram — get_settings()
=============================
::
    ┌─────────────┐
    │  Call get_  │
    │  settings() │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Check cache  │
    │ (lru_cache)  │
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Create  │  │ Return  │
│ Settings│  │ cached  │
│ instance│  │ value   │
└─────────┘  └─────────┘

How to Use
===========
**Step 1 — Import**::
    from shortlink.config import get_settings

**Step 2 — Get settings**::
    settings = get_settings()
    db_url = settings.DATABASE_URL

**Step 3 — Override in tests**::
    settings = Settings(DATABASE_URL="sqlite+aiosqlite:///./test.db")

Key Behaviours
===============
- Settings are cached after first access for performance.
- Environment variables override defaults automatically.
- Replica URLs are optional and fall back to the primary URLs.
- The sequence counter can live on its own Redis (``SEQUENCE_REDIS_URL``);
  it must be a primary configured for persistence (AOF), never a replica.

Classes:
    Settings:  Pydantic model for all configuration values.
"""

__all__ = ["SequenceBackend", "Settings", "get_settings"]

from enum import StrEnum
from functools import lru_cache
from urllib.parse import urlsplit

from pydantic_settings import BaseSettings, SettingsConfigDict

from shortlink.validation import normalize_netloc


class SequenceBackend(StrEnum):
    """Where the global code counter lives."""

    REDIS = "redis"
    POSTGRES = "postgres"


class Settings(BaseSettings):
    APP_NAME: str = "shortlink"
    APP_ENV: str = "development"
    BASE_URL: str = "http://localhost:8080"
    LOG_LEVEL: str = "INFO"

    # PostgreSQL base vars (used by compose and available in env files)
    POSTGRES_USER: str = "shortlink"
    POSTGRES_PASSWORD: str = "shortlink"
    POSTGRES_DB: str = "shortlink"

    # PostgreSQL
    DATABASE_URL: str = "postgresql+asyncpg://shortlink:shortlink@db:5432/shortlink"
    DATABASE_REPLICA_URL: str | None = None
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10
    STORE_TIMEOUT_SECONDS: float = 2.0

    # Redis cache
    REDIS_URL: str = "redis://redis:6379/0"
    REDIS_REPLICA_URL: str | None = None
    CACHE_KEY_PREFIX: str = "link"
    CACHE_DEFAULT_TTL_SECONDS: int = 24 * 60 * 60
    CACHE_TIMEOUT_SECONDS: float = 0.2

    # Sequence source
    SEQUENCE_BACKEND: SequenceBackend = SequenceBackend.REDIS
    SEQUENCE_KEY: str = "seq:short_links"
    SEQUENCE_REDIS_URL: str | None = None
    SEQUENCE_TIMEOUT_SECONDS: float = 1.0

    # Input limits
    MAX_URL_LENGTH: int = 2048
    MAX_CODE_LENGTH: int = 12

    # Expiration sweeper
    SWEEPER_ENABLED: bool = False
    SWEEPER_INTERVAL_SECONDS: int = 24 * 60 * 60

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def public_netloc(self) -> str:
        """Host of ``BASE_URL``, with its port unless that is the scheme default."""
        parts = urlsplit(self.BASE_URL)
        return normalize_netloc(parts.scheme, parts.hostname or "", parts.port)

    def short_url_for(self, code: str) -> str:
        return f"{self.BASE_URL.rstrip('/')}/{code}"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
