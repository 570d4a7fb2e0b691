"""
Nestmate — Application Configuration

Loads all configuration from environment variables (and an optional .env file)
using Pydantic Settings.  A cached ``get_settings()`` helper is provided so that
FastAPI dependency-injection (and any other call-site) always receives the same
validated instance without re-parsing the environment on every request.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the Nestmate platform."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------ #
    # Storage backend
    # ------------------------------------------------------------------ #
    # No DATABASE_URL selects the in-memory backend.
    DATABASE_URL: Optional[str] = None
    REQUIRE_DURABLE_STORAGE: bool = False
    SEED_DEMO_DATA: bool = False
    DB_ECHO: bool = False

    # ------------------------------------------------------------------ #
    # Compatibility scoring weights
    # ------------------------------------------------------------------ #
    LIFESTYLE_WEIGHT: float = 0.5
    LOCATION_WEIGHT: float = 0.3
    SCHEDULE_WEIGHT: float = 0.2

    # ------------------------------------------------------------------ #
    # Result limits
    # ------------------------------------------------------------------ #
    TOP_MATCHES_LIMIT: int = 6
    FEATURED_LISTINGS_LIMIT: int = 3

    # ------------------------------------------------------------------ #
    # Runtime environment
    # ------------------------------------------------------------------ #
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    # ------------------------------------------------------------------ #
    # CORS
    # ------------------------------------------------------------------ #
    ALLOWED_ORIGINS: str = "*"

    # ------------------------------------------------------------------ #
    # Derived helpers
    # ------------------------------------------------------------------ #
    @property
    def allowed_origins_list(self) -> list[str]:
        """Return ALLOWED_ORIGINS as a list split on commas."""
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def use_durable_storage(self) -> bool:
        return bool(self.DATABASE_URL)

    @field_validator("LIFESTYLE_WEIGHT", "LOCATION_WEIGHT", "SCHEDULE_WEIGHT")
    @classmethod
    def _weight_must_be_between_0_and_1(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"Weight must be between 0 and 1, got {v}")
        return v

    @field_validator("TOP_MATCHES_LIMIT", "FEATURED_LISTINGS_LIMIT")
    @classmethod
    def _limit_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Limit must be at least 1, got {v}")
        return v


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached, validated ``Settings`` instance.

    Using ``@lru_cache`` guarantees the .env file is read and validated
    exactly once per process lifetime.  Import this function anywhere you
    need access to configuration::

        from app.config import get_settings
        settings = get_settings()
    """
    return Settings()
