"""Environment-based configuration using pydantic-settings.

Provides defaults for policies built without explicit arguments and for
library logging. Supports .env files and nested configuration.

Example:
    >>> from persevere.config import get_settings
    >>> settings = get_settings()
    >>> settings.retry.max_retries
    3
    >>> settings.logging.level
    'WARNING'

    # Or with environment variables:
    # PERSEVERE_RETRY_MAX_RETRIES=5
    # PERSEVERE_RETRY_STRATEGY=fuzzy_exponential
    # PERSEVERE_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, NonNegativeFloat, NonNegativeInt, PositiveFloat, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

StrategyKind = Literal["constant", "linear", "exponential", "fuzzy_exponential"]


class RetrySettings(BaseSettings):
    """Default retry configuration."""

    model_config = SettingsConfigDict(
        env_prefix="PERSEVERE_RETRY_",
        extra="ignore",
    )

    max_retries: NonNegativeInt = 3
    strategy: StrategyKind = "exponential"
    base_delay: NonNegativeFloat = Field(default=0.5, description="Base delay / slot time in seconds")
    fuzz_factor: Annotated[float, Field(gt=0.0, le=1.0)] = 0.25

    @field_validator("strategy", mode="before")
    @classmethod
    def _normalize_strategy(cls, v: str) -> str:
        """Accept 'Exponential', 'fuzzy-exponential', etc."""
        return v.lower().replace("-", "_") if isinstance(v, str) else v


class LoggingSettings(BaseSettings):
    """Logging configuration for the ``persevere`` logger."""

    model_config = SettingsConfigDict(
        env_prefix="PERSEVERE_LOG_",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    format: Literal["json", "text"] = "text"

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


class SchedulerSettings(BaseSettings):
    """Timer scheduler configuration."""

    model_config = SettingsConfigDict(
        env_prefix="PERSEVERE_SCHEDULER_",
        extra="ignore",
    )

    thread_name: str = "persevere-timer"
    join_timeout: PositiveFloat = Field(default=1.0, description="Seconds to wait for the worker on shutdown")


class PersevereSettings(BaseSettings):
    """Root settings.

    Loads configuration from environment variables with PERSEVERE_ prefix.

    Example environment variables:
        PERSEVERE_RETRY_MAX_RETRIES=5
        PERSEVERE_RETRY_BASE_DELAY=0.2
        PERSEVERE_LOG_LEVEL=INFO
        PERSEVERE_LOG_FORMAT=json
    """

    model_config = SettingsConfigDict(
        env_prefix="PERSEVERE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    retry: RetrySettings = Field(default_factory=RetrySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)


@lru_cache(maxsize=1)
def get_settings() -> PersevereSettings:
    """Get the global settings instance (cached)."""
    return PersevereSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing).

    The next get_settings() call reloads configuration from the environment.
    """
    get_settings.cache_clear()
