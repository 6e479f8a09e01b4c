"""
Configuration management using pydantic-settings.

Loads configuration from environment variables and .env file.
"""
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from gandalf.config.constants import CACHE_HOME_DIRNAME, FALLBACK_CACHE_DIRNAME


class CacheSettings(BaseSettings):
    """Settings for the memory/disk cache and the historical store."""

    model_config = SettingsConfigDict(env_prefix="GANDALF_")

    cache_dir: Optional[Path] = Field(
        default=None,
        description="Override for the cache root directory (GANDALF_CACHE_DIR)",
    )
    max_memory_entries: int = Field(
        default=1000,
        description="Upper bound on entries held in the memory tier",
    )
    sweep_interval_seconds: int = Field(
        default=300,
        description="Seconds between background sweeps of expired entries",
    )
    state_ttl_seconds: int = Field(
        default=3600,
        description="How long the current season/week is trusted before refetching",
    )
    loader_timeout_seconds: Optional[float] = Field(
        default=None,
        description="Default deadline for cache loaders (None = wait forever)",
    )
    single_flight: bool = Field(
        default=True,
        description="Share one loader call between concurrent misses on the same key",
    )

    @field_validator("max_memory_entries", "sweep_interval_seconds", "state_ttl_seconds")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("loader_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("loader_timeout_seconds must be positive when set")
        return v


class SleeperSettings(BaseSettings):
    """Settings for the Sleeper state endpoint."""

    model_config = SettingsConfigDict(env_prefix="SLEEPER_")

    enabled: bool = Field(default=True)
    base_url: str = Field(
        default="https://api.sleeper.app/v1",
        description="Base URL for the Sleeper API",
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        description="Total timeout for a single HTTP request",
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)
    debug: bool = Field(default=False)

    # Sub-settings
    cache: CacheSettings = Field(default_factory=CacheSettings)
    sleeper: SleeperSettings = Field(default_factory=SleeperSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = ["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v.upper()

    def resolve_cache_root(self) -> Path:
        """
        Resolve the cache root directory.

        Order: explicit override, then $HOME/.gandalf-cache, then
        %USERPROFILE%/.gandalf-cache, then ./cache. Nothing is created here;
        directory creation happens when the backend starts.
        """
        if self.cache.cache_dir:
            return Path(self.cache.cache_dir).expanduser()

        for var in ("HOME", "USERPROFILE"):
            home = os.environ.get(var)
            if home:
                return Path(home) / CACHE_HOME_DIRNAME

        return Path.cwd() / FALLBACK_CACHE_DIRNAME


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
