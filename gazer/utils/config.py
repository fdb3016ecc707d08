"""
Configuration management for gazer.

Uses pydantic-settings to load configuration from environment variables
(prefixed with ``GAZER_``) and .env files.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    log_level: str = "INFO"

    # Watch set
    max_watch_dirs: int = 100

    # Event normalizer (milliseconds)
    pending_period_ms: int = 100
    regard_rename_as_mod_period_ms: int = 1000
    detect_create: bool = True

    # Dispatcher
    ignore_period_ms: int = 10
    timeout: int = 0  # seconds, 0 disables the timeout
    restart: bool = False

    # Command table file; searched in default locations when unset
    config_file: Optional[Path] = None

    # How often background loops wake up to check for shutdown (seconds)
    poll_interval: float = 0.1

    model_config = SettingsConfigDict(
        env_prefix="GAZER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def ignore_period_ns(self) -> int:
        return self.ignore_period_ms * 1_000_000


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
