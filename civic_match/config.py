"""Configuration management for Civic Match API."""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Supabase
    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_anon_key: str = Field(default="", description="Supabase anon (public) key")
    supabase_service_role_key: str = Field(
        default="", description="Supabase service role key for admin operations"
    )

    # Cron
    cron_secret: str = Field(default="", description="Shared secret for cron endpoints")

    # Server config
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:3001",
        description="Comma-separated CORS origins",
    )
    log_level: str = Field(default="INFO", description="Logging level")
    public_dir: Path = Field(
        default=PROJECT_ROOT / "public",
        description="Directory holding static brand assets",
    )

    # Offline cache
    app_origin: str = Field(
        default="http://localhost:8000",
        description="Origin the offline worker treats as same-origin",
    )
    offline_cache_path: Path = Field(
        default=PROJECT_ROOT / "data" / "offline_cache.db",
        description="SQLite file backing the offline cache store",
    )
    offline_cache_name: str = Field(
        default="cm-cache-v1", description="Current offline cache version identifier"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins into list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin]

    @property
    def has_supabase(self) -> bool:
        """Check if the managed backend is configured."""
        return bool(self.supabase_url) and bool(self.supabase_service_role_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    """Configure application logging."""
    if settings is None:
        settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Suppress verbose third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
