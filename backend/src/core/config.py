"""Application configuration using pydantic-settings."""
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Remote progress ledger (one row per user/problem)
    database_url: str = "sqlite+aiosqlite:///./mlinterviewpro.db"

    # Durable local key-value store (stands in for browser localStorage)
    local_storage_url: str = "sqlite:///./local_storage.db"
    session_cache_key: str = "mlinterviewpro_user_session"

    # Redis (stats cache); app runs degraded without it
    redis_url: str = "redis://localhost:6379"
    redis_enabled: bool = True
    stats_cache_ttl: int = Field(default=300, ge=1)

    # Progress sync
    sync_concurrency: int = Field(default=8, ge=1)
    time_tracking_interval_seconds: int = Field(default=30, ge=1)
    beacon_url: str = "http://localhost:8000/api/time-spent"

    # Static problem catalog
    catalog_path: str = "data/leetcode-problems.json"

    # Navigation targets (None = stay on the current page)
    login_redirect: str | None = None
    logout_redirect: str | None = None
    protected_redirect: str | None = None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
