"""Application settings using Pydantic BaseSettings."""

import os
import re

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./contactsync.db"


def get_async_database_url(url: str | None = None) -> str:
    """Get database URL converted for an async driver."""
    url = url or os.environ.get("DATABASE_URL", "") or DEFAULT_DATABASE_URL
    # Convert postgres:// to postgresql+asyncpg:// for SQLAlchemy async
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif url.startswith("postgresql://") and "+asyncpg" not in url:
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    # asyncpg doesn't support sslmode, it uses ssl parameter
    if "sslmode=" in url:
        url = re.sub(r'[?&]sslmode=[^&]*', '', url)
        url = url.rstrip('?&')
    return url


def get_sync_database_url(url: str | None = None) -> str:
    """Get database URL for a synchronous driver (Alembic)."""
    url = url or os.environ.get("DATABASE_URL", "") or DEFAULT_DATABASE_URL
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url.replace("+asyncpg", "").replace("+aiosqlite", "")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Relational store
    database_url: str = DEFAULT_DATABASE_URL
    database_echo: bool = False
    database_pool_size: int = 10
    database_max_overflow: int = 20

    # Redis (shared rate-limit windows)
    redis_url: str = "redis://localhost:6379/0"
    redis_enabled: bool = True

    # JWT
    jwt_secret_key: str = "dev-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 30

    # Application
    environment: str = "development"
    log_level: str = "INFO"
    api_v1_prefix: str = "/api/v1"
    cors_allow_origins: list[str] = ["*"]

    # Phone hashing. Empty pepper means plain SHA-256 of the canonical number.
    phone_hash_pepper: str = ""
    # Prefixed to national-length numbers written without a leading "+"
    default_country_code: str = "1"
    national_number_length: int = 10

    # Sync abuse limits
    sync_rate_limit_attempts: int = 10
    sync_rate_limit_window_seconds: int = 3600
    sync_large_operation_threshold: int = 5000
    sync_large_operation_max_recent: int = 2
    prehashed_max_age_seconds: int = 300

    # Sync processing
    sync_batch_concurrency: int = 4
    sync_timeout_base_seconds: float = 30.0
    sync_timeout_per_batch_seconds: float = 10.0
    sync_stale_after_seconds: int = 900

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
