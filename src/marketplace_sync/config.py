"""Application configuration management."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.constants import (
    AMAZON_DEFAULT_BASE_URL,
    AMAZON_DEFAULT_MARKETPLACE_ID,
    SYNC_LOOKBACK_DAYS,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    app_name: str = "marketplace-sync"
    app_env: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # API Settings
    # -------------------------------------------------------------------------
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 1
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    # -------------------------------------------------------------------------
    # PostgreSQL Database
    # -------------------------------------------------------------------------
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "portal"
    postgres_password: str = ""
    postgres_db: str = "employee_portal"
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_recycle: int = 1800

    @property
    def database_url(self) -> str:
        """Construct PostgreSQL connection URL."""
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def database_url_sync(self) -> str:
        """Construct synchronous PostgreSQL connection URL (for Alembic)."""
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # -------------------------------------------------------------------------
    # Redis
    # -------------------------------------------------------------------------
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str = ""
    redis_db: int = 0

    @property
    def redis_url(self) -> str:
        """Construct Redis connection URL."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # -------------------------------------------------------------------------
    # Celery
    # -------------------------------------------------------------------------
    celery_broker_url: str = ""
    celery_result_backend: str = ""

    @property
    def celery_broker(self) -> str:
        """Get Celery broker URL, defaulting to Redis URL."""
        return self.celery_broker_url or self.redis_url

    @property
    def celery_backend(self) -> str:
        """Get Celery result backend URL, defaulting to Redis URL."""
        return self.celery_result_backend or self.redis_url

    # -------------------------------------------------------------------------
    # Marketplace Sync Scheduler
    # -------------------------------------------------------------------------
    # Run the in-process scheduler inside the API. Disable it when the Celery
    # beat schedule drives syncing instead, otherwise both will poll.
    marketplace_sync_enabled: bool = True
    marketplace_sync_interval_minutes: int = Field(default=15, ge=1)
    marketplace_sync_initial_delay_seconds: float = Field(default=0.0, ge=0)
    marketplace_sync_lookback_days: int = Field(default=SYNC_LOOKBACK_DAYS, ge=1)
    marketplace_http_timeout_seconds: float = 30.0

    # -------------------------------------------------------------------------
    # BigCommerce (fallback when a channel carries no credentials)
    # -------------------------------------------------------------------------
    bigcommerce_api_base_url: str = "https://api.bigcommerce.com"
    bigcommerce_store_hash: str = ""
    bigcommerce_access_token: str = ""
    bigcommerce_max_pages_per_status: int = 4

    # -------------------------------------------------------------------------
    # Amazon Selling Partner API (fallback when a channel carries no credentials)
    # -------------------------------------------------------------------------
    amazon_seller_id: str = ""
    amazon_refresh_token: str = ""
    amazon_client_id: str = ""
    amazon_client_secret: str = ""
    amazon_marketplace_id: str = AMAZON_DEFAULT_MARKETPLACE_ID
    amazon_base_url: str = AMAZON_DEFAULT_BASE_URL
    amazon_min_request_interval_seconds: float = 8.0
    amazon_orders_cache_ttl_seconds: int = 300


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
