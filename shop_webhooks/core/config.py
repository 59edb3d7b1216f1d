"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Optional

from pydantic import Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shop_webhooks.core.exceptions import ConfigurationException

# Environments allowed to run without explicit database credentials
DEVELOPMENT_ENVIRONMENTS = frozenset({"development", "test"})


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="shop-webhooks", alias="APP_NAME")
    app_env: str = Field(default="development", alias="APP_ENV")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # API
    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=8000, alias="API_PORT")

    # Database
    postgres_host: str = Field(default="localhost", alias="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, alias="POSTGRES_PORT")
    postgres_db: str = Field(default="shop_webhooks", alias="POSTGRES_DB")
    postgres_user: str = Field(default="shop", alias="POSTGRES_USER")
    postgres_password: Optional[str] = Field(default=None, alias="POSTGRES_PASSWORD")
    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")
    database_pool_size: int = Field(default=20, alias="DATABASE_POOL_SIZE")

    @property
    def async_database_url(self) -> str:
        """Construct async database URL."""
        if self.database_url:
            return self.database_url
        password = f":{self.postgres_password}" if self.postgres_password else ""
        return (
            f"postgresql+asyncpg://{self.postgres_user}{password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # Redis
    redis_host: str = Field(default="localhost", alias="REDIS_HOST")
    redis_port: int = Field(default=6379, alias="REDIS_PORT")
    redis_db: int = Field(default=0, alias="REDIS_DB")
    redis_password: Optional[str] = Field(default=None, alias="REDIS_PASSWORD")
    redis_url: Optional[str] = Field(default=None, alias="REDIS_URL")

    @property
    def redis_dsn(self) -> str:
        """Construct Redis DSN."""
        if self.redis_url:
            return self.redis_url
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # Celery
    celery_broker_url: Optional[str] = Field(default=None, alias="CELERY_BROKER_URL")
    celery_result_backend: Optional[str] = Field(default=None, alias="CELERY_RESULT_BACKEND")

    @property
    def broker_url(self) -> str:
        """Get Celery broker URL."""
        return self.celery_broker_url or self.redis_dsn

    @property
    def result_backend(self) -> str:
        """Get Celery result backend URL."""
        return self.celery_result_backend or self.redis_dsn

    # Webhook delivery
    webhook_user_agent: str = Field(default="ShopWebhooks/1.0", alias="WEBHOOK_USER_AGENT")
    webhook_default_timeout_seconds: int = Field(
        default=30, ge=1, alias="WEBHOOK_DEFAULT_TIMEOUT_SECONDS"
    )
    webhook_default_max_retries: int = Field(default=3, ge=1, alias="WEBHOOK_DEFAULT_MAX_RETRIES")
    webhook_retry_base_minutes: float = Field(default=1.0, gt=0, alias="WEBHOOK_RETRY_BASE_MINUTES")
    webhook_retry_batch_size: int = Field(default=100, ge=1, alias="WEBHOOK_RETRY_BATCH_SIZE")
    webhook_retention_days: int = Field(default=90, ge=1, alias="WEBHOOK_RETENTION_DAYS")
    webhook_response_body_limit: int = Field(
        default=2000, ge=0, alias="WEBHOOK_RESPONSE_BODY_LIMIT"
    )

    # Cache settings
    cache_ttl_stats: int = Field(default=30, ge=0, alias="CACHE_TTL_STATS")

    @property
    def is_development(self) -> bool:
        """Whether the app runs in a development-like environment."""
        return self.app_env.lower() in DEVELOPMENT_ENVIRONMENTS

    @model_validator(mode="after")
    def _require_credentials_outside_development(self) -> "Settings":
        if self.is_development:
            return self
        if not self.database_url and not self.postgres_password:
            raise ValueError(
                f"DATABASE_URL or POSTGRES_PASSWORD must be set when APP_ENV={self.app_env}"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Raises:
        ConfigurationException: If the environment does not form a valid configuration
    """
    try:
        return Settings()
    except ValidationError as e:
        raise ConfigurationException(
            "Invalid application settings",
            details={"errors": e.errors(include_url=False)},
        ) from e
