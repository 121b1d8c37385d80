"""
Configuration Utility - Environment Variables Management

Centralized configuration loading from .env files using pydantic-settings.
Type-safe access to all environment variables with validation.

Usage:
    from utils.config import settings

    api_base = settings.API_BASE_URL
    batch_size = settings.CRAWL_BATCH_SIZE
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/130.0.0.0 Safari/537.36"
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    API_BASE_URL: str = Field(default="https://prod-api.kosetto.com")
    API_USER_PATH: str = Field(default="/users/by-id/{id}")
    API_TIMEOUT: float = Field(default=10.0, gt=0)
    API_VERIFY_TLS: bool = Field(default=False)
    API_USER_AGENT: str = Field(default=DEFAULT_USER_AGENT)

    # Outbound Transport
    PROXY_URL: Optional[str] = Field(default=None)
    HTTP_MAX_CONNECTIONS: int = Field(default=100, ge=1)

    # Crawl Configuration
    CRAWL_BATCH_SIZE: int = Field(default=100, ge=1)
    CRAWL_MAX_ATTEMPTS: int = Field(default=3, ge=1)
    CRAWL_RETRY_DELAY: float = Field(default=0.5, ge=0)
    CRAWL_EMPTY_BATCH_THRESHOLD: int = Field(default=3, ge=1)
    CRAWL_INITIAL_ID: int = Field(default=10, ge=0)

    # Scheduler Configuration (empty = run once and exit)
    CRAWL_SCHEDULE_CRON: str = Field(default="")

    # File System Paths
    DATA_DIR: str = Field(default="data")
    STATE_FILE: str = Field(default="data/state.json")
    ARCHIVE_FILE: str = Field(default="data/users.json")

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="text", pattern="^(text|json)$")

    # Application Metadata
    APP_NAME: str = Field(default="friendtech-crawler")
    APP_VERSION: str = Field(default="0.1.0")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    @model_validator(mode="after")
    def check_batch_fits_pool(self) -> "Settings":
        """Batch width must not exceed the transport's connection cap."""
        if self.CRAWL_BATCH_SIZE > self.HTTP_MAX_CONNECTIONS:
            raise ValueError(
                f"CRAWL_BATCH_SIZE ({self.CRAWL_BATCH_SIZE}) exceeds "
                f"HTTP_MAX_CONNECTIONS ({self.HTTP_MAX_CONNECTIONS})"
            )
        return self

    @property
    def user_url_template(self) -> str:
        return self.API_BASE_URL.rstrip("/") + self.API_USER_PATH


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Singleton Settings instance
    """
    return Settings()


# Global settings instance
settings = get_settings()
