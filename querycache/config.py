"""
Application configuration using Pydantic settings.

Usage:
    from querycache.config import get_settings
    settings = get_settings()
"""

from functools import lru_cache
from typing import List, Literal, Optional
from urllib.parse import quote

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings for the query cache and its backing store, loaded from
    environment variables and .env file.

    Required:
        - READ_DATABASE_URL (or DATABASE_URL)
        - WRITE_DATABASE_URL (or DATABASE_URL)
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_json: bool = Field(default=False, validation_alias="LOG_JSON")

    # Database (read/write split)
    read_database_url: str = Field(
        default="",
        validation_alias=AliasChoices("READ_DATABASE_URL", "DATABASE_URL"),
    )
    write_database_url: str = Field(
        default="",
        validation_alias=AliasChoices("WRITE_DATABASE_URL", "DATABASE_URL"),
    )
    db_pool_size: int = Field(default=10, validation_alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=20, validation_alias="DB_MAX_OVERFLOW")
    db_pool_pre_ping: bool = Field(default=True, validation_alias="DB_POOL_PRE_PING")
    db_pool_recycle_seconds: int = Field(default=60 * 60, validation_alias="DB_POOL_RECYCLE_SECONDS")

    # Cache
    cache_backend: Literal["memory", "redis"] = Field(default="memory", validation_alias="CACHE_BACKEND")
    cache_bucket_ttl_seconds: int = Field(default=60 * 60 * 24, validation_alias="CACHE_BUCKET_TTL_SECONDS")
    cache_key_prefix: str = Field(default="querycache", validation_alias="CACHE_KEY_PREFIX")

    # Redis
    redis_host: str = Field(default="localhost", validation_alias="REDIS_HOST")
    redis_port: int = Field(default=6379, validation_alias="REDIS_PORT")
    redis_db: int = Field(default=0, validation_alias="REDIS_DB")
    redis_password: Optional[str] = Field(default=None, validation_alias="REDIS_PASSWORD")
    redis_max_connections: int = Field(default=50, validation_alias="REDIS_MAX_CONNECTIONS")
    redis_socket_timeout: float = Field(default=5.0, validation_alias="REDIS_SOCKET_TIMEOUT")

    @property
    def redis_url(self) -> str:
        """Construct Redis URL from components."""
        auth = f":{quote(self.redis_password, safe='')}@" if self.redis_password else ""
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"


def validate_database_config(settings: Settings) -> List[str]:
    """
    Check the settings the backing store cannot start without.

    Returns:
        One message per missing value; empty when the config is usable.
    """
    errors = []
    if not settings.read_database_url:
        errors.append("READ_DATABASE_URL (or DATABASE_URL) is required")
    if not settings.write_database_url:
        errors.append("WRITE_DATABASE_URL (or DATABASE_URL) is required")
    return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings."""
    return Settings()


__all__ = ["Settings", "get_settings", "validate_database_config"]
