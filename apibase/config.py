"""
Configuration and settings for the backend scaffold.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from apibase.errors import ConfigError

DEFAULT_PORT = 8080


class Settings(BaseSettings):
    """Environment-backed settings shared by both transports."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    bind_host: str = Field(default="0.0.0.0")
    env: str = Field(default="local")
    api_prefix: str = Field(default="/api")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO"
    )

    # Document store (MongoDB). Without a URI the in-memory store is used.
    mongo_uri: Optional[str] = Field(default=None)
    db_name: Optional[str] = Field(default=None)

    # One-time passwords
    otp_ttl_seconds: int = Field(default=300, gt=0)
    otp_max_retries: int = Field(default=3, gt=0)
    otp_length: int = Field(default=6, ge=4, le=12)

    @field_validator("port", mode="before")
    @classmethod
    def _default_blank_port(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_PORT
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value):
        if isinstance(value, str):
            return value.strip().upper() or "INFO"
        return value

    @field_validator("mongo_uri", "db_name", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _require_db_name(self) -> "Settings":
        if self.mongo_uri and not self.db_name:
            raise ValueError("DB_NAME is required when MONGO_URI is set")
        return self


def load_settings(**overrides) -> Settings:
    """Build settings from the environment, raising ConfigError when invalid."""
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return load_settings()
