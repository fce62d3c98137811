"""Application configuration using Pydantic Settings."""

import json
from typing import List, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Panel settings, read from the environment or ``.env``.

    ``DATABASE_URL``, ``SECRET_KEY`` and ``DAEMON_TOKEN`` have no default and
    must be provided.
    """

    # API
    PROJECT_NAME: str = "Hostpanel API"
    VERSION: str = "1.0.0"
    API_V1_PREFIX: str = "/api/v1"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"

    # Panel database (PostgreSQL in production)
    DATABASE_URL: str
    DATABASE_ECHO: bool = False

    # Auth
    SECRET_KEY: str = Field(..., min_length=8)
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=30, gt=0)
    REFRESH_TOKEN_EXPIRE_DAYS: int = Field(default=7, gt=0)

    BACKEND_CORS_ORIGINS: List[str] = []
    RATE_LIMIT_PER_MINUTE: int = Field(default=60, gt=0)

    # Observability
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "json"
    OTEL_SERVICE_NAME: str = "hostpanel-api"
    OTEL_TRACE_SAMPLE_RATE: float = Field(default=1.0, ge=0.0, le=1.0)
    OTEL_EXPORT_CONSOLE: bool = False

    # Node daemons
    DAEMON_TOKEN: str = Field(..., min_length=1, description="Shared secret sent in every daemon call")
    DAEMON_REQUEST_TIMEOUT: float = Field(default=60.0, gt=0)

    # Allocations
    ALLOCATION_BATCH_LIMIT: int = Field(default=10, gt=0, description="Max ports per range request")

    # MySQL database hosts
    MYSQL_SSL: bool = False
    MYSQL_PROBE_TIMEOUT: int = Field(default=4, gt=0, description="Seconds, host selection probe")
    MYSQL_CONNECT_TIMEOUT: int = Field(default=8, gt=0, description="Seconds, DDL connections")
    DATABASE_PASSWORD_LENGTH: int = Field(default=20, ge=8)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def split_cors_origins(cls, v):
        """Accept a JSON list or a comma-separated string."""
        if isinstance(v, str):
            v = v.strip()
            if v.startswith("["):
                return json.loads(v)
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def upper_log_level(cls, v: str) -> str:
        return v.upper()


settings = Settings()
