"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_rate_limit_settings() -> "RateLimitSettings":
    """Build rate limit settings from environment."""

    return RateLimitSettings()


def _build_log_settings() -> "LogSettings":
    """Build logging settings from environment."""

    return LogSettings()


class RateLimitSettings(BaseSettings):
    """Fixed-window admission control configuration."""

    enabled: bool = Field(
        True,
        description="Enable admission control for non-exempt routes",
    )
    max_requests: int = Field(
        60,
        description="Maximum number of requests admitted per window (per client key)",
        ge=1,
    )
    window_seconds: int = Field(
        60,
        description="Fixed window size in seconds",
        ge=1,
    )
    identifier: Literal["peer", "forwarded", "api_key"] = Field(
        "peer",
        description="Client key strategy: peer address, X-Forwarded-For, or API key header",
    )
    api_key_header: str = Field(
        "X-API-Key",
        description="Header read by the api_key identifier strategy",
    )
    failure_mode: Literal["open", "closed"] = Field(
        "closed",
        description="Forward (open) or fail with 503 (closed) when admission is indeterminate",
    )
    store_timeout_seconds: float | None = Field(
        None,
        description="Deadline for each window store call; None disables the timeout",
        gt=0,
    )
    exempt_paths: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["/health"],
        description="Paths that bypass admission control",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )

    @field_validator("exempt_paths", mode="before")
    @classmethod
    def _split_paths(cls, value: object) -> object:
        # Accept a comma-separated string from the environment
        if isinstance(value, str):
            return [path.strip() for path in value.split(",") if path.strip()]
        return value


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field("json", description="Log output format")
    output: Literal["stdout", "file"] = Field("stdout", description="Log destination")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10_485_760,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated log files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header carrying the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
