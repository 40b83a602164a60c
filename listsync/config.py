# listsync/config.py
"""
Centralized configuration using pydantic-settings.

All settings are read from environment variables or .env file.
The same file configures the record store service and the device-side
sync engine; each side simply ignores the keys it does not use.
"""

import os
import socket
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Priority: environment variables > .env file > defaults
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore unknown env vars
    )

    # --- Database (record store service) ---
    DB_URL: str = Field(
        default="postgresql://localhost:5432/listsync",
        description="PostgreSQL connection URL"
    )

    # --- Redis (maintenance worker) ---
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL"
    )

    # --- Server ---
    HOST: str = Field(
        default="127.0.0.1",
        description="Server bind host"
    )
    PORT: int = Field(
        default=8888,
        description="Server bind port"
    )

    # --- Debug / Logging ---
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    TELEMETRY_ENABLED: bool = Field(
        default=False,
        description="Instrument FastAPI and SQLAlchemy with OpenTelemetry"
    )

    # --- Device / sync engine ---
    STORE_URL: str = Field(
        default="http://127.0.0.1:8888",
        description="Base URL of the record store service"
    )
    USER_ID: str = Field(
        default="",
        description="Account identity sent to the record store (empty = signed out)"
    )
    DEVICE_NAME: str = Field(
        default_factory=socket.gethostname,
        description="Sender name shown on chat messages"
    )
    CODE_LENGTH: int = Field(
        default=6,
        description="Number of digits in a join code"
    )
    LIST_POLL_SECONDS: float = Field(
        default=6.0,
        description="Interval between list pulls while connected"
    )
    CHAT_POLL_SECONDS: float = Field(
        default=4.0,
        description="Interval between chat pulls while connected"
    )
    REQUEST_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Total timeout for a single record store request"
    )
    LIST_STORAGE_PATH: Optional[str] = Field(
        default=None,
        description="JSON file holding the local shopping list (None = memory only)"
    )

    # --- Maintenance ---
    SHARE_CODE_TTL_HOURS: int = Field(
        default=24,
        description="Age after which published join codes are purged"
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}")
        return v_upper

    @field_validator("CODE_LENGTH")
    @classmethod
    def validate_code_length(cls, v: int) -> int:
        if v < 1:
            raise ValueError("CODE_LENGTH must be at least 1")
        return v

    @field_validator("LIST_POLL_SECONDS", "CHAT_POLL_SECONDS", "REQUEST_TIMEOUT_SECONDS")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("intervals and timeouts must be positive")
        return v


@lru_cache
def get_settings() -> Settings:
    """Return cached Settings instance (singleton pattern)."""
    return Settings()


# --- Singleton instance for easy import ---
settings = get_settings()


# --- Module-level exports ---

# Database
DATABASE_URL: str = settings.DB_URL

# Server
HOST: str = settings.HOST
PORT: int = settings.PORT
DEBUG: bool = settings.DEBUG
LOG_LEVEL: str = settings.LOG_LEVEL

# Redis
REDIS_URL: str = settings.REDIS_URL

# --- Paths (computed, not from env) ---
PROJECT_ROOT: str = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
LOGS_PATH: str = os.path.join(PROJECT_ROOT, "logs")
