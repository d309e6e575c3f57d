"""
Configuration settings for the puzzle dependency graph engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///puzzlegraph.db",
        description="SQLAlchemy connection string (PostgreSQL in production)",
    )
    database_echo: bool = Field(
        default=False,
        description="Echo SQL statements to the log",
    )

    # ========================================
    # Dependency Graph
    # ========================================
    graph_lock_key: int = Field(
        default=7_340_001,
        description="PostgreSQL advisory lock key serializing edge mutations",
    )
    difficulty_min: int = Field(
        default=1,
        description="Lowest allowed puzzle difficulty",
    )
    difficulty_max: int = Field(
        default=10,
        description="Highest allowed puzzle difficulty",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    @field_validator("database_url")
    @classmethod
    def _normalize_database_url(cls, value: str) -> str:
        value = value.strip()
        # Heroku/Railway style URLs are not accepted by SQLAlchemy 2.x
        if value.startswith("postgres://"):
            value = value.replace("postgres://", "postgresql+psycopg2://", 1)
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
