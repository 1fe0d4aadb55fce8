"""Configuration management using Pydantic Settings.

This module provides centralized configuration for the cricket scoring engine,
supporting environment variables and .env file loading.

Example:
    >>> from cricket_scoring.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.db_path)
    'data/cricket.db'
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    All settings can be overridden via environment variables or .env file.
    Environment variables take precedence over .env file values.

    Attributes:
        db_path: Path to SQLite database file.
        database_url: Full SQLAlchemy URL for a hosted database. When set it
            takes precedence over db_path.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_dir: Directory for log files.
        derived_batting_position: Batting order slot given to derived rows so
            they sort after real entries.
        did_not_bat_marker: how_out text written on derived batting rows.
        did_not_bowl_marker: Note written on derived bowling rows.
        did_not_field_marker: Note written on derived fielding rows.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    db_path: str = Field(
        default="data/cricket.db",
        alias="CRICKET_DB_PATH",
        description="Path to SQLite database file",
    )
    database_url: str | None = Field(
        default=None,
        alias="DATABASE_URL",
        description="SQLAlchemy URL of a hosted database (overrides db_path)",
    )
    db_busy_timeout: float = Field(
        default=30.0,
        alias="DB_BUSY_TIMEOUT",
        gt=0,
        description="Seconds a SQLite writer waits for another writer to finish",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    log_dir: str = Field(
        default="logs",
        alias="LOG_DIR",
        description="Directory for log files",
    )

    # Zero-row completion
    derived_batting_position: int = Field(
        default=99,
        alias="DERIVED_BATTING_POSITION",
        ge=12,
        description="Batting position assigned to derived batting rows",
    )
    did_not_bat_marker: str = Field(
        default="did not bat",
        alias="DID_NOT_BAT_MARKER",
        description="Dismissal text for derived batting rows",
    )
    did_not_bowl_marker: str = Field(
        default="did not bowl",
        alias="DID_NOT_BOWL_MARKER",
        description="Note for derived bowling rows",
    )
    did_not_field_marker: str = Field(
        default="did not field",
        alias="DID_NOT_FIELD_MARKER",
        description="Note for derived fielding rows",
    )

    @field_validator("db_path", "log_dir")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Ensure path strings are valid."""
        if not v or v.isspace():
            raise ValueError("Path cannot be empty or whitespace")
        return v

    @field_validator("did_not_bat_marker", "did_not_bowl_marker", "did_not_field_marker")
    @classmethod
    def validate_marker(cls, v: str) -> str:
        """Markers are matched case-insensitively, so store them trimmed."""
        if not v or v.isspace():
            raise ValueError("Marker cannot be empty or whitespace")
        return v.strip()

    @property
    def db_path_obj(self) -> Path:
        """Return database path as Path object."""
        return Path(self.db_path)

    @property
    def log_dir_obj(self) -> Path:
        """Return log directory as Path object."""
        return Path(self.log_dir)

    @property
    def sqlalchemy_url(self) -> str:
        """URL handed to create_engine()."""
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.db_path_obj}"

    @property
    def uses_sqlite(self) -> bool:
        return self.sqlalchemy_url.startswith("sqlite")

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        if self.database_url is None:
            self.db_path_obj.parent.mkdir(parents=True, exist_ok=True)
        self.log_dir_obj.mkdir(parents=True, exist_ok=True)


# Singleton pattern for settings
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        Settings instance loaded from environment.

    Example:
        >>> settings = get_settings()
        >>> print(settings.derived_batting_position)
        99
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset the settings singleton (useful for testing)."""
    global _settings
    _settings = None
