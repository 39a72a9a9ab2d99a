"""Centralized configuration management for finlink.

This module provides a Pydantic Settings-based configuration system that
consolidates provider credentials, the DuckDB store location, logging and
HTTP server options, with environment variable integration and validation.
"""

import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class ProviderConfig(BaseModel):
    """Open-Finance provider (Pluggy) API settings."""

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(default="", description="Provider client ID")
    client_secret: str = Field(default="", description="Provider client secret")
    base_url: str = Field(
        default="https://api.pluggy.ai", description="Provider API base URL"
    )
    page_size: int = Field(
        default=500, ge=1, le=500, description="Page size for paged list endpoints"
    )
    timeout: float = Field(
        default=30.0, ge=1.0, le=300.0, description="HTTP timeout in seconds"
    )
    max_retries: int = Field(
        default=3, ge=0, le=10, description="Maximum retries on transient errors"
    )
    retry_delay: float = Field(
        default=1.0, ge=0.0, le=30.0, description="Delay between retries in seconds"
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the base URL so paths can be appended safely."""
        return v.rstrip("/")


class DatabaseConfig(BaseModel):
    """Database configuration settings."""

    model_config = ConfigDict(frozen=True)

    path: Path = Field(
        default=Path("data/duckdb/finlink.duckdb"),
        description="Path to DuckDB database file",
    )
    create_dirs: bool = Field(
        default=True, description="Automatically create database directories"
    )

    @field_validator("path")
    @classmethod
    def validate_database_path(cls, v: Path) -> Path:
        """Ensure database path has correct extension."""
        if str(v) == ":memory:":
            return v
        if not str(v).endswith((".db", ".duckdb")):
            raise ValueError("Database path must end with .db or .duckdb")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration settings."""

    model_config = ConfigDict(frozen=True)

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_to_file: bool = Field(default=False, description="Enable file logging")
    log_file_path: Path = Field(
        default=Path("logs/finlink.log"), description="Path to log file"
    )
    max_file_size_mb: int = Field(
        default=50, ge=1, le=1000, description="Maximum log file size in MB"
    )
    backup_count: int = Field(
        default=5, ge=1, le=50, description="Number of log file backups to keep"
    )


class ServerConfig(BaseModel):
    """HTTP boundary settings."""

    model_config = ConfigDict(frozen=True)

    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=8000, ge=1, le=65535, description="Bind port")
    webhook_path: str = Field(
        default="/api/webhook", description="Path receiving provider webhooks"
    )


class FinlinkSettings(BaseSettings):
    """Main application settings with environment variable integration.

    Environment variables are loaded with the FINLINK_ prefix.
    For nested configs, use double underscores: FINLINK_DATABASE__PATH

    The provider's own variable names (PLUGGY_CLIENT_ID, PLUGGY_CLIENT_SECRET,
    PLUGGY_BASE_URL) and DUCKDB_PATH are honoured as fallbacks.
    """

    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    debug: bool = Field(default=False, description="Enable debug mode")
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Application environment"
    )

    def __init__(self, **kwargs: Any):
        """Initialize settings with unprefixed environment variable fallbacks.

        Args:
            **kwargs: Additional configuration overrides
        """
        if "database" not in kwargs:
            duckdb_path = os.getenv("DUCKDB_PATH")
            if duckdb_path:
                kwargs["database"] = DatabaseConfig(path=Path(duckdb_path))

        if "provider" not in kwargs:
            provider_config: dict[str, Any] = {}
            client_id = os.getenv("PLUGGY_CLIENT_ID")
            client_secret = os.getenv("PLUGGY_CLIENT_SECRET")
            base_url = os.getenv("PLUGGY_BASE_URL")

            if client_id:
                provider_config["client_id"] = client_id
            if client_secret:
                provider_config["client_secret"] = client_secret
            if base_url:
                provider_config["base_url"] = base_url

            if provider_config:
                kwargs["provider"] = ProviderConfig(**provider_config)

        if "logging" not in kwargs:
            logging_config: dict[str, Any] = {}
            log_level = os.getenv("LOG_LEVEL")
            log_to_file = os.getenv("LOG_TO_FILE")
            log_file_path = os.getenv("LOG_FILE_PATH")

            if log_level:
                logging_config["level"] = log_level.upper()
            if log_to_file:
                logging_config["log_to_file"] = log_to_file.lower() == "true"
            if log_file_path:
                logging_config["log_file_path"] = Path(log_file_path)

            if logging_config:
                kwargs["logging"] = LoggingConfig(**logging_config)

        super().__init__(**kwargs)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="FINLINK_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate application environment."""
        if v == "production" and os.getenv("DEBUG", "").lower() in ("true", "1"):
            raise ValueError("DEBUG mode cannot be enabled in production")
        return v

    def create_directories(self) -> None:
        """Create necessary directories for the application."""
        directories = [self.logging.log_file_path.parent]
        if str(self.database.path) != ":memory:":
            directories.append(self.database.path.parent)

        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)

    def validate_required_credentials(self) -> None:
        """Validate that required provider credentials are present.

        Raises:
            ConfigurationError: If any credential is missing
        """
        errors: list[str] = []

        if not self.provider.client_id:
            errors.append("PLUGGY_CLIENT_ID is required")
        if not self.provider.client_secret:
            errors.append("PLUGGY_CLIENT_SECRET is required")

        if errors:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(errors)}"
            )


_settings: FinlinkSettings | None = None


def get_settings() -> FinlinkSettings:
    """Get the process-wide settings instance.

    Settings are loaded once and cached. Credentials are not validated here;
    the provider client validates them when it is constructed.

    Returns:
        FinlinkSettings: The configuration instance

    Raises:
        ConfigurationError: If configuration values are invalid
    """
    global _settings

    if _settings is not None:
        return _settings

    try:
        settings = FinlinkSettings()
    except ValueError as e:
        raise ConfigurationError(f"Configuration error: {e}") from e

    if settings.database.create_dirs:
        settings.create_directories()

    _settings = settings
    return settings


def reload_settings() -> FinlinkSettings:
    """Reload settings from environment variables.

    Returns:
        FinlinkSettings: The reloaded configuration instance
    """
    clear_settings_cache()
    return get_settings()


def clear_settings_cache() -> None:
    """Drop the cached settings instance."""
    global _settings
    _settings = None


def get_database_path() -> Path:
    """Get the configured database path.

    Returns:
        Path: The database path
    """
    return get_settings().database.path


def get_provider_config() -> ProviderConfig:
    """Get the provider configuration.

    Returns:
        ProviderConfig: The provider configuration
    """
    return get_settings().provider
