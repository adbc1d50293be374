"""Centralized configuration management using pydantic-settings.

Configuration is loaded from environment variables with sensible defaults.
All settings can be overridden via environment variables or a .env file.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_FIELD_MAP_PATH = Path(__file__).parent / "reference" / "f3115_field_map.json"


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings have sensible defaults for development. Override via
    environment variables (prefixed with F3115_) or .env file.

    Examples:
        F3115_SQLITE_PATH=/var/lib/f3115/filings.db
        F3115_PDF_TEMPLATE_PATH=/srv/forms/f3115.pdf
        F3115_LOG_LEVEL=DEBUG
        F3115_ENVIRONMENT=production
    """

    model_config = SettingsConfigDict(
        env_prefix="F3115_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Form 3115 Preparer"
    app_version: str = "0.1.0"
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = Field(default=False, description="Enable debug mode")

    # Database
    sqlite_path: Path = Field(
        default=Path("form3115.db"),
        description="SQLite database file path",
    )

    # Logging
    log_level: LogLevel = LogLevel.INFO
    log_format: Literal["json", "console"] | None = Field(
        default=None,
        validate_default=True,
        description="Log output format: 'json' for production, 'console' for development",
    )
    log_file: Path | None = Field(default=None, description="Optional log file path")

    # API Server
    # Binds to all interfaces for containerized deployments; use
    # F3115_API_HOST=127.0.0.1 behind a reverse proxy otherwise.
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_reload: bool = Field(
        default=False, description="Enable auto-reload (development only)"
    )

    # Form 3115 output
    pdf_template_path: Path = Field(
        default=Path("f3115.pdf"),
        description="Fillable IRS Form 3115 template (AcroForm)",
    )
    field_map_path: Path = Field(
        default=DEFAULT_FIELD_MAP_PATH,
        description="JSON mapping of filing fields onto template field names",
    )
    attach_statement: bool = Field(
        default=True,
        description="Append the narrative attachment statement to generated PDFs",
    )
    verify_field_map_on_startup: bool = True

    # Identity used when no caller identity is supplied (CLI, local use)
    default_owner_id: str = Field(default="local", min_length=1)

    @field_validator("debug", mode="before")
    @classmethod
    def set_debug_from_environment(cls, v: bool, info) -> bool:
        """Auto-enable debug in development environment."""
        if info.data.get("environment") == Environment.DEVELOPMENT:
            return True
        return v

    @field_validator("log_format", mode="after")
    @classmethod
    def set_log_format_from_environment(cls, v: str | None, info) -> str:
        """Default to JSON logging in production."""
        if v is None:
            env = info.data.get("environment")
            if env == Environment.PRODUCTION:
                return "json"
        return v or "console"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.environment == Environment.TESTING


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload settings.

    Returns:
        Configured Settings instance.
    """
    return Settings()
