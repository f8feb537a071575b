"""
Settings Module for Ping Monitor

Configuration management using Pydantic Settings.
Supports environment variables, .env files, and runtime configuration.
Includes validation, type checking, and sensible defaults.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional
from enum import Enum

from pydantic import (
    AliasChoices,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from config.constants import Defaults


class Environment(str, Enum):
    """Application environment enumeration."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class LogLevel(str, Enum):
    """Logging level enumeration."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class DatabaseType(str, Enum):
    """Supported database types."""
    POSTGRESQL = "postgresql"
    SQLITE = "sqlite"


class BaseSettingsConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True
    )


class DatabaseSettings(BaseSettingsConfig):
    """
    Database Configuration Settings

    Supports PostgreSQL (production) and SQLite (development).
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        extra="ignore"
    )

    type: DatabaseType = Field(
        default=DatabaseType.SQLITE,
        description="Database type: postgresql or sqlite"
    )

    # PostgreSQL settings
    host: str = Field(
        default="localhost",
        description="Database host address"
    )
    port: int = Field(
        default=5432,
        ge=1,
        le=65535,
        description="Database port number"
    )
    name: str = Field(
        default="ping_monitor",
        min_length=1,
        max_length=64,
        description="Database name"
    )
    user: str = Field(
        default="postgres",
        min_length=1,
        max_length=64,
        description="Database username"
    )
    password: SecretStr = Field(
        default=SecretStr(""),
        description="Database password"
    )

    # SQLite settings
    sqlite_path: Path = Field(
        default=Path("data/ping_monitor.db"),
        description="Path to SQLite database file"
    )

    # Connection pool settings
    pool_size: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Connection pool size"
    )
    max_overflow: int = Field(
        default=10,
        ge=0,
        le=100,
        description="Maximum overflow connections"
    )
    pool_timeout: int = Field(
        default=30,
        ge=1,
        le=300,
        description="Pool connection timeout in seconds"
    )
    pool_recycle: int = Field(
        default=1800,
        ge=60,
        le=7200,
        description="Connection recycle time in seconds"
    )

    echo: bool = Field(
        default=False,
        description="Echo SQL queries (debug mode)"
    )

    @property
    def url(self) -> str:
        """Generate database URL based on configuration."""
        if self.type == DatabaseType.SQLITE:
            self.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
            return f"sqlite+aiosqlite:///{self.sqlite_path}"

        elif self.type == DatabaseType.POSTGRESQL:
            password = self.password.get_secret_value()
            return (
                f"postgresql+asyncpg://{self.user}:{password}"
                f"@{self.host}:{self.port}/{self.name}"
            )

        raise ValueError(f"Unsupported database type: {self.type}")

    @field_validator("sqlite_path")
    @classmethod
    def validate_sqlite_path(cls, v: Path) -> Path:
        """Validate and normalize SQLite path."""
        if not v.suffix:
            v = v.with_suffix(".db")
        return v


class MonitoringSettings(BaseSettingsConfig):
    """
    Monitoring Engine Configuration Settings

    Controls the cycle frequency, probe timeouts and fan-out width.
    """

    model_config = SettingsConfigDict(
        env_prefix="MONITOR_",
        env_file=".env",
        extra="ignore"
    )

    frequency_min: int = Field(
        default=Defaults.FREQUENCY_MIN,
        ge=1,
        le=1440,
        description="Minutes between two monitoring cycles"
    )

    # Probe timeouts
    tcp_timeout_ms: int = Field(
        default=Defaults.TCP_TIMEOUT_MS,
        ge=100,
        le=60000,
        description="TCP connect timeout in milliseconds"
    )
    icmp_timeout_ms: int = Field(
        default=Defaults.ICMP_TIMEOUT_MS,
        ge=100,
        le=60000,
        description="ICMP echo reply wait in milliseconds"
    )
    dns_timeout: float = Field(
        default=5.0,
        gt=0,
        le=60.0,
        description="DNS resolution lifetime in seconds"
    )

    # Concurrency settings
    max_concurrent_probes: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Maximum concurrent resolve+probe sequences"
    )

    heartbeat_interval: int = Field(
        default=600,
        ge=60,
        le=86400,
        description="Seconds between heartbeat log entries"
    )

    @property
    def cycle_interval_seconds(self) -> int:
        """Scheduling interval of the monitoring cycle in seconds."""
        return self.frequency_min * 60


class SmtpSettings(BaseSettingsConfig):
    """
    SMTP Configuration Settings

    When no address is configured notifications are only logged.
    """

    model_config = SettingsConfigDict(
        env_prefix="SMTP_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True
    )

    address: Optional[str] = Field(
        default=None,
        description="SMTP server host"
    )
    port: int = Field(
        default=Defaults.SMTP_PORT,
        ge=1,
        le=65535,
        description="SMTP server port"
    )
    user: Optional[str] = Field(
        default=None,
        description="SMTP username"
    )
    password: SecretStr = Field(
        default=SecretStr(""),
        validation_alias=AliasChoices("SMTP_PASS", "SMTP_PASSWORD"),
        description="SMTP password"
    )
    use_tls: bool = Field(
        default=True,
        description="Connect with implicit TLS (SMTPS)"
    )
    sender: Optional[str] = Field(
        default=None,
        description="From address (defaults to the SMTP user)"
    )
    timeout: float = Field(
        default=10.0,
        gt=0,
        le=120.0,
        description="SMTP socket timeout in seconds"
    )

    @property
    def enabled(self) -> bool:
        """Whether an SMTP server is configured."""
        return bool(self.address)

    @property
    def from_address(self) -> str:
        """Envelope sender used for outgoing mail."""
        return self.sender or self.user or "ping-monitor@localhost"


class LoggingSettings(BaseSettingsConfig):
    """
    Logging Configuration Settings

    Console and rotating file sinks, optional JSON output.
    """

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        extra="ignore"
    )

    level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Minimum logging level"
    )

    # Console logging
    console_enabled: bool = Field(
        default=True,
        description="Enable console logging"
    )
    console_colored: bool = Field(
        default=True,
        description="Enable colored console output"
    )

    # File logging
    file_enabled: bool = Field(
        default=True,
        description="Enable file logging"
    )
    file_path: Path = Field(
        default=Path("logs/ping_monitor.log"),
        description="Log file path"
    )
    file_rotation: str = Field(
        default="10 MB",
        description="Log rotation size (e.g., '10 MB', '1 day')"
    )
    file_retention: str = Field(
        default="30 days",
        description="Log retention period"
    )
    file_compression: str = Field(
        default="zip",
        description="Compression format for rotated logs"
    )

    # Error logging (separate file for errors)
    error_file_enabled: bool = Field(
        default=True,
        description="Enable separate error log file"
    )
    error_file_path: Path = Field(
        default=Path("logs/errors.log"),
        description="Error log file path"
    )

    json_enabled: bool = Field(
        default=False,
        description="Serialize file log records as JSON"
    )


class Settings(BaseSettingsConfig):
    """
    Main Settings Class

    Aggregates all settings sections and provides the main
    configuration interface for the application.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    app_name: str = Field(
        default="Ping Monitor",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )

    # Nested settings
    database: DatabaseSettings = Field(
        default_factory=DatabaseSettings
    )
    monitoring: MonitoringSettings = Field(
        default_factory=MonitoringSettings
    )
    smtp: SmtpSettings = Field(
        default_factory=SmtpSettings
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    @model_validator(mode="after")
    def configure_for_environment(self) -> "Settings":
        """Apply environment-specific configuration."""
        if self.is_production:
            self.debug = False
            self.database.echo = False

        elif self.debug and self.logging.level == LogLevel.INFO:
            self.logging.level = LogLevel.DEBUG

        return self

    def to_dict(self, *, exclude_secrets: bool = True) -> Dict[str, Any]:
        """Convert settings to dictionary."""
        data = self.model_dump()

        if exclude_secrets:
            def remove_secrets(obj: Any) -> Any:
                if isinstance(obj, dict):
                    return {
                        k: remove_secrets(v)
                        for k, v in obj.items()
                        if "password" not in k.lower()
                        and "secret" not in k.lower()
                    }
                elif isinstance(obj, list):
                    return [remove_secrets(item) for item in obj]
                return obj

            data = remove_secrets(data)

        return data


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    This function is cached to ensure a single settings instance
    is used throughout the application lifecycle.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
