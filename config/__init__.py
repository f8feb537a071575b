"""
Configuration Package for Ping Monitor

This package contains all configuration-related modules including:
- Settings management with environment variable support
- Constants used throughout the application
"""

from config.settings import (
    Settings,
    DatabaseSettings,
    MonitoringSettings,
    SmtpSettings,
    LoggingSettings,
    get_settings,
)

from config.constants import (
    MonitorWindow,
    Defaults,
    CycleStage,
)

__all__ = [
    # Settings
    "Settings",
    "DatabaseSettings",
    "MonitoringSettings",
    "SmtpSettings",
    "LoggingSettings",
    "get_settings",

    # Constants
    "MonitorWindow",
    "Defaults",
    "CycleStage",
]
