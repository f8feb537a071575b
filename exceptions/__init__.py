"""
Exceptions Package for Ping Monitor

Provides the exception hierarchy for error handling
throughout the application.
"""

from exceptions.base import (
    PingMonitorException,
    ConfigurationError,
)

from exceptions.database import (
    PersistenceError,
    DatabaseConnectionError,
    DatabaseQueryError,
)

from exceptions.validation import (
    ValidationException,
    InvalidDeviceError,
    InvalidWindowError,
)

from exceptions.monitoring import (
    MonitoringException,
    ResolutionError,
    ProbeError,
    DispatchError,
)

__all__ = [
    # Base exceptions
    "PingMonitorException",
    "ConfigurationError",

    # Database exceptions
    "PersistenceError",
    "DatabaseConnectionError",
    "DatabaseQueryError",

    # Validation exceptions
    "ValidationException",
    "InvalidDeviceError",
    "InvalidWindowError",

    # Monitoring exceptions
    "MonitoringException",
    "ResolutionError",
    "ProbeError",
    "DispatchError",
]
