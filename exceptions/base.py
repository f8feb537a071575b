"""
Base Exception Classes for Ping Monitor

Every error raised by the monitor carries a numeric code, a details
mapping that ends up in the structured log record, and a flag telling
the cycle whether it can carry on after it.
"""

from __future__ import annotations

from typing import Any, Dict, Optional
from datetime import datetime, timezone


class PingMonitorException(Exception):
    """
    Root of the Ping Monitor exception hierarchy.

    Attributes:
        message: Human-readable error message
        error_code: Numeric code, grouped by thousands per area
            (1xxx core, 2xxx persistence, 3xxx validation, 4xxx monitoring)
        details: Extra context merged into the log record
        cause: The lower-level exception this one wraps
        recoverable: False when the current cycle stage must be abandoned
        timestamp: UTC time the error was raised
    """

    default_error_code: int = 1000
    default_recoverable: bool = True

    def __init__(
        self,
        message: str = "An error occurred",
        error_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
        recoverable: Optional[bool] = None,
    ) -> None:
        super().__init__(message)

        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = dict(details or {})
        self.cause = cause
        self.recoverable = self.default_recoverable if recoverable is None else recoverable
        self.timestamp = datetime.now(timezone.utc)

    @property
    def full_message(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Structured form bound to log records as ``error``."""
        return {
            "type": type(self).__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
            "timestamp": self.timestamp.isoformat(),
            "cause": repr(self.cause) if self.cause else None,
        }

    def log_format(self) -> str:
        """
        Single-line rendering used in log messages, e.g.
        ``ProbeError [4002] TCP connection refused | port=22 | cause: ...``
        """
        line = f"{type(self).__name__} {self.full_message}"

        if self.details:
            line += " | " + ", ".join(f"{k}={v}" for k, v in self.details.items())

        if self.cause:
            line += f" | cause: {type(self.cause).__name__}: {self.cause}"

        return line

    def __str__(self) -> str:
        return self.full_message

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code}, "
            f"details={self.details!r})"
        )


class ConfigurationError(PingMonitorException):
    """
    Raised when settings are unusable or a device row is inconsistent,
    such as a TCP device stored without a port.
    """

    default_error_code = 1100
    default_recoverable = False

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        device_id: Optional[int] = None,
        **kwargs: Any
    ) -> None:
        super().__init__(message, **kwargs)

        if config_key:
            self.details["config_key"] = config_key

        if device_id is not None:
            self.details["device_id"] = device_id
