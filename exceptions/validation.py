"""
Validation Exception Classes for Ping Monitor

Provides specialized exceptions for rejected device-management input.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from exceptions.base import PingMonitorException


class ValidationException(PingMonitorException):
    """
    Base Validation Exception

    Parent class for all validation-related exceptions.
    """

    default_error_code = 3000
    default_recoverable = True

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs: Any
    ) -> None:
        """
        Initialize validation exception.

        Args:
            message: Error message
            field: The field that failed validation
            value: The invalid value (sanitized)
            **kwargs: Additional arguments
        """
        super().__init__(message, **kwargs)

        if field:
            self.details["field"] = field

        if value is not None:
            self.details["value"] = self._sanitize_value(value)

    @staticmethod
    def _sanitize_value(value: Any) -> str:
        """
        Sanitize value for logging.

        Args:
            value: The value to sanitize

        Returns:
            Sanitized string representation
        """
        str_value = str(value)

        if len(str_value) > 100:
            str_value = str_value[:100] + "..."

        return str_value


class InvalidDeviceError(ValidationException):
    """
    Invalid Device Error

    Raised when a device create or update payload fails schema
    validation. Carries the rejected object and the list of issues.
    """

    default_error_code = 3001

    def __init__(
        self,
        obj: Any,
        issues: Optional[List[Dict[str, Any]]] = None,
        message: str = "Invalid monitor device",
        **kwargs: Any
    ) -> None:
        super().__init__(message, value=obj, **kwargs)

        self.obj = obj
        self.issues = issues or []
        self.details["issues"] = self.issues


class InvalidWindowError(ValidationException):
    """
    Invalid Window Error

    Raised when a monitoring time falls outside ``[0, 2400]``.
    """

    default_error_code = 3002

    def __init__(self, value: int, **kwargs: Any) -> None:
        super().__init__(
            "Notification time range must be between 0000 and 2400",
            field="time_utc",
            value=value,
            **kwargs
        )
