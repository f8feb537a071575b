"""
Monitoring Exception Classes for Ping Monitor

Errors raised while resolving, probing and notifying during a
monitoring cycle.
"""

from __future__ import annotations

from typing import Any, Optional

from exceptions.base import PingMonitorException


class MonitoringException(PingMonitorException):
    """
    Base Monitoring Exception

    Parent class for all errors raised by the monitoring cycle.
    """

    default_error_code = 4000
    default_recoverable = True


class ResolutionError(MonitoringException):
    """
    Resolution Error

    Raised when the DNS lookup for a device identifier fails.
    """

    default_error_code = 4001

    def __init__(
        self,
        identifier: str,
        message: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        """
        Initialize resolution error.

        Args:
            identifier: The hostname that could not be resolved
            message: Error message
            **kwargs: Additional arguments (``cause`` carries the resolver error)
        """
        cause = kwargs.get("cause")
        super().__init__(
            message or f"Could not resolve {identifier}: {cause or 'unknown error'}",
            **kwargs
        )

        self.identifier = identifier
        self.details["identifier"] = identifier


class ProbeError(MonitoringException):
    """
    Probe Error

    Raised when the probing mechanism itself fails. A confirmed
    unreachable target is not an error.
    """

    default_error_code = 4002

    def __init__(
        self,
        message: str,
        address: Optional[str] = None,
        protocol: Optional[str] = None,
        port: Optional[int] = None,
        **kwargs: Any
    ) -> None:
        """
        Initialize probe error.

        Args:
            message: Error message
            address: The probed address
            protocol: ICMP or TCP
            port: The TCP port, if any
            **kwargs: Additional arguments
        """
        super().__init__(message, **kwargs)

        if address:
            self.details["address"] = address

        if protocol:
            self.details["protocol"] = protocol

        if port is not None:
            self.details["port"] = port


class DispatchError(MonitoringException):
    """
    Dispatch Error

    Raised when the notifier batch call fails at the transport level.
    """

    default_error_code = 4003

    def __init__(
        self,
        message: str = "Notification dispatch failed",
        device_count: Optional[int] = None,
        **kwargs: Any
    ) -> None:
        """
        Initialize dispatch error.

        Args:
            message: Error message
            device_count: Size of the batch that could not be sent
            **kwargs: Additional arguments
        """
        super().__init__(message, **kwargs)

        if device_count is not None:
            self.details["device_count"] = device_count
