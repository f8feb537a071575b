"""
Database Exception Classes for Ping Monitor

Provides specialized exceptions for persistence errors including
connection issues and failed reads or batch writes.
"""

from __future__ import annotations

import re
from typing import Any, Optional

from exceptions.base import PingMonitorException


class PersistenceError(PingMonitorException):
    """
    Base Persistence Exception

    Parent class for all database-related exceptions. Raised by the
    device store when a read or a batch write fails.
    """

    default_error_code = 2000
    default_recoverable = False

    def __init__(
        self,
        message: str,
        query: Optional[str] = None,
        table: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        """
        Initialize persistence exception.

        Args:
            message: Error message
            query: The SQL query that caused the error (sanitized)
            table: The database table involved
            **kwargs: Additional arguments
        """
        super().__init__(message, **kwargs)

        if query:
            self.details["query"] = self._sanitize_query(query)

        if table:
            self.details["table"] = table

    @staticmethod
    def _sanitize_query(query: str) -> str:
        """
        Sanitize SQL query by removing literal values.

        Args:
            query: The original SQL query

        Returns:
            Sanitized query string
        """
        query = re.sub(r"'[^']*'", "'***'", query)
        query = re.sub(r"= \d+", "= ***", query)

        if len(query) > 500:
            query = query[:500] + "..."

        return query


class DatabaseConnectionError(PersistenceError):
    """
    Database Connection Error

    Raised when unable to establish or use the database connection.
    """

    default_error_code = 2001

    def __init__(
        self,
        message: str = "Unable to connect to database",
        url: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        """
        Initialize connection error.

        Args:
            message: Error message
            url: Database URL with the password masked
            **kwargs: Additional arguments
        """
        super().__init__(message, **kwargs)

        if url:
            self.details["url"] = url


class DatabaseQueryError(PersistenceError):
    """
    Database Query Error

    Raised when a database query or batch write fails to execute.
    """

    default_error_code = 2002

    def __init__(
        self,
        message: str = "Database query failed",
        operation: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        """
        Initialize query error.

        Args:
            message: Error message
            operation: The store operation (select, delete, update, ...)
            **kwargs: Additional arguments
        """
        super().__init__(message, **kwargs)

        if operation:
            self.details["operation"] = operation
