"""
============================================================================
PING MONITOR - VALIDATORS UTILITY
============================================================================
Validation helpers for device identifiers, ports and monitoring windows.
============================================================================
"""

import ipaddress
from typing import Any

import validators as external_validators

from config.constants import MonitorWindow


# ============================================================================
# TARGET VALIDATORS
# ============================================================================

class TargetValidator:
    """
    Validation of the ``identifier`` a device is probed at.
    """

    LOCAL_HOSTNAMES = frozenset({"localhost"})

    @staticmethod
    def is_valid_ip(ip: str) -> bool:
        """
        Check if ``ip`` is a literal IPv4 or IPv6 address.

        Args:
            ip: IP address to validate

        Returns:
            True if valid, False otherwise
        """
        try:
            ipaddress.ip_address(ip)
            return True
        except ValueError:
            return False

    @staticmethod
    def is_valid_domain(domain: str) -> bool:
        """
        Check if domain is valid.

        Args:
            domain: Domain to validate

        Returns:
            True if valid, False otherwise
        """
        if domain.lower() in TargetValidator.LOCAL_HOSTNAMES:
            return True
        return external_validators.domain(domain) is True

    @classmethod
    def is_valid_identifier(cls, identifier: str) -> bool:
        """A device identifier is either a literal IP or a hostname."""
        identifier = (identifier or "").strip()
        if not identifier:
            return False
        return cls.is_valid_ip(identifier) or cls.is_valid_domain(identifier)


# ============================================================================
# DATA VALIDATORS
# ============================================================================

class DataValidator:
    """
    Scalar value validators.
    """

    @staticmethod
    def is_valid_window_time(value: Any) -> bool:
        """``HHMM`` integer between 0000 and 2400."""
        return (
            isinstance(value, int)
            and not isinstance(value, bool)
            and MonitorWindow.START_OF_DAY <= value <= MonitorWindow.END_OF_DAY
        )
