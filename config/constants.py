"""
Constants Module for Ping Monitor

Contains constant values and static configuration used throughout
the application.
"""

from __future__ import annotations

from typing import Final


class MonitorWindow:
    """
    Daily Monitoring Window Bounds

    Windows are expressed as ``HHMM`` integers in UTC, e.g. 1330 is 13:30.
    """

    START_OF_DAY: Final[int] = 0
    END_OF_DAY: Final[int] = 2400


class Defaults:
    """
    Default Values

    Provides default values for probes and scheduling.
    """

    # Scheduling defaults
    FREQUENCY_MIN: Final[int] = 1

    # Probe defaults
    TCP_TIMEOUT_MS: Final[int] = 2000
    ICMP_TIMEOUT_MS: Final[int] = 2000

    # Notification defaults
    SMTP_PORT: Final[int] = 465


class CycleStage:
    """Names of the cycle stages that can abort a run."""

    SELECTION: Final[str] = "selection"
    DISPATCH: Final[str] = "dispatch"
    RECONCILIATION: Final[str] = "reconciliation"
