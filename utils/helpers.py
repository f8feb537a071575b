"""
============================================================================
PING MONITOR - HELPER UTILITIES
============================================================================
UTC clock and HHMM conversions used for the monitoring window.
============================================================================
"""

from datetime import datetime, timezone
from typing import Optional


# ============================================================================
# TIME HELPERS
# ============================================================================

class TimeHelper:
    """
    Time and date manipulation utilities.
    """

    @staticmethod
    def get_utc_now() -> datetime:
        """Get current timezone-aware UTC datetime."""
        return datetime.now(timezone.utc)

    @staticmethod
    def to_hhmm(dt: Optional[datetime] = None) -> int:
        """
        Encode the UTC wall-clock time of ``dt`` as an ``HHMM`` integer.

        Naive datetimes are taken to be UTC already.

        Args:
            dt: Datetime to encode (defaults to now)

        Returns:
            Integer such as 1330 for 13:30 UTC
        """
        dt = dt or TimeHelper.get_utc_now()
        if dt.tzinfo is not None:
            dt = dt.astimezone(timezone.utc)
        return dt.hour * 100 + dt.minute

    @staticmethod
    def format_hhmm(value: int) -> str:
        """Render an ``HHMM`` integer as ``HH:MM``."""
        return f"{value // 100:02d}:{value % 100:02d}"
