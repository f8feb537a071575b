"""
============================================================================
PING MONITOR - DATABASE MODELS
============================================================================
SQLAlchemy ORM model for monitored devices.
============================================================================
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text,
    Enum, Index, CheckConstraint, func
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.ext.hybrid import hybrid_method, hybrid_property

from config.constants import MonitorWindow


# ============================================================================
# BASE MODEL CONFIGURATION
# ============================================================================

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    """
    Mixin to add created_at and updated_at timestamps to models.
    Automatically manages these fields.
    """
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=func.now(),
    )


# ============================================================================
# ENUMS
# ============================================================================

class Protocol(str, enum.Enum):
    """Probe protocol. UDP is deliberately absent."""
    ICMP = "ICMP"
    TCP = "TCP"


class MonitorTrigger(str, enum.Enum):
    """Reachability transition that fires a notification"""
    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"


# ============================================================================
# MONITOR DEVICE MODEL
# ============================================================================

class MonitorDevice(Base, TimestampMixin):
    """
    A network endpoint checked once per cycle while the current UTC time
    lies inside its daily window.

    One-shot devices (``persist=False``) are removed after their first
    notification; persistent devices track ``been_notified`` so they only
    notify when the trigger condition starts and when it clears.
    """
    __tablename__ = "monitor_devices"

    # Primary Key
    id = Column(Integer, primary_key=True, autoincrement=True)

    # Target
    name = Column(String(255), nullable=False)
    identifier = Column(String(255), nullable=False)
    port = Column(Integer, nullable=True)
    protocol = Column(
        Enum(Protocol, name="protocol"),
        nullable=False,
        default=Protocol.ICMP
    )

    # Trigger Configuration
    persist = Column(Boolean, nullable=False, default=False)
    monitor_trigger = Column(
        Enum(MonitorTrigger, name="monitor_trigger"),
        nullable=False,
        default=MonitorTrigger.OFFLINE
    )
    monitor_start_utc = Column(Integer, nullable=False)
    monitor_end_utc = Column(Integer, nullable=False)

    # Persistent alarm state
    been_notified = Column(Boolean, nullable=False, default=False)

    # Notification content
    requested_by = Column(String(255), nullable=False)
    notify = Column(String(320), nullable=False)
    email_subject = Column(String(998), nullable=False)
    email_body = Column(Text, nullable=False)
    comments = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            f"monitor_start_utc >= {MonitorWindow.START_OF_DAY} "
            f"AND monitor_start_utc <= {MonitorWindow.END_OF_DAY}",
            name="ck_monitor_start_utc_range",
        ),
        CheckConstraint(
            f"monitor_end_utc >= {MonitorWindow.START_OF_DAY} "
            f"AND monitor_end_utc <= {MonitorWindow.END_OF_DAY}",
            name="ck_monitor_end_utc_range",
        ),
        Index('idx_device_window', 'monitor_start_utc', 'monitor_end_utc'),
    )

    @hybrid_property
    def display_name(self) -> str:
        """Name plus target, used in log lines"""
        return f"{self.name} ({self.identifier})"

    @hybrid_method
    def is_active_at(self, time_utc: int) -> bool:
        """Whether ``time_utc`` (HHMM) lies inside the window, both ends inclusive"""
        return (self.monitor_start_utc <= time_utc) & (self.monitor_end_utc >= time_utc)

    def __repr__(self) -> str:
        return (
            f"<MonitorDevice(id={self.id}, identifier={self.identifier!r}, "
            f"protocol={self.protocol}, persist={self.persist})>"
        )
