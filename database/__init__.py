"""
Database Package for Ping Monitor

Provides database connectivity, the device model, and the device
repository using SQLAlchemy with async support.
"""

from database.models import (
    Base,
    MonitorDevice,
    MonitorTrigger,
    Protocol,
)

from database.manager import (
    DatabaseManager,
    DeviceRepository,
)

__all__ = [
    # Models
    "Base",
    "MonitorDevice",
    "MonitorTrigger",
    "Protocol",

    # Manager / repository
    "DatabaseManager",
    "DeviceRepository",
]
