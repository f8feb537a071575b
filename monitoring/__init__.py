"""
============================================================================
PING MONITOR - MONITORING PACKAGE
============================================================================
Runtime monitoring infrastructure:
    • MonitoringEngine    — one monitoring cycle: select, probe, classify,
                            notify, reconcile
    • AddressResolver     — identifier → IP address (dnspython)
    • ReachabilityProber  — ICMP (ping3) and TCP connect checks
    • classify            — trigger rules for one-shot and persistent devices
    • EmailNotifier       — SMTP delivery (LogNotifier when unconfigured)
    • DeviceService       — validated device management
    • Scheduler           — periodic background job runner

File layout
-----------
monitoring/
├── __init__.py          ← this file
├── monitor.py           ← MonitoringEngine, DeviceState, CycleReport
├── probes.py            ← AddressResolver + ICMP/TCP checkers
├── triggers.py          ← classify()
├── alerts.py            ← EmailNotifier, LogNotifier
├── devices.py           ← DeviceService + pydantic schemas
└── scheduler.py         ← Scheduler + built-in periodic jobs
============================================================================
"""

from monitoring.monitor import MonitoringEngine, DeviceState, CycleReport, Reachability
from monitoring.probes import AddressResolver, ReachabilityProber, ICMPChecker, TCPChecker
from monitoring.triggers import TriggerDecision, classify, criteria_met
from monitoring.alerts import EmailNotifier, LogNotifier, build_notifier
from monitoring.devices import DeviceService, MonitorDeviceCreate, MonitorDeviceUpdate
from monitoring.scheduler import Scheduler, ScheduledJob

__all__ = [
    # Monitoring Engine
    "MonitoringEngine",
    "DeviceState",
    "CycleReport",
    "Reachability",

    # Resolution & Probes
    "AddressResolver",
    "ReachabilityProber",
    "ICMPChecker",
    "TCPChecker",

    # Triggers
    "TriggerDecision",
    "classify",
    "criteria_met",

    # Notifiers
    "EmailNotifier",
    "LogNotifier",
    "build_notifier",

    # Device management
    "DeviceService",
    "MonitorDeviceCreate",
    "MonitorDeviceUpdate",

    # Scheduler
    "Scheduler",
    "ScheduledJob",
]
