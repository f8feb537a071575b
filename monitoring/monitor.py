"""
============================================================================
PING MONITOR - MONITORING ENGINE
============================================================================
The heart of the service. One call to ``MonitoringEngine.run_cycle()``
performs a full monitoring pass:

MonitoringEngine.run_cycle()
├── selection        ← devices whose UTC window contains "now"
├── _probe_device()  ← per device, concurrently (bounded by a semaphore)
│   ├── AddressResolver.resolve()
│   └── ReachabilityProber.probe()
├── classification   ← triggers.classify() on every known result
├── dispatch         ← one notifier.notify() call for the whole batch
└── reconciliation   ← delete notified one-shot devices,
                       flip been_notified on persistent ones

A device whose resolution or probe fails is logged, left UNKNOWN and
excluded from every batch; the rest of the cycle carries on. The engine
keeps no state between cycles other than ``last_report``; the
Scheduler decides when the next cycle runs.
============================================================================
"""

import asyncio
import enum
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, List, Optional

from config.constants import CycleStage
from config.settings import MonitoringSettings, get_settings
from database.models import MonitorDevice
from exceptions import (
    ConfigurationError,
    DispatchError,
    PersistenceError,
    ProbeError,
    ResolutionError,
)
from monitoring.probes import AddressResolver, ReachabilityProber
from monitoring.triggers import classify
from utils.helpers import TimeHelper
from utils.logger import get_logger


logger = get_logger("MonitoringEngine")


# ============================================================================
# PER-CYCLE STATE
# ============================================================================

class Reachability(str, enum.Enum):
    """Probe outcome of a device within one cycle"""
    UNKNOWN = "UNKNOWN"
    REACHABLE = "REACHABLE"
    UNREACHABLE = "UNREACHABLE"

    @classmethod
    def from_bool(cls, reachable: bool) -> "Reachability":
        return cls.REACHABLE if reachable else cls.UNREACHABLE


@dataclass
class DeviceState:
    """
    Transient working record for one device during one cycle.

    ``current_address`` starts as the device identifier and is replaced by
    the resolved address. ``reachable`` stays UNKNOWN when resolution or
    probing failed, in which case ``error`` holds the reason.
    """
    device: MonitorDevice
    current_address: str
    reachable: Reachability = Reachability.UNKNOWN
    persistent_alarm_ended: bool = False
    error: Optional[BaseException] = None

    @classmethod
    def for_device(cls, device: MonitorDevice) -> "DeviceState":
        return cls(device=device, current_address=device.identifier)

    @property
    def is_known(self) -> bool:
        return self.reachable is not Reachability.UNKNOWN


@dataclass
class CycleReport:
    """Summary of one ``run_cycle()`` call."""
    time_utc: int
    started_at: datetime = field(default_factory=TimeHelper.get_utc_now)
    selected: int = 0
    errored: int = 0
    notified: int = 0
    deleted: int = 0
    updated: int = 0
    failed_stage: Optional[str] = None
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.failed_stage is None


# ============================================================================
# MONITORING ENGINE — THE ORCHESTRATOR
# ============================================================================

class MonitoringEngine:
    """
    Runs monitoring cycles against a device store and a notifier.

    Collaborators
    -------------
    store : DeviceRepository-like
        ``get_active_devices(time_utc)``, ``delete_devices(ids)`` and
        ``update_devices(partials)``.
    notifier : EmailNotifier-like
        ``notify(devices) -> int``.

    The resolver, prober and clock default to the real implementations and
    can be swapped for fakes.
    """

    def __init__(
        self,
        store: Any,
        notifier: Any,
        settings: Optional[MonitoringSettings] = None,
        resolver: Optional[AddressResolver] = None,
        prober: Optional[ReachabilityProber] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings or get_settings().monitoring
        self.store = store
        self.notifier = notifier
        self.resolver = resolver or AddressResolver(self.settings)
        self.prober = prober or ReachabilityProber(self.settings)
        self.clock = clock or TimeHelper.get_utc_now

        self.last_report: Optional[CycleReport] = None

        logger.info(
            f"MonitoringEngine created — "
            f"max_concurrent={self.settings.max_concurrent_probes}, "
            f"tcp_timeout={self.settings.tcp_timeout_ms}ms, "
            f"icmp_timeout={self.settings.icmp_timeout_ms}ms"
        )

    # ------------------------------------------------------------------
    # PUBLIC API
    # ------------------------------------------------------------------

    async def run_cycle(self) -> CycleReport:
        """
        Execute one monitoring cycle.

        Persistence and dispatch failures are logged and recorded in the
        report's ``failed_stage``; they do not propagate.
        """
        start_time = time.perf_counter()
        report = CycleReport(time_utc=TimeHelper.to_hhmm(self.clock()))

        try:
            await self._run_stages(report)
        finally:
            report.duration = time.perf_counter() - start_time
            self.last_report = report
            self._log_report(report)

        return report

    # ------------------------------------------------------------------
    # STAGES
    # ------------------------------------------------------------------

    async def _run_stages(self, report: CycleReport) -> None:
        now = TimeHelper.format_hhmm(report.time_utc)

        # --- selection ---
        try:
            devices = await self.store.get_active_devices(report.time_utc)
        except PersistenceError as e:
            logger.error(f"[Engine] Could not load devices active at {now} UTC: {e.log_format()}")
            report.failed_stage = CycleStage.SELECTION
            return

        report.selected = len(devices)
        if not devices:
            logger.info(f"[Engine] No devices to monitor at {now} UTC")
            return

        logger.info(f"[Engine] Monitoring {len(devices)} devices at {now} UTC")

        # --- probing ---
        states = await self._probe_all(devices)
        report.errored = sum(1 for s in states if not s.is_known)

        # --- classification ---
        to_notify = self._classify(states)
        if not to_notify:
            logger.info("[Engine] No trigger conditions met this cycle")
            return

        # --- dispatch ---
        try:
            delivered = await self.notifier.notify([s.device for s in to_notify])
        except DispatchError as e:
            logger.error(
                f"[Engine] Notification dispatch failed for {len(to_notify)} devices, "
                f"skipping state updates: {e.log_format()}"
            )
            report.failed_stage = CycleStage.DISPATCH
            return

        report.notified = len(to_notify)
        logger.info(f"[Engine] {delivered}/{len(to_notify)} notifications delivered")

        # --- reconciliation ---
        await self._reconcile(to_notify, report)

    async def _probe_all(self, devices: List[MonitorDevice]) -> List[DeviceState]:
        """
        Resolve and probe every device concurrently and wait for all of them.
        """
        semaphore = asyncio.Semaphore(self.settings.max_concurrent_probes)
        states = [DeviceState.for_device(device) for device in devices]

        results = await asyncio.gather(
            *(self._probe_device(state, semaphore) for state in states),
            return_exceptions=True
        )

        # Anything _probe_device did not handle itself
        for state, result in zip(states, results):
            if isinstance(result, BaseException):
                state.reachable = Reachability.UNKNOWN
                state.error = result
                logger.opt(exception=result).error(
                    f"[Engine] Unexpected error checking device {state.device.id} "
                    f"({state.device.display_name}): {result}"
                )

        return states

    async def _probe_device(self, state: DeviceState, semaphore: asyncio.Semaphore) -> DeviceState:
        device = state.device

        async with semaphore:
            try:
                state.current_address = await self.resolver.resolve(device.identifier)
                reachable = await self.prober.probe(
                    state.current_address,
                    device.protocol,
                    port=device.port,
                    device_id=device.id,
                )
            except (ResolutionError, ProbeError, ConfigurationError) as e:
                state.error = e
                logger.bind(error=e.to_dict()).warning(
                    f"[Engine] Device {device.id} ({device.display_name}) skipped: "
                    f"{e.log_format()}"
                )
                return state

        state.reachable = Reachability.from_bool(reachable)
        logger.debug(
            f"[Engine] Device {device.id} {device.protocol.value} "
            f"{state.current_address} → {state.reachable.value}"
        )
        return state

    def _classify(self, states: List[DeviceState]) -> List[DeviceState]:
        """Return the states whose result must be notified."""
        to_notify: List[DeviceState] = []

        for state in states:
            if not state.is_known:
                continue

            device = state.device
            decision = classify(
                reachable=state.reachable is Reachability.REACHABLE,
                trigger=device.monitor_trigger,
                persist=device.persist,
                been_notified=device.been_notified,
            )
            state.persistent_alarm_ended = decision.alarm_ended

            if decision.notify:
                to_notify.append(state)
                if decision.alarm_ended:
                    event = "alarm cleared"
                else:
                    event = f"trigger {device.monitor_trigger.value} met"
                logger.info(f"[Engine] Device {device.id} ({device.display_name}) {event}")

        return to_notify

    async def _reconcile(self, notified: List[DeviceState], report: CycleReport) -> None:
        """
        Delete notified one-shot devices and update ``been_notified`` on
        notified persistent devices. The two writes are independent.
        """
        one_shot_ids = [s.device.id for s in notified if not s.device.persist]
        partials = [
            {"id": s.device.id, "been_notified": not s.persistent_alarm_ended}
            for s in notified if s.device.persist
        ]

        if one_shot_ids:
            try:
                report.deleted = await self.store.delete_devices(one_shot_ids)
            except PersistenceError as e:
                logger.error(f"[Engine] Failed to remove one-shot devices {one_shot_ids}: {e.log_format()}")
                report.failed_stage = CycleStage.RECONCILIATION

        if partials:
            try:
                report.updated = await self.store.update_devices(partials)
            except PersistenceError as e:
                logger.error(
                    f"[Engine] Failed to update persistent devices "
                    f"{[p['id'] for p in partials]}: {e.log_format()}"
                )
                report.failed_stage = CycleStage.RECONCILIATION

    # ------------------------------------------------------------------
    # REPORTING
    # ------------------------------------------------------------------

    @staticmethod
    def _log_report(report: CycleReport) -> None:
        summary = (
            f"[Engine] Cycle {TimeHelper.format_hhmm(report.time_utc)} UTC finished in "
            f"{report.duration:.2f}s — selected={report.selected}, errored={report.errored}, "
            f"notified={report.notified}, deleted={report.deleted}, updated={report.updated}"
        )
        if report.ok:
            logger.info(summary)
        else:
            logger.warning(f"{summary}, failed_stage={report.failed_stage}")
