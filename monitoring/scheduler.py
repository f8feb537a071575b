"""
============================================================================
PING MONITOR - BACKGROUND TASK SCHEDULER
============================================================================
A lightweight, asyncio-native scheduler that drives the monitoring cycle.
All jobs run as coroutines in the same event loop, so the deployment stays
a single process.

Registered Jobs
---------------
1.  monitor_cycle   (every MONITOR_FREQUENCY_MIN minutes)
    Runs MonitoringEngine.run_cycle().

2.  heartbeat       (every MONITOR_HEARTBEAT_INTERVAL seconds)
    Writes a heartbeat entry with the database status and the outcome of
    the last cycle, so operators can verify the service is alive even
    during quiet periods.

Overlapping runs
----------------
A job never runs twice at the same time. If its next tick arrives while
the previous run is still in progress, the tick is skipped and logged.
============================================================================
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set

from config.settings import MonitoringSettings, get_settings
from database.manager import DatabaseManager
from monitoring.monitor import MonitoringEngine
from utils.logger import get_logger


logger = get_logger("Scheduler")


# ============================================================================
# JOB DEFINITION
# ============================================================================

@dataclass
class ScheduledJob:
    """
    One periodic job and its execution counters.

    Attributes
    ----------
    name : str
        Job key, also used in log lines.
    interval_seconds : int
        How often the job runs.
    coroutine_factory : Callable
        Zero-argument coroutine function run on every tick.
    enabled : bool
        Disabled jobs stay registered but are never launched.
    running : bool
        True while an execution is in flight.
    last_run : Optional[float]
        Epoch timestamp of the last successful execution.
    next_run : float
        Epoch timestamp when the job should next execute.
    run_count, error_count, skipped_count : int
        Execution counters since startup.
    """
    name: str
    interval_seconds: int
    coroutine_factory: Callable
    enabled: bool = True
    running: bool = False
    last_run: Optional[float] = None
    next_run: float = field(default_factory=time.time)
    run_count: int = 0
    error_count: int = 0
    skipped_count: int = 0


# ============================================================================
# SCHEDULER
# ============================================================================

class Scheduler:
    """
    Asyncio-based periodic job scheduler.

    Usage
    -----
        scheduler = Scheduler(db_manager, engine)
        await scheduler.start()
        # ... later ...
        await scheduler.stop()
    """

    def __init__(
        self,
        db_manager: Optional[DatabaseManager],
        engine: Optional[MonitoringEngine],
        settings: Optional[MonitoringSettings] = None,
        tick_interval: float = 1.0,
        shutdown_timeout: float = 30.0,
    ):
        self.settings = settings or get_settings().monitoring
        self.db_manager = db_manager
        self.engine = engine

        self._jobs: Dict[str, ScheduledJob] = {}
        self._job_tasks: Set[asyncio.Task] = set()
        self._running = False
        self._loop_task: Optional[asyncio.Task] = None
        self._tick_interval = tick_interval  # how often the main loop wakes up to check jobs
        self._shutdown_timeout = shutdown_timeout

        if engine is not None:
            self._register_builtin_jobs()

        logger.info(f"Scheduler created with {len(self._jobs)} built-in jobs")

    # ------------------------------------------------------------------
    # JOB REGISTRATION
    # ------------------------------------------------------------------

    def register_job(
        self,
        name: str,
        interval_seconds: int,
        coroutine_factory: Callable,
        enabled: bool = True,
    ) -> None:
        """
        Register a new periodic job. It first runs on the next tick.
        """
        if name in self._jobs:
            logger.warning(f"[Scheduler] Job '{name}' already registered, overwriting")

        self._jobs[name] = ScheduledJob(
            name=name,
            interval_seconds=interval_seconds,
            coroutine_factory=coroutine_factory,
            enabled=enabled,
            next_run=time.time(),
        )
        logger.debug(f"[Scheduler] Registered job '{name}' (interval={interval_seconds}s)")

    def get_job(self, name: str) -> Optional[ScheduledJob]:
        return self._jobs.get(name)

    # ------------------------------------------------------------------
    # LIFECYCLE
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the scheduler loop."""
        if self._running:
            logger.warning("Scheduler is already running")
            return
        self._running = True
        self._loop_task = asyncio.create_task(self._main_loop())
        logger.info("✓ Scheduler started")

    async def stop(self) -> None:
        """
        Stop the scheduler loop and let in-flight jobs finish, cancelling
        whatever is still running after the shutdown timeout.
        """
        self._running = False
        if self._loop_task:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

        if self._job_tasks:
            logger.info(f"[Scheduler] Waiting for {len(self._job_tasks)} running jobs")
            _, pending = await asyncio.wait(self._job_tasks, timeout=self._shutdown_timeout)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
                logger.warning(f"[Scheduler] Cancelled {len(pending)} jobs still running at shutdown")

        logger.info("✓ Scheduler stopped")

    # ------------------------------------------------------------------
    # MAIN LOOP
    # ------------------------------------------------------------------

    async def _main_loop(self) -> None:
        """
        Wake up every _tick_interval seconds and launch the jobs that are due.
        """
        logger.info("[Scheduler] Main loop started")
        while self._running:
            self._run_pending(time.time())

            try:
                await asyncio.sleep(self._tick_interval)
            except asyncio.CancelledError:
                break

        logger.info("[Scheduler] Main loop exited")

    def _run_pending(self, now: float) -> List[asyncio.Task]:
        """
        Launch every enabled job whose next_run has arrived, skipping the
        ones whose previous run is still in flight. Returns the new tasks.
        """
        launched = []

        for job in self._jobs.values():
            if not job.enabled or now < job.next_run:
                continue

            # a skipped tick still counts as this interval
            job.next_run = now + job.interval_seconds

            if job.running:
                job.skipped_count += 1
                logger.warning(
                    f"[Scheduler] Job '{job.name}' still running, skipping this tick "
                    f"({job.skipped_count} skipped so far)"
                )
                continue

            job.running = True
            task = asyncio.create_task(self._execute_job(job))
            self._job_tasks.add(task)
            task.add_done_callback(self._job_tasks.discard)
            launched.append(task)

        return launched

    # ------------------------------------------------------------------
    # JOB EXECUTION
    # ------------------------------------------------------------------

    async def _execute_job(self, job: ScheduledJob) -> None:
        """
        Run a single job, capture timing and errors.
        """
        start_time = time.time()
        try:
            logger.debug(f"[Scheduler] Running job '{job.name}'…")
            await job.coroutine_factory()
            elapsed = time.time() - start_time

            job.run_count += 1
            job.last_run = time.time()
            logger.debug(
                f"[Scheduler] Job '{job.name}' completed in {elapsed:.2f}s "
                f"(run #{job.run_count})"
            )

        except Exception as e:
            job.error_count += 1
            elapsed = time.time() - start_time
            logger.opt(exception=e).error(
                f"[Scheduler] Job '{job.name}' FAILED after {elapsed:.2f}s: {e}"
            )

        finally:
            job.running = False

    # ------------------------------------------------------------------
    # DIAGNOSTICS
    # ------------------------------------------------------------------

    def get_job_stats(self) -> List[Dict[str, Any]]:
        """Return status of all registered jobs."""
        stats = []
        for job in self._jobs.values():
            stats.append({
                "name": job.name,
                "interval_seconds": job.interval_seconds,
                "enabled": job.enabled,
                "running": job.running,
                "run_count": job.run_count,
                "error_count": job.error_count,
                "skipped_count": job.skipped_count,
                "last_run": (
                    datetime.fromtimestamp(job.last_run, tz=timezone.utc).isoformat()
                    if job.last_run else None
                ),
                "next_run": datetime.fromtimestamp(job.next_run, tz=timezone.utc).isoformat(),
            })
        return stats

    # ==================================================================
    # BUILT-IN JOBS
    # ==================================================================

    def _register_builtin_jobs(self) -> None:
        """Register all built-in periodic jobs."""

        # 1. Monitoring cycle
        self.register_job(
            "monitor_cycle",
            interval_seconds=self.settings.cycle_interval_seconds,
            coroutine_factory=self.engine.run_cycle,
        )

        # 2. Heartbeat
        self.register_job(
            "heartbeat",
            interval_seconds=self.settings.heartbeat_interval,
            coroutine_factory=self._job_heartbeat,
        )

    async def _job_heartbeat(self) -> None:
        """
        Log database status, the last cycle and the per-job counters.
        """
        db_status = "n/a"
        if self.db_manager is not None:
            db_status = "OK" if await self.db_manager.check_connection() else "FAIL"

        report = self.engine.last_report
        last_cycle = "none yet"
        if report is not None:
            last_cycle = (
                f"{report.started_at:%H:%M:%S} UTC, notified={report.notified}, "
                f"failed_stage={report.failed_stage}"
            )

        jobs = ", ".join(
            f"{s['name']}(runs={s['run_count']}, errors={s['error_count']}, "
            f"skipped={s['skipped_count']})"
            for s in self.get_job_stats()
        )

        logger.info(
            f"[Heartbeat] ✓ Service alive — db={db_status}, last cycle: {last_cycle}; jobs: {jobs}"
        )
