"""
============================================================================
PING MONITOR - MAIN APPLICATION
============================================================================
Wires every layer of the service together:

    Layer 1 — Core & Database
        • Settings (pydantic-settings)
        • SQLAlchemy async engine + MonitorDevice model
        • DatabaseManager + DeviceRepository
        • Logging (loguru), validators, helpers

    Layer 2 — Notifications
        • EmailNotifier over SMTP, or LogNotifier when no server is set

    Layer 3 — Monitoring
        • MonitoringEngine   — one cycle: select, probe, classify,
                               notify, reconcile
        • Scheduler          — runs the cycle every MONITOR_FREQUENCY_MIN
                               minutes plus a heartbeat

Startup Order
-------------
1.  Load settings & configure logging
2.  Initialize DatabaseManager (create tables if needed)
3.  Build the notifier
4.  Wire up MonitoringEngine (needs repository + notifier)
5.  Wire up and start the Scheduler
6.  Wait for SIGINT / SIGTERM

Shutdown Order (reverse)
-------------------------
    Stop scheduler (lets a running cycle finish) → close DB → exit
============================================================================
"""

import asyncio
import signal
import sys
from typing import Optional, Union

from config.settings import get_settings
from database.manager import DatabaseManager, DeviceRepository
from exceptions import PingMonitorException
from monitoring.alerts import EmailNotifier, LogNotifier, build_notifier
from monitoring.monitor import MonitoringEngine
from monitoring.scheduler import Scheduler
from utils.logger import get_logger, setup_logging


logger = get_logger("Main")


# ============================================================================
# APPLICATION CLASS
# ============================================================================

class PingMonitorApplication:
    """
    Top-level application orchestrator.

    Owns every subsystem and is the single place that knows the startup /
    shutdown order.
    """

    def __init__(self):
        self.settings = get_settings()

        # --- subsystems (populated during startup) ---
        self.db_manager: Optional[DatabaseManager] = None
        self.repository: Optional[DeviceRepository] = None
        self.notifier: Optional[Union[EmailNotifier, LogNotifier]] = None
        self.monitoring_engine: Optional[MonitoringEngine] = None
        self.scheduler: Optional[Scheduler] = None

        # --- lifecycle ---
        self._is_running = False
        self._stop_event = asyncio.Event()

        self._print_banner()

    # ------------------------------------------------------------------
    # BANNER
    # ------------------------------------------------------------------

    def _print_banner(self) -> None:
        banner = f"""
╔══════════════════════════════════════════════════════════════════════════╗
║                                                                          ║
║          📡  {self.settings.app_name.upper():<20} v{self.settings.app_version:<20}                ║
║                                                                          ║
║   ICMP / TCP reachability  •  Trigger alerts  •  Email notifications     ║
║                                                                          ║
║   Database : {self.settings.database.type.value:<10}   Every : {self.settings.monitoring.frequency_min:<4} min                       ║
║   Env      : {self.settings.environment.value:<50}  ║
║                                                                          ║
╚══════════════════════════════════════════════════════════════════════════╝
"""
        logger.info(banner)

    # ==================================================================
    # PHASE 1 — DATABASE
    # ==================================================================

    async def _init_database(self) -> bool:
        """Initialize the database manager and verify connectivity."""
        logger.info("── Phase 1: Database ─────────────────────────────")
        try:
            self.db_manager = DatabaseManager(self.settings.database)
            await self.db_manager.initialize()

            if not await self.db_manager.check_connection():
                logger.error("✗ Database connection check failed")
                return False

            db_info = await self.db_manager.get_database_info()
            logger.info(
                f"  ✓ Connected to {self.settings.database.type.value} — "
                f"devices={db_info.get('devices', 0)}, "
                f"persistent={db_info.get('persistent_devices', 0)}"
            )
            self.repository = DeviceRepository(self.db_manager)
            return True

        except PingMonitorException as e:
            logger.error(f"  ✗ Database init failed: {e.log_format()}")
            return False

    # ==================================================================
    # PHASE 2 — NOTIFIER
    # ==================================================================

    async def _init_notifier(self) -> bool:
        """Pick the notifier from the SMTP settings."""
        logger.info("── Phase 2: Notifier ─────────────────────────────")
        self.notifier = build_notifier(self.settings.smtp)
        logger.info(f"  ✓ Using {type(self.notifier).__name__}")
        return True

    # ==================================================================
    # PHASE 3 — MONITORING INFRASTRUCTURE
    # ==================================================================

    async def _init_monitoring(self) -> bool:
        """Wire up MonitoringEngine and Scheduler."""
        logger.info("── Phase 3: Monitoring Infrastructure ────────────")
        try:
            self.monitoring_engine = MonitoringEngine(
                store=self.repository,
                notifier=self.notifier,
                settings=self.settings.monitoring,
            )

            self.scheduler = Scheduler(
                db_manager=self.db_manager,
                engine=self.monitoring_engine,
                settings=self.settings.monitoring,
            )

            logger.info("  ✓ MonitoringEngine, Scheduler created")
            return True

        except PingMonitorException as e:
            logger.error(f"  ✗ Monitoring init failed: {e.log_format()}")
            return False

    # ==================================================================
    # FULL STARTUP SEQUENCE
    # ==================================================================

    async def startup(self) -> bool:
        """
        Execute the complete startup sequence.
        Returns False (and logs errors) if any phase fails.
        """
        logger.info("=" * 74)
        logger.debug(f"Settings: {self.settings.to_dict()}")
        logger.info("  STARTING UP …")
        logger.info("=" * 74)

        if not await self._init_database():
            return False

        if not await self._init_notifier():
            return False

        if not await self._init_monitoring():
            return False

        logger.info("── Starting background services ───────────────────")
        await self.scheduler.start()

        self._is_running = True

        logger.info("=" * 74)
        logger.info("  ✓ ALL SYSTEMS OPERATIONAL")
        logger.info("=" * 74)
        logger.info(
            f"  Monitoring: every {self.settings.monitoring.frequency_min} min, "
            f"{self.settings.monitoring.max_concurrent_probes} concurrent probes"
        )
        logger.info("=" * 74)

        return True

    # ==================================================================
    # SHUTDOWN SEQUENCE
    # ==================================================================

    async def shutdown(self) -> None:
        """
        Graceful shutdown in reverse order. Safe to call more than once.
        """
        if not self._is_running and self.db_manager is None:
            return

        logger.info("=" * 74)
        logger.info("  SHUTTING DOWN …")
        logger.info("=" * 74)

        self._is_running = False
        self._stop_event.set()

        # 1. Stop scheduler (waits for an in-flight cycle)
        if self.scheduler:
            await self.scheduler.stop()
            self.scheduler = None

        # 2. Close database connections
        if self.db_manager:
            await self.db_manager.close()
            self.db_manager = None
            logger.info("  ✓ Database connections closed")

        logger.info("=" * 74)
        logger.info("  ✓ SHUTDOWN COMPLETE")
        logger.info("=" * 74)

    # ==================================================================
    # RUN
    # ==================================================================

    def request_stop(self) -> None:
        logger.info("  ⚡ Signal received — initiating graceful shutdown…")
        self._stop_event.set()

    async def run(self) -> None:
        """Block until a stop is requested."""
        await self._stop_event.wait()


# ============================================================================
# SIGNAL HANDLER SETUP
# ============================================================================

def _install_signal_handlers(app: PingMonitorApplication) -> None:
    """
    Install SIGTERM / SIGINT handlers so that the service shuts down
    gracefully even when killed by the OS.
    """
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, app.request_stop)
        except (NotImplementedError, OSError):
            # Not supported on Windows; KeyboardInterrupt still works there
            pass


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

async def main() -> int:
    """
    Async main — creates the app, starts it, and runs until shutdown.
    """
    setup_logging(get_settings().logging)

    app = PingMonitorApplication()
    _install_signal_handlers(app)

    try:
        if not await app.startup():
            logger.error("  ✗ Startup failed — exiting")
            return 1

        await app.run()
        return 0
    finally:
        await app.shutdown()


def entrypoint() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(0)


# ============================================================================
# SCRIPT ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    entrypoint()
