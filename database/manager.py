"""
============================================================================
PING MONITOR - DATABASE MANAGER
============================================================================
Async engine / session management and the device repository that the
monitoring engine reads from and writes back to.
============================================================================
"""

import asyncio
from typing import Optional, AsyncGenerator, Dict, Any, Iterable, List, Sequence
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    AsyncEngine,
    async_sessionmaker
)
from sqlalchemy import event, text, select, delete, update, func
from sqlalchemy.pool import NullPool, StaticPool
from sqlalchemy.exc import SQLAlchemyError

from config.constants import MonitorWindow
from config.settings import DatabaseSettings
from database.models import Base, MonitorDevice
from exceptions import (
    DatabaseConnectionError,
    DatabaseQueryError,
    InvalidWindowError,
)
from utils.logger import get_logger, log_execution_time


logger = get_logger(__name__)


# ============================================================================
# DATABASE MANAGER CLASS
# ============================================================================

class DatabaseManager:
    """
    Owns the async engine and session factory.
    """

    def __init__(self, settings: DatabaseSettings, url: Optional[str] = None):
        """
        Initialize database manager.

        Args:
            settings: Database section of the application settings
            url: Explicit database URL, overrides the one built from settings
        """
        self.settings = settings
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None
        self._is_initialized = False
        self._lock = asyncio.Lock()

        self.database_url = url or settings.url

        logger.info(f"DatabaseManager initialized with URL: {self._mask_password(self.database_url)}")

    @staticmethod
    def _mask_password(url: str) -> str:
        """
        Mask password in database URL for logging.

        Args:
            url: Database URL

        Returns:
            Masked URL
        """
        if "://" not in url:
            return url

        protocol, rest = url.split("://", 1)
        if "@" not in rest:
            return url

        credentials, host_part = rest.split("@", 1)
        if ":" in credentials:
            user, _ = credentials.split(":", 1)
            return f"{protocol}://{user}:****@{host_part}"

        return url

    def _get_engine_kwargs(self) -> Dict[str, Any]:
        """
        Get engine configuration kwargs based on the URL.

        Returns:
            Dictionary of engine configuration options
        """
        kwargs: Dict[str, Any] = {"echo": self.settings.echo}

        if self.database_url.startswith("sqlite"):
            if ":memory:" in self.database_url or self.database_url.endswith("://"):
                # One shared connection, otherwise every session sees an empty DB
                kwargs["poolclass"] = StaticPool
                kwargs["connect_args"] = {"check_same_thread": False}
            else:
                kwargs["poolclass"] = NullPool
        else:
            kwargs["pool_size"] = self.settings.pool_size
            kwargs["max_overflow"] = self.settings.max_overflow
            kwargs["pool_timeout"] = self.settings.pool_timeout
            kwargs["pool_recycle"] = self.settings.pool_recycle
            kwargs["pool_pre_ping"] = True

        return kwargs

    async def initialize(self) -> None:
        """
        Initialize database engine and session factory.
        Creates all tables if they don't exist.

        Raises:
            DatabaseConnectionError: If the engine cannot be created or reached
        """
        async with self._lock:
            if self._is_initialized:
                logger.warning("Database already initialized")
                return

            try:
                self.engine = create_async_engine(
                    self.database_url,
                    **self._get_engine_kwargs()
                )

                self._register_event_listeners()

                self.session_factory = async_sessionmaker(
                    self.engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                    autoflush=False,
                )

                await self.create_tables()

                self._is_initialized = True
                logger.info("Database initialized successfully")

            except (SQLAlchemyError, OSError) as e:
                logger.error(f"Failed to initialize database: {e}")
                raise DatabaseConnectionError(
                    message=f"Failed to initialize database: {e}",
                    url=self._mask_password(self.database_url),
                    cause=e
                ) from e

    def _register_event_listeners(self) -> None:
        """Register SQLAlchemy event listeners for connection management."""

        @event.listens_for(self.engine.sync_engine, "connect")
        def receive_connect(dbapi_conn, connection_record):
            logger.debug("New database connection established")

    @log_execution_time
    async def create_tables(self) -> None:
        """
        Create all database tables.
        """
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")

    @asynccontextmanager
    async def session(self, operation: Optional[str] = None) -> AsyncGenerator[AsyncSession, None]:
        """
        Provide a transactional scope for database operations.

        The session is committed on success and rolled back on failure;
        SQLAlchemy errors surface as ``DatabaseQueryError``.

        Args:
            operation: Store operation recorded on a DatabaseQueryError

        Yields:
            AsyncSession instance

        Example:
            async with db_manager.session() as session:
                device = await session.get(MonitorDevice, device_id)
        """
        if not self._is_initialized:
            await self.initialize()

        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Session error: {e}")
            raise DatabaseQueryError(
                message=str(e),
                operation=operation,
                query=getattr(e, "statement", None),
                cause=e,
            ) from e
        finally:
            await session.close()

    async def check_connection(self) -> bool:
        """
        Check if database connection is alive.

        Returns:
            True if connection is alive, False otherwise
        """
        try:
            async with self.session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except (DatabaseQueryError, DatabaseConnectionError) as e:
            logger.error(f"Database connection check failed: {e}")
            return False

    async def get_database_info(self) -> Dict[str, Any]:
        """
        Get database information and statistics.

        Returns:
            Dictionary with database info
        """
        async with self.session() as session:
            device_count = await session.scalar(select(func.count(MonitorDevice.id)))
            persistent_count = await session.scalar(
                select(func.count(MonitorDevice.id)).where(MonitorDevice.persist.is_(True))
            )

        return {
            "status": "connected",
            "database_url": self._mask_password(self.database_url),
            "devices": device_count,
            "persistent_devices": persistent_count,
            "checked_at": datetime.now(timezone.utc).isoformat()
        }

    async def close(self) -> None:
        """
        Close database connections and cleanup resources.
        """
        if self.engine:
            await self.engine.dispose()
            logger.info("Database connections closed")
            self.engine = None
            self._is_initialized = False


# ============================================================================
# DEVICE REPOSITORY
# ============================================================================

class DeviceRepository:
    """
    Device store used by the monitoring engine and device management.

    Every method runs in a single transaction; failures raise
    ``PersistenceError`` subclasses instead of being swallowed.
    """

    def __init__(self, db_manager: DatabaseManager):
        """
        Initialize repository.

        Args:
            db_manager: DatabaseManager instance
        """
        self.db = db_manager
        self.logger = get_logger(self.__class__.__name__)

    async def get_active_devices(self, time_utc: int) -> List[MonitorDevice]:
        """
        Devices whose daily window contains ``time_utc`` (HHMM, both ends inclusive).

        Raises:
            InvalidWindowError: If ``time_utc`` is outside 0..2400
            PersistenceError: If the query fails
        """
        if not MonitorWindow.START_OF_DAY <= time_utc <= MonitorWindow.END_OF_DAY:
            raise InvalidWindowError(time_utc)

        async with self.db.session("select") as session:
            result = await session.execute(
                select(MonitorDevice)
                .where(MonitorDevice.is_active_at(time_utc))
                .order_by(MonitorDevice.id)
            )
            devices = list(result.scalars().all())

        self.logger.debug(f"{len(devices)} devices active at {time_utc:04d}")
        return devices

    async def get_devices(self, device_ids: Optional[Sequence[int]] = None) -> List[MonitorDevice]:
        """All devices, or the ones whose id is in ``device_ids``."""
        query = select(MonitorDevice).order_by(MonitorDevice.id)
        if device_ids is not None:
            query = query.where(MonitorDevice.id.in_(list(device_ids)))

        async with self.db.session("select") as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def create_devices(self, devices: Iterable[MonitorDevice]) -> List[MonitorDevice]:
        """Insert all ``devices`` in one transaction and return them with ids."""
        devices = list(devices)
        async with self.db.session("insert") as session:
            session.add_all(devices)
            await session.flush()
            for device in devices:
                await session.refresh(device)

        self.logger.info(f"Created {len(devices)} devices: {[d.id for d in devices]}")
        return devices

    async def delete_devices(self, device_ids: Sequence[int]) -> int:
        """
        Delete the given devices in one statement.

        Returns:
            Number of deleted rows
        """
        if not device_ids:
            return 0

        async with self.db.session("delete") as session:
            result = await session.execute(
                delete(MonitorDevice).where(MonitorDevice.id.in_(list(device_ids)))
            )
            deleted = result.rowcount or 0

        self.logger.info(f"Deleted {deleted} devices: {list(device_ids)}")
        return deleted

    async def update_devices(self, partials: Sequence[Dict[str, Any]]) -> int:
        """
        Apply partial updates, each ``{"id": ..., <field>: <value>, ...}``,
        atomically as one batch.

        Returns:
            Number of updated rows
        """
        if not partials:
            return 0

        updated = 0
        async with self.db.session("update") as session:
            for partial in partials:
                fields = {k: v for k, v in partial.items() if k != "id"}
                if not fields:
                    continue
                result = await session.execute(
                    update(MonitorDevice)
                    .where(MonitorDevice.id == partial["id"])
                    .values(**fields)
                    .execution_options(synchronize_session=False)
                )
                updated += result.rowcount or 0

        self.logger.info(f"Updated {updated} devices: {[p['id'] for p in partials]}")
        return updated
