"""
============================================================================
PING MONITOR - LOGGING UTILITY
============================================================================
Loguru based logging with console, rotating file and error file sinks.

Modules obtain a bound logger through ``get_logger(name)``; the sinks are
installed once by ``setup_logging()`` during application startup.
============================================================================
"""

import sys
import time
from functools import wraps
from typing import Optional

import asyncio

from loguru import logger

from config.settings import LoggingSettings, get_settings


CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | "
    "{extra[name]}:{function}:{line} - {message}"
)

# Records emitted through the bare loguru logger still carry a name
logger.configure(extra={"name": "ping_monitor"})


# ============================================================================
# LOGGER CONFIGURATION
# ============================================================================

def setup_logging(log_settings: Optional[LoggingSettings] = None) -> None:
    """
    Configure logging system with multiple handlers.
    Sets up both file and console logging.

    Args:
        log_settings: Logging section of the settings (defaults to the
            cached application settings)
    """
    log_settings = log_settings or get_settings().logging

    # Remove default loguru handler
    logger.remove()

    log_level = log_settings.level.value

    # Console Handler
    if log_settings.console_enabled:
        logger.add(
            sys.stdout,
            format=CONSOLE_FORMAT,
            level=log_level,
            colorize=log_settings.console_colored,
            backtrace=True,
            diagnose=False,
        )

    # File Handler
    if log_settings.file_enabled:
        log_settings.file_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_settings.file_path,
            format=FILE_FORMAT,
            level=log_level,
            rotation=log_settings.file_rotation,
            retention=log_settings.file_retention,
            compression=log_settings.file_compression,
            serialize=log_settings.json_enabled,
            backtrace=True,
            diagnose=False,
            enqueue=True,
        )

    # Error log file (separate file for errors)
    if log_settings.error_file_enabled:
        log_settings.error_file_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_settings.error_file_path,
            format=FILE_FORMAT,
            level="ERROR",
            rotation="1 day",
            retention="7 days",
            compression=log_settings.file_compression,
            backtrace=True,
            diagnose=False,
            enqueue=True,
        )

    logger.info("Logging system initialized")
    logger.info(f"Log level: {log_level}")
    logger.info(f"Console logging: {log_settings.console_enabled}")
    logger.info(f"File logging: {log_settings.file_enabled}")


def get_logger(name: Optional[str] = None):
    """
    Get logger instance with optional name.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    if name:
        return logger.bind(name=name)
    return logger


# ============================================================================
# LOG DECORATORS
# ============================================================================

def log_execution_time(func):
    """
    Decorator to log coroutine or function execution time at DEBUG.

    Args:
        func: Function to decorate

    Returns:
        Decorated function
    """

    @wraps(func)
    async def async_wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        try:
            result = await func(*args, **kwargs)
            logger.debug(
                f"Function {func.__name__} executed in "
                f"{time.perf_counter() - start_time:.4f} seconds"
            )
            return result
        except Exception as e:
            logger.error(
                f"Function {func.__name__} failed after "
                f"{time.perf_counter() - start_time:.4f} seconds: {e}"
            )
            raise

    @wraps(func)
    def sync_wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        try:
            result = func(*args, **kwargs)
            logger.debug(
                f"Function {func.__name__} executed in "
                f"{time.perf_counter() - start_time:.4f} seconds"
            )
            return result
        except Exception as e:
            logger.error(
                f"Function {func.__name__} failed after "
                f"{time.perf_counter() - start_time:.4f} seconds: {e}"
            )
            raise

    if asyncio.iscoroutinefunction(func):
        return async_wrapper
    return sync_wrapper
