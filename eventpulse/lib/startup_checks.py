"""Startup validation checks for EventPulse."""

import asyncio

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncEngine
from tenacity import (
    RetryError,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from eventpulse.lib.broker import Broker, BrokerError
from eventpulse.lib.database import ping_database
from eventpulse.lib.logging import get_logger

logger = get_logger(__name__)

# Startup check timeout (5 seconds per attempt)
STARTUP_TIMEOUT = 5

MAX_RETRIES = 3
MIN_WAIT = 1  # seconds
MAX_WAIT = 10  # seconds

_RETRYABLE = (DBAPIError, BrokerError, ConnectionError, OSError, asyncio.TimeoutError)


class StartupCheckError(Exception):
    """Base exception for startup check failures."""

    pass


class DatabaseUnavailableError(StartupCheckError):
    """Raised when the database does not answer ``SELECT 1``."""

    pass


@retry(
    stop=stop_after_attempt(MAX_RETRIES),
    wait=wait_exponential(multiplier=1, min=MIN_WAIT, max=MAX_WAIT),
    retry=retry_if_exception_type(_RETRYABLE),
)
async def _ping_database_with_retry(engine: AsyncEngine, timeout: float) -> None:
    await asyncio.wait_for(ping_database(engine), timeout=timeout)


@retry(
    stop=stop_after_attempt(MAX_RETRIES),
    wait=wait_exponential(multiplier=1, min=MIN_WAIT, max=MAX_WAIT),
    retry=retry_if_exception_type(_RETRYABLE),
)
async def _ping_broker_with_retry(broker: Broker, timeout: float) -> None:
    await asyncio.wait_for(broker.ping(), timeout=timeout)


async def check_database(engine: AsyncEngine, timeout: float = STARTUP_TIMEOUT) -> None:
    """
    Check database connectivity.

    Raises:
        DatabaseUnavailableError: If the database is unreachable after retries
    """
    logger.info("database_check_start")
    try:
        await _ping_database_with_retry(engine, timeout)
    except (RetryError, *_RETRYABLE) as e:
        logger.error("database_check_failed", error=str(e), error_type=type(e).__name__)
        raise DatabaseUnavailableError(f"Database not available: {e}") from e
    logger.info("database_connection_ok")


async def check_broker(broker: Broker, timeout: float = STARTUP_TIMEOUT) -> bool:
    """
    Check broker connectivity.

    A broker outage only degrades realtime delivery, so the failure is
    logged and reported as False instead of aborting startup.
    """
    logger.info("broker_check_start")
    try:
        await _ping_broker_with_retry(broker, timeout)
    except (RetryError, *_RETRYABLE) as e:
        logger.warning("broker_check_failed", error=str(e), error_type=type(e).__name__)
        return False
    logger.info("broker_connection_ok")
    return True


async def run_all_startup_checks(
    engine: AsyncEngine,
    broker: Broker,
    timeout: float = STARTUP_TIMEOUT,
) -> None:
    """
    Run all startup validation checks.

    Raises:
        StartupCheckError: If the database check fails
    """
    logger.info("startup_checks_begin")
    await check_database(engine, timeout)
    broker_ok = await check_broker(broker, timeout)
    logger.info("startup_checks_complete", database=True, broker=broker_ok)


__all__ = [
    "DatabaseUnavailableError",
    "StartupCheckError",
    "check_broker",
    "check_database",
    "run_all_startup_checks",
]
