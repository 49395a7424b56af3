"""Database helpers: transient error detection and connectivity checks."""

from sqlalchemy import text
from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    InterfaceError,
    OperationalError,
)
from sqlalchemy.ext.asyncio import AsyncEngine


# Transient error types a caller may retry
TRANSIENT_ERRORS = (
    DisconnectionError,
    InterfaceError,
    OperationalError,
)

_TRANSIENT_MESSAGES = (
    "connection",
    "timeout",
    "unavailable",
    "reset by peer",
    "broken pipe",
    "too many connections",
)


def is_transient_error(exc: BaseException) -> bool:
    """
    Check if an exception is a transient database error.

    Args:
        exc: Exception to check

    Returns:
        True if the error is transient and the operation may be retried
    """
    if isinstance(exc, TRANSIENT_ERRORS):
        return True

    if isinstance(exc, DBAPIError):
        error_str = str(exc).lower()
        return any(msg in error_str for msg in _TRANSIENT_MESSAGES)

    return False


async def ping_database(engine: AsyncEngine) -> None:
    """Run ``SELECT 1``; raises whatever the driver raises."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


__all__ = [
    "TRANSIENT_ERRORS",
    "is_transient_error",
    "ping_database",
]
