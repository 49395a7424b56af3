"""Health check endpoint."""

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from eventpulse import __version__
from eventpulse.db import get_db
from eventpulse.lib.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request, db: AsyncSession = Depends(get_db)) -> JSONResponse:
    """
    Health check endpoint.

    Returns status, version, database connectivity and the number of
    sockets held by this replica. Returns 503 if the database is down.
    """
    hub = getattr(request.app.state, "hub", None)
    health_status: dict[str, Any] = {
        "status": "ok",
        "version": __version__,
        "checks": {
            "database": "unknown",
        },
        "conexiones": hub.connection_count() if hub is not None else 0,
    }

    try:
        await db.execute(text("SELECT 1"))
        health_status["checks"]["database"] = "ok"
    except (SQLAlchemyError, OSError) as e:
        logger.error("database_health_check_failed", error=str(e))
        health_status["checks"]["database"] = "unavailable"
        health_status["status"] = "degraded"
        return JSONResponse(status_code=503, content=health_status)

    return JSONResponse(status_code=200, content=health_status)
