"""Error hierarchy and the handlers that render it as ``{"error", "codigo"}``."""

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from eventpulse.lib.database import is_transient_error
from eventpulse.lib.logging import get_logger

logger = get_logger(__name__)


class EventPulseError(Exception):
    """Base exception for EventPulse errors with context."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    ):
        """
        Initialize EventPulse error.

        Args:
            message: Human-readable error message (returned to the client)
            error_code: Machine-readable error code (logged)
            context: Additional context for debugging (logged)
            status_code: HTTP status code
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "INTERNAL_ERROR"
        self.context = context or {}
        self.status_code = status_code


class ValidationError(EventPulseError):
    """Validation error with field context."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            context=ctx,
            status_code=status.HTTP_400_BAD_REQUEST,
        )


class InvalidTransitionError(ValidationError):
    """State change that the incident state machine does not allow."""

    def __init__(self, from_state: str, to_state: str):
        super().__init__(
            message=f"Transición inválida: {from_state} → {to_state}",
            field="estado",
            context={"from_state": from_state, "to_state": to_state},
        )
        self.error_code = "INVALID_TRANSITION"
        self.from_state = from_state
        self.to_state = to_state


class AuthenticationError(EventPulseError):
    """Missing, malformed or expired credentials."""

    def __init__(self, message: str = "Token inválido o expirado"):
        super().__init__(
            message=message,
            error_code="UNAUTHORIZED",
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class ForbiddenError(EventPulseError):
    """Role or ownership mismatch."""

    def __init__(self, message: str = "Acceso denegado", context: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            error_code="FORBIDDEN",
            context=context,
            status_code=status.HTTP_403_FORBIDDEN,
        )


class NotFoundError(EventPulseError):
    """Resource not found error."""

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        context: dict[str, Any] | None = None,
    ):
        ctx = context or {}
        ctx["resource_type"] = resource_type
        ctx["resource_id"] = resource_id
        super().__init__(
            message=f"No se encontró {resource_type}: {resource_id}",
            error_code="NOT_FOUND",
            context=ctx,
            status_code=status.HTTP_404_NOT_FOUND,
        )


class ConflictError(EventPulseError):
    """Resource conflict error (duplicate slug, concurrent update)."""

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            error_code="CONFLICT",
            context=context,
            status_code=status.HTTP_409_CONFLICT,
        )


class ClaimConflictError(ConflictError):
    """Another worker claimed the incident first."""

    def __init__(
        self,
        incident_id: str,
        winner_name: str | None = None,
        current_state: str | None = None,
    ):
        if winner_name is not None:
            message = f"Conflicto: ya fue tomada por {winner_name}"
        else:
            message = f"Conflicto: ya está en estado {current_state}"
        super().__init__(
            message=message,
            context={
                "incident_id": incident_id,
                "winner_name": winner_name,
                "current_state": current_state,
            },
        )
        self.error_code = "CLAIM_CONFLICT"
        self.incident_id = incident_id
        self.winner_name = winner_name
        self.current_state = current_state


class TransientError(EventPulseError):
    """Database or broker temporarily unavailable; the caller may retry."""

    def __init__(self, message: str = "Servicio no disponible temporalmente, reintente"):
        super().__init__(
            message=message,
            error_code="TRANSIENT",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


def error_body(message: str, status_code: int) -> dict[str, Any]:
    return {"error": message, "codigo": status_code}


def create_error_response(request: Request, error: EventPulseError) -> JSONResponse:
    """Render a typed error and log it with its context."""
    log = logger.warning if error.status_code < 500 else logger.error
    log(
        "eventpulse_error",
        error_code=error.error_code,
        message=error.message,
        context=error.context,
        path=request.url.path,
        request_id=getattr(request.state, "request_id", "unknown"),
    )
    return JSONResponse(
        status_code=error.status_code,
        content=error_body(error.message, error.status_code),
    )


async def eventpulse_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, EventPulseError)
    return create_error_response(request, exc)


async def request_validation_handler(request: Request, exc: Exception) -> JSONResponse:
    """Report body/query validation failures as 400 with the first problem."""
    assert isinstance(exc, RequestValidationError)
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Datos inválidos: {location}: {first.get('msg', 'valor inválido')}"
    else:
        message = "Datos inválidos"
    return create_error_response(request, ValidationError(message, context={"errors": len(errors)}))


async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, StarletteHTTPException)
    message = exc.detail if isinstance(exc.detail, str) else "Error"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(message, exc.status_code),
        headers=getattr(exc, "headers", None),
    )


async def database_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, SQLAlchemyError)
    request_id = getattr(request.state, "request_id", "unknown")
    if isinstance(exc, IntegrityError):
        # A concurrent write took the unique key first
        logger.warning(
            "db_integrity_conflict",
            error=str(exc.orig),
            path=request.url.path,
            request_id=request_id,
        )
        error = ConflictError("El recurso ya existe o fue modificado, reintente")
        return create_error_response(request, error)
    if is_transient_error(exc):
        logger.warning(
            "db_transient_error",
            error=str(exc),
            path=request.url.path,
            request_id=request_id,
        )
        error = TransientError()
        return JSONResponse(
            status_code=error.status_code, content=error_body(error.message, error.status_code)
        )

    logger.error(
        "db_error",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        request_id=request_id,
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content=error_body("Error interno del servidor", 500))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for unhandled errors."""
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        request_id=getattr(request.state, "request_id", "unknown"),
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content=error_body("Error interno del servidor", 500))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(EventPulseError, eventpulse_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


__all__ = [
    "EventPulseError",
    "ValidationError",
    "InvalidTransitionError",
    "AuthenticationError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    "ClaimConflictError",
    "TransientError",
    "create_error_response",
    "error_body",
    "register_exception_handlers",
]
