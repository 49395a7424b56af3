"""API middleware modules."""

from eventpulse.api.middleware.auth import get_current_user, require_admin
from eventpulse.api.middleware.error import (
    AuthenticationError,
    ClaimConflictError,
    ConflictError,
    EventPulseError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    TransientError,
    ValidationError,
    register_exception_handlers,
)
from eventpulse.api.middleware.logging import RequestIDMiddleware, request_logging_middleware

__all__ = [
    "get_current_user",
    "require_admin",
    "request_logging_middleware",
    "RequestIDMiddleware",
    "register_exception_handlers",
    "EventPulseError",
    "ValidationError",
    "InvalidTransitionError",
    "AuthenticationError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    "ClaimConflictError",
    "TransientError",
]
