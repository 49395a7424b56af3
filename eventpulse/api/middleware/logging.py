"""Request id and access log middleware."""

import time
import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from eventpulse.lib.logging import bind_context, clear_context, get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Probed by load balancers every few seconds
_QUIET_PATHS = frozenset({"/health"})


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Reuse the caller's X-Request-ID or mint one, and bind it to the log context."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        clear_context()
        bind_context(request_id=request_id)
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


async def request_logging_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """One access line per request with status and duration."""
    started = time.perf_counter()
    logger.debug("request_started", method=request.method, path=request.url.path)
    response = await call_next(request)
    elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

    path = request.url.path
    if path in _QUIET_PATHS and response.status_code < 400:
        log = logger.debug
    elif response.status_code >= 500:
        log = logger.warning
    else:
        log = logger.info
    log(
        "request_completed",
        method=request.method,
        path=path,
        status=response.status_code,
        duration_ms=elapsed_ms,
    )
    return response
