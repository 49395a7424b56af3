"""FastAPI application with CORS, middleware, exception handlers and the realtime hub."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from eventpulse import __version__
from eventpulse.api.middleware.error import register_exception_handlers
from eventpulse.api.middleware.logging import RequestIDMiddleware, request_logging_middleware
from eventpulse.api.routers import auth, chat, events, health, incidents, tasks, users, ws, zones
from eventpulse.core.hub import Hub
from eventpulse.db import SessionLocal
from eventpulse.lib.broker import Broker, create_broker
from eventpulse.lib.config import Settings, get_settings
from eventpulse.lib.logging import configure_logging, get_logger
from eventpulse.lib.startup_checks import run_all_startup_checks

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Start the hub on startup; drain sockets and release the broker on shutdown."""
    settings: Settings = app.state.settings
    broker: Broker = app.state.broker
    session_factory: async_sessionmaker[AsyncSession] = app.state.session_factory

    configure_logging(settings)
    logger.info("application_startup", version=app.version, env=settings.env)

    if app.state.run_startup_checks:
        engine = session_factory.kw["bind"]
        await run_all_startup_checks(engine, broker, timeout=settings.startup_timeout)

    hub = Hub(
        broker,
        send_buffer=settings.ws_send_buffer,
        write_wait=settings.ws_write_wait_seconds,
        ping_interval=settings.ping_interval,
        max_message_size=settings.ws_max_message_size,
        shutdown_grace=settings.shutdown_grace_seconds,
    )
    await hub.start(subscribe_timeout=settings.startup_timeout)
    app.state.hub = hub

    try:
        yield
    finally:
        await hub.shutdown()
        await broker.close()
        if app.state.dispose_engine:
            await session_factory.kw["bind"].dispose()
        logger.info("application_shutdown")


def create_app(
    settings: Settings | None = None,
    broker: Broker | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    run_startup_checks: bool | None = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings override (defaults to the cached environment settings)
        broker: Pub/sub backend (defaults to the one selected by BROKER_BACKEND)
        session_factory: Session factory (defaults to the module-level SessionLocal)
        run_startup_checks: Ping database and broker on startup (defaults to STARTUP_CHECKS)
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="EventPulse API",
        description="Realtime coordination backend for staff at mass events",
        version=__version__,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        openapi_url=None if settings.is_production else "/openapi.json",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.broker = broker or create_broker(settings)
    app.state.dispose_engine = session_factory is None
    app.state.session_factory = session_factory or SessionLocal
    app.state.run_startup_checks = (
        settings.startup_checks if run_startup_checks is None else run_startup_checks
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request logging runs inside the request id middleware so it sees the id
    app.middleware("http")(request_logging_middleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(events.router)
    app.include_router(users.router)
    app.include_router(zones.router)
    app.include_router(incidents.router)
    app.include_router(tasks.router)
    app.include_router(chat.router)
    app.include_router(ws.router)

    return app


app = create_app()


__all__ = ["app", "create_app", "lifespan"]
