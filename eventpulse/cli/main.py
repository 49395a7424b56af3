"""Typer CLI application for EventPulse."""

import asyncio
import contextlib
import signal
from collections.abc import Iterator

import typer
import uvicorn
from pydantic import ValidationError as SettingsValidationError
from sqlalchemy.exc import DBAPIError

from eventpulse import __version__
from eventpulse.api.middleware.error import ConflictError
from eventpulse.cli.exit_codes import ExitCode
from eventpulse.lib.config import Settings, get_settings
from eventpulse.lib.logging import get_logger

logger = get_logger(__name__)

app = typer.Typer(
    name="eventpulse",
    help="Realtime coordination backend for staff at mass events",
    no_args_is_help=True,
    add_completion=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"EventPulse version {__version__}")
        raise typer.Exit()


def _load_settings() -> Settings:
    try:
        return get_settings()
    except SettingsValidationError as e:
        typer.echo(f"Invalid configuration: {e}", err=True)
        raise typer.Exit(ExitCode.CONFIG_ERROR) from e


class DrainingServer(uvicorn.Server):
    """uvicorn server that closes every hub socket before its own shutdown."""

    async def shutdown(self, sockets=None) -> None:
        fastapi_app = self.config.loaded_app
        # loaded_app may be wrapped by uvicorn's proxy-headers middleware
        while fastapi_app is not None and not hasattr(fastapi_app, "state"):
            fastapi_app = getattr(fastapi_app, "app", None)
        hub = getattr(fastapi_app.state, "hub", None) if fastapi_app is not None else None
        if hub is not None:
            await hub.drain()
        await super().shutdown(sockets=sockets)

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        with super().capture_signals():
            yield
            # A drained SIGTERM shutdown is a clean exit, not a re-raised signal
            captured = getattr(self, "_captured_signals", [])
            captured[:] = [sig for sig in captured if sig != signal.SIGTERM]


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """EventPulse CLI - serve the API and manage the database."""
    pass


@app.command()
def serve(
    host: str = typer.Option(
        None,
        "--host",
        "-h",
        help="Host to bind the server to (defaults to HOST)",
    ),
    port: int = typer.Option(
        None,
        "--port",
        "-p",
        help="Port to bind the server to (defaults to PORT)",
    ),
    reload: bool = typer.Option(
        False,
        "--reload",
        "-r",
        help="Enable auto-reload for development",
    ),
) -> None:
    """Start the EventPulse API and WebSocket server."""
    settings = _load_settings()
    host = host or settings.host
    port = port or settings.port

    logger.info("serve_command", host=host, port=port, reload=reload)
    typer.echo(f"Starting EventPulse on {host}:{port}")

    ws_options = {
        "ws_ping_interval": settings.ping_interval,
        "ws_ping_timeout": settings.ws_pong_wait_seconds - settings.ping_interval,
        "ws_max_size": settings.ws_max_message_size,
        "timeout_graceful_shutdown": settings.shutdown_grace_seconds,
        "log_config": None,
    }

    if reload:
        uvicorn.run("eventpulse.api.main:app", host=host, port=port, reload=True, **ws_options)
        return

    from eventpulse.api.main import create_app

    config = uvicorn.Config(create_app(settings), host=host, port=port, **ws_options)
    DrainingServer(config).run()


@app.command("init-db")
def init_db() -> None:
    """Create all tables from the models (development; use Alembic in production)."""
    _load_settings()

    from eventpulse.db import Base, engine
    from eventpulse.db import models  # noqa: F401

    async def _create() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        await engine.dispose()

    try:
        asyncio.run(_create())
    except (DBAPIError, OSError) as e:
        logger.error("init_db_failed", error=str(e))
        typer.echo(f"Database not reachable: {e}", err=True)
        raise typer.Exit(ExitCode.CONNECTION_ERROR) from e

    logger.info("init_db_complete", tables=len(Base.metadata.tables))
    typer.echo("Database schema created")


@app.command("create-admin")
def create_admin(
    handle: str = typer.Argument(..., help="Login name of the admin"),
    name: str = typer.Option("Administrador", "--name", "-n", help="Display name"),
    password: str = typer.Option(
        ...,
        "--password",
        prompt=True,
        hide_input=True,
        confirmation_prompt=True,
        help="Admin password",
    ),
) -> None:
    """Create the admin account, or reset its password if it already exists."""
    _load_settings()
    if len(password) < 4:
        typer.echo("Password must have at least 4 characters", err=True)
        raise typer.Exit(ExitCode.INVALID_ARGS)

    from eventpulse.core.users import UserService
    from eventpulse.db import SessionLocal, engine

    async def _ensure() -> bool:
        try:
            async with SessionLocal() as session:
                _, created = await UserService(session).ensure_admin(handle.strip(), name, password)
                return created
        finally:
            await engine.dispose()

    try:
        created = asyncio.run(_ensure())
    except ConflictError as e:
        typer.echo(e.message, err=True)
        raise typer.Exit(ExitCode.ERROR) from e
    except (DBAPIError, OSError) as e:
        logger.error("create_admin_failed", error=str(e))
        typer.echo(f"Database not reachable: {e}", err=True)
        raise typer.Exit(ExitCode.CONNECTION_ERROR) from e

    typer.echo(f"Admin '{handle}' {'created' if created else 'updated'}")


if __name__ == "__main__":
    app()
