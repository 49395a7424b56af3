"""Database layer with SQLAlchemy and async session management."""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from starlette.requests import HTTPConnection

from eventpulse.db.base import Base
from eventpulse.lib.config import Settings, get_settings


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine with pool limits from settings."""
    url = settings.sqlalchemy_url
    kwargs: dict[str, Any] = {"pool_pre_ping": True}
    if not url.startswith("sqlite"):
        kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_recycle=settings.db_pool_recycle_seconds,
        )
        if settings.db_sslmode != "disable":
            kwargs["connect_args"] = {"ssl": settings.db_sslmode}
    return create_async_engine(url, **kwargs)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


settings = get_settings()
engine = build_engine(settings)

SessionLocal = build_session_factory(engine)


async def get_db(conn: HTTPConnection) -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.

    Uses the session factory stored on the application state when one is
    configured, otherwise the module-level SessionLocal.
    """
    factory = getattr(conn.app.state, "session_factory", None) or SessionLocal
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


__all__ = [
    "Base",
    "SessionLocal",
    "get_db",
    "engine",
    "build_engine",
    "build_session_factory",
]
