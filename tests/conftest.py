"""Pytest configuration and fixtures."""

import os
import uuid
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path

import pytest
from dotenv import load_dotenv

# Load .env file before running tests
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path, override=True)

# Tests run against SQLite and the in-memory broker with a fixed signing key
os.environ["BROKER_BACKEND"] = "memory"
os.environ["STARTUP_CHECKS"] = "false"
os.environ["JWT_SECRET"] = "eventpulse-test-signing-key-0123456789abcdef"

PASSWORD = "clave123"


@dataclass
class Staff:
    """A seeded user together with a valid token."""

    user: "User"  # noqa: F821
    token: str

    @property
    def id(self) -> uuid.UUID:
        return self.user.id

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@pytest.fixture(scope="session")
def password_hash() -> str:
    """One bcrypt hash shared by every seeded user."""
    from eventpulse.lib.security import hash_password

    return hash_password(PASSWORD)


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """Fresh SQLite file with the full schema."""
    from sqlalchemy import create_engine

    from eventpulse.db import models  # noqa: F401
    from eventpulse.db.base import Base

    path = tmp_path / "eventpulse.db"
    engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(engine)
    engine.dispose()
    return f"sqlite+aiosqlite:///{path}"


@pytest.fixture
def sync_session(database_url: str) -> Iterator["Session"]:  # noqa: F821
    """Synchronous session used to seed rows; always commit after writing."""
    from sqlalchemy import create_engine
    from sqlalchemy.orm import Session

    engine = create_engine(database_url.replace("+aiosqlite", ""))
    with Session(engine, expire_on_commit=False) as session:
        yield session
    engine.dispose()


@pytest.fixture
def session_factory(database_url: str):
    from sqlalchemy.ext.asyncio import create_async_engine
    from sqlalchemy.pool import NullPool

    from eventpulse.db import build_session_factory

    engine = create_async_engine(database_url, poolclass=NullPool)
    return build_session_factory(engine)


@pytest.fixture
def admin(sync_session, password_hash) -> Staff:
    from eventpulse.db.models import Role, User
    from eventpulse.lib.security import create_access_token

    user = User(
        handle="admin",
        display_name="Administrador",
        password_hash=password_hash,
        role=Role.ADMIN.value,
        event_id=None,
    )
    sync_session.add(user)
    sync_session.commit()
    return Staff(user, create_access_token(user.id, user.role, None))


@pytest.fixture
def active_event(sync_session, admin):
    from eventpulse.db.models import Event, EventState

    event = Event(name="Festival Central", state=EventState.ACTIVE.value, created_by=admin.id)
    sync_session.add(event)
    sync_session.commit()
    return event


@pytest.fixture
def zone(sync_session, active_event):
    from eventpulse.db.models import Zone

    zone = Zone(id="norte", event_id=active_event.id, name="Acceso Norte")
    sync_session.add(zone)
    sync_session.commit()
    return zone


@pytest.fixture
def worker_factory(sync_session, password_hash, active_event) -> Callable[..., Staff]:
    """Create workers bound to the active event (or another one)."""
    from eventpulse.db.models import Role, User
    from eventpulse.lib.security import create_access_token

    def _make(
        handle: str,
        display_name: str,
        role: Role = Role.CLEANING,
        event_id: uuid.UUID | None = None,
    ) -> Staff:
        bound = event_id or active_event.id
        user = User(
            handle=handle,
            display_name=display_name,
            password_hash=password_hash,
            role=role.value,
            event_id=bound,
        )
        sync_session.add(user)
        sync_session.commit()
        return Staff(user, create_access_token(user.id, user.role, bound))

    return _make


@pytest.fixture
def ana(worker_factory) -> Staff:
    from eventpulse.db.models import Role

    return worker_factory("ana", "Ana", Role.CLEANING)


@pytest.fixture
def luis(worker_factory) -> Staff:
    from eventpulse.db.models import Role

    return worker_factory("luis", "Luis", Role.SECURITY)


@pytest.fixture
def supervisor(worker_factory) -> Staff:
    from eventpulse.db.models import Role

    return worker_factory("sofia", "Sofía", Role.SUPERVISOR)


@pytest.fixture
def incident(sync_session, zone, admin):
    """A pending incident in the active event."""
    from eventpulse.db.models import Incident, IncidentState, IncidentType

    incident = Incident(
        event_id=zone.event_id,
        zone_id=zone.id,
        type=IncidentType.SPILL.value,
        description="Derrame de bebida en la entrada",
        state=IncidentState.PENDING.value,
        created_by=admin.id,
    )
    sync_session.add(incident)
    sync_session.commit()
    return incident


@pytest.fixture
def test_settings():
    from eventpulse.lib.config import Settings

    return Settings(
        broker_backend="memory",
        startup_checks=False,
        jwt_secret=os.environ["JWT_SECRET"],
        shutdown_grace_seconds=2,
    )


@pytest.fixture
def broker():
    from eventpulse.lib.broker import InMemoryBroker

    return InMemoryBroker()


@pytest.fixture
def app(test_settings, broker, session_factory):
    from eventpulse.api.main import create_app

    return create_app(
        settings=test_settings,
        broker=broker,
        session_factory=session_factory,
        run_startup_checks=False,
    )


@pytest.fixture
def client(app):
    """TestClient with the lifespan (and so the hub) running."""
    from fastapi.testclient import TestClient

    with TestClient(app) as test_client:
        yield test_client
