"""Tests for staff provisioning and login."""

import pytest

PASSWORD = "clave123"


class TestAuthenticate:
    """Tests for credential checks."""

    @pytest.mark.asyncio
    async def test_valid_credentials_issue_token(self, session_factory, ana, active_event):
        from eventpulse.core.users import UserService
        from eventpulse.lib.security import decode_access_token

        async with session_factory() as session:
            token, user = await UserService(session).authenticate("ana", PASSWORD)

        claims = decode_access_token(token)
        assert user.id == ana.id
        assert claims.user_id == ana.id
        assert claims.role == "aseo"
        assert claims.event_id == active_event.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("handle", "password"), [("ana", "incorrecta"), ("nadie", PASSWORD)])
    async def test_bad_credentials_share_one_message(self, session_factory, ana, handle, password):
        from eventpulse.api.middleware.error import AuthenticationError
        from eventpulse.core.users import INVALID_CREDENTIALS, UserService

        async with session_factory() as session:
            with pytest.raises(AuthenticationError) as exc_info:
                await UserService(session).authenticate(handle, password)

        assert exc_info.value.message == INVALID_CREDENTIALS

    @pytest.mark.asyncio
    async def test_inactive_user_rejected(self, session_factory, sync_session, ana):
        from eventpulse.api.middleware.error import AuthenticationError
        from eventpulse.core.users import UserService

        ana.user.is_active = False
        sync_session.commit()

        async with session_factory() as session:
            with pytest.raises(AuthenticationError):
                await UserService(session).authenticate("ana", PASSWORD)


class TestCreateWorker:
    """Tests for worker provisioning."""

    @pytest.mark.asyncio
    async def test_create_worker(self, session_factory, active_event):
        from eventpulse.core.users import UserService
        from eventpulse.db.models import Role

        async with session_factory() as session:
            service = UserService(session)
            user = await service.create_worker(" marta ", "Marta", "clave1", Role.MEDICAL, active_event.id)
            workers = await service.list_workers(active_event.id)

        assert user.handle == "marta"
        assert user.event_id == active_event.id
        assert [w.handle for w in workers] == ["marta"]

    @pytest.mark.asyncio
    async def test_duplicate_handle_conflicts(self, session_factory, ana, active_event):
        from eventpulse.api.middleware.error import ConflictError
        from eventpulse.core.users import UserService
        from eventpulse.db.models import Role

        async with session_factory() as session:
            with pytest.raises(ConflictError):
                await UserService(session).create_worker("ana", "Otra Ana", "clave1", Role.CLEANING, active_event.id)

    @pytest.mark.asyncio
    async def test_admin_role_rejected(self, session_factory, active_event):
        from eventpulse.api.middleware.error import ValidationError
        from eventpulse.core.users import UserService
        from eventpulse.db.models import Role

        async with session_factory() as session:
            with pytest.raises(ValidationError):
                await UserService(session).create_worker("jefe", "Jefe", "clave1", Role.ADMIN, active_event.id)


class TestEnsureAdmin:
    """Tests for admin bootstrap."""

    @pytest.mark.asyncio
    async def test_create_then_reset(self, session_factory, database_url):
        from eventpulse.core.users import UserService
        from eventpulse.lib.security import verify_password

        async with session_factory() as session:
            admin, created = await UserService(session).ensure_admin("root", "Raíz", "primera")
        assert created is True
        assert admin.role == "admin"

        async with session_factory() as session:
            again, created = await UserService(session).ensure_admin("root", "Raíz", "segunda")
        assert created is False
        assert again.id == admin.id
        assert verify_password("segunda", again.password_hash)

    @pytest.mark.asyncio
    async def test_existing_worker_handle_conflicts(self, session_factory, ana):
        from eventpulse.api.middleware.error import ConflictError
        from eventpulse.core.users import UserService

        async with session_factory() as session:
            with pytest.raises(ConflictError):
                await UserService(session).ensure_admin("ana", "Ana", "clave")
