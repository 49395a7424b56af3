"""Staff accounts and login."""

import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from eventpulse.api.middleware.error import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from eventpulse.db.models import Role, User
from eventpulse.db.repository import UserRepository
from eventpulse.lib.logging import get_logger
from eventpulse.lib.security import create_access_token, hash_password, verify_password

logger = get_logger(__name__)

INVALID_CREDENTIALS = "Credenciales inválidas"


class UserService:
    """Service for staff provisioning and authentication."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repository = UserRepository(session)

    async def get(self, user_id: uuid.UUID) -> User:
        user = await self.repository.get(user_id)
        if user is None:
            raise NotFoundError("usuario", str(user_id))
        return user

    async def authenticate(self, handle: str, password: str) -> tuple[str, User]:
        """
        Check credentials and issue an access token.

        Unknown handles, disabled accounts and wrong passwords are reported
        with the same message.
        """
        user = await self.repository.get_by_handle(handle.strip())
        if user is None or not user.is_active or not verify_password(password, user.password_hash):
            logger.warning("login_failed", handle=handle)
            raise AuthenticationError(INVALID_CREDENTIALS)

        token = create_access_token(user.id, user.role, user.event_id)
        logger.info("login_succeeded", user_id=str(user.id), role=user.role)
        return token, user

    async def create_worker(
        self,
        handle: str,
        display_name: str,
        password: str,
        role: Role,
        event_id: uuid.UUID,
    ) -> User:
        """Create a worker bound to the given (active) event."""
        if role == Role.ADMIN:
            raise ValidationError("No se pueden crear administradores", field="rol")

        handle = handle.strip()
        if await self.repository.get_by_handle(handle) is not None:
            raise ConflictError("El nombre de usuario ya existe", context={"handle": handle})

        try:
            user = await self.repository.create(
                handle=handle,
                display_name=display_name.strip(),
                password_hash=hash_password(password),
                role=role.value,
                event_id=event_id,
            )
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError("El nombre de usuario ya existe", context={"handle": handle}) from e

        logger.info("worker_created", user_id=str(user.id), role=role.value, event_id=str(event_id))
        return user

    async def list_workers(self, event_id: uuid.UUID) -> list[User]:
        return await self.repository.list_workers(event_id)

    async def ensure_admin(self, handle: str, display_name: str, password: str) -> tuple[User, bool]:
        """
        Create the admin account, or reset its password when it already exists.

        Returns:
            The admin user and whether it was created.
        """
        existing = await self.repository.get_by_handle(handle)
        if existing is not None:
            if existing.role != Role.ADMIN.value:
                raise ConflictError(
                    f"'{handle}' ya existe y no es administrador", context={"handle": handle}
                )
            existing.password_hash = hash_password(password)
            existing.display_name = display_name
            existing.is_active = True
            await self.session.commit()
            logger.info("admin_password_reset", user_id=str(existing.id))
            return existing, False

        admin = await self.repository.create(
            handle=handle,
            display_name=display_name,
            password_hash=hash_password(password),
            role=Role.ADMIN.value,
            event_id=None,
        )
        await self.session.commit()
        logger.info("admin_created", user_id=str(admin.id))
        return admin, True


__all__ = ["UserService", "INVALID_CREDENTIALS"]
