"""Zone management within the active event."""

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from eventpulse.api.middleware.error import ConflictError, NotFoundError, ValidationError
from eventpulse.db.models import Zone
from eventpulse.db.repository import ZoneRepository
from eventpulse.lib.logging import get_logger

logger = get_logger(__name__)


def normalize_slug(raw: str) -> str:
    """Zone ids are compared case-insensitively and without surrounding spaces."""
    return raw.strip().lower()


class ZoneService:
    """Service for zones keyed by slug within one event."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repository = ZoneRepository(session)

    async def list_for_event(self, event_id: uuid.UUID) -> list[Zone]:
        return await self.repository.list_by_event(event_id)

    async def require(self, zone_id: str, event_id: uuid.UUID) -> Zone:
        """Zone of the given event; 400 when the slug is unknown there."""
        zone = await self.repository.get_in_event(normalize_slug(zone_id), event_id)
        if zone is None:
            raise ValidationError(f"La zona '{zone_id}' no existe en este evento", field="zona_id")
        return zone

    async def create(self, zone_id: str, name: str, event_id: uuid.UUID) -> Zone:
        slug = normalize_slug(zone_id)
        if not slug:
            raise ValidationError("El ID de la zona es obligatorio", field="id")

        if await self.repository.get_in_event(slug, event_id) is not None:
            raise ConflictError(
                "Ya existe una zona con ese ID en este evento",
                context={"zone_id": slug, "event_id": str(event_id)},
            )

        zone = await self.repository.create(id=slug, event_id=event_id, name=name.strip())
        await self.session.commit()

        logger.info("zone_created", zone_id=slug, event_id=str(event_id))
        return zone

    async def delete(self, zone_id: str, event_id: uuid.UUID) -> None:
        """
        Delete a zone from an event.

        Tasks lose their zone; a zone still referenced by incidents cannot be
        removed.
        """
        slug = normalize_slug(zone_id)
        zone = await self.repository.get_in_event(slug, event_id)
        if zone is None:
            raise NotFoundError("zona", slug)

        incidents = await self.repository.count_incidents(slug, event_id)
        if incidents:
            raise ConflictError(
                "La zona tiene incidencias registradas y no se puede eliminar",
                context={"zone_id": slug, "incidents": incidents},
            )

        await self.repository.clear_task_zone(slug, event_id)
        await self.session.delete(zone)
        await self.session.commit()

        logger.info("zone_deleted", zone_id=slug, event_id=str(event_id))


__all__ = ["ZoneService", "normalize_slug"]
