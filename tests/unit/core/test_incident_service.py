"""Tests for IncidentService: creation, the claim protocol, resolution and admin edits."""

import uuid
from unittest.mock import AsyncMock, patch

import pytest


class TestCreate:
    """Tests for incident creation."""

    @pytest.mark.asyncio
    async def test_zone_slug_is_normalized(self, session_factory, zone, admin):
        from eventpulse.core.incidents import IncidentService
        from eventpulse.db.models import IncidentType

        async with session_factory() as session:
            incident = await IncidentService(session).create(
                zone.event_id, "  NORTE ", IncidentType.SECURITY, "Pelea en la fila", admin.id
            )

            assert incident.zone_id == "norte"
            assert incident.zone_name == "Acceso Norte"
            assert incident.state == "pendiente"
            assert incident.assigned_to is None

    @pytest.mark.asyncio
    async def test_unknown_zone_rejected(self, session_factory, zone, admin):
        from eventpulse.api.middleware.error import ValidationError
        from eventpulse.core.incidents import IncidentService
        from eventpulse.db.models import IncidentType

        async with session_factory() as session:
            with pytest.raises(ValidationError):
                await IncidentService(session).create(
                    zone.event_id, "sur", IncidentType.SPILL, "Derrame de agua", admin.id
                )

    @pytest.mark.asyncio
    async def test_assignee_from_another_event_rejected(
        self, session_factory, sync_session, zone, admin, worker_factory
    ):
        from eventpulse.api.middleware.error import ValidationError
        from eventpulse.core.incidents import IncidentService
        from eventpulse.db.base import utcnow
        from eventpulse.db.models import Event, EventState, IncidentType

        other = Event(
            name="Feria Pasada",
            state=EventState.ENDED.value,
            created_by=admin.id,
            ended_at=utcnow(),
        )
        sync_session.add(other)
        sync_session.commit()
        outsider = worker_factory("pedro", "Pedro", event_id=other.id)

        async with session_factory() as session:
            with pytest.raises(ValidationError):
                await IncidentService(session).create(
                    zone.event_id,
                    "norte",
                    IncidentType.MEDICAL,
                    "Persona desmayada",
                    admin.id,
                    assignee_id=outsider.id,
                )


class TestClaim:
    """Tests for the claim protocol."""

    @pytest.mark.asyncio
    async def test_claim_assigns_and_records_history(self, session_factory, incident, ana):
        from eventpulse.core.incidents import IncidentService

        async with session_factory() as session:
            claimed = await IncidentService(session).claim(incident.id, ana.id)

            assert claimed.state == "en_atencion"
            assert claimed.assigned_to == ana.id
            assert claimed.assignee_name == "Ana"

        async with session_factory() as session:
            history = await IncidentService(session).history(incident.id)

            assert [(h.from_state, h.to_state) for h in history] == [
                ("pendiente", "en_atencion")
            ]
            assert history[0].actor_id == ana.id
            assert history[0].actor_name == "Ana"

    @pytest.mark.asyncio
    async def test_second_claim_names_the_winner(self, session_factory, incident, ana, luis):
        """The loser is told who holds the incident and nothing changes."""
        from eventpulse.api.middleware.error import ClaimConflictError
        from eventpulse.core.incidents import IncidentService

        async with session_factory() as session:
            await IncidentService(session).claim(incident.id, ana.id)

        async with session_factory() as session:
            with pytest.raises(ClaimConflictError) as exc_info:
                await IncidentService(session).claim(incident.id, luis.id)

        assert exc_info.value.message == "Conflicto: ya fue tomada por Ana"
        assert exc_info.value.status_code == 409

        async with session_factory() as session:
            service = IncidentService(session)
            current = await service.get(incident.id)
            assert current.assigned_to == ana.id
            assert len(await service.history(incident.id)) == 1

    @pytest.mark.asyncio
    async def test_skipped_lock_reports_current_holder(self, session_factory, incident, ana, luis):
        """A row skipped because another claim holds it is a conflict naming the holder."""
        from eventpulse.api.middleware.error import ClaimConflictError
        from eventpulse.core.incidents import IncidentService
        from eventpulse.db.repository import IncidentRepository

        async with session_factory() as session:
            await IncidentService(session).claim(incident.id, ana.id)

        with patch.object(IncidentRepository, "try_lock", AsyncMock(return_value=None)):
            async with session_factory() as session:
                with pytest.raises(ClaimConflictError) as exc_info:
                    await IncidentService(session).claim(incident.id, luis.id)

        assert exc_info.value.winner_name == "Ana"

    @pytest.mark.asyncio
    async def test_skipped_lock_before_commit_uses_placeholder(
        self, session_factory, incident, luis
    ):
        """While the winner has not committed yet its name is unknown."""
        from eventpulse.api.middleware.error import ClaimConflictError
        from eventpulse.core.incidents import UNKNOWN_WINNER, IncidentService
        from eventpulse.db.repository import IncidentRepository

        with patch.object(IncidentRepository, "try_lock", AsyncMock(return_value=None)):
            async with session_factory() as session:
                with pytest.raises(ClaimConflictError) as exc_info:
                    await IncidentService(session).claim(incident.id, luis.id)

        assert exc_info.value.winner_name == UNKNOWN_WINNER

    @pytest.mark.asyncio
    async def test_claim_resolved_incident_reports_state(
        self, session_factory, incident, supervisor, ana
    ):
        from eventpulse.api.middleware.error import ClaimConflictError
        from eventpulse.core.incidents import IncidentService

        async with session_factory() as session:
            await IncidentService(session).resolve(incident.id, supervisor.id, "supervisor")

        async with session_factory() as session:
            with pytest.raises(ClaimConflictError) as exc_info:
                await IncidentService(session).claim(incident.id, ana.id)

        assert exc_info.value.message == "Conflicto: ya está en estado resuelta"

    @pytest.mark.asyncio
    async def test_claim_missing_incident(self, session_factory, ana):
        from eventpulse.api.middleware.error import NotFoundError
        from eventpulse.core.incidents import IncidentService

        async with session_factory() as session:
            with pytest.raises(NotFoundError):
                await IncidentService(session).claim(uuid.uuid4(), ana.id)


class TestResolve:
    """Tests for resolution rights."""

    @pytest.mark.asyncio
    async def test_assignee_resolves(self, session_factory, incident, ana):
        from eventpulse.core.incidents import IncidentService, validate_history

        async with session_factory() as session:
            service = IncidentService(session)
            await service.claim(incident.id, ana.id)
            resolved = await service.resolve(incident.id, ana.id, "aseo")
            assert resolved.state == "resuelta"

        async with session_factory() as session:
            history = await IncidentService(session).history(incident.id)
            validate_history(history)
            assert [h.to_state for h in history] == ["en_atencion", "resuelta"]

    @pytest.mark.asyncio
    async def test_other_worker_forbidden(self, session_factory, incident, ana, luis):
        from eventpulse.api.middleware.error import ForbiddenError
        from eventpulse.core.incidents import IncidentService

        async with session_factory() as session:
            await IncidentService(session).claim(incident.id, ana.id)

        async with session_factory() as session:
            with pytest.raises(ForbiddenError):
                await IncidentService(session).resolve(incident.id, luis.id, "guardia")

    @pytest.mark.asyncio
    async def test_worker_cannot_resolve_unclaimed(self, session_factory, incident, ana):
        from eventpulse.api.middleware.error import ForbiddenError
        from eventpulse.core.incidents import IncidentService

        async with session_factory() as session:
            with pytest.raises(ForbiddenError):
                await IncidentService(session).resolve(incident.id, ana.id, "aseo")

    @pytest.mark.asyncio
    async def test_preassigned_worker_cannot_skip_attention(
        self, session_factory, zone, admin, ana
    ):
        """A worker assigned at creation must claim before resolving."""
        from eventpulse.api.middleware.error import ForbiddenError
        from eventpulse.core.incidents import IncidentService
        from eventpulse.db.models import IncidentType

        async with session_factory() as session:
            created = await IncidentService(session).create(
                zone.event_id, "norte", IncidentType.SPILL, "Vaso roto", admin.id, assignee_id=ana.id
            )

        async with session_factory() as session:
            with pytest.raises(ForbiddenError):
                await IncidentService(session).resolve(created.id, ana.id, "aseo")

        async with session_factory() as session:
            service = IncidentService(session)
            current = await service.get(created.id)
            history = await service.history(created.id)

            assert current.state == "pendiente"
            assert history == []

    @pytest.mark.asyncio
    async def test_supervisor_resolves_pending_directly(self, session_factory, incident, supervisor):
        from eventpulse.core.incidents import IncidentService

        async with session_factory() as session:
            service = IncidentService(session)
            resolved = await service.resolve(incident.id, supervisor.id, "supervisor")
            history = await service.history(incident.id)

            assert resolved.state == "resuelta"
            assert resolved.assigned_to is None
            assert [(h.from_state, h.to_state) for h in history] == [("pendiente", "resuelta")]

    @pytest.mark.asyncio
    async def test_double_resolve_conflicts(self, session_factory, incident, supervisor):
        from eventpulse.api.middleware.error import ClaimConflictError
        from eventpulse.core.incidents import IncidentService

        async with session_factory() as session:
            await IncidentService(session).resolve(incident.id, supervisor.id, "supervisor")

        async with session_factory() as session:
            with pytest.raises(ClaimConflictError):
                await IncidentService(session).resolve(incident.id, supervisor.id, "supervisor")


class TestAdminEdit:
    """Tests for the admin edit path."""

    @pytest.mark.asyncio
    async def test_non_admin_forbidden(self, session_factory, incident, supervisor):
        from eventpulse.api.middleware.error import ForbiddenError
        from eventpulse.core.incidents import IncidentPatch, IncidentService
        from eventpulse.db.models import IncidentState

        async with session_factory() as session:
            with pytest.raises(ForbiddenError):
                await IncidentService(session).edit(
                    incident.id,
                    IncidentPatch(state=IncidentState.RESOLVED),
                    supervisor.id,
                    "supervisor",
                )

    @pytest.mark.asyncio
    async def test_empty_patch_rejected(self, session_factory, incident, admin):
        from eventpulse.api.middleware.error import ValidationError
        from eventpulse.core.incidents import IncidentPatch, IncidentService

        async with session_factory() as session:
            with pytest.raises(ValidationError):
                await IncidentService(session).edit(incident.id, IncidentPatch(), admin.id, "admin")

    @pytest.mark.asyncio
    async def test_assign_and_move_to_attention(self, session_factory, incident, admin, luis):
        from eventpulse.core.incidents import IncidentPatch, IncidentService
        from eventpulse.db.models import IncidentState

        async with session_factory() as session:
            service = IncidentService(session)
            edited = await service.edit(
                incident.id,
                IncidentPatch(state=IncidentState.IN_ATTENTION, assigned_to=luis.id),
                admin.id,
                "admin",
            )
            history = await service.history(incident.id)

            assert edited.state == "en_atencion"
            assert edited.assignee_name == "Luis"
            assert len(history) == 1
            assert history[0].actor_id == admin.id

    @pytest.mark.asyncio
    async def test_attention_requires_assignee(self, session_factory, incident, admin):
        from eventpulse.api.middleware.error import ValidationError
        from eventpulse.core.incidents import IncidentPatch, IncidentService
        from eventpulse.db.models import IncidentState

        async with session_factory() as session:
            with pytest.raises(ValidationError):
                await IncidentService(session).edit(
                    incident.id,
                    IncidentPatch(state=IncidentState.IN_ATTENTION),
                    admin.id,
                    "admin",
                )

    @pytest.mark.asyncio
    async def test_backwards_transition_rejected(self, session_factory, incident, admin, ana):
        from eventpulse.api.middleware.error import InvalidTransitionError
        from eventpulse.core.incidents import IncidentPatch, IncidentService
        from eventpulse.db.models import IncidentState

        async with session_factory() as session:
            await IncidentService(session).claim(incident.id, ana.id)

        async with session_factory() as session:
            with pytest.raises(InvalidTransitionError):
                await IncidentService(session).edit(
                    incident.id,
                    IncidentPatch(state=IncidentState.PENDING),
                    admin.id,
                    "admin",
                )

    @pytest.mark.asyncio
    async def test_reassign_without_state_change_keeps_history(
        self, session_factory, incident, admin, ana, luis
    ):
        """Changing only the assignee records no transition."""
        from eventpulse.core.incidents import IncidentPatch, IncidentService

        async with session_factory() as session:
            service = IncidentService(session)
            await service.claim(incident.id, ana.id)
            edited = await service.edit(
                incident.id, IncidentPatch(assigned_to=luis.id), admin.id, "admin"
            )
            history = await service.history(incident.id)

            assert edited.assigned_to == luis.id
            assert edited.state == "en_atencion"
            assert len(history) == 1


class TestList:
    """Tests for listing."""

    @pytest.mark.asyncio
    async def test_filter_by_state(self, session_factory, incident, ana):
        from eventpulse.core.incidents import IncidentService
        from eventpulse.db.models import IncidentState

        async with session_factory() as session:
            service = IncidentService(session)
            await service.claim(incident.id, ana.id)

            pending = await service.list_for_event(incident.event_id, IncidentState.PENDING)
            attended = await service.list_for_event(incident.event_id, IncidentState.IN_ATTENTION)
            everything = await service.list_for_event(incident.event_id)

        assert pending == []
        assert [i.id for i in attended] == [incident.id]
        assert len(everything) == 1


class TestRowLocks:
    """Tests for the locking reads used by claim and resolve."""

    @pytest.mark.asyncio
    async def test_lock_queries_load_only_the_row(self, session_factory, incident):
        """Locking reads raise no deprecation warnings and fetch the incident columns."""
        import warnings

        from sqlalchemy.exc import SADeprecationWarning

        from eventpulse.db.repository import IncidentRepository

        with warnings.catch_warnings():
            warnings.simplefilter("error", SADeprecationWarning)
            async with session_factory() as session:
                repository = IncidentRepository(session)
                skipped_lock = await repository.try_lock(incident.id)
                blocking_lock = await repository.lock(incident.id)

                assert skipped_lock is not None
                assert blocking_lock is skipped_lock
                assert blocking_lock.state == "pendiente"
                assert blocking_lock.zone_id == "norte"
