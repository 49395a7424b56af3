"""Tests for the error hierarchy and its JSON rendering."""

import pytest
from fastapi import FastAPI
from pydantic import BaseModel


@pytest.fixture
def error_app():
    """Minimal app whose routes raise each kind of error."""
    from sqlalchemy.exc import IntegrityError, OperationalError

    from eventpulse.api.middleware.error import (
        ClaimConflictError,
        ForbiddenError,
        NotFoundError,
        register_exception_handlers,
    )

    app = FastAPI()
    register_exception_handlers(app)

    class Body(BaseModel):
        nombre: str

    @app.get("/missing")
    async def missing():
        raise NotFoundError("incidencia", "abc")

    @app.get("/forbidden")
    async def forbidden():
        raise ForbiddenError()

    @app.get("/claimed")
    async def claimed():
        raise ClaimConflictError("abc", winner_name="Ana")

    @app.get("/db-down")
    async def db_down():
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    @app.get("/duplicate")
    async def duplicate():
        raise IntegrityError(
            "INSERT INTO users", {}, Exception("UNIQUE constraint failed: users.handle")
        )

    @app.get("/boom")
    async def boom():
        raise RuntimeError("unexpected")

    @app.post("/body")
    async def body(payload: Body):
        return {"ok": True}

    return app


@pytest.fixture
def error_client(error_app):
    from fastapi.testclient import TestClient

    return TestClient(error_app, raise_server_exceptions=False)


class TestErrorClasses:
    """Tests for the typed errors."""

    def test_claim_conflict_names_winner(self):
        from eventpulse.api.middleware.error import ClaimConflictError

        error = ClaimConflictError("i-1", winner_name="Ana")

        assert error.message == "Conflicto: ya fue tomada por Ana"
        assert error.status_code == 409
        assert error.error_code == "CLAIM_CONFLICT"

    def test_claim_conflict_on_state(self):
        from eventpulse.api.middleware.error import ClaimConflictError

        error = ClaimConflictError("i-1", current_state="resuelta")

        assert error.message == "Conflicto: ya está en estado resuelta"

    def test_invalid_transition_is_a_validation_error(self):
        from eventpulse.api.middleware.error import InvalidTransitionError, ValidationError

        error = InvalidTransitionError("resuelta", "pendiente")

        assert isinstance(error, ValidationError)
        assert error.status_code == 400
        assert error.context["field"] == "estado"

    def test_not_found_context(self):
        from eventpulse.api.middleware.error import NotFoundError

        error = NotFoundError("tarea", "t-1")

        assert error.status_code == 404
        assert error.context == {"resource_type": "tarea", "resource_id": "t-1"}


class TestErrorHandlers:
    """Tests for the ``{"error", "codigo"}`` body."""

    @pytest.mark.parametrize(
        ("path", "status"),
        [("/missing", 404), ("/forbidden", 403), ("/claimed", 409)],
    )
    def test_typed_errors_render_body(self, error_client, path, status):
        response = error_client.get(path)

        assert response.status_code == status
        body = response.json()
        assert set(body) == {"error", "codigo"}
        assert body["codigo"] == status

    def test_claim_conflict_message(self, error_client):
        response = error_client.get("/claimed")

        assert response.json() == {"error": "Conflicto: ya fue tomada por Ana", "codigo": 409}

    def test_request_validation_is_400(self, error_client):
        response = error_client.post("/body", json={})

        assert response.status_code == 400
        assert response.json()["codigo"] == 400
        assert "nombre" in response.json()["error"]

    def test_unknown_route_uses_same_shape(self, error_client):
        response = error_client.get("/nope")

        assert response.status_code == 404
        assert response.json()["codigo"] == 404

    def test_transient_database_error_is_500(self, error_client):
        response = error_client.get("/db-down")

        assert response.status_code == 500
        assert response.json()["error"] == "Servicio no disponible temporalmente, reintente"

    def test_integrity_race_is_409(self, error_client):
        """A unique key taken by a concurrent request is a conflict, not a crash."""
        response = error_client.get("/duplicate")

        assert response.status_code == 409
        assert response.json() == {
            "error": "El recurso ya existe o fue modificado, reintente",
            "codigo": 409,
        }

    def test_unhandled_error_hides_details(self, error_client):
        response = error_client.get("/boom")

        assert response.status_code == 500
        assert response.json() == {"error": "Error interno del servidor", "codigo": 500}
