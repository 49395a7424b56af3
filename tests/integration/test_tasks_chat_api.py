"""API tests for tasks and chat."""

import pytest

TASKS = "/api/v1/tareas"
CHAT = "/api/v1/chat"


@pytest.fixture
def task(client, admin, zone):
    response = client.post(
        TASKS,
        json={"titulo": "Reponer agua", "zona_id": "norte", "prioridad": "alta"},
        headers=admin.headers,
    )
    assert response.status_code == 201
    return response.json()


class TestTasks:
    """Tests for /api/v1/tareas."""

    def test_create_defaults(self, client, admin, active_event):
        response = client.post(TASKS, json={"titulo": "Revisar baños"}, headers=admin.headers)

        assert response.status_code == 201
        body = response.json()
        assert body["estado"] == "pendiente"
        assert body["prioridad"] == "media"
        assert body["zona_id"] is None
        assert body["completada_en"] is None

    def test_worker_takes_unassigned_task(self, client, task, ana):
        response = client.patch(
            f"{TASKS}/{task['id']}", json={"estado": "en_progreso"}, headers=ana.headers
        )

        assert response.status_code == 200
        assert response.json()["asignada_a"] == str(ana.id)

    def test_worker_blocked_on_others_task(self, client, task, ana, luis):
        client.patch(f"{TASKS}/{task['id']}", json={"estado": "en_progreso"}, headers=ana.headers)

        response = client.patch(
            f"{TASKS}/{task['id']}", json={"estado": "completada"}, headers=luis.headers
        )

        assert response.status_code == 403

    def test_completion_sets_timestamp(self, client, task, ana):
        response = client.patch(
            f"{TASKS}/{task['id']}", json={"estado": "completada"}, headers=ana.headers
        )

        assert response.json()["estado"] == "completada"
        assert response.json()["completada_en"] is not None

    def test_list_and_get(self, client, task, ana):
        listed = client.get(TASKS, headers=ana.headers).json()
        fetched = client.get(f"{TASKS}/{task['id']}", headers=ana.headers)

        assert [t["id"] for t in listed] == [task["id"]]
        assert fetched.json()["zona_nombre"] == "Acceso Norte"

    def test_workers_cannot_create(self, client, ana):
        response = client.post(TASKS, json={"titulo": "Algo"}, headers=ana.headers)

        assert response.status_code == 403


class TestChat:
    """Tests for /api/v1/chat."""

    def test_send_and_read(self, client, ana):
        sent = client.post(f"{CHAT}/mensaje", json={"contenido": "Hola equipo"}, headers=ana.headers)

        assert sent.status_code == 201
        assert sent.json()["nombre_usuario"] == "Ana"
        assert sent.json()["rol_usuario"] == "aseo"

        history = client.get(f"{CHAT}/historial", headers=ana.headers).json()
        assert [m["contenido"] for m in history] == ["Hola equipo"]

    def test_limit_is_500_characters(self, client, ana):
        ok = client.post(f"{CHAT}/mensaje", json={"contenido": "x" * 500}, headers=ana.headers)
        too_long = client.post(f"{CHAT}/mensaje", json={"contenido": "x" * 501}, headers=ana.headers)

        assert ok.status_code == 201
        assert too_long.status_code == 400
        assert too_long.json()["error"] == "El mensaje supera los 500 caracteres"

    def test_blank_message_rejected(self, client, ana):
        response = client.post(f"{CHAT}/mensaje", json={"contenido": "   "}, headers=ana.headers)

        assert response.status_code == 400
        assert response.json()["error"] == "El mensaje no puede estar vacío"

    def test_admin_without_active_event(self, client, admin):
        response = client.post(f"{CHAT}/mensaje", json={"contenido": "Hola"}, headers=admin.headers)

        assert response.status_code == 400
        assert response.json()["error"] == "No hay evento activo"
