"""Tests for application settings."""

import pytest


class TestDatabaseURL:
    """Tests for the async SQLAlchemy URL resolution."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("postgres://u:p@db:5432/app", "postgresql+asyncpg://u:p@db:5432/app"),
            ("postgresql://u:p@db/app", "postgresql+asyncpg://u:p@db/app"),
            ("postgresql+asyncpg://u@db/app", "postgresql+asyncpg://u@db/app"),
            ("sqlite+aiosqlite:///tmp/x.db", "sqlite+aiosqlite:///tmp/x.db"),
        ],
    )
    def test_database_url_is_rewritten_for_asyncpg(self, raw, expected):
        from eventpulse.lib.config import Settings

        assert Settings(database_url=raw).sqlalchemy_url == expected

    def test_url_built_from_parts(self):
        """Without DATABASE_URL the DB_* parts are assembled."""
        from eventpulse.lib.config import Settings

        settings = Settings(
            database_url=None,
            db_host="pg",
            db_port=5433,
            db_user="ep",
            db_password="secret",
            db_name="ep_db",
        )

        assert settings.sqlalchemy_url == "postgresql+asyncpg://ep:secret@pg:5433/ep_db"

    def test_url_without_password(self):
        from eventpulse.lib.config import Settings

        settings = Settings(database_url=None, db_user="ep", db_password="", db_host="pg")

        assert settings.sqlalchemy_url.startswith("postgresql+asyncpg://ep@pg:")


class TestSettings:
    """Tests for derived settings."""

    def test_ping_interval_is_ninety_percent_of_pong_wait(self):
        from eventpulse.lib.config import Settings

        assert Settings(ws_pong_wait_seconds=60).ping_interval == pytest.approx(54.0)
        assert Settings(ws_pong_wait_seconds=10).ping_interval == pytest.approx(9.0)

    @pytest.mark.parametrize(("env", "expected"), [("production", True), ("PRODUCTION", True), ("development", False)])
    def test_is_production(self, env, expected):
        from eventpulse.lib.config import Settings

        assert Settings(env=env).is_production is expected

    def test_environment_variables_are_read(self, monkeypatch):
        from eventpulse.lib.config import Settings

        monkeypatch.setenv("WS_SEND_BUFFER", "32")
        monkeypatch.setenv("BROKER_BACKEND", "memory")

        settings = Settings()

        assert settings.ws_send_buffer == 32
        assert settings.broker_backend == "memory"

    def test_get_settings_is_cached(self):
        from eventpulse.lib.config import get_settings

        assert get_settings() is get_settings()
