"""Tests for startup connectivity checks."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from tenacity import wait_none


@pytest.fixture
def no_backoff():
    """Remove the exponential wait between retries."""
    from eventpulse.lib import startup_checks

    with (
        patch.object(startup_checks._ping_database_with_retry.retry, "wait", wait_none()),
        patch.object(startup_checks._ping_broker_with_retry.retry, "wait", wait_none()),
    ):
        yield


class TestCheckDatabase:
    """Tests for the database check."""

    @pytest.mark.asyncio
    async def test_success(self):
        from eventpulse.lib.startup_checks import check_database

        with patch("eventpulse.lib.startup_checks.ping_database", AsyncMock()) as ping:
            await check_database(MagicMock(), timeout=1)

        ping.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_retries_then_raises(self, no_backoff):
        """Connection failures are retried and end in DatabaseUnavailableError."""
        from eventpulse.lib.startup_checks import (
            MAX_RETRIES,
            DatabaseUnavailableError,
            check_database,
        )

        ping = AsyncMock(side_effect=OSError("connection refused"))
        with patch("eventpulse.lib.startup_checks.ping_database", ping):
            with pytest.raises(DatabaseUnavailableError):
                await check_database(MagicMock(), timeout=1)

        assert ping.await_count == MAX_RETRIES

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self, no_backoff):
        from eventpulse.lib.startup_checks import check_database

        ping = AsyncMock(side_effect=[OSError("connection refused"), None])
        with patch("eventpulse.lib.startup_checks.ping_database", ping):
            await check_database(MagicMock(), timeout=1)

        assert ping.await_count == 2


class TestCheckBroker:
    """Tests for the broker check."""

    @pytest.mark.asyncio
    async def test_reachable_broker(self):
        from eventpulse.lib.broker import InMemoryBroker
        from eventpulse.lib.startup_checks import check_broker

        assert await check_broker(InMemoryBroker(), timeout=1) is True

    @pytest.mark.asyncio
    async def test_unreachable_broker_is_not_fatal(self, no_backoff):
        """A broker outage is reported as False instead of raising."""
        from eventpulse.lib.broker import InMemoryBroker
        from eventpulse.lib.startup_checks import check_broker

        broker = InMemoryBroker()
        await broker.close()

        assert await check_broker(broker, timeout=1) is False


class TestRunAllStartupChecks:
    """Tests for the combined check."""

    @pytest.mark.asyncio
    async def test_database_failure_aborts(self, no_backoff):
        from eventpulse.lib.broker import InMemoryBroker
        from eventpulse.lib.startup_checks import StartupCheckError, run_all_startup_checks

        ping = AsyncMock(side_effect=OSError("down"))
        with patch("eventpulse.lib.startup_checks.ping_database", ping):
            with pytest.raises(StartupCheckError):
                await run_all_startup_checks(MagicMock(), InMemoryBroker(), timeout=1)

    @pytest.mark.asyncio
    async def test_broker_failure_is_tolerated(self, no_backoff):
        from eventpulse.lib.broker import InMemoryBroker
        from eventpulse.lib.startup_checks import run_all_startup_checks

        broker = InMemoryBroker()
        await broker.close()
        with patch("eventpulse.lib.startup_checks.ping_database", AsyncMock()):
            await run_all_startup_checks(MagicMock(), broker, timeout=1)
