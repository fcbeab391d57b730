"""
Bot Manager Process Tests

Tests for the startup and shutdown sequence of the manager process. The
manager's chat session, database and supervisor are replaced with mocks.
"""

import asyncio
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

# Add the project root to the path so we can import project modules
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from bot_manager import BotManager, shutdown_manager
from db.config import ManagerConfig
from supervisor import ManagerError


def _config():
    return ManagerConfig(
        discord_bot_channel_id=1,
        bot_manager_discord_token="t",
        listen_api_port=3000,
        listen_api_key="k",
        db_user="u",
        db_password="p",
        db_host="localhost",
        db_name="bots",
        shutdown_timeout_seconds=0.1,
        _env_file=None,
    )


@pytest.fixture
def manager():
    """BotManager whose collaborators record the order they are stopped in."""
    manager = BotManager(_config())
    manager.calls = []

    manager.client = MagicMock()
    manager.client.is_ready.return_value = True
    manager.client.close = AsyncMock(side_effect=lambda: manager.calls.append("close manager"))

    manager.notifier = MagicMock()
    manager.notifier.set_topic = AsyncMock(
        side_effect=lambda topic: manager.calls.append(f"topic {topic!r}") or True
    )

    manager.supervisor = MagicMock()
    manager.supervisor.shutdown = AsyncMock(side_effect=lambda: manager.calls.append("log out bots"))

    manager.database = MagicMock()
    manager.database.cleanup = AsyncMock(side_effect=lambda: manager.calls.append("close database"))
    return manager


async def _stall():
    await asyncio.Event().wait()


@pytest.mark.asyncio
async def test_stop_runs_shutdown_steps_in_order(manager):
    print("\n🛑 TESTING SHUTDOWN SEQUENCE")
    print("-" * 50)

    assert await shutdown_manager(manager, timeout=1, exit_code=0) == 0

    assert manager.calls == ["topic ''", "log out bots", "close manager", "close database"]
    print("✅ Topic cleared, bots logged out, manager closed")


@pytest.mark.asyncio
async def test_stop_skips_topic_when_manager_not_ready(manager):
    manager.client.is_ready.return_value = False

    await manager.stop()

    assert manager.calls == ["log out bots", "close manager", "close database"]


@pytest.mark.asyncio
async def test_stalled_shutdown_forces_exit(manager):
    manager.supervisor.shutdown = AsyncMock(side_effect=_stall)

    with patch("bot_manager.os._exit") as force_exit:
        exit_code = await shutdown_manager(manager, timeout=0.05, exit_code=0)

    force_exit.assert_called_once_with(1)
    assert exit_code == 1
    assert "close manager" not in manager.calls


@pytest.mark.asyncio
async def test_shutdown_error_gives_nonzero_exit(manager):
    manager.database.cleanup = AsyncMock(side_effect=RuntimeError("pool gone"))

    with patch("bot_manager.os._exit") as force_exit:
        assert await shutdown_manager(manager, timeout=1, exit_code=0) == 1
    force_exit.assert_not_called()


@pytest.mark.asyncio
async def test_stop_signal_during_startup_abandons_it(manager):
    """A signal while the database setup hangs still leads to shutdown."""
    print("\n⏹️ TESTING STOP DURING STARTUP")
    print("-" * 50)

    cancelled = asyncio.Event()

    async def hanging_initialize():
        try:
            await _stall()
        except asyncio.CancelledError:
            cancelled.set()
            raise

    manager.initialize = hanging_initialize
    manager.start = AsyncMock()
    stop_event = asyncio.Event()
    asyncio.get_running_loop().call_soon(stop_event.set)

    assert await asyncio.wait_for(manager.run(stop_event), timeout=1) == 0

    assert cancelled.is_set()
    manager.start.assert_not_awaited()
    print("✅ Startup abandoned")


@pytest.mark.asyncio
async def test_startup_failure_propagates(manager):
    manager.initialize = AsyncMock(side_effect=ManagerError("Failed to create the database schema"))

    with pytest.raises(ManagerError):
        await manager.run(asyncio.Event())


@pytest.mark.asyncio
async def test_run_returns_when_stop_requested(manager):
    manager.initialize = AsyncMock()

    async def start():
        manager._client_task = asyncio.create_task(_stall())

    manager.start = start
    stop_event = asyncio.Event()
    asyncio.get_running_loop().call_later(0.01, stop_event.set)

    assert await asyncio.wait_for(manager.run(stop_event), timeout=1) == 0
    manager._client_task.cancel()


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
