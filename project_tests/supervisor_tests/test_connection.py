"""
Discord Connection Handle Tests

Tests for the readiness and error reporting of DiscordBotConnection. The
client's network calls are replaced, so nothing reaches Discord.
"""

import asyncio
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

# Add the project root to the path so we can import project modules
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from supervisor.connection import ConnectionStatus, DiscordBotConnection


def _connection(session):
    """DiscordBotConnection whose gateway session runs ``session(connection)``."""
    connection = DiscordBotConnection("ada")
    client = connection._client
    client.login = AsyncMock()
    client.close = AsyncMock()
    client.is_closed = MagicMock(return_value=False)

    async def connect(reconnect=True):
        await session(connection)

    client.connect = connect
    return connection


async def _ready_then_wait(connection):
    await connection._on_session_ready()
    await asyncio.Event().wait()


@pytest.mark.asyncio
async def test_login_waits_for_ready_and_logout_closes():
    print("\n🔌 TESTING CONNECTION LIFECYCLE")
    print("-" * 50)

    connection = _connection(_ready_then_wait)
    ready = []

    async def on_ready(handle):
        ready.append(handle)

    connection.on_ready(on_ready)

    await connection.login("token")
    assert connection.get_status() == ConnectionStatus.ACTIVE
    assert ready == [connection]
    connection._client.login.assert_awaited_once_with("token")

    await connection.logout()
    assert connection.get_status() == ConnectionStatus.INACTIVE
    connection._client.close.assert_awaited_once()
    print("✅ Login and logout working")


@pytest.mark.asyncio
async def test_rejected_token_raises():
    connection = _connection(_ready_then_wait)
    connection._client.login = AsyncMock(side_effect=discord.LoginFailure("Improper token has been passed."))

    with pytest.raises(discord.LoginFailure):
        await connection.login("bad")

    assert connection.get_status() == ConnectionStatus.ERROR
    assert connection.get_error_message() == "Improper token has been passed."
    connection._client.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_session_closing_before_ready_raises():
    async def refuse(connection):
        raise RuntimeError("privileged intents required")

    connection = _connection(refuse)

    with pytest.raises(RuntimeError, match="privileged intents required"):
        await connection.login("token")
    assert connection.get_status() == ConnectionStatus.ERROR


@pytest.mark.asyncio
async def test_failure_after_ready_goes_to_error_callbacks():
    failed = asyncio.Event()

    async def ready_then_fail(connection):
        await connection._on_session_ready()
        await failed.wait()
        raise RuntimeError("gateway closed")

    connection = _connection(ready_then_fail)
    errors = []

    async def on_error(handle, error):
        errors.append(str(error))

    connection.on_error(on_error)
    await connection.login("token")

    failed.set()
    await connection._session_task

    assert errors == ["gateway closed"]
    assert connection.get_status() == ConnectionStatus.ERROR


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
