"""
Notifier Tests

Tests for the best-effort control channel notifier and the init-presence
callback. Failures must come back as False, never as exceptions.
"""

import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import discord
import pytest

# Add the project root to the path so we can import project modules
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from supervisor.notifier import ControlChannelNotifier, InitPresenceCallback


def _client_with_channel(channel):
    client = MagicMock()
    client.get_channel.return_value = channel
    client.fetch_channel = AsyncMock(return_value=channel)
    return client


@pytest.mark.asyncio
async def test_send_posts_to_channel():
    channel = MagicMock(spec=discord.TextChannel)
    channel.send = AsyncMock()
    notifier = ControlChannelNotifier(_client_with_channel(channel), 42)

    assert await notifier.send("hello") is True
    channel.send.assert_awaited_once_with("hello")


@pytest.mark.asyncio
async def test_set_topic_fetches_uncached_channel():
    channel = MagicMock(spec=discord.TextChannel)
    channel.edit = AsyncMock()
    client = _client_with_channel(channel)
    client.get_channel.return_value = None
    notifier = ControlChannelNotifier(client, 42)

    assert await notifier.set_topic("Active bots: ada") is True
    client.fetch_channel.assert_awaited_once_with(42)
    channel.edit.assert_awaited_once_with(topic="Active bots: ada")


@pytest.mark.asyncio
async def test_failures_return_false():
    print("\n📣 TESTING BEST-EFFORT NOTIFICATIONS")
    print("-" * 50)

    channel = MagicMock(spec=discord.TextChannel)
    channel.send = AsyncMock(side_effect=discord.DiscordException("missing access"))
    channel.edit = AsyncMock(side_effect=discord.DiscordException("missing access"))
    notifier = ControlChannelNotifier(_client_with_channel(channel), 42)

    assert await notifier.send("hello") is False
    assert await notifier.set_topic("topic") is False
    print("✅ Failures contained")


@pytest.mark.asyncio
async def test_set_topic_requires_text_channel():
    channel = MagicMock(spec=discord.DMChannel)
    notifier = ControlChannelNotifier(_client_with_channel(channel), 42)

    assert await notifier.set_topic("topic") is False


def _session_returning(status=None, error=None):
    """Patch target for aiohttp.ClientSession whose post yields ``status``."""
    response = MagicMock()
    response.status = status

    post_context = MagicMock()
    post_context.__aenter__ = AsyncMock(return_value=response, side_effect=error)
    post_context.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.post = MagicMock(return_value=post_context)

    session_context = MagicMock()
    session_context.__aenter__ = AsyncMock(return_value=session)
    session_context.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=session_context), session


@pytest.mark.asyncio
async def test_init_callback_success_on_201():
    session_class, session = _session_returning(status=201)
    with patch("supervisor.notifier.aiohttp.ClientSession", session_class):
        assert await InitPresenceCallback().fire("ada", "http://localhost/ready") is True

    session.post.assert_called_once_with(
        "http://localhost/ready",
        json={},
        headers={"Content-Type": "application/json"},
    )


@pytest.mark.asyncio
async def test_init_callback_other_status_is_not_success():
    session_class, _ = _session_returning(status=200)
    with patch("supervisor.notifier.aiohttp.ClientSession", session_class):
        assert await InitPresenceCallback().fire("ada", "http://localhost/ready") is False


@pytest.mark.asyncio
async def test_init_callback_network_error_is_contained():
    session_class, _ = _session_returning(error=aiohttp.ClientConnectionError("refused"))
    with patch("supervisor.notifier.aiohttp.ClientSession", session_class):
        assert await InitPresenceCallback().fire("ada", "http://localhost/ready") is False


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
