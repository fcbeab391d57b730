"""
Best-effort notifications.

Messages to the control channel, channel topic edits and the init-presence
callback all report success as a bool and log failures instead of raising.
Nothing that mutates the registry or the database lives here.
"""

import asyncio
import logging
from typing import Optional

import aiohttp
import discord

logger = logging.getLogger(__name__)


class ControlChannelNotifier:
    """Posts to and edits the designated control channel."""

    def __init__(self, client: discord.Client, channel_id: int):
        self._client = client
        self.channel_id = channel_id

    async def _fetch_channel(self) -> Optional[discord.abc.Messageable]:
        channel = self._client.get_channel(self.channel_id)
        if channel is None:
            channel = await self._client.fetch_channel(self.channel_id)
        return channel

    async def send(self, text: str) -> bool:
        """Send a message to the control channel."""
        try:
            channel = await self._fetch_channel()
            if not isinstance(channel, discord.abc.Messageable):
                logger.error(f"Control channel {self.channel_id} is not text-based")
                return False
            await channel.send(text)
            return True
        except (discord.DiscordException, asyncio.TimeoutError) as e:
            logger.error(f"Failed to send message to control channel: {e}")
            return False

    async def set_topic(self, topic: str) -> bool:
        """Replace the control channel topic."""
        try:
            channel = await self._fetch_channel()
            if not isinstance(channel, discord.TextChannel):
                logger.error(f"Control channel {self.channel_id} is not a text channel, cannot set topic")
                return False
            await channel.edit(topic=topic)
            logger.info(f"Channel topic updated: {topic!r}")
            return True
        except (discord.DiscordException, asyncio.TimeoutError) as e:
            logger.error(f"Failed to fetch or update channel topic: {e}")
            return False


class InitPresenceCallback:
    """
    POSTs an empty JSON body to a bot's init-presence URL after it connects.

    A 201 response counts as success; any other status is a warning.
    """

    SUCCESS_STATUS = 201

    def __init__(self, timeout: Optional[aiohttp.ClientTimeout] = None):
        self._timeout = timeout

    async def fire(self, name: str, url: str) -> bool:
        logger.info(f"Sending initial presence request to {url} for bot {name}...")
        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.post(
                    url,
                    json={},
                    headers={"Content-Type": "application/json"},
                ) as response:
                    logger.info(f"Received response with status: {response.status}")
                    if response.status == self.SUCCESS_STATUS:
                        logger.info(f"Initial presence request successful for bot {name}.")
                        return True
                    logger.warning(f"Unexpected status code ({response.status}) returned from {url}")
                    return False
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"Failed to send initial presence request for bot {name}: {e}")
            return False
