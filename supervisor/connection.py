"""
Connection Handles

Defines the live session object kept for every connected bot identity and
its Discord implementation.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional

import discord

logger = logging.getLogger(__name__)


class ConnectionStatus(Enum):
    """Status of a connection handle."""
    INACTIVE = "inactive"
    STARTING = "starting"
    ACTIVE = "active"
    STOPPING = "stopping"
    ERROR = "error"


ReadyCallback = Callable[["BotConnection"], Awaitable[None]]
ErrorCallback = Callable[["BotConnection", Exception], Awaitable[None]]


def watching_activity(text: str) -> discord.Activity:
    """Build the "Watching <text>" activity shown under a bot's name."""
    return discord.Activity(type=discord.ActivityType.watching, name=text)


class BotConnection(ABC):
    """
    Abstract live session for one bot identity.

    ``login`` returns once the session is ready to use and raises if it
    never gets there. Failures after that point are reported to the
    ``on_error`` callbacks instead of being raised.
    """

    def __init__(self, name: str):
        self.name = name
        self.status = ConnectionStatus.INACTIVE
        self._error_message: Optional[str] = None
        self._on_ready_callbacks: List[ReadyCallback] = []
        self._on_error_callbacks: List[ErrorCallback] = []

    @abstractmethod
    async def login(self, token: str) -> None:
        """Open the session with the given token."""

    @abstractmethod
    async def logout(self) -> None:
        """Close the session. Safe to call more than once."""

    @abstractmethod
    async def set_presence(self, status_text: str) -> None:
        """Set the activity text displayed for this bot."""

    @property
    @abstractmethod
    def user_tag(self) -> Optional[str]:
        """Account tag of the logged-in user, if any."""

    # Event callbacks
    def on_ready(self, callback: ReadyCallback) -> None:
        """Register a callback for when the session becomes ready."""
        self._on_ready_callbacks.append(callback)

    def on_error(self, callback: ErrorCallback) -> None:
        """Register a callback for session failures after login."""
        self._on_error_callbacks.append(callback)

    async def _dispatch_ready(self) -> None:
        for callback in self._on_ready_callbacks:
            try:
                await callback(self)
            except Exception as e:
                logger.error(f"Error in ready callback for bot {self.name}: {e}")

    async def _dispatch_error(self, error: Exception) -> None:
        self._set_status(ConnectionStatus.ERROR, str(error))
        for callback in self._on_error_callbacks:
            try:
                await callback(self, error)
            except Exception as callback_error:
                logger.error(f"Error in error callback for bot {self.name}: {callback_error}")

    # Status management
    def get_status(self) -> ConnectionStatus:
        return self.status

    def get_error_message(self) -> Optional[str]:
        """Get the last error message if the handle is in error state."""
        return self._error_message if self.status == ConnectionStatus.ERROR else None

    def _set_status(self, status: ConnectionStatus, error_message: Optional[str] = None) -> None:
        self.status = status
        self._error_message = error_message if status == ConnectionStatus.ERROR else None


@dataclass
class ActiveConnection:
    """An entry of the active registry."""
    name: str
    handle: BotConnection
    token: str = field(repr=False)


class _SessionClient(discord.Client):
    """discord.Client that forwards its ready event to the owning handle."""

    def __init__(self, handle: "DiscordBotConnection", **options):
        super().__init__(**options)
        self._handle = handle

    async def on_ready(self):
        await self._handle._on_session_ready()


class DiscordBotConnection(BotConnection):
    """
    Connection handle backed by a discord.Client.

    Only the guilds intent is requested: managed bots are presence-only
    and never read messages.
    """

    def __init__(self, name: str):
        super().__init__(name)
        intents = discord.Intents.none()
        intents.guilds = True
        self._client = _SessionClient(self, intents=intents)
        self._ready = asyncio.Event()
        self._session_task: Optional[asyncio.Task] = None

    @property
    def user_tag(self) -> Optional[str]:
        return str(self._client.user) if self._client.user else None

    async def login(self, token: str) -> None:
        self._set_status(ConnectionStatus.STARTING)
        try:
            await self._client.login(token)
            self._session_task = asyncio.create_task(
                self._run_session(), name=f"bot-session-{self.name}"
            )
            ready_wait = asyncio.create_task(self._ready.wait())
            done, _ = await asyncio.wait(
                {self._session_task, ready_wait}, return_when=asyncio.FIRST_COMPLETED
            )
            if ready_wait not in done:
                ready_wait.cancel()
                error = self._session_task.exception()
                raise error or ConnectionError(f"Session for bot {self.name} closed before it became ready")
        except Exception as e:
            self._set_status(ConnectionStatus.ERROR, str(e))
            await self._close_client()
            raise

        self._set_status(ConnectionStatus.ACTIVE)

    async def _run_session(self) -> None:
        try:
            await self._client.connect(reconnect=True)
            error: Exception = ConnectionError("Session closed unexpectedly")
        except Exception as e:
            if not self._ready.is_set():
                raise
            error = e

        if not self._ready.is_set() or self.status == ConnectionStatus.STOPPING:
            return
        logger.error(f"Session for bot {self.name} failed: {error}")
        await self._dispatch_error(error)

    async def _on_session_ready(self) -> None:
        if self._ready.is_set():
            logger.info(f"Bot {self.name} re-identified as {self.user_tag}")
            return
        self._ready.set()
        await self._dispatch_ready()

    async def logout(self) -> None:
        self._set_status(ConnectionStatus.STOPPING)
        await self._close_client()
        task = self._session_task
        if task and task is not asyncio.current_task():
            # The task may be parked in an error callback waiting on the
            # supervisor lock held by our caller.
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self._set_status(ConnectionStatus.INACTIVE)

    async def _close_client(self) -> None:
        if not self._client.is_closed():
            await self._client.close()

    async def set_presence(self, status_text: str) -> None:
        await self._client.change_presence(
            activity=watching_activity(status_text),
            status=discord.Status.online,
        )


def create_discord_connection(name: str) -> BotConnection:
    """Default connection factory used by the lifecycle supervisor."""
    return DiscordBotConnection(name)
