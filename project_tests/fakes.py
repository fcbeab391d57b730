"""
In-memory stand-ins for the bot store, the control channel and the Discord
sessions, so the supervisor, the interpreter and the API can be tested
without a database or network.
"""

import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional

from db.bot_store import BotIdentity
from supervisor.connection import BotConnection, ConnectionStatus


class FakeConnection(BotConnection):
    """Connection handle that logs in instantly unless gated or told to fail."""

    def __init__(self, name: str, login_error: Optional[Exception] = None,
                 logout_error: Optional[Exception] = None,
                 presence_error: Optional[Exception] = None,
                 login_gate: Optional[asyncio.Event] = None):
        super().__init__(name)
        self.login_gate = login_gate
        self.login_error = login_error
        self.logout_error = logout_error
        self.presence_error = presence_error
        self.token: Optional[str] = None
        self.login_calls = 0
        self.logout_calls = 0
        self.presence: Optional[str] = None

    @property
    def user_tag(self) -> Optional[str]:
        return f"{self.name}#0001" if self.status == ConnectionStatus.ACTIVE else None

    async def login(self, token: str) -> None:
        self.login_calls += 1
        self._set_status(ConnectionStatus.STARTING)
        if self.login_gate is not None:
            await self.login_gate.wait()
        if self.login_error is not None:
            self._set_status(ConnectionStatus.ERROR, str(self.login_error))
            raise self.login_error
        self.token = token
        self._set_status(ConnectionStatus.ACTIVE)
        await self._dispatch_ready()

    async def logout(self) -> None:
        self.logout_calls += 1
        if self.logout_error is not None:
            raise self.logout_error
        self._set_status(ConnectionStatus.INACTIVE)

    async def set_presence(self, status_text: str) -> None:
        if self.presence_error is not None:
            raise self.presence_error
        self.presence = status_text

    async def fail(self, error: Exception) -> None:
        """Simulate the session dying after login."""
        await self._dispatch_error(error)


class ConnectionFactory:
    """Creates FakeConnections and remembers them by name."""

    def __init__(self):
        self.created: List[FakeConnection] = []
        self.login_errors: Dict[str, Exception] = {}
        self.logout_errors: Dict[str, Exception] = {}
        self.login_gates: Dict[str, asyncio.Event] = {}

    def __call__(self, name: str) -> FakeConnection:
        connection = FakeConnection(
            name,
            login_error=self.login_errors.get(name),
            logout_error=self.logout_errors.get(name),
            login_gate=self.login_gates.get(name),
        )
        self.created.append(connection)
        return connection

    def for_name(self, name: str) -> List[FakeConnection]:
        return [c for c in self.created if c.name == name]


class FakeStore:
    """BotStore with the same coroutine API, backed by a dict."""

    def __init__(self):
        self.bots: Dict[str, BotIdentity] = {}
        self.fail_with: Optional[Exception] = None

    def _check(self):
        if self.fail_with is not None:
            raise self.fail_with

    async def get_enabled_bots(self) -> List[BotIdentity]:
        self._check()
        return [bot for bot in self.bots.values() if bot.enabled]

    async def list_bots(self) -> List[BotIdentity]:
        self._check()
        return sorted(self.bots.values(), key=lambda bot: bot.name)

    async def get_bot(self, name: str) -> Optional[BotIdentity]:
        self._check()
        return self.bots.get(name)

    async def create_bot(self, name: str, token: str) -> None:
        self._check()
        existing = self.bots.get(name)
        if existing:
            existing.token = token
            existing.enabled = True
            existing.disabled_on = None
            existing.logon_error = None
        else:
            self.bots[name] = BotIdentity(name=name, token=token, created_on=datetime.now(timezone.utc))

    async def mark_connected(self, name: str) -> None:
        self._check()
        bot = self.bots.get(name)
        if bot:
            bot.last_connected_on = datetime.now(timezone.utc)
            bot.logon_error = None
            bot.enabled = True
            bot.disabled_on = None

    async def mark_failed(self, name: str, error: str) -> None:
        self._check()
        bot = self.bots.get(name)
        if bot:
            bot.enabled = False
            bot.logon_error = error
            bot.disabled_on = datetime.now(timezone.utc)

    async def disable_bot(self, name: str) -> int:
        self._check()
        bot = self.bots.get(name)
        if not bot:
            return 0
        bot.enabled = False
        bot.disabled_on = datetime.now(timezone.utc)
        return 1

    async def set_init_presence_url(self, name: str, url: str) -> int:
        self._check()
        bot = self.bots.get(name)
        if not bot:
            return 0
        bot.init_presence_url = url
        return 1

    async def get_init_presence_url(self, name: str) -> Optional[str]:
        self._check()
        bot = self.bots.get(name)
        return bot.init_presence_url if bot else None


class FakeNotifier:
    """Records control channel messages and topics."""

    def __init__(self):
        self.messages: List[str] = []
        self.topics: List[str] = []

    async def send(self, text: str) -> bool:
        self.messages.append(text)
        return True

    async def set_topic(self, topic: str) -> bool:
        self.topics.append(topic)
        return True

    @property
    def topic(self) -> Optional[str]:
        return self.topics[-1] if self.topics else None


class FakeInitCallback:
    """Records init-presence calls instead of POSTing."""

    def __init__(self):
        self.calls: List[tuple] = []

    async def fire(self, name: str, url: str) -> bool:
        self.calls.append((name, url))
        return True


class ActivityRecorder:
    """Async callable standing in for the manager's change_presence."""

    def __init__(self):
        self.activities: List[str] = []
        self.gates: Dict[str, asyncio.Event] = {}

    async def __call__(self, text: str) -> None:
        self.activities.append(text)
        gate = self.gates.get(text)
        if gate is not None:
            await gate.wait()


def make_supervisor(store: Optional[FakeStore] = None):
    """Build a LifecycleSupervisor wired to fakes."""
    from supervisor.lifecycle import LifecycleSupervisor

    store = store or FakeStore()
    notifier = FakeNotifier()
    factory = ConnectionFactory()
    activity = ActivityRecorder()
    init_callback = FakeInitCallback()
    supervisor = LifecycleSupervisor(
        store,
        notifier,
        activity,
        connection_factory=factory,
        init_callback=init_callback,
    )
    return supervisor, store, notifier, factory, activity, init_callback


class FakeChannel:
    """Text channel with an in-memory history, newest message first."""

    def __init__(self, channel_id: int, messages: Optional[list] = None):
        self.id = channel_id
        self.messages = list(messages or [])
        self.sent: List[str] = []
        self.deleted: list = []

    def history(self, limit: int):
        batch = self.messages[:limit]

        async def iterate():
            for message in batch:
                yield message

        return iterate()

    async def delete_messages(self, messages) -> None:
        for message in messages:
            self.messages.remove(message)
        self.deleted.extend(messages)

    async def send(self, text: str) -> None:
        self.sent.append(text)


class FakeMessage:
    """Chat message carrying a command."""

    def __init__(self, content: str, channel: FakeChannel, author: str = "admin#0001", created_at=None):
        self.content = content
        self.channel = channel
        self.author = author
        self.created_at = created_at
        self.replies: List[str] = []
        self.was_deleted = False

    async def reply(self, text: str) -> None:
        self.replies.append(text)

    async def delete(self) -> None:
        self.was_deleted = True
