"""
Lifecycle Supervisor

Starts, stops and reconciles bot sessions, keeping the active registry, the
persisted bot registry and the manager's presence consistent with each other.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional

from .active_registry import ActiveRegistry
from .connection import BotConnection, create_discord_connection
from .notifier import InitPresenceCallback
from .presence import PresenceAggregator

logger = logging.getLogger(__name__)


def _describe(error: Exception) -> str:
    return str(error) or type(error).__name__


@dataclass
class _NameLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class LifecycleSupervisor:
    """
    Owner of the active registry.

    Every mutation for a given bot name runs under that name's lock, so a
    duplicate ``start_bot`` can never open a second session and a stop
    cannot interleave with a start of the same bot. Store writes happen
    under the same lock; channel notifications and presence updates happen
    after it is released.
    """

    def __init__(self,
                 store,
                 notifier,
                 set_manager_activity: Callable[[str], Awaitable[None]],
                 connection_factory: Callable[[str], BotConnection] = create_discord_connection,
                 init_callback: Optional[InitPresenceCallback] = None):
        self.store = store
        self.notifier = notifier
        self.registry = ActiveRegistry()
        self.presence = PresenceAggregator(self.registry, notifier, set_manager_activity)
        self.init_callback = init_callback or InitPresenceCallback()
        self._connection_factory = connection_factory

        self._locks: Dict[str, _NameLock] = {}
        self._reconciled = False
        self._shutting_down = False

    @asynccontextmanager
    async def _lock_for(self, name: str) -> AsyncIterator[None]:
        """Hold the lock of one bot name; it is dropped once nobody uses it."""
        entry = self._locks.get(name)
        if entry is None:
            entry = _NameLock()
            self._locks[name] = entry

        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[name]

    def is_active(self, name: str) -> bool:
        return self.registry.has(name)

    async def start_bot(self, name: str, token: str, is_startup_reconcile: bool = False) -> bool:
        """
        Log a bot in and register it.

        Login failures are persisted on the identity and reported to the
        control channel; they are never raised.

        Args:
            name: Bot identity name
            token: Discord token of the bot
            is_startup_reconcile: Skip the per-bot presence publish, the
                reconciliation publishes once when all bots were attempted

        Returns:
            True if a new session was registered, False otherwise
        """
        async with self._lock_for(name):
            if self.registry.has(name):
                logger.info(f"Bot with name {name} is already active.")
                return False

            if self._shutting_down:
                logger.warning(f"Not starting bot {name}: shutdown in progress")
                return False

            handle = self._connection_factory(name)
            handle.on_ready(self._on_bot_ready)
            handle.on_error(self._on_bot_error)

            logger.info(f"Logging in bot {name}{' (startup)' if is_startup_reconcile else ''}...")
            try:
                await handle.login(token)
            except Exception as e:
                await self._record_failure(name, e)
                await self.notifier.send(f"❌ Failed to log in bot with name **{name}**: {_describe(e)}")
                return False

            if self._shutting_down:
                logger.warning(f"Shutdown started while bot {name} was logging in, logging it out")
                try:
                    await handle.logout()
                except Exception as e:
                    logger.error(f"Failed to log out bot {name}: {e}")
                return False

            self.registry.put(name, handle, token)

            try:
                await self.store.mark_connected(name)
            except Exception as e:
                logger.error(f"Failed to record connection of bot {name}: {e}")

        await self.notifier.send(f"✅ Bot with name **{name}** successfully logged in as {handle.user_tag}.")
        await self._send_init_presence(name)

        if not is_startup_reconcile:
            await self.presence.publish()
        return True

    async def stop_bot(self, name: str) -> bool:
        """
        Log a bot out and unregister it. The persisted ``enabled`` flag is
        left untouched; use ``deactivate_bot`` to change both.

        Returns:
            True if a session was closed, False if the bot was not active
        """
        async with self._lock_for(name):
            handle = await self._stop_locked(name)

        if handle is None:
            return False

        await self.presence.publish()
        return True

    async def deactivate_bot(self, name: str) -> int:
        """
        Persist ``enabled = false`` and stop the bot as one operation.

        Store errors propagate and leave the session running.

        Returns:
            Number of persisted rows updated
        """
        async with self._lock_for(name):
            rows = await self.store.disable_bot(name)
            handle = await self._stop_locked(name)

        if handle is not None:
            await self.presence.publish()
        return rows

    async def reconcile_on_startup(self) -> List[str]:
        """
        Start every enabled bot from the store, then publish presence once.

        Runs only once per supervisor; later calls are ignored.

        Returns:
            Names of the bots that were started
        """
        if self._reconciled:
            logger.info("Startup reconciliation already ran, skipping")
            return []
        self._reconciled = True

        try:
            identities = await self.store.get_enabled_bots()
        except Exception as e:
            logger.error(f"Failed to load enabled bots: {e}")
            identities = []

        logger.info(f"Reconciling {len(identities)} enabled bot(s)...")
        results = await asyncio.gather(
            *(self.start_bot(identity.name, identity.token, is_startup_reconcile=True)
              for identity in identities),
            return_exceptions=True,
        )

        started = []
        for identity, result in zip(identities, results):
            if isinstance(result, Exception):
                logger.error(f"Unexpected error starting bot {identity.name}: {result}")
            elif result:
                started.append(identity.name)

        await self.presence.publish()
        logger.info(f"Startup reconciliation complete. Started: {started}")
        return started

    async def set_bot_presence(self, name: str, status_text: str) -> bool:
        """
        Set the displayed activity of an active bot.

        Returns:
            False if the bot is not active. Errors from the session propagate.
        """
        handle = self.registry.get(name)
        if handle is None:
            return False

        await handle.set_presence(status_text)
        logger.info(f"Presence of bot {name} set to: {status_text}")
        return True

    async def shutdown(self) -> None:
        """Log out every active bot, one after the other."""
        self._shutting_down = True
        for entry in self.registry.entries():
            try:
                await entry.handle.logout()
                logger.info(f"Bot {entry.name} logged out.")
            except Exception as e:
                logger.error(f"Failed to log out bot {entry.name}: {e}")
            finally:
                self.registry.remove(entry.name)

    # Private methods
    async def _stop_locked(self, name: str) -> Optional[BotConnection]:
        handle = self.registry.get(name)
        if handle is None:
            logger.info(f"Bot with name {name} is not active.")
            return None

        try:
            await handle.logout()
            logger.info(f"Bot {name} logged out.")
        except Exception as e:
            logger.error(f"Failed to log out bot {name}: {e}")
        finally:
            self.registry.remove(name)
        return handle

    async def _record_failure(self, name: str, error: Exception) -> None:
        logger.error(f"Failed to log in bot with name {name}: {_describe(error)}")
        try:
            await self.store.mark_failed(name, _describe(error))
        except Exception as e:
            logger.error(f"Failed to record login failure of bot {name}: {e}")

    async def _send_init_presence(self, name: str) -> None:
        try:
            url = await self.store.get_init_presence_url(name)
        except Exception as e:
            logger.error(f"Failed to look up init presence URL for bot {name}: {e}")
            return

        if url:
            await self.init_callback.fire(name, url)

    async def _on_bot_ready(self, handle: BotConnection) -> None:
        logger.info(f"Bot logged in as {handle.user_tag} with name {handle.name}")

    async def _on_bot_error(self, handle: BotConnection, error: Exception) -> None:
        """Persist, evict and report a session that failed after login."""
        name = handle.name
        logger.error(f"Bot error ({name}): {_describe(error)}")

        async with self._lock_for(name):
            if self.registry.get(name) is not handle:
                logger.info(f"Ignoring error from a session of bot {name} that is no longer registered")
                return

            try:
                await self.store.mark_failed(name, _describe(error))
            except Exception as e:
                logger.error(f"Failed to record session error of bot {name}: {e}")

            self.registry.remove(name)

        try:
            await handle.logout()
        except Exception as e:
            logger.error(f"Failed to close failed session of bot {name}: {e}")

        await self.notifier.send(f"❌ Bot error for **{name}**: {_describe(error)}")
        await self.presence.publish()
