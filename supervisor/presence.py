"""
Presence Aggregator

Derives the manager's own status line and the control channel topic from
the active registry.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List

from .active_registry import ActiveRegistry

logger = logging.getLogger(__name__)

PLACEHOLDER_TOPIC = "No bots are currently active."


@dataclass
class PresenceSnapshot:
    """What a publish displayed."""
    count: int
    status: str
    topic: str


def status_text(count: int) -> str:
    """Activity shown as "Watching over N bot(s)"."""
    return f"over {count} bot{'' if count == 1 else 's'}"


def topic_text(names: List[str]) -> str:
    if not names:
        return PLACEHOLDER_TOPIC
    return f"Active bots: {', '.join(names)}"


class PresenceAggregator:
    """Publishes the manager's presence and the channel topic."""

    def __init__(self,
                 registry: ActiveRegistry,
                 notifier,
                 set_manager_activity: Callable[[str], Awaitable[None]]):
        self.registry = registry
        self.notifier = notifier
        self._set_manager_activity = set_manager_activity
        self._lock = asyncio.Lock()

    async def publish(self) -> PresenceSnapshot:
        """
        Display the current registry contents.

        Publishes are serialized and each reads the registry once it holds
        the lock, so the last one to finish always shows the latest state.
        """
        async with self._lock:
            names = self.registry.names()
            snapshot = PresenceSnapshot(
                count=len(names),
                status=status_text(len(names)),
                topic=topic_text(names),
            )

            try:
                await self._set_manager_activity(snapshot.status)
                logger.info(f"Bot Manager presence updated: {snapshot.status}")
            except Exception as e:
                logger.error(f"Failed to update Bot Manager presence: {e}")

            await self.notifier.set_topic(snapshot.topic)
            return snapshot
