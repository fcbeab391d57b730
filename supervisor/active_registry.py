"""
Active Registry

In-memory map of bot names to the connection handles this process holds.
A name is present exactly while a live session for it exists.
"""

import logging
from typing import Dict, Iterator, List, Optional

from .connection import ActiveConnection, BotConnection

logger = logging.getLogger(__name__)


class ActiveRegistry:
    """
    Registry of connected bots.

    All methods are synchronous, so under asyncio no caller can observe
    an entry half-added or half-removed.
    """

    def __init__(self):
        self._entries: Dict[str, ActiveConnection] = {}

    def has(self, name: str) -> bool:
        return name in self._entries

    def get(self, name: str) -> Optional[BotConnection]:
        entry = self._entries.get(name)
        return entry.handle if entry else None

    def get_entry(self, name: str) -> Optional[ActiveConnection]:
        return self._entries.get(name)

    def put(self, name: str, handle: BotConnection, token: str) -> bool:
        """
        Register a connected handle.

        Returns:
            True if added, False if the name was already present (the
            existing entry is kept)
        """
        if name in self._entries:
            logger.warning(f"Bot '{name}' is already registered, keeping the existing session")
            return False

        self._entries[name] = ActiveConnection(name=name, handle=handle, token=token)
        logger.debug(f"Registered bot '{name}'. Active bots: {len(self._entries)}")
        return True

    def remove(self, name: str) -> Optional[BotConnection]:
        entry = self._entries.pop(name, None)
        if entry:
            logger.debug(f"Unregistered bot '{name}'. Active bots: {len(self._entries)}")
            return entry.handle
        return None

    def size(self) -> int:
        return len(self._entries)

    def names(self) -> List[str]:
        """Names of connected bots, in registration order."""
        return list(self._entries.keys())

    def entries(self) -> List[ActiveConnection]:
        """Snapshot of all entries."""
        return list(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())
