"""
Bot Registry Store

Persistence for bot identities in the ``bots`` table. Identities are never
deleted: removing a bot only clears its ``enabled`` flag, and adding a name
that already exists re-enables it with the new token.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
from sqlalchemy import text

from .connections import DatabaseManager

logger = logging.getLogger(__name__)


@dataclass
class BotIdentity:
    """A registered bot, connected or not."""
    name: str
    token: str
    enabled: bool = True
    init_presence_url: Optional[str] = None
    created_on: Optional[datetime] = None
    last_connected_on: Optional[datetime] = None
    disabled_on: Optional[datetime] = None
    logon_error: Optional[str] = None

    def __repr__(self) -> str:
        return f"BotIdentity(name={self.name!r}, enabled={self.enabled})"


_IDENTITY_COLUMNS = """
    name, discord_token, enabled, init_presence_url,
    created_on, last_connected_on, disabled_on, logon_error
"""


def _row_to_identity(row) -> BotIdentity:
    return BotIdentity(
        name=row.name,
        token=row.discord_token,
        enabled=bool(row.enabled),
        init_presence_url=row.init_presence_url,
        created_on=row.created_on,
        last_connected_on=row.last_connected_on,
        disabled_on=row.disabled_on,
        logon_error=row.logon_error,
    )


class BotStore:
    """Queries and mutations against the ``bots`` table."""

    def __init__(self, database: DatabaseManager):
        self.database = database

    async def get_enabled_bots(self) -> List[BotIdentity]:
        """Identities whose durable intent is to be connected."""
        async with self.database.get_session() as session:
            result = await session.execute(
                text(f"SELECT {_IDENTITY_COLUMNS} FROM bots WHERE enabled = TRUE")
            )
            return [_row_to_identity(row) for row in result.fetchall()]

    async def list_bots(self) -> List[BotIdentity]:
        async with self.database.get_session() as session:
            result = await session.execute(
                text(f"SELECT {_IDENTITY_COLUMNS} FROM bots ORDER BY name")
            )
            return [_row_to_identity(row) for row in result.fetchall()]

    async def get_bot(self, name: str) -> Optional[BotIdentity]:
        async with self.database.get_session() as session:
            result = await session.execute(
                text(f"SELECT {_IDENTITY_COLUMNS} FROM bots WHERE name = :name"),
                {"name": name},
            )
            row = result.fetchone()
            return _row_to_identity(row) if row else None

    async def create_bot(self, name: str, token: str) -> None:
        """
        Register a bot as enabled.

        An existing row with the same name takes the new token and is
        re-enabled; its creation time is kept.
        """
        async with self.database.get_session() as session:
            await session.execute(
                text("""
                    INSERT INTO bots (name, discord_token, enabled, created_on)
                    VALUES (:name, :token, TRUE, NOW())
                    ON CONFLICT (name) DO UPDATE SET
                        discord_token = EXCLUDED.discord_token,
                        enabled = TRUE,
                        disabled_on = NULL,
                        logon_error = NULL
                """),
                {"name": name, "token": token},
            )
        logger.info(f"Stored bot identity: {name}")

    async def mark_connected(self, name: str) -> None:
        async with self.database.get_session() as session:
            await session.execute(
                text("""
                    UPDATE bots
                    SET last_connected_on = NOW(), logon_error = NULL, enabled = TRUE, disabled_on = NULL
                    WHERE name = :name
                """),
                {"name": name},
            )

    async def mark_failed(self, name: str, error: str) -> None:
        """Record a login or session failure and disable the identity."""
        async with self.database.get_session() as session:
            await session.execute(
                text("""
                    UPDATE bots
                    SET enabled = FALSE, logon_error = :error, disabled_on = NOW()
                    WHERE name = :name
                """),
                {"name": name, "error": error},
            )

    async def disable_bot(self, name: str) -> int:
        """
        Clear the enabled flag.

        Returns:
            Number of rows affected
        """
        async with self.database.get_session() as session:
            result = await session.execute(
                text("UPDATE bots SET enabled = FALSE, disabled_on = NOW() WHERE name = :name"),
                {"name": name},
            )
            return result.rowcount

    async def set_init_presence_url(self, name: str, url: str) -> int:
        """
        Store the URL called after the bot connects.

        Returns:
            Number of rows affected
        """
        async with self.database.get_session() as session:
            result = await session.execute(
                text("UPDATE bots SET init_presence_url = :url WHERE name = :name"),
                {"name": name, "url": url},
            )
            return result.rowcount

    async def get_init_presence_url(self, name: str) -> Optional[str]:
        async with self.database.get_session() as session:
            result = await session.execute(
                text("SELECT init_presence_url FROM bots WHERE name = :name"),
                {"name": name},
            )
            return result.scalar()

    async def health_check(self) -> bool:
        return await self.database.health_check()
