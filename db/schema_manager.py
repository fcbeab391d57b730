"""
Database Schema Manager

Declares the tables the bot manager needs and creates them on startup.
Statements are idempotent (``IF NOT EXISTS``) so syncing an existing
database is a no-op.
"""

import logging
from typing import Dict, List, Optional
from dataclasses import dataclass, field
import asyncpg

from .config import get_manager_config, ManagerConfig

# Set up logger
logger = logging.getLogger(__name__)


@dataclass
class TableDefinition:
    """Represents a table definition."""
    name: str
    sql: str
    indexes: List[str] = field(default_factory=list)


BOTS_TABLE = TableDefinition(
    name="bots",
    sql="""
        CREATE TABLE IF NOT EXISTS bots (
            name VARCHAR(50) PRIMARY KEY,
            discord_token TEXT NOT NULL,
            enabled BOOLEAN NOT NULL DEFAULT TRUE,
            init_presence_url TEXT NULL,
            created_on TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            last_connected_on TIMESTAMPTZ NULL,
            disabled_on TIMESTAMPTZ NULL,
            logon_error TEXT NULL
        )
    """,
    indexes=[
        "CREATE INDEX IF NOT EXISTS idx_bots_enabled ON bots (enabled)",
    ],
)


class SchemaManager:
    """Creates and validates the bot manager's tables."""

    def __init__(self, config: Optional[ManagerConfig] = None, tables: Optional[List[TableDefinition]] = None):
        self.config = config or get_manager_config()
        self.tables = tables if tables is not None else [BOTS_TABLE]

    async def _connect(self) -> asyncpg.Connection:
        return await asyncpg.connect(**self.config.get_connection_params())

    async def sync(self) -> bool:
        """
        Create all declared tables and indexes.

        Returns:
            True if every statement ran, False otherwise
        """
        try:
            conn = await self._connect()
        except Exception as e:
            logger.error(f"Schema sync failed, could not connect: {e}")
            return False

        try:
            for table in self.tables:
                logger.debug(f"Creating table: {table.name}")
                await conn.execute(table.sql)
                for index_sql in table.indexes:
                    await conn.execute(index_sql)
            logger.info(f"Schema synced: {', '.join(t.name for t in self.tables)}")
            return True
        except Exception as e:
            logger.error(f"Schema sync failed: {e}")
            return False
        finally:
            await conn.close()

    async def validate(self) -> Dict[str, bool]:
        """Report which declared tables exist in the database."""
        conn = await self._connect()
        try:
            existing_tables = await conn.fetch("""
                SELECT table_name
                FROM information_schema.tables
                WHERE table_schema = 'public'
                AND table_type = 'BASE TABLE'
            """)
            existing_table_names = {row['table_name'] for row in existing_tables}
        finally:
            await conn.close()

        return {table.name: table.name in existing_table_names for table in self.tables}
