"""
Bot Store and Schema Tests

Tests for the SQL issued by the bot store and the schema manager. The
database session and the asyncpg connection are mocked, so no server is
needed.
"""

import sys
from contextlib import asynccontextmanager
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

# Add the project root to the path so we can import project modules
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from db.bot_store import BotStore
from db.config import ManagerConfig
from db.schema_manager import BOTS_TABLE, SchemaManager


class MockDatabase:
    """DatabaseManager stand-in that hands out one mocked session."""

    def __init__(self, result=None):
        self.session = MagicMock()
        self.session.execute = AsyncMock(return_value=result or MagicMock())

    @asynccontextmanager
    async def get_session(self):
        yield self.session

    def executed_sql(self) -> str:
        return str(self.session.execute.call_args.args[0])

    def executed_params(self) -> dict:
        return self.session.execute.call_args.args[1]


def _row(**overrides):
    values = dict(
        name="ada",
        discord_token="token",
        enabled=True,
        init_presence_url=None,
        created_on=None,
        last_connected_on=None,
        disabled_on=None,
        logon_error=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.mark.asyncio
async def test_get_enabled_bots_maps_rows():
    print("\n🗄️ TESTING BOT STORE QUERIES")
    print("-" * 50)

    result = MagicMock()
    result.fetchall.return_value = [_row(name="ada"), _row(name="bob", init_presence_url="http://x")]
    database = MockDatabase(result)

    bots = await BotStore(database).get_enabled_bots()

    assert [bot.name for bot in bots] == ["ada", "bob"]
    assert bots[1].init_presence_url == "http://x"
    assert "WHERE enabled = TRUE" in database.executed_sql()
    assert "token" not in repr(bots[0])
    print("✅ Enabled bots loaded")


@pytest.mark.asyncio
async def test_get_bot_missing_returns_none():
    result = MagicMock()
    result.fetchone.return_value = None
    database = MockDatabase(result)

    assert await BotStore(database).get_bot("ghost") is None
    assert database.executed_params() == {"name": "ghost"}


@pytest.mark.asyncio
async def test_create_bot_upserts():
    database = MockDatabase()

    await BotStore(database).create_bot("ada", "new-token")

    sql = database.executed_sql()
    assert "ON CONFLICT (name) DO UPDATE" in sql
    assert "enabled = TRUE" in sql
    assert database.executed_params() == {"name": "ada", "token": "new-token"}


@pytest.mark.asyncio
async def test_mark_failed_disables_with_error():
    database = MockDatabase()

    await BotStore(database).mark_failed("ada", "Improper token has been passed.")

    sql = database.executed_sql()
    assert "enabled = FALSE" in sql
    assert "disabled_on = NOW()" in sql
    assert database.executed_params() == {"name": "ada", "error": "Improper token has been passed."}


@pytest.mark.asyncio
async def test_updates_return_rowcount():
    result = MagicMock()
    result.rowcount = 0
    database = MockDatabase(result)
    store = BotStore(database)

    assert await store.disable_bot("ghost") == 0
    result.rowcount = 1
    assert await store.set_init_presence_url("ada", "http://x") == 1
    assert database.executed_params() == {"name": "ada", "url": "http://x"}


@pytest.mark.asyncio
async def test_get_init_presence_url():
    result = MagicMock()
    result.scalar.return_value = "http://localhost/ready"

    assert await BotStore(MockDatabase(result)).get_init_presence_url("ada") == "http://localhost/ready"


def _config():
    return ManagerConfig(
        discord_bot_channel_id=1,
        bot_manager_discord_token="t",
        listen_api_port=3000,
        listen_api_key="k",
        db_user="u",
        db_password="p",
        db_host="localhost",
        db_name="bots",
        _env_file=None,
    )


@pytest.mark.asyncio
async def test_schema_sync_creates_table_and_indexes():
    print("\n🏗️ TESTING SCHEMA SYNC")
    print("-" * 50)

    conn = MagicMock()
    conn.execute = AsyncMock()
    conn.close = AsyncMock()

    with patch("db.schema_manager.asyncpg.connect", AsyncMock(return_value=conn)) as connect:
        assert await SchemaManager(_config()).sync() is True

    connect.assert_awaited_once_with(host="localhost", port=5432, user="u", password="p", database="bots")
    executed = [call.args[0] for call in conn.execute.call_args_list]
    assert executed == [BOTS_TABLE.sql] + BOTS_TABLE.indexes
    assert "CREATE TABLE IF NOT EXISTS bots" in BOTS_TABLE.sql
    conn.close.assert_awaited_once()
    print("✅ Schema created")


@pytest.mark.asyncio
async def test_schema_sync_reports_failure():
    with patch("db.schema_manager.asyncpg.connect", AsyncMock(side_effect=OSError("refused"))):
        assert await SchemaManager(_config()).sync() is False

    conn = MagicMock()
    conn.execute = AsyncMock(side_effect=RuntimeError("permission denied"))
    conn.close = AsyncMock()
    with patch("db.schema_manager.asyncpg.connect", AsyncMock(return_value=conn)):
        assert await SchemaManager(_config()).sync() is False
    conn.close.assert_awaited_once()


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
