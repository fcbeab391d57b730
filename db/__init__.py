"""
Database Infrastructure Package

This package provides the bot manager's configuration, async connection
management, schema creation and the persisted bot registry.
"""

from .config import ManagerConfig, get_manager_config, reset_manager_config
from .connections import DatabaseManager
from .schema_manager import SchemaManager, TableDefinition, BOTS_TABLE
from .bot_store import BotStore, BotIdentity

__all__ = [
    "ManagerConfig",
    "get_manager_config",
    "reset_manager_config",
    "DatabaseManager",
    "SchemaManager",
    "TableDefinition",
    "BOTS_TABLE",
    "BotStore",
    "BotIdentity",
]

# Version info
__version__ = "1.0.0"
__description__ = "Provides async persistence of bot identities for the Discord bot manager."
