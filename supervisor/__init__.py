"""
Bot Supervisor

This package manages the lifecycle of the bot sessions held by the manager:
connection handles, the active registry, startup reconciliation and the
presence shown for the whole fleet.
"""

from .errors import ManagerError, ConfigurationError, CommandValidationError
from .connection import (
    ActiveConnection,
    BotConnection,
    ConnectionStatus,
    DiscordBotConnection,
    create_discord_connection,
    watching_activity,
)
from .active_registry import ActiveRegistry
from .notifier import ControlChannelNotifier, InitPresenceCallback
from .presence import PresenceAggregator, PresenceSnapshot, PLACEHOLDER_TOPIC
from .lifecycle import LifecycleSupervisor

__all__ = [
    'ManagerError',
    'ConfigurationError',
    'CommandValidationError',
    'ActiveConnection',
    'BotConnection',
    'ConnectionStatus',
    'DiscordBotConnection',
    'create_discord_connection',
    'watching_activity',
    'ActiveRegistry',
    'ControlChannelNotifier',
    'InitPresenceCallback',
    'PresenceAggregator',
    'PresenceSnapshot',
    'PLACEHOLDER_TOPIC',
    'LifecycleSupervisor',
]
