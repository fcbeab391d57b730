"""
Command Interpreter

Parses and executes the manager's administrative chat commands.
"""

from .parser import (
    AddBotCommand,
    ClearCommand,
    Command,
    COMMAND_NAMES,
    DelBotCommand,
    HelpCommand,
    InitUrlCommand,
    parse_command,
    validate_bot_name,
)
from .interpreter import CommandInterpreter

__all__ = [
    'AddBotCommand',
    'ClearCommand',
    'Command',
    'COMMAND_NAMES',
    'DelBotCommand',
    'HelpCommand',
    'InitUrlCommand',
    'parse_command',
    'validate_bot_name',
    'CommandInterpreter',
]
