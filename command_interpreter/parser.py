"""
Command Parser

Turns chat message text into typed administrative commands. Unknown verbs
parse to None so they can be ignored; recognised verbs with bad arguments
raise CommandValidationError carrying the reply for the user.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union

from supervisor.errors import CommandValidationError

BOT_NAME_MIN_LENGTH = 1
BOT_NAME_MAX_LENGTH = 50
REDACTED_TOKEN = "xxx"


@dataclass(frozen=True)
class ClearCommand:
    """Bulk-delete the messages of the control channel."""


@dataclass(frozen=True)
class AddBotCommand:
    """Register a bot identity and log it in."""
    name: str
    token: str = field(repr=False)

    def redacted(self, prefix: str = "!") -> str:
        """The command as it may be echoed back, without the token."""
        return f"{prefix}addbot {self.name} {REDACTED_TOKEN}"


@dataclass(frozen=True)
class DelBotCommand:
    """Disable a bot identity and log it out."""
    name: str


@dataclass(frozen=True)
class InitUrlCommand:
    """Set the URL called after a bot connects."""
    name: str
    url: str


@dataclass(frozen=True)
class HelpCommand:
    """List the available commands."""


Command = Union[ClearCommand, AddBotCommand, DelBotCommand, InitUrlCommand, HelpCommand]


def validate_bot_name(name: str) -> str:
    if not (BOT_NAME_MIN_LENGTH <= len(name) <= BOT_NAME_MAX_LENGTH):
        raise CommandValidationError(
            f"Bot name must be between {BOT_NAME_MIN_LENGTH} and {BOT_NAME_MAX_LENGTH} characters."
        )
    return name


def _parse_clear(args: List[str]) -> Command:
    return ClearCommand()


def _parse_addbot(args: List[str]) -> Command:
    if len(args) < 2:
        raise CommandValidationError("Please provide a bot name and token. Usage: !addbot <name> <token>")
    return AddBotCommand(name=validate_bot_name(args[0]), token=args[1])


def _parse_delbot(args: List[str]) -> Command:
    if not args:
        raise CommandValidationError("Please provide a bot name. Usage: !delbot <name>")
    return DelBotCommand(name=args[0])


def _parse_init_url(args: List[str]) -> Command:
    if len(args) < 2:
        raise CommandValidationError("Please provide a bot name and a URL. Usage: !init-url <botname> <url>")
    return InitUrlCommand(name=args[0], url=args[1])


def _parse_help(args: List[str]) -> Command:
    return HelpCommand()


_PARSERS: Dict[str, Callable[[List[str]], Command]] = {
    "clear": _parse_clear,
    "addbot": _parse_addbot,
    "delbot": _parse_delbot,
    "init-url": _parse_init_url,
    "help": _parse_help,
}

COMMAND_NAMES = tuple(_PARSERS.keys())


def parse_command(content: str, prefix: str = "!") -> Optional[Command]:
    """
    Parse a chat message.

    Args:
        content: Raw message text
        prefix: Command prefix

    Returns:
        The command, or None if the message is not a known command

    Raises:
        CommandValidationError: If a known command has bad arguments
    """
    if not content or not content.startswith(prefix):
        return None

    parts = content[len(prefix):].split()
    if not parts:
        return None

    verb, args = parts[0], parts[1:]
    parser = _PARSERS.get(verb)
    if parser is None:
        return None
    return parser(args)
