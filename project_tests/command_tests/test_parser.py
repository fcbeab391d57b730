"""
Command Parser Tests

Tests for turning chat messages into typed commands.
"""

import sys
from pathlib import Path

import pytest

# Add the project root to the path so we can import project modules
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from command_interpreter.parser import (
    AddBotCommand,
    ClearCommand,
    DelBotCommand,
    HelpCommand,
    InitUrlCommand,
    parse_command,
    validate_bot_name,
)
from supervisor.errors import CommandValidationError


def test_parses_every_command():
    print("\n🔤 TESTING COMMAND PARSING")
    print("-" * 50)

    assert parse_command("!clear") == ClearCommand()
    assert parse_command("!help") == HelpCommand()
    assert parse_command("!addbot Ada abc.def") == AddBotCommand(name="Ada", token="abc.def")
    assert parse_command("!delbot Ada") == DelBotCommand(name="Ada")
    assert parse_command("!init-url Ada http://x/ready") == InitUrlCommand(name="Ada", url="http://x/ready")
    print("✅ All commands parsed")


def test_extra_whitespace_is_ignored():
    assert parse_command("!addbot   Ada    abc") == AddBotCommand(name="Ada", token="abc")


def test_non_commands_and_unknown_verbs_are_ignored():
    assert parse_command("hello there") is None
    assert parse_command("") is None
    assert parse_command("!") is None
    assert parse_command("!dance") is None
    assert parse_command("?clear") is None


def test_custom_prefix():
    assert parse_command("$help", prefix="$") == HelpCommand()
    assert parse_command("!help", prefix="$") is None


@pytest.mark.parametrize("content, reply", [
    ("!addbot", "Please provide a bot name and token. Usage: !addbot <name> <token>"),
    ("!addbot Ada", "Please provide a bot name and token. Usage: !addbot <name> <token>"),
    ("!delbot", "Please provide a bot name. Usage: !delbot <name>"),
    ("!init-url Ada", "Please provide a bot name and a URL. Usage: !init-url <botname> <url>"),
])
def test_missing_arguments_reply_with_usage(content, reply):
    with pytest.raises(CommandValidationError) as exc_info:
        parse_command(content)
    assert exc_info.value.reply == reply


def test_bot_name_length_limits():
    assert validate_bot_name("a") == "a"
    assert validate_bot_name("a" * 50) == "a" * 50

    for name in ("", "a" * 51):
        with pytest.raises(CommandValidationError) as exc_info:
            validate_bot_name(name)
        assert exc_info.value.reply == "Bot name must be between 1 and 50 characters."

    with pytest.raises(CommandValidationError):
        parse_command(f"!addbot {'a' * 51} token")


def test_addbot_never_shows_token():
    command = AddBotCommand(name="Ada", token="very-secret")

    assert "very-secret" not in repr(command)
    assert command.redacted() == "!addbot Ada xxx"


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
