"""
Error types raised by the bot manager.

Login and session failures of individual bots are not represented here:
they surface as the chat library's own exceptions and are contained by
the lifecycle supervisor.
"""


class ManagerError(Exception):
    """Base class for bot manager errors."""


class ConfigurationError(ManagerError):
    """A required configuration value is missing or invalid."""

    def __init__(self, message: str, missing: list = None):
        super().__init__(message)
        self.missing = missing or []


class CommandValidationError(ManagerError):
    """
    A chat command was recognised but its arguments are unusable.

    The message is the reply sent back to the command's origin.
    """

    def __init__(self, reply: str):
        super().__init__(reply)
        self.reply = reply
