"""
Command Interpreter

Executes administrative chat commands against the lifecycle supervisor and
the bot store. Every handler replies to the message that issued the command
and contains its own failures.
"""

import logging
from datetime import timedelta
from typing import Awaitable, Callable, Dict, Optional, Type

import discord

from supervisor.errors import CommandValidationError
from .parser import (
    REDACTED_TOKEN,
    AddBotCommand,
    ClearCommand,
    Command,
    DelBotCommand,
    HelpCommand,
    InitUrlCommand,
    parse_command,
)

logger = logging.getLogger(__name__)


class CommandInterpreter:
    """
    Dispatches parsed commands to their handlers.

    ``clear`` is only honoured in the control channel; the other commands
    work from any channel the manager can read.
    """

    # Discord refuses bulk deletes of more than 100 messages or of
    # messages older than 14 days.
    BULK_DELETE_LIMIT = 100
    BULK_DELETE_MAX_AGE = timedelta(days=14)

    def __init__(self, supervisor, store, control_channel_id: int, prefix: str = "!"):
        self.supervisor = supervisor
        self.store = store
        self.control_channel_id = control_channel_id
        self.prefix = prefix

        self._handlers: Dict[Type, Callable[[discord.Message, Command], Awaitable[None]]] = {
            ClearCommand: self._handle_clear,
            AddBotCommand: self._handle_addbot,
            DelBotCommand: self._handle_delbot,
            InitUrlCommand: self._handle_init_url,
            HelpCommand: self._handle_help,
        }

    async def handle_message(self, message: discord.Message) -> Optional[Command]:
        """
        Parse and run a chat message.

        Returns:
            The command that was run, or None if the message was ignored or
            rejected
        """
        try:
            command = parse_command(message.content, self.prefix)
        except CommandValidationError as e:
            await self._reply(message, e.reply)
            return None

        if command is None:
            return None

        logger.info(f"Command {type(command).__name__} from {message.author} in channel {message.channel.id}")
        await self._handlers[type(command)](message, command)
        return command

    # Handlers
    async def _handle_clear(self, message: discord.Message, command: ClearCommand) -> None:
        if message.channel.id != self.control_channel_id:
            await self._reply(message, "This command can only be used in the designated bot channel.")
            return

        try:
            deleted = await self.clear_channel(message.channel)
            logger.info(f"Cleared {deleted} message(s) from the control channel")
            await message.channel.send("✅ All messages in this channel have been cleared.")
        except discord.DiscordException as e:
            logger.error(f"Failed to clear messages in channel: {e}")
            await self._reply(message, "❌ Failed to clear messages. Please try again later.")

    async def clear_channel(self, channel) -> int:
        """
        Bulk-delete messages in batches until fewer than two deletable
        messages are left.

        Returns:
            Number of messages deleted
        """
        total = 0
        while True:
            cutoff = discord.utils.utcnow() - self.BULK_DELETE_MAX_AGE
            fetched = [m async for m in channel.history(limit=self.BULK_DELETE_LIMIT)]
            deletable = [m for m in fetched if m.created_at > cutoff]
            if deletable:
                await channel.delete_messages(deletable)
                total += len(deletable)
            if len(deletable) < 2:
                return total

    async def _handle_addbot(self, message: discord.Message, command: AddBotCommand) -> None:
        try:
            # The message carries the token in clear text
            await message.delete()

            if self.supervisor.is_active(command.name):
                await message.channel.send(
                    f"> **{message.author}**: {command.redacted(self.prefix)}\n"
                    f"❌ Bot **{command.name}** is already active. Use {self.prefix}delbot first to replace it."
                )
                return

            await self.store.create_bot(command.name, command.token)
            await self.supervisor.start_bot(command.name, command.token)

            await message.channel.send(
                f"> **{message.author}**: {command.redacted(self.prefix)}\n"
                f"✅ Bot **{command.name}** registered successfully."
            )
        except Exception as e:
            reason = str(e).replace(command.token, REDACTED_TOKEN)
            logger.error(f"Failed to add bot {command.name}: {reason}")
            await self._send(message.channel, f"❌ Failed to add the bot: {reason}")

    async def _handle_delbot(self, message: discord.Message, command: DelBotCommand) -> None:
        try:
            rows = await self.supervisor.deactivate_bot(command.name)
        except Exception as e:
            logger.error(f"Failed to unregister bot {command.name}: {e}")
            await self._reply(message, f"Failed to unregister the bot: {e}")
            return

        if rows == 0:
            await self._reply(message, f"No bot with the name **{command.name}** found.")
            return
        await self._reply(message, "Bot unregistered and logged out successfully.")

    async def _handle_init_url(self, message: discord.Message, command: InitUrlCommand) -> None:
        try:
            rows = await self.store.set_init_presence_url(command.name, command.url)
        except Exception as e:
            logger.error(f"Failed to update init URL for bot {command.name}: {e}")
            await self._reply(message, f"❌ Failed to update the init URL for bot **{command.name}**.")
            return

        if rows == 0:
            await self._reply(message, f"No bot with the name **{command.name}** found.")
            return
        await self._reply(message, f"✅ The init URL for bot **{command.name}** has been updated to: {command.url}")

    async def _handle_help(self, message: discord.Message, command: HelpCommand) -> None:
        names = ", ".join(f"{self.prefix}{name}" for name in ("addbot", "init-url", "delbot", "clear"))
        await self._reply(message, f"Available commands: {names}")

    # Helpers
    async def _reply(self, message: discord.Message, text: str) -> None:
        try:
            await message.reply(text)
        except discord.DiscordException as e:
            logger.error(f"Failed to reply to command: {e}")

    async def _send(self, channel, text: str) -> None:
        try:
            await channel.send(text)
        except discord.DiscordException as e:
            logger.error(f"Failed to send message: {e}")
