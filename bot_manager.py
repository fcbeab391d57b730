"""
Discord Bot Manager

Main application: runs the manager's own chat session, the administrative
commands of the control channel, every bot identity registered in the
database and the HTTP presence API.
"""

import asyncio
import contextlib
import logging
import os
import signal
import sys
from typing import Optional

import aiohttp
import discord
import uvicorn
from dotenv import load_dotenv

# Local imports
from command_interpreter import CommandInterpreter
from db import BotStore, DatabaseManager, ManagerConfig, SchemaManager
from presence_api import create_app
from supervisor import (
    ConfigurationError,
    ControlChannelNotifier,
    InitPresenceCallback,
    LifecycleSupervisor,
    ManagerError,
    watching_activity,
)

# Load environment variables
load_dotenv()

# Setup logging
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

INIT_PRESENCE_TIMEOUT_SECONDS = 30
SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGQUIT, signal.SIGINT)


class ManagerClient(discord.Client):
    """The manager's own chat session."""

    def __init__(self, manager: "BotManager"):
        intents = discord.Intents.default()
        intents.guilds = True
        intents.guild_messages = True
        intents.message_content = True
        super().__init__(intents=intents)
        self.manager = manager

    async def on_ready(self):
        logger.info(f"Logged in as {self.user}!")
        await self.manager.supervisor.reconcile_on_startup()

    async def on_message(self, message: discord.Message):
        if message.author.bot:
            return
        await self.manager.interpreter.handle_message(message)


class EmbeddedServer(uvicorn.Server):
    """uvicorn server that runs inside our event loop and leaves signals to us."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


class BotManager:
    """
    Main bot manager application.
    """

    def __init__(self, config: ManagerConfig):
        self.config = config

        # Persistence
        self.database = DatabaseManager(config)
        self.store = BotStore(self.database)
        self.schema_manager = SchemaManager(config)

        # Chat
        self.client = ManagerClient(self)
        self.notifier = ControlChannelNotifier(self.client, config.discord_bot_channel_id)
        self.supervisor = LifecycleSupervisor(
            self.store,
            self.notifier,
            self.set_manager_activity,
            init_callback=InitPresenceCallback(
                aiohttp.ClientTimeout(total=INIT_PRESENCE_TIMEOUT_SECONDS)
            ),
        )
        self.interpreter = CommandInterpreter(
            self.supervisor,
            self.store,
            config.discord_bot_channel_id,
            config.command_prefix,
        )

        self.api_server: Optional[EmbeddedServer] = None
        self._api_task: Optional[asyncio.Task] = None
        self._client_task: Optional[asyncio.Task] = None

    async def set_manager_activity(self, text: str) -> None:
        await self.client.change_presence(activity=watching_activity(text), status=discord.Status.online)

    async def initialize(self):
        """Connect to the database and make sure the schema exists."""
        logger.info("Initializing Bot Manager...")
        await self.database.setup()
        if not await self.schema_manager.sync():
            raise ManagerError("Failed to create the database schema")
        logger.info("Bot Manager initialization complete")

    async def start(self):
        """Log the manager in, start the HTTP API, then open the gateway session."""
        logger.info("Starting Bot Manager...")

        await self.client.login(self.config.bot_manager_discord_token)
        logger.info("Manager session authenticated")

        await self._start_api_server()

        # Reconciliation runs from the first ready event of this session
        self._client_task = asyncio.create_task(self.client.connect(reconnect=True), name="manager-session")
        logger.info("Bot Manager started successfully")

    async def _start_api_server(self):
        app = create_app(self.supervisor, self.config.listen_api_key)
        server_config = uvicorn.Config(
            app,
            host=self.config.listen_api_host,
            port=self.config.listen_api_port,
            log_config=None,
            lifespan="off",
        )
        self.api_server = EmbeddedServer(server_config)
        self._api_task = asyncio.create_task(self.api_server.serve(), name="presence-api")

        while not self.api_server.started:
            if self._api_task.done():
                self._api_task.result()
                raise ManagerError("Presence API stopped during startup")
            await asyncio.sleep(0.1)

        logger.info(f"Server is running on port {self.config.listen_api_port}")

    async def run(self, stop_event: asyncio.Event) -> int:
        """
        Initialize and start the manager, then wait for a stop request.

        A stop request that arrives during startup abandons the startup.

        Returns:
            Process exit code
        """
        startup = asyncio.create_task(self._startup(), name="manager-startup")
        stop_waiter = asyncio.create_task(stop_event.wait())
        try:
            await asyncio.wait({startup, stop_waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_waiter.cancel()

        if not startup.done():
            logger.warning("Shutdown requested during startup")
            startup.cancel()
            await asyncio.gather(startup, return_exceptions=True)
            return 0

        startup.result()
        return await self.wait_until_stopped(stop_event)

    async def _startup(self):
        await self.initialize()
        await self.start()

    async def wait_until_stopped(self, stop_event: asyncio.Event) -> int:
        """
        Block until a shutdown signal arrives or the manager session ends.

        Returns:
            Process exit code
        """
        stop_waiter = asyncio.create_task(stop_event.wait())
        try:
            await asyncio.wait({stop_waiter, self._client_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_waiter.cancel()

        if self._client_task.done() and not stop_event.is_set():
            error = self._client_task.exception() if not self._client_task.cancelled() else None
            logger.error(f"Manager session ended unexpectedly: {error}")
            return 1
        return 0

    async def stop(self):
        """Stop the bot manager, its bots and the HTTP API."""
        logger.info("Shutting down gracefully...")

        if self.client.is_ready():
            if await self.notifier.set_topic(""):
                logger.info("Channel topic cleared.")

        await self.supervisor.shutdown()

        await self.client.close()
        if self._client_task is not None:
            with contextlib.suppress(Exception, asyncio.CancelledError):
                await self._client_task
        logger.info("Manager logged out.")

        if self.api_server is not None:
            self.api_server.should_exit = True
            with contextlib.suppress(Exception, asyncio.CancelledError):
                await self._api_task
            logger.debug("Presence API stopped")

        await self.database.cleanup()
        logger.info("Bot manager stopped")


async def shutdown_manager(manager: BotManager, timeout: float, exit_code: int) -> int:
    """
    Stop the manager within ``timeout`` seconds.

    If the window runs out, the process is terminated with exit code 1.

    Returns:
        Process exit code
    """
    try:
        await asyncio.wait_for(manager.stop(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.error(f"Shutdown did not finish within {timeout}s. Forcing exit.")
        exit_code = 1
        os._exit(exit_code)
    except Exception as e:
        logger.error(f"Error during shutdown: {e}")
        exit_code = 1

    return exit_code


async def main() -> int:
    """Main application entry point."""
    try:
        config = ManagerConfig.load()
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    manager = BotManager(config)
    stop_event = asyncio.Event()

    def signal_handler(signum: int):
        """Handle shutdown signals gracefully."""
        logger.info(f"Received {signal.Signals(signum).name}. Shutting down...")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in SHUTDOWN_SIGNALS:
        loop.add_signal_handler(sig, signal_handler, sig)

    try:
        exit_code = await manager.run(stop_event)
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        exit_code = 1

    return await shutdown_manager(manager, config.shutdown_timeout_seconds, exit_code)


if __name__ == '__main__':
    sys.exit(asyncio.run(main()))
