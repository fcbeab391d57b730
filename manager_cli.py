"""
Bot Manager CLI

Command-line interface for managing the registered bot identities without a
running manager. Changes made here are picked up by the manager on its next
start.
"""

import asyncio
import argparse
import sys
from datetime import datetime
from typing import Optional

from dotenv import load_dotenv

from db import BotStore, DatabaseManager, SchemaManager, get_manager_config
from supervisor import ConfigurationError


def _format_time(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else "Never"


class BotManagerCLI:
    """Command-line interface for bot identity management."""

    def __init__(self):
        self.config = get_manager_config()
        self.database = DatabaseManager(self.config)
        self.store = BotStore(self.database)
        self.schema_manager = SchemaManager(self.config)

    async def initialize(self):
        """Open the database connection pool."""
        await self.database.setup()

    async def cleanup(self):
        await self.database.cleanup()

    async def init_db(self) -> bool:
        """Create the database schema."""
        if await self.schema_manager.sync():
            print("Database schema is up to date.")
            return True
        print("Failed to create the database schema. See the log for details.")
        return False

    async def list_bots(self):
        """List all registered bots."""
        bots = await self.store.list_bots()

        if not bots:
            print("No bots registered.")
            return

        print("\nRegistered Bots:")
        print("-" * 90)
        print(f"{'Name':<25} {'Enabled':<8} {'Last Connected':<20} {'Last Error':<35}")
        print("-" * 90)

        for bot in bots:
            error = (bot.logon_error or "")[:35]
            print(f"{bot.name:<25} {'Yes' if bot.enabled else 'No':<8} "
                  f"{_format_time(bot.last_connected_on):<20} {error:<35}")

        print("-" * 90)

    async def show_bot_info(self, name: str):
        """Show detailed information about a bot."""
        bot = await self.store.get_bot(name)

        if not bot:
            print(f"Bot '{name}' not found.")
            return

        print(f"\nBot Information: {name}")
        print("=" * 50)
        print(f"Name: {bot.name}")
        print(f"Enabled: {'Yes' if bot.enabled else 'No'}")
        print(f"Init Presence URL: {bot.init_presence_url or 'None'}")
        print(f"Created: {_format_time(bot.created_on)}")
        print(f"Last Connected: {_format_time(bot.last_connected_on)}")
        print(f"Disabled: {_format_time(bot.disabled_on)}")

        if bot.logon_error:
            print(f"\nLast Error: {bot.logon_error}")

    async def disable_bot(self, name: str):
        """Disable a bot so it is not started on the next manager start."""
        if await self.store.disable_bot(name):
            print(f"Bot '{name}' disabled. A running manager keeps it online until restarted.")
        else:
            print(f"Bot '{name}' not found.")

    async def set_init_url(self, name: str, url: str):
        """Set the URL called when a bot connects."""
        if await self.store.set_init_presence_url(name, url):
            print(f"Init URL for bot '{name}' set to: {url}")
        else:
            print(f"Bot '{name}' not found.")


async def main() -> int:
    """Main CLI entry point."""
    load_dotenv()

    parser = argparse.ArgumentParser(description="Discord Bot Manager")
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Init-db command
    subparsers.add_parser('init-db', help='Create the database schema')

    # List command
    subparsers.add_parser('list', help='List all bots')

    # Info command
    info_parser = subparsers.add_parser('info', help='Show bot information')
    info_parser.add_argument('name', help='Bot name')

    # Disable command
    disable_parser = subparsers.add_parser('disable', help='Disable a bot')
    disable_parser.add_argument('name', help='Bot name')

    # Init-url command
    init_url_parser = subparsers.add_parser('init-url', help='Set the URL called when a bot connects')
    init_url_parser.add_argument('name', help='Bot name')
    init_url_parser.add_argument('url', help='URL receiving an empty JSON POST')

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 0

    try:
        cli = BotManagerCLI()
    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        return 1

    # init-db does not need the pool
    if args.command == 'init-db':
        return 0 if await cli.init_db() else 1

    try:
        await cli.initialize()
        if args.command == 'list':
            await cli.list_bots()
        elif args.command == 'info':
            await cli.show_bot_info(args.name)
        elif args.command == 'disable':
            await cli.disable_bot(args.name)
        elif args.command == 'init-url':
            await cli.set_init_url(args.name, args.url)
    except Exception as e:
        print(f"Error: {e}")
        return 1
    finally:
        await cli.cleanup()

    return 0


if __name__ == '__main__':
    sys.exit(asyncio.run(main()))
