"""
Construxis Discord Bot - Main entry point.

Front end for the Construxis economy API: balances, cash, bank transfers,
entity treasuries, pending transaction approval and the stock market.

Uses Discord Slash Commands for all interactions.

Usage:
    python -m src.construxis_bot.main

Environment Variables:
    DISCORD_TOKEN - Discord bot token
    API_URL - Construxis API base URL
    API_KEY - Construxis API key
"""

import asyncio
import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

import aiohttp
import discord
from discord import app_commands
from discord.ext import commands, tasks
from dotenv import load_dotenv

from .api_client import ConstruxisAPIClient
from .config import ConstruxisBotConfig, load_config, validate_discord_token
from .currency import CurrencyCache, refresh_currencies
from .formatters import error_embed
from .notifications import DirectMessageNotifier
from .router import CommandRouter
from .slash_commands import ALL_COMMANDS
from .storage import EntityPermissionStore, UserLinkStore

# Load environment variables from .env file
load_dotenv()

# Constants
MAX_RECONNECT_ATTEMPTS = 5
RECONNECT_DELAY_BASE = 5  # seconds

logger = logging.getLogger(__package__)


def setup_logging(log_dir: Path) -> logging.Logger:
    """
    Set up logging with both file and stdout handlers.

    Creates rotating log files in the log directory with format:
    construxis_bot_YYYYMMDD.log
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()

    log_format = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # File handler - rotating, max 10MB per file, keep 5 backups
    log_file = log_dir / f"construxis_bot_{datetime.now().strftime('%Y%m%d')}.log"
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(log_format)
    logger.addHandler(file_handler)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(logging.INFO)
    stdout_handler.setFormatter(log_format)
    logger.addHandler(stdout_handler)

    # Also configure discord.py logging
    discord_logger = logging.getLogger("discord")
    discord_logger.setLevel(logging.WARNING)
    discord_logger.addHandler(file_handler)

    logger.info(f"Logging initialized. Log file: {log_file}")

    return logger


class ConstruxisBot(commands.Bot):
    """Discord bot exposing the Construxis economy through slash commands."""

    def __init__(self, config: ConstruxisBotConfig):
        """Initialize the bot and its collaborators."""
        intents = discord.Intents.default()

        super().__init__(command_prefix=commands.when_mentioned, intents=intents)
        self.config = config
        self.api = ConstruxisAPIClient(config)
        self.currencies = CurrencyCache()
        self.router = CommandRouter(
            config=config,
            api=self.api,
            currencies=self.currencies,
            user_links=UserLinkStore(config.user_map_file),
            entity_perms=EntityPermissionStore(config.entity_perms_file),
            notifier=DirectMessageNotifier(self),
        )

    async def setup_hook(self):
        """Open the API session, start the currency refresh and register commands."""
        logger.info("Bot setup hook called - preparing slash commands...")

        await self.api.start()

        self.tree.on_error = self.on_app_command_error

        self.currency_refresh.change_interval(minutes=self.config.currency_refresh_minutes)
        self.currency_refresh.start()

        for command in ALL_COMMANDS:
            self.tree.add_command(command)

        try:
            synced = await self.tree.sync()
            logger.info(f"Registered {len(synced)} global commands")
            for cmd in synced:
                logger.info(f"  - /{cmd.name}: {cmd.description}")
        except discord.HTTPException as e:
            logger.error(f"Failed to register commands: {e}", exc_info=True)

    @tasks.loop(minutes=10)
    async def currency_refresh(self):
        """Reload the currency table; the prior table survives any failure."""
        try:
            await refresh_currencies(self.api, self.currencies)
        except Exception as e:
            logger.error(f"Currency refresh crashed: {e}", exc_info=True)

    async def on_app_command_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError):
        """Handle errors raised before a command reaches the router."""
        logger.error(f"Slash command error: {error}", exc_info=True)
        embed = error_embed(str(error)[:200])
        try:
            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except Exception as e:
            logger.error(f"Failed to send error response: {e}")

    async def on_ready(self):
        """Called when bot successfully connects to Discord."""
        logger.info("=" * 60)
        logger.info("DISCORD BOT CONNECTED SUCCESSFULLY")
        logger.info(f"  Bot User: {self.user} (ID: {self.user.id})")
        logger.info(f"  Guilds: {len(self.guilds)}")
        logger.info(f"  Latency: {self.latency * 1000:.2f}ms")
        logger.info(f"  API: {self.config.api_url}")
        logger.info(f"  Currencies cached: {len(self.currencies)}")
        logger.info("=" * 60)

    async def on_connect(self):
        logger.info("Connected to Discord gateway")

    async def on_disconnect(self):
        logger.warning("Disconnected from Discord gateway")

    async def on_resumed(self):
        logger.info("Session resumed after disconnect")

    async def on_error(self, event_method: str, *args, **kwargs):
        """Called when an error occurs in an event handler."""
        logger.error(f"Error in event {event_method}", exc_info=True)

    async def on_interaction(self, interaction: discord.Interaction):
        """Route button clicks; slash commands go through the command tree."""
        logger.debug(
            f"INTERACTION received: type={interaction.type.name}, "
            f"user={interaction.user}, data={interaction.data}"
        )
        if interaction.type == discord.InteractionType.component:
            await self.router.handle_transaction_action(interaction)

    async def close(self):
        """Clean shutdown."""
        logger.info("Shutting down bot...")
        self.currency_refresh.cancel()
        await self.api.close()
        await super().close()


def create_bot(config: ConstruxisBotConfig) -> ConstruxisBot:
    """Create and configure the bot instance."""
    return ConstruxisBot(config)


async def run_bot_with_reconnect(config: ConstruxisBotConfig):
    """
    Run the bot with automatic reconnection handling.

    Implements exponential backoff for reconnection attempts.
    """
    reconnect_attempts = 0

    while True:
        try:
            logger.info("Creating bot instance...")
            bot = create_bot(config)

            logger.info("Starting bot connection to Discord...")
            async with bot:
                await bot.start(config.discord_token)
            break

        except discord.LoginFailure as e:
            logger.error(f"AUTHENTICATION FAILED: {e}")
            logger.error("Please check your DISCORD_TOKEN is valid")
            sys.exit(1)  # Don't retry auth failures

        except aiohttp.ClientConnectorError as e:
            reconnect_attempts += 1
            delay = min(RECONNECT_DELAY_BASE * (2 ** reconnect_attempts), 300)  # Max 5 min
            logger.error(f"Network connection error: {e}")
            logger.warning(
                f"Reconnect attempt {reconnect_attempts}/{MAX_RECONNECT_ATTEMPTS} "
                f"in {delay}s..."
            )

            if reconnect_attempts >= MAX_RECONNECT_ATTEMPTS:
                logger.error("Max reconnection attempts reached. Exiting.")
                sys.exit(1)

            await asyncio.sleep(delay)

        except discord.GatewayNotFound:
            logger.error("Discord gateway not found - Discord may be down")
            logger.warning("Retrying in 60 seconds...")
            await asyncio.sleep(60)

        except discord.HTTPException as e:
            if e.status == 429:
                retry_after = getattr(e, "retry_after", 60)
                logger.warning(f"Rate limited by Discord. Waiting {retry_after}s...")
                await asyncio.sleep(retry_after)
            else:
                reconnect_attempts += 1
                logger.error(f"Discord HTTP error: {e}")
                if reconnect_attempts >= MAX_RECONNECT_ATTEMPTS:
                    logger.error("Max reconnection attempts reached. Exiting.")
                    sys.exit(1)
                await asyncio.sleep(RECONNECT_DELAY_BASE * reconnect_attempts)

        except asyncio.CancelledError:
            logger.info("Bot shutdown requested")
            break

        except Exception as e:
            reconnect_attempts += 1
            logger.error(f"Unexpected error: {e}", exc_info=True)

            if reconnect_attempts >= MAX_RECONNECT_ATTEMPTS:
                logger.error("Max reconnection attempts reached. Exiting.")
                sys.exit(1)

            delay = min(RECONNECT_DELAY_BASE * reconnect_attempts, 60)
            logger.warning(f"Retrying in {delay}s...")
            await asyncio.sleep(delay)


def main():
    """Main entry point with validation."""
    config = load_config()
    setup_logging(config.log_dir)

    logger.info("=" * 60)
    logger.info("CONSTRUXIS DISCORD BOT STARTING")
    logger.info(f"  Time: {datetime.now().isoformat()}")
    logger.info(f"  PID: {os.getpid()}")
    logger.info(f"  Log directory: {config.log_dir}")
    logger.info("=" * 60)

    logger.info("Validating Discord token...")
    token_valid, token_msg = validate_discord_token(config.discord_token)
    if not token_valid:
        logger.error(f"Discord token validation failed: {token_msg}")
        sys.exit(1)
    logger.info(f"  Discord token: {token_msg}")

    is_valid, error_msg = config.validate()
    if not is_valid:
        logger.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    if not config.api_key:
        logger.warning("API_KEY not set - backend calls will be unauthenticated")

    logger.info("Configuration loaded successfully:")
    logger.info(f"  API URL: {config.api_url}")
    logger.info(f"  User link file: {config.user_map_file}")
    logger.info(f"  Entity permission file: {config.entity_perms_file}")
    logger.info(f"  Currency refresh: every {config.currency_refresh_minutes} min")

    try:
        asyncio.run(run_bot_with_reconnect(config))
    except KeyboardInterrupt:
        logger.info("Bot shutdown by keyboard interrupt (Ctrl+C)")
    except SystemExit as e:
        logger.info(f"Bot exiting with code {e.code}")
        raise
    except Exception as e:
        logger.error(f"Bot crashed with unexpected error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        logger.info("Bot shutdown complete")


if __name__ == "__main__":
    main()
