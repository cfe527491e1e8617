"""
Tests for the bot wiring: slash command registration, component routing and
logging setup.
"""

import asyncio
import logging

from unittest.mock import AsyncMock, MagicMock

import aiohttp
import discord

from src.construxis_bot.main import ConstruxisBot, setup_logging
from src.construxis_bot.router import CommandName
from src.construxis_bot.slash_commands import ALL_COMMANDS


class TestSlashCommands:

    def test_one_slash_command_per_router_command(self):
        assert sorted(cmd.name for cmd in ALL_COMMANDS) == sorted(n.value for n in CommandName)

    def test_commands_allowed_in_dms(self):
        for cmd in ALL_COMMANDS:
            assert cmd.allowed_contexts.dm_channel is True
            assert cmd.allowed_installs.user is True

    def test_command_hands_off_to_router(self):
        interaction = MagicMock()
        interaction.client.router.dispatch = AsyncMock()
        hand = next(cmd for cmd in ALL_COMMANDS if cmd.name == "hand")

        asyncio.run(hand.callback(interaction, to_user="bob", currency="USD", amount=1.0))

        interaction.client.router.dispatch.assert_awaited_once_with(
            interaction, "hand", to_user="bob", currency="USD", amount=1.0, reason=None
        )


class TestConstruxisBot:
    """Test event handling on the bot itself."""

    def test_component_interaction_routed(self, mock_config):
        bot = ConstruxisBot(mock_config)
        bot.router = MagicMock()
        bot.router.handle_transaction_action = AsyncMock()
        interaction = MagicMock()
        interaction.type = discord.InteractionType.component

        asyncio.run(bot.on_interaction(interaction))

        bot.router.handle_transaction_action.assert_awaited_once_with(interaction)

    def test_slash_command_interaction_not_routed(self, mock_config):
        bot = ConstruxisBot(mock_config)
        bot.router = MagicMock()
        bot.router.handle_transaction_action = AsyncMock()
        interaction = MagicMock()
        interaction.type = discord.InteractionType.application_command

        asyncio.run(bot.on_interaction(interaction))

        bot.router.handle_transaction_action.assert_not_awaited()


class TestCurrencyRefreshLoop:
    """The refresh task survives any failure and keeps the prior table."""

    def test_unexpected_error_contained(self, mock_config):
        bot = ConstruxisBot(mock_config)
        bot.currencies.replace({"USD": {"symbol": "$"}})
        before = bot.currencies.snapshot()
        bot.api.get_currencies = AsyncMock(side_effect=ValueError("not JSON"))

        asyncio.run(bot.currency_refresh())

        assert bot.currencies.snapshot() is before

    def test_backend_error_contained(self, mock_config):
        bot = ConstruxisBot(mock_config)
        bot.api.get_currencies = AsyncMock(side_effect=aiohttp.ClientError("refused"))

        asyncio.run(bot.currency_refresh())

        assert len(bot.currencies) == 0

    def test_success_replaces_table(self, mock_config):
        bot = ConstruxisBot(mock_config)
        bot.api.get_currencies = AsyncMock(return_value={"VAL": {"symbol": "V"}})

        asyncio.run(bot.currency_refresh())

        assert set(bot.currencies.snapshot()) == {"VAL"}


class TestSetupLogging:

    def test_creates_log_file(self, tmp_path):
        logger = setup_logging(tmp_path / "logs")
        try:
            logger.info("hello")
            log_files = list((tmp_path / "logs").glob("construxis_bot_*.log"))
            assert len(log_files) == 1
            assert "hello" in log_files[0].read_text(encoding="utf-8")
        finally:
            discord_logger = logging.getLogger("discord")
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)
                if handler in discord_logger.handlers:
                    discord_logger.removeHandler(handler)
