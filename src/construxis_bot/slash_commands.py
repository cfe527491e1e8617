"""
Slash command definitions.

Each command only declares its parameters and hands off to the bot's
CommandRouter, which owns the behaviour.
"""

from typing import List, Optional

import discord
from discord import app_commands

from .router import CommandName


def _everywhere(command: app_commands.Command) -> app_commands.Command:
    """Installable on servers and user accounts, usable in servers, DMs and group DMs."""
    command = app_commands.allowed_installs(guilds=True, users=True)(command)
    return app_commands.allowed_contexts(guilds=True, dms=True, private_channels=True)(command)


async def _dispatch(interaction: discord.Interaction, name: CommandName, **options) -> None:
    await interaction.client.router.dispatch(interaction, name.value, **options)


# ============================================================================
# ACCOUNTS
# ============================================================================

@_everywhere
@app_commands.command(name="balance", description="Check your balances")
async def balance_command(interaction: discord.Interaction):
    await _dispatch(interaction, CommandName.BALANCE)


@_everywhere
@app_commands.command(name="history", description="View your transaction history")
@app_commands.describe(limit="Number of transactions (default 10)")
async def history_command(interaction: discord.Interaction, limit: Optional[int] = None):
    await _dispatch(interaction, CommandName.HISTORY, limit=limit)


@_everywhere
@app_commands.command(name="hand", description="Hand physical cash to someone")
@app_commands.describe(
    to_user="Username", currency="Currency code", amount="Amount", reason="Reason"
)
async def hand_command(
    interaction: discord.Interaction,
    to_user: str,
    currency: str,
    amount: float,
    reason: Optional[str] = None,
):
    await _dispatch(
        interaction,
        CommandName.HAND,
        to_user=to_user,
        currency=currency,
        amount=amount,
        reason=reason,
    )


@_everywhere
@app_commands.command(name="transfer", description="Bank transfer to another account")
@app_commands.describe(to_account="Account ID", amount="Amount", reason="Reason")
async def transfer_command(
    interaction: discord.Interaction, to_account: str, amount: float, reason: str
):
    await _dispatch(
        interaction, CommandName.TRANSFER, to_account=to_account, amount=amount, reason=reason
    )


@_everywhere
@app_commands.command(name="deposit", description="Deposit cash into your bank account")
@app_commands.describe(account_id="Your account ID", amount="Amount", currency="Currency code")
async def deposit_command(
    interaction: discord.Interaction, account_id: str, amount: float, currency: str
):
    await _dispatch(
        interaction, CommandName.DEPOSIT, account_id=account_id, amount=amount, currency=currency
    )


@_everywhere
@app_commands.command(name="withdraw", description="Withdraw cash from your bank account")
@app_commands.describe(account_id="Your account ID", amount="Amount")
async def withdraw_command(interaction: discord.Interaction, account_id: str, amount: float):
    await _dispatch(interaction, CommandName.WITHDRAW, account_id=account_id, amount=amount)


# ============================================================================
# ENTITIES
# ============================================================================

@_everywhere
@app_commands.command(
    name="pay", description="Pay someone from an entity treasury (requires permission)"
)
@app_commands.describe(
    entity="Entity name",
    amount="Amount",
    currency="Currency",
    reason="Reason",
    to_user="Username (for cash)",
    to_account="Account ID (for bank)",
)
async def pay_command(
    interaction: discord.Interaction,
    entity: str,
    amount: float,
    currency: str,
    reason: str,
    to_user: Optional[str] = None,
    to_account: Optional[str] = None,
):
    await _dispatch(
        interaction,
        CommandName.PAY,
        entity=entity,
        amount=amount,
        currency=currency,
        reason=reason,
        to_user=to_user,
        to_account=to_account,
    )


@_everywhere
@app_commands.command(name="paytax", description="Pay an entity (country/company)")
@app_commands.describe(entity="Entity name", amount="Amount", reason="Reason (e.g. taxes)")
async def paytax_command(
    interaction: discord.Interaction, entity: str, amount: float, reason: str
):
    await _dispatch(interaction, CommandName.PAYTAX, entity=entity, amount=amount, reason=reason)


@_everywhere
@app_commands.command(name="burn", description="Burn cash")
@app_commands.describe(currency="Currency", amount="Amount", reason="Reason")
async def burn_command(
    interaction: discord.Interaction, currency: str, amount: float, reason: str
):
    await _dispatch(interaction, CommandName.BURN, currency=currency, amount=amount, reason=reason)


@_everywhere
@app_commands.command(name="pending", description="View and manage pending transactions")
async def pending_command(interaction: discord.Interaction):
    await _dispatch(interaction, CommandName.PENDING)


# ============================================================================
# STOCK MARKET
# ============================================================================

@_everywhere
@app_commands.command(name="stock", description="View stock information")
@app_commands.describe(ticker="Stock ticker")
async def stock_command(interaction: discord.Interaction, ticker: str):
    await _dispatch(interaction, CommandName.STOCK, ticker=ticker)


@_everywhere
@app_commands.command(name="buy", description="Buy stocks")
@app_commands.describe(ticker="Stock ticker", shares="Number of shares")
async def buy_command(interaction: discord.Interaction, ticker: str, shares: int):
    await _dispatch(interaction, CommandName.BUY, ticker=ticker, shares=shares)


@_everywhere
@app_commands.command(name="sell", description="Sell stocks")
@app_commands.describe(ticker="Stock ticker", shares="Number of shares")
async def sell_command(interaction: discord.Interaction, ticker: str, shares: int):
    await _dispatch(interaction, CommandName.SELL, ticker=ticker, shares=shares)


@_everywhere
@app_commands.command(name="portfolio", description="View your stock portfolio")
async def portfolio_command(interaction: discord.Interaction):
    await _dispatch(interaction, CommandName.PORTFOLIO)


@_everywhere
@app_commands.command(name="market", description="View all listed stocks")
async def market_command(interaction: discord.Interaction):
    await _dispatch(interaction, CommandName.MARKET)


ALL_COMMANDS: List[app_commands.Command] = [
    balance_command,
    history_command,
    hand_command,
    transfer_command,
    deposit_command,
    withdraw_command,
    pay_command,
    paytax_command,
    burn_command,
    pending_command,
    stock_command,
    buy_command,
    sell_command,
    portfolio_command,
    market_command,
]
