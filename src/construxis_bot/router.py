"""
Command dispatch for the Construxis bot.

Every slash command lands in CommandRouter.dispatch with its name and
options. The router checks that the caller has a linked Construxis account,
runs the command's handler and turns any failure into an ephemeral error
reply. Approve/decline button clicks arrive separately through
handle_transaction_action.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple

import discord

from .api_client import ConstruxisAPIClient, error_message
from .config import ConstruxisBotConfig
from .currency import CurrencyCache, currency_name, format_currency
from .formatters import (
    APPROVE_ACTION,
    DECLINE_ACTION,
    ERROR_TITLE,
    account_operation_embed,
    balance_embed,
    burn_embed,
    cash_handed_embed,
    cash_received_embed,
    entity_payment_embed,
    entity_receipt_embed,
    error_embed,
    history_embed,
    market_embed,
    no_pending_embed,
    not_linked_embed,
    pending_controls,
    pending_embed,
    portfolio_embed,
    stock_embed,
    trade_embed,
    transaction_action_embed,
    transfer_embed,
)
from .notifications import Notifier, notify_best_effort
from .permissions import PAY_PERMISSION, user_has_entity_perm
from .storage import EntityPermissionStore, UserLinkStore

logger = logging.getLogger(__name__)


class CommandName(str, Enum):
    """Slash commands understood by the router."""

    BALANCE = "balance"
    HISTORY = "history"
    HAND = "hand"
    TRANSFER = "transfer"
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    PAY = "pay"
    PAYTAX = "paytax"
    BURN = "burn"
    PENDING = "pending"
    STOCK = "stock"
    BUY = "buy"
    SELL = "sell"
    PORTFOLIO = "portfolio"
    MARKET = "market"


# Read-only commands that work without a linked account
PUBLIC_COMMANDS = frozenset({CommandName.MARKET, CommandName.STOCK})

TRANSACTION_ACTIONS = frozenset({APPROVE_ACTION, DECLINE_ACTION})


@dataclass
class CommandContext:
    """One slash command invocation."""

    interaction: discord.Interaction
    username: Optional[str]
    options: Dict[str, Any] = field(default_factory=dict)

    def option(self, name: str, default: Any = None) -> Any:
        value = self.options.get(name)
        return default if value is None else value


Handler = Callable[[CommandContext], Awaitable[None]]


def parse_action_id(custom_id: Optional[str]) -> Optional[Tuple[str, str]]:
    """
    Split a button custom id like "approve_TXN42" into (action, txn_id).

    Returns None for anything that is not an approve/decline id.
    """
    action, sep, txn_id = str(custom_id or "").partition("_")
    if not sep or not txn_id or action not in TRANSACTION_ACTIONS:
        return None
    return action, txn_id


def _wallets(user_data: Optional[Mapping[str, Any]]) -> List[Mapping[str, Any]]:
    return (user_data or {}).get("wallets") or []


def _accounts(user_data: Optional[Mapping[str, Any]]) -> List[Mapping[str, Any]]:
    return (user_data or {}).get("bankAccounts") or []


def find_wallet(user_data: Optional[Mapping[str, Any]], currency: str) -> Optional[Mapping[str, Any]]:
    """The user's cash wallet for a currency."""
    return next((w for w in _wallets(user_data) if w.get("currency") == currency), None)


def primary_account(user_data: Optional[Mapping[str, Any]]) -> Optional[Mapping[str, Any]]:
    """The first bank account, used for transfers, taxes and trading."""
    accounts = _accounts(user_data)
    return accounts[0] if accounts else None


def find_account(user_data: Optional[Mapping[str, Any]], account_id: str) -> Optional[Mapping[str, Any]]:
    return next((a for a in _accounts(user_data) if a.get("accountId") == account_id), None)


class CommandRouter:
    """Maps command names to handlers and runs them against the backend."""

    def __init__(
        self,
        config: ConstruxisBotConfig,
        api: ConstruxisAPIClient,
        currencies: CurrencyCache,
        user_links: UserLinkStore,
        entity_perms: EntityPermissionStore,
        notifier: Optional[Notifier] = None,
    ):
        self.config = config
        self.api = api
        self.currencies = currencies
        self.user_links = user_links
        self.entity_perms = entity_perms
        self.notifier = notifier

        handlers: Dict[CommandName, Handler] = {
            CommandName.BALANCE: self._balance,
            CommandName.HISTORY: self._history,
            CommandName.HAND: self._hand,
            CommandName.TRANSFER: self._transfer,
            CommandName.DEPOSIT: self._deposit,
            CommandName.WITHDRAW: self._withdraw,
            CommandName.PAY: self._pay,
            CommandName.PAYTAX: self._paytax,
            CommandName.BURN: self._burn,
            CommandName.PENDING: self._pending,
            CommandName.STOCK: self._stock,
            CommandName.BUY: self._buy,
            CommandName.SELL: self._sell,
            CommandName.PORTFOLIO: self._portfolio,
            CommandName.MARKET: self._market,
        }
        missing = [name.value for name in CommandName if name not in handlers]
        if missing:
            raise ValueError(f"No handler for commands: {', '.join(missing)}")
        self._handlers = MappingProxyType(handlers)

    @property
    def handlers(self) -> Mapping[CommandName, Handler]:
        return self._handlers

    # ========================================================================
    # DISPATCH
    # ========================================================================

    async def dispatch(self, interaction: discord.Interaction, command_name: str, **options: Any) -> None:
        """Run one slash command; never raises."""
        try:
            command = CommandName(command_name)
        except ValueError:
            logger.debug(f"Ignoring unknown command {command_name!r}")
            return

        try:
            username = self.user_links.username_for(interaction.user.id)
            if username is None and command not in PUBLIC_COMMANDS:
                logger.info(
                    f"Rejected /{command.value} from unlinked user "
                    f"{interaction.user} ({interaction.user.id})"
                )
                await self._reply(interaction, embed=not_linked_embed(), ephemeral=True)
                return

            logger.info(
                f"/{command.value} from {interaction.user} ({interaction.user.id}) "
                f"as {username or '-'}"
            )
            await self._handlers[command](CommandContext(interaction, username, options))

        except Exception as e:
            logger.error(f"/{command.value} failed: {error_message(e)}", exc_info=True)
            await self._send_error(interaction, error_message(e))

    async def handle_transaction_action(self, interaction: discord.Interaction) -> None:
        """Approve or decline a pending transaction from its button."""
        custom_id = (interaction.data or {}).get("custom_id")
        parsed = parse_action_id(custom_id)
        if parsed is None:
            logger.debug(f"Ignoring component {custom_id!r}")
            return

        action, txn_id = parsed
        try:
            await interaction.response.defer()
            await self.api.pending_action(txn_id, action)
            await interaction.edit_original_response(
                embed=transaction_action_embed(action, txn_id), view=None
            )
            logger.info(f"Transaction {txn_id} {action}d by {interaction.user} ({interaction.user.id})")
        except Exception as e:
            logger.error(f"Failed to {action} transaction {txn_id}: {error_message(e)}", exc_info=True)
            try:
                await interaction.edit_original_response(
                    embed=error_embed(error_message(e)), view=None
                )
            except Exception as edit_error:
                logger.error(f"Failed to send error response: {edit_error}")

    # ========================================================================
    # REPLIES
    # ========================================================================

    @staticmethod
    async def _reply(
        interaction: discord.Interaction,
        *,
        embed: Optional[discord.Embed] = None,
        content: Optional[str] = None,
        view: Optional[discord.ui.View] = None,
        ephemeral: bool = False,
    ) -> None:
        kwargs: Dict[str, Any] = {"ephemeral": ephemeral}
        if embed is not None:
            kwargs["embed"] = embed
        if content is not None:
            kwargs["content"] = content
        if view is not None:
            kwargs["view"] = view
        await interaction.response.send_message(**kwargs)

    async def _reject(self, ctx: CommandContext, message: str, title: Optional[str] = None) -> None:
        embed = error_embed(message, title=title or ERROR_TITLE)
        await self._reply(ctx.interaction, embed=embed, ephemeral=True)

    @staticmethod
    async def _send_error(interaction: discord.Interaction, message: str) -> None:
        """Error reply on whichever channel is still open; delivery failures are dropped."""
        embed = error_embed(message)
        try:
            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except Exception as e:
            logger.error(f"Failed to send error response: {e}")

    # ========================================================================
    # ACCOUNTS
    # ========================================================================

    async def _balance(self, ctx: CommandContext) -> None:
        user_data = await self.api.get_user_data(ctx.username)
        if not user_data:
            await self._reject(ctx, "User not found")
            return
        embed = balance_embed(user_data, self.currencies.snapshot())
        await self._reply(ctx.interaction, embed=embed)

    async def _history(self, ctx: CommandContext) -> None:
        limit = ctx.option("limit") or self.config.default_history_limit
        history = await self.api.get_history(ctx.username, limit)
        transactions = (history or {}).get("transactions") or []
        embed = history_embed(
            transactions, self.currencies.snapshot(), self.config.max_history_entries
        )
        await self._reply(ctx.interaction, embed=embed)

    async def _hand(self, ctx: CommandContext) -> None:
        to_user = ctx.option("to_user")
        currency = ctx.option("currency").upper()
        amount = ctx.option("amount")
        reason = ctx.option("reason") or "Cash payment"
        table = self.currencies.snapshot()

        user_data = await self.api.get_user_data(ctx.username)
        wallet = find_wallet(user_data, currency)
        if wallet is None:
            await self._reject(
                ctx, f"You don't have a {currency_name(currency, table)} cash wallet"
            )
            return

        await self.api.create_transaction(
            from_wallet=wallet["id"],
            to_wallet=self.config.cash_wallet_id(to_user, currency),
            amount=amount,
            currency=currency,
            note=reason,
            is_physical=True,
        )

        amount_text = format_currency(amount, currency, table)
        await self._reply(ctx.interaction, embed=cash_handed_embed(amount_text, to_user, reason))

        recipient_id = self.user_links.discord_id_for(to_user)
        if recipient_id:
            await notify_best_effort(
                self.notifier,
                recipient_id,
                cash_received_embed(ctx.interaction.user.name, amount_text, reason),
            )

    async def _transfer(self, ctx: CommandContext) -> None:
        to_account = ctx.option("to_account")
        amount = ctx.option("amount")
        reason = ctx.option("reason")

        user_data = await self.api.get_user_data(ctx.username)
        account = primary_account(user_data)
        if account is None:
            await self._reject(ctx, "You don't have a bank account")
            return

        result = await self.api.create_transaction(
            from_wallet=account["accountId"],
            to_wallet=to_account,
            amount=amount,
            currency=account["currency"],
            note=reason,
            is_physical=False,
        )

        amount_text = format_currency(amount, account["currency"], self.currencies.snapshot())
        await self._reply(
            ctx.interaction, embed=transfer_embed(result or {}, amount_text, to_account, reason)
        )

    async def _deposit(self, ctx: CommandContext) -> None:
        account_id = ctx.option("account_id")
        amount = ctx.option("amount")
        currency = ctx.option("currency").upper()

        await self.api.account_operation(account_id, amount, currency, "deposit")

        amount_text = format_currency(amount, currency, self.currencies.snapshot())
        await self._reply(
            ctx.interaction, embed=account_operation_embed("deposit", amount_text, account_id)
        )

    async def _withdraw(self, ctx: CommandContext) -> None:
        account_id = ctx.option("account_id")
        amount = ctx.option("amount")

        user_data = await self.api.get_user_data(ctx.username)
        account = find_account(user_data, account_id)
        if account is None:
            await self._reject(ctx, "Account not found")
            return

        await self.api.account_operation(account_id, amount, account["currency"], "withdraw")

        amount_text = format_currency(amount, account["currency"], self.currencies.snapshot())
        await self._reply(
            ctx.interaction, embed=account_operation_embed("withdraw", amount_text, account_id)
        )

    # ========================================================================
    # ENTITIES
    # ========================================================================

    async def _pay(self, ctx: CommandContext) -> None:
        entity_name = ctx.option("entity")
        amount = ctx.option("amount")
        currency = ctx.option("currency").upper()
        reason = ctx.option("reason")
        to_user = ctx.option("to_user")
        to_account = ctx.option("to_account")

        records = self.entity_perms.load()
        if not user_has_entity_perm(records, ctx.interaction.user.id, entity_name, PAY_PERMISSION):
            await self._reject(
                ctx,
                "You don't have permission to pay from this entity",
                title="❌ Permission Denied",
            )
            return

        if not to_user and not to_account:
            await self._reject(ctx, "Specify either to_user or to_account")
            return

        await self.api.entity_pay(
            entity_name,
            amount,
            currency,
            reason,
            to_username=to_user or None,
            to_wallet=None if to_user else to_account,
        )

        amount_text = format_currency(amount, currency, self.currencies.snapshot())
        embed = entity_payment_embed(
            amount_text,
            entity_name,
            reason,
            to_user=to_user or None,
            to_account=to_account,
        )
        await self._reply(ctx.interaction, embed=embed)

    async def _paytax(self, ctx: CommandContext) -> None:
        entity_name = ctx.option("entity")
        amount = ctx.option("amount")
        reason = ctx.option("reason")

        user_data = await self.api.get_user_data(ctx.username)
        account = primary_account(user_data)
        if account is None:
            await self._reject(ctx, "You don't have a bank account")
            return

        await self.api.entity_receive(
            entity_name, account["accountId"], amount, account["currency"], reason
        )

        amount_text = format_currency(amount, account["currency"], self.currencies.snapshot())
        await self._reply(
            ctx.interaction, embed=entity_receipt_embed(amount_text, entity_name, reason)
        )

    async def _burn(self, ctx: CommandContext) -> None:
        currency = ctx.option("currency").upper()
        amount = ctx.option("amount")
        reason = ctx.option("reason")
        table = self.currencies.snapshot()

        user_data = await self.api.get_user_data(ctx.username)
        wallet = find_wallet(user_data, currency)
        if wallet is None:
            await self._reject(ctx, f"You don't have {currency_name(currency, table)} cash")
            return

        await self.api.burn(wallet["id"], amount, currency, reason)

        await self._reply(
            ctx.interaction, embed=burn_embed(format_currency(amount, currency, table), reason)
        )

    # ========================================================================
    # PENDING TRANSACTIONS
    # ========================================================================

    async def _pending(self, ctx: CommandContext) -> None:
        data = await self.api.get_pending()
        pending = (data or {}).get("pending_transactions") or {}
        if not pending:
            await self._reply(ctx.interaction, embed=no_pending_embed())
            return

        # One at a time; the next shows up after this one is resolved
        txn_id, txn = next(iter(pending.items()))
        controls = pending_controls(txn_id)
        try:
            await self._reply(
                ctx.interaction,
                embed=pending_embed(txn_id, txn, self.currencies.snapshot(), waiting=len(pending)),
                view=controls,
            )
        finally:
            # Clicks are routed by custom id, not through the view store
            controls.stop()

    # ========================================================================
    # STOCK MARKET
    # ========================================================================

    async def _stock(self, ctx: CommandContext) -> None:
        ticker = ctx.option("ticker").upper()
        stock = await self.api.get_stock(ticker)
        await self._reply(ctx.interaction, embed=stock_embed(ticker, stock, self.currencies.snapshot()))

    async def _buy(self, ctx: CommandContext) -> None:
        await self._trade(ctx, "buy", "❌ You need a bank account to buy stocks")

    async def _sell(self, ctx: CommandContext) -> None:
        await self._trade(ctx, "sell", "❌ You need a bank account")

    async def _trade(self, ctx: CommandContext, action: str, no_account_message: str) -> None:
        ticker = ctx.option("ticker").upper()
        shares = ctx.option("shares")

        user_data = await self.api.get_user_data(ctx.username)
        account = primary_account(user_data)
        if account is None:
            await self._reply(ctx.interaction, content=no_account_message, ephemeral=True)
            return

        result = await self.api.trade_stock(ticker, shares, action, account["accountId"])

        currency = result.get("currency") or account["currency"]
        embed = trade_embed(action, ticker, shares, result, currency, self.currencies.snapshot())
        await self._reply(ctx.interaction, embed=embed)

    async def _portfolio(self, ctx: CommandContext) -> None:
        portfolio = await self.api.get_portfolio(ctx.username)
        holdings = (portfolio or {}).get("holdings") or []
        embed = portfolio_embed(ctx.username, holdings, self.currencies.snapshot())
        await self._reply(ctx.interaction, embed=embed)

    async def _market(self, ctx: CommandContext) -> None:
        market = await self.api.list_stocks()
        stocks = (market or {}).get("stocks") or []
        if not stocks:
            await self._reply(ctx.interaction, content="\U0001f4c8 No stocks listed yet")
            return
        await self._reply(ctx.interaction, embed=market_embed(stocks, self.currencies.snapshot()))
