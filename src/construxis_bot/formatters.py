"""
Discord embed formatting for command replies.

Builds one embed per reply, keeps field values inside Discord's limits and
renders amounts through the currency table.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

import discord

from .currency import CurrencyTable, currency_name, format_currency

# Discord limits
MAX_EMBED_TITLE = 256
MAX_EMBED_DESCRIPTION = 4096
MAX_EMBED_FIELD_NAME = 256
MAX_EMBED_FIELD_VALUE = 1024
MAX_EMBED_FIELDS = 25

# Colours
COLOR_ERROR = 0xFF0000
COLOR_INFO = 0x0099FF
COLOR_SUCCESS = 0x00FF00
COLOR_PENDING = 0xFFAA00
COLOR_EMPTY = 0x999999
COLOR_BURN = 0xFF6600
COLOR_SALE = 0xFF9900

ERROR_TITLE = "❌ Error"
BLANK = "\u200b"


def truncate_for_discord(text: str, max_length: int = MAX_EMBED_FIELD_VALUE) -> str:
    """
    Truncate text to fit a Discord limit with indicator.

    Args:
        text: Text to truncate
        max_length: Maximum length

    Returns:
        Truncated text with indicator if needed
    """
    if len(text) <= max_length:
        return text

    truncate_indicator = "\n... [truncated]"
    return text[: max_length - len(truncate_indicator)] + truncate_indicator


def _field(embed: discord.Embed, name: str, value: Any, inline: bool = False) -> None:
    """Add a field, skipping silently once the embed is full."""
    if len(embed.fields) >= MAX_EMBED_FIELDS:
        return
    value = str(value) if value not in (None, "") else BLANK
    embed.add_field(
        name=truncate_for_discord(str(name) or BLANK, MAX_EMBED_FIELD_NAME),
        value=truncate_for_discord(value),
        inline=inline,
    )


def _embed(
    title: str,
    color: int,
    description: Optional[str] = None,
    timestamp: bool = False,
) -> discord.Embed:
    embed = discord.Embed(
        title=truncate_for_discord(title, MAX_EMBED_TITLE),
        color=color,
        description=(
            truncate_for_discord(description, MAX_EMBED_DESCRIPTION)
            if description
            else None
        ),
    )
    if timestamp:
        embed.timestamp = discord.utils.utcnow()
    return embed


def short_wallet(ref: Any) -> str:
    """Strip the 'kind:' prefix from a wallet reference."""
    ref = str(ref or "")
    return ref.split(":")[1] if ":" in ref else ref


def format_timestamp(value: Any) -> str:
    """
    Render a backend timestamp as a Discord timestamp.

    ISO strings and epoch milliseconds are understood; anything else is
    shown as given.
    """
    try:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            dt = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        else:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return str(value)
    return discord.utils.format_dt(dt, "f")


# ============================================================================
# ERRORS
# ============================================================================

def error_embed(description: str, title: str = ERROR_TITLE) -> discord.Embed:
    """Red rejection embed."""
    return _embed(title, COLOR_ERROR, description or "Unknown error")


def not_linked_embed() -> discord.Embed:
    return error_embed(
        "Your Discord account is not linked to a Construxis user",
        title="❌ Account Not Linked",
    )


# ============================================================================
# BALANCES AND HISTORY
# ============================================================================

def balance_embed(user_data: Mapping[str, Any], table: CurrencyTable) -> discord.Embed:
    """Cash totals per currency plus each bank account."""
    embed = _embed("\U0001f4b0 Your Balances", COLOR_INFO)

    cash: Dict[str, float] = {}
    for wallet in user_data.get("wallets") or []:
        code = wallet.get("currency")
        cash[code] = cash.get(code, 0) + (wallet.get("balance") or 0)

    if cash:
        _field(
            embed,
            "\U0001f4b5 Cash",
            "\n".join(
                f"{format_currency(balance, code, table)} ({currency_name(code, table)})"
                for code, balance in cash.items()
            ),
        )

    accounts = user_data.get("bankAccounts") or []
    if accounts:
        lines = []
        for account in accounts:
            code = account.get("currency")
            frozen = " **[FROZEN]**" if account.get("frozen") else ""
            lines.append(
                f"{format_currency(account.get('balance') or 0, code, table)} "
                f"({currency_name(code, table)}){frozen}\n"
                f"Account: {account.get('accountId')}"
            )
        _field(embed, "\U0001f3e6 Bank Accounts", "\n\n".join(lines))

    if not cash and not accounts:
        embed.description = "No balances found"

    embed.timestamp = discord.utils.utcnow()
    return embed


def history_embed(
    transactions: List[Mapping[str, Any]], table: CurrencyTable, max_entries: int
) -> discord.Embed:
    if not transactions:
        return _embed(
            "\U0001f4cb Transaction History", COLOR_EMPTY, "No transactions found"
        )

    embed = _embed(
        "\U0001f4cb Transaction History",
        COLOR_INFO,
        f"Showing {len(transactions)} most recent transactions",
    )
    for txn in transactions[:max_entries]:
        amount = format_currency(txn.get("amount") or 0, txn.get("currency"), table)
        _field(
            embed,
            f"{txn.get('id')} - {txn.get('type')}",
            f"{amount}\n"
            f"{short_wallet(txn.get('from'))} → {short_wallet(txn.get('to'))}\n"
            f"{txn.get('note') or 'No note'}\n"
            f"{format_timestamp(txn.get('date'))}",
        )
    return embed


# ============================================================================
# MONEY MOVEMENT
# ============================================================================

def cash_handed_embed(amount_text: str, to_user: str, reason: str) -> discord.Embed:
    embed = _embed(
        "\U0001f4b5 Cash Handed",
        COLOR_SUCCESS,
        f"Handed **{amount_text}** to **{to_user}**",
        timestamp=True,
    )
    _field(embed, "Reason", reason)
    return embed


def cash_received_embed(sender: str, amount_text: str, reason: str) -> discord.Embed:
    """Direct message sent to the recipient of handed cash."""
    embed = _embed(
        "\U0001f4b5 Cash Received",
        COLOR_SUCCESS,
        f"**{sender}** handed you **{amount_text}**",
        timestamp=True,
    )
    _field(embed, "Reason", reason)
    return embed


def transfer_embed(
    result: Mapping[str, Any], amount_text: str, to_account: str, reason: str
) -> discord.Embed:
    completed = result.get("status") == "completed"
    embed = _embed(
        "✅ Transfer Complete" if completed else "⏳ Transfer Pending",
        COLOR_SUCCESS if completed else COLOR_PENDING,
        f"Transferred **{amount_text}** to **{to_account}**",
        timestamp=True,
    )
    _field(embed, "Reason", reason)
    if not completed:
        _field(embed, "Transaction ID", result.get("transaction_id"))
    return embed


def account_operation_embed(action: str, amount_text: str, account_id: str) -> discord.Embed:
    if action == "deposit":
        title, text = "✅ Deposit Complete", f"Deposited **{amount_text}** into account"
    else:
        title, text = "✅ Withdrawal Complete", f"Withdrew **{amount_text}** from account"
    embed = _embed(title, COLOR_SUCCESS, text, timestamp=True)
    _field(embed, "Account", account_id)
    return embed


def entity_payment_embed(
    amount_text: str,
    entity_name: str,
    reason: str,
    to_user: Optional[str] = None,
    to_account: Optional[str] = None,
) -> discord.Embed:
    recipient = f"**{to_user}**" if to_user else f"account **{to_account}**"
    embed = _embed(
        "✅ Entity Payment",
        COLOR_INFO,
        f"Paid **{amount_text}** from **{entity_name}**",
        timestamp=True,
    )
    _field(embed, "To", recipient)
    _field(embed, "Reason", reason)
    return embed


def entity_receipt_embed(amount_text: str, entity_name: str, reason: str) -> discord.Embed:
    embed = _embed(
        "✅ Payment to Entity",
        COLOR_SUCCESS,
        f"Paid **{amount_text}** to **{entity_name}**",
        timestamp=True,
    )
    _field(embed, "Reason", reason)
    return embed


def burn_embed(amount_text: str, reason: str) -> discord.Embed:
    embed = _embed(
        "\U0001f525 Currency Burned",
        COLOR_BURN,
        f"Destroyed **{amount_text}**",
        timestamp=True,
    )
    _field(embed, "Reason", reason)
    return embed


# ============================================================================
# PENDING TRANSACTIONS
# ============================================================================

APPROVE_ACTION = "approve"
DECLINE_ACTION = "decline"


def no_pending_embed() -> discord.Embed:
    return _embed("⏳ Pending Transactions", COLOR_EMPTY, "No pending transactions")


def pending_embed(
    txn_id: str, txn: Mapping[str, Any], table: CurrencyTable, waiting: int = 1
) -> discord.Embed:
    """One pending transaction; the footer counts the rest of the queue."""
    amount = format_currency(txn.get("amount") or 0, txn.get("currency"), table)
    embed = _embed("⏳ Pending Transaction", COLOR_PENDING, f"**{amount}**", timestamp=True)
    _field(embed, "From", txn.get("from"), inline=True)
    _field(embed, "To", txn.get("to"), inline=True)
    _field(embed, "Type", "Physical" if txn.get("is_physical") else "Digital", inline=True)
    _field(embed, "Note", txn.get("note") or "No note")
    _field(embed, "Created", format_timestamp(txn.get("created_at")))
    _field(embed, "Transaction ID", txn_id)
    if waiting > 1:
        embed.set_footer(text=f"1 of {waiting} pending transactions")
    return embed


def pending_controls(txn_id: str) -> discord.ui.View:
    """Approve/decline buttons; clicks are routed by custom id, not callbacks."""
    view = discord.ui.View(timeout=None)
    view.add_item(
        discord.ui.Button(
            label="Approve",
            style=discord.ButtonStyle.success,
            custom_id=f"{APPROVE_ACTION}_{txn_id}",
        )
    )
    view.add_item(
        discord.ui.Button(
            label="Decline",
            style=discord.ButtonStyle.danger,
            custom_id=f"{DECLINE_ACTION}_{txn_id}",
        )
    )
    return view


def transaction_action_embed(action: str, txn_id: str) -> discord.Embed:
    approved = action == APPROVE_ACTION
    return _embed(
        "✅ Transaction Approved" if approved else "❌ Transaction Declined",
        COLOR_SUCCESS if approved else COLOR_ERROR,
        f"Transaction ID: {txn_id}",
        timestamp=True,
    )


# ============================================================================
# STOCK MARKET
# ============================================================================

def stock_embed(ticker: str, stock: Mapping[str, Any], table: CurrencyTable) -> discord.Embed:
    code = stock.get("currency")
    embed = _embed(f"\U0001f4c8 {stock.get('name')} ({ticker})", COLOR_SUCCESS)
    _field(embed, "Current Price", format_currency(stock.get("price") or 0, code, table), inline=True)
    _field(embed, "Volume (24h)", f"{stock.get('volume_24h')} shares", inline=True)
    _field(embed, "Shareholders", f"{stock.get('shareholders')}", inline=True)
    outstanding = stock.get("outstanding_shares")
    if isinstance(outstanding, (int, float)):
        outstanding = f"{outstanding:,}"
    _field(embed, "Outstanding Shares", f"{outstanding}", inline=True)
    if code:
        embed.set_footer(text=currency_name(code, table))
    return embed


def trade_embed(
    action: str,
    ticker: str,
    shares: int,
    result: Mapping[str, Any],
    currency: str,
    table: CurrencyTable,
) -> discord.Embed:
    """Receipt for a buy or sell order."""
    if action == "buy":
        embed = _embed(
            "✅ Stock Purchase", COLOR_SUCCESS, f"Bought **{shares} {ticker}**", timestamp=True
        )
        total_label = "Total Cost"
    else:
        embed = _embed(
            "✅ Stock Sale", COLOR_SALE, f"Sold **{shares} {ticker}**", timestamp=True
        )
        total_label = "Total Received"

    _field(embed, "Price per Share", format_currency(result["price"], currency, table), inline=True)
    _field(embed, total_label, format_currency(result["total"], currency, table), inline=True)
    _field(
        embed,
        "New Market Price",
        format_currency(result["new_price"], currency, table),
        inline=True,
    )
    return embed


def portfolio_embed(
    username: str, holdings: List[Mapping[str, Any]], table: CurrencyTable
) -> discord.Embed:
    if not holdings:
        return _embed("\U0001f4ca Portfolio", COLOR_EMPTY, "You don't own any stocks yet")

    embed = _embed(f"\U0001f4ca {username}'s Portfolio", COLOR_INFO)
    totals: Dict[str, float] = {}

    # Last field is reserved for the totals
    for holding in holdings[: MAX_EMBED_FIELDS - 1]:
        code = holding.get("currency")
        price = format_currency(holding.get("current_price") or 0, code, table)
        value = format_currency(holding.get("total_value") or 0, code, table)
        _field(
            embed,
            holding.get("ticker"),
            f"{holding.get('shares')} shares @ {price}\nValue: **{value}**",
            inline=True,
        )

    for holding in holdings:
        code = holding.get("currency")
        totals[code] = totals.get(code, 0) + (holding.get("total_value") or 0)

    _field(
        embed,
        "Total Portfolio Value",
        "\n".join(format_currency(value, code, table) for code, value in totals.items()),
    )
    return embed


def market_embed(stocks: List[Mapping[str, Any]], table: CurrencyTable) -> discord.Embed:
    embed = _embed("\U0001f4c8 Stock Market", COLOR_SUCCESS, "All available stocks")
    for stock in stocks:
        price = format_currency(stock.get("price") or 0, stock.get("currency"), table)
        _field(
            embed,
            f"{stock.get('ticker')} - {stock.get('name')}",
            f"Price: **{price}**\n24h Vol: {stock.get('volume_24h')} shares",
            inline=True,
        )
    if len(stocks) > MAX_EMBED_FIELDS:
        embed.set_footer(text=f"Showing {MAX_EMBED_FIELDS} of {len(stocks)} stocks")
    return embed
