"""
Pytest fixtures for Construxis bot tests.
"""

import json

import pytest
from unittest.mock import MagicMock, AsyncMock

from src.construxis_bot.config import ConstruxisBotConfig
from src.construxis_bot.currency import CurrencyCache
from src.construxis_bot.router import CommandRouter
from src.construxis_bot.storage import EntityPermissionStore, UserLinkStore

LINKED_USER_ID = 111
RECIPIENT_USER_ID = 222
UNLINKED_USER_ID = 999

CURRENCIES = {
    "USD": {
        "symbol": "$",
        "symbol_placement": "before",
        "subunit": "cents",
        "subunit_ratio": 100,
        "full_name": "US Dollar",
    },
    "VAL": {
        "symbol": "V",
        "symbol_placement": "after",
        "subunit": "pips",
        "subunit_ratio": 1000,
        "full_name": "Valentino Crown",
    },
}

USER_DATA = {
    "username": "alice",
    "wallets": [
        {"id": "VF-CASH-alice-USD", "currency": "USD", "balance": 12.5},
        {"id": "VF-CASH-alice-VAL", "currency": "VAL", "balance": 0.25},
    ],
    "bankAccounts": [
        {"accountId": "ACC-1", "currency": "USD", "balance": 100.0, "frozen": False},
        {"accountId": "ACC-2", "currency": "VAL", "balance": 7.0, "frozen": True},
    ],
}


@pytest.fixture
def mock_config(tmp_path):
    """Create a configuration pointing at temporary state files."""
    return ConstruxisBotConfig(
        discord_token="test_token",
        api_url="http://backend.test/",
        api_key="test_api_key",
        user_map_file=tmp_path / "discord_users.json",
        entity_perms_file=tmp_path / "entities_permissions.json",
        log_dir=tmp_path / "logs",
    )


@pytest.fixture
def user_links(mock_config):
    """Link file with alice and bob."""
    mock_config.user_map_file.write_text(
        json.dumps({str(LINKED_USER_ID): "alice", str(RECIPIENT_USER_ID): "bob"})
    )
    return UserLinkStore(mock_config.user_map_file)


@pytest.fixture
def entity_perms(mock_config):
    mock_config.entity_perms_file.write_text(
        json.dumps(
            {
                "country_valentia": {
                    "entity_name": "Valentia",
                    "user_permissions": {str(LINKED_USER_ID): ["pay"]},
                },
                "company_acme": {
                    "entity_name": "Acme",
                    "user_permissions": {str(RECIPIENT_USER_ID): ["admin"]},
                },
            }
        )
    )
    return EntityPermissionStore(mock_config.entity_perms_file)


@pytest.fixture
def currency_cache():
    cache = CurrencyCache()
    cache.replace(CURRENCIES)
    return cache


@pytest.fixture
def mock_api():
    """Backend client whose every endpoint is an AsyncMock."""
    api = MagicMock()
    api.get_user_data = AsyncMock(return_value=USER_DATA)
    api.get_history = AsyncMock(return_value={"transactions": []})
    api.create_transaction = AsyncMock(return_value={"status": "completed"})
    api.account_operation = AsyncMock(return_value={"status": "ok"})
    api.entity_pay = AsyncMock(return_value={"status": "ok"})
    api.entity_receive = AsyncMock(return_value={"status": "ok"})
    api.burn = AsyncMock(return_value={"status": "ok"})
    api.get_pending = AsyncMock(return_value={"pending_transactions": {}})
    api.pending_action = AsyncMock(return_value={"status": "ok"})
    api.get_stock = AsyncMock()
    api.trade_stock = AsyncMock()
    api.get_portfolio = AsyncMock(return_value={"holdings": []})
    api.list_stocks = AsyncMock(return_value={"stocks": []})
    return api


@pytest.fixture
def mock_notifier():
    return AsyncMock()


@pytest.fixture
def router(mock_config, mock_api, currency_cache, user_links, entity_perms, mock_notifier):
    return CommandRouter(
        config=mock_config,
        api=mock_api,
        currencies=currency_cache,
        user_links=user_links,
        entity_perms=entity_perms,
        notifier=mock_notifier,
    )


def _make_interaction(user_id: int = LINKED_USER_ID, name: str = "alice_discord", custom_id=None):
    """Create a mock Discord interaction with a fresh response."""
    interaction = MagicMock()
    interaction.user.id = user_id
    interaction.user.name = name
    interaction.user.__str__ = MagicMock(return_value=name)
    interaction.response.send_message = AsyncMock()
    interaction.response.defer = AsyncMock()
    interaction.response.is_done = MagicMock(return_value=False)
    interaction.followup.send = AsyncMock()
    interaction.edit_original_response = AsyncMock()
    interaction.data = {"custom_id": custom_id} if custom_id is not None else {}
    return interaction


@pytest.fixture
def make_interaction():
    """Factory for mock interactions (user_id, name, custom_id)."""
    return _make_interaction


@pytest.fixture
def interaction():
    return _make_interaction()


@pytest.fixture
def unlinked_interaction():
    return _make_interaction(user_id=UNLINKED_USER_ID, name="stranger")
