"""
Discord bot configuration management.

Loads configuration from environment variables and provides defaults.
"""

import base64
import os
from dataclasses import dataclass, field
from pathlib import Path


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass
class ConstruxisBotConfig:
    """Configuration for the Construxis economy bot."""

    # Tokens (placeholders when unset)
    discord_token: str = field(default_factory=lambda: os.getenv("DISCORD_TOKEN", ""))
    api_url: str = field(
        default_factory=lambda: os.getenv("API_URL", "http://localhost:8000")
    )
    api_key: str = field(default_factory=lambda: os.getenv("API_KEY", ""))

    # Local state files
    user_map_file: Path = field(
        default_factory=lambda: Path(os.getenv("USER_MAP_FILE", "discord_users.json"))
    )
    entity_perms_file: Path = field(
        default_factory=lambda: Path(
            os.getenv("ENTITY_PERMS_FILE", "entities_permissions.json")
        )
    )

    # Backend behaviour
    currency_refresh_minutes: int = field(
        default_factory=lambda: _int_env("CURRENCY_REFRESH_MINUTES", 10)
    )
    api_timeout: int = field(default_factory=lambda: _int_env("API_TIMEOUT", 30))
    cash_wallet_prefix: str = "VF-CASH"

    # History display
    default_history_limit: int = 10
    max_history_entries: int = 10

    log_dir: Path = field(
        default_factory=lambda: Path(
            os.getenv("LOG_DIR", str(Path.home() / "logs" / "construxis_bot"))
        )
    )

    def __post_init__(self):
        """Normalise the API base URL."""
        self.api_url = self.api_url.rstrip("/")
        self.user_map_file = Path(self.user_map_file)
        self.entity_perms_file = Path(self.entity_perms_file)

    def cash_wallet_id(self, username: str, currency: str) -> str:
        """Identifier of a user's physical cash wallet for a currency."""
        return f"{self.cash_wallet_prefix}-{username}-{currency}"

    def validate(self) -> tuple[bool, str]:
        """Validate that required configuration is present."""
        if not self.discord_token:
            return False, "DISCORD_TOKEN environment variable not set"
        if not self.api_url.startswith(("http://", "https://")):
            return False, f"API_URL must be an http(s) URL, got {self.api_url!r}"
        return True, "Configuration valid"


def validate_discord_token(token: str) -> tuple[bool, str]:
    """
    Validate Discord token format.

    Discord tokens have a specific format:
    - Base64 encoded user ID
    - Timestamp
    - HMAC
    """
    if not token:
        return False, "Discord token is empty"

    parts = token.split(".")
    if len(parts) != 3:
        return False, "Discord token format invalid (expected 3 parts separated by dots)"

    try:
        padded = parts[0] + "=" * (-len(parts[0]) % 4)
        base64.b64decode(padded, validate=True)
    except ValueError:
        return False, "Discord token format invalid (first part not valid base64)"

    return True, "Token format valid"


def load_config() -> ConstruxisBotConfig:
    """Load configuration from environment variables."""
    return ConstruxisBotConfig()
