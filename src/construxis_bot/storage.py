"""
Flat JSON files the bot reads on every command.

- discord_users.json: Discord user ID -> Construxis username
- entities_permissions.json: entity key -> entity name and per-user permissions

A missing or unreadable file behaves like an empty mapping.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)


def load_json(path: Path) -> dict:
    """Read a JSON object from disk, returning {} when absent or corrupt."""
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring {path}: top level is not an object")
        return {}
    return data


class UserLinkStore:
    """Discord identity -> backend username links."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Dict[str, str]:
        """Links with a non-empty username; null or malformed entries are skipped."""
        return {
            str(k): v
            for k, v in load_json(self.path).items()
            if isinstance(v, str) and v
        }

    def username_for(self, discord_id: int | str) -> Optional[str]:
        return self.load().get(str(discord_id)) or None

    def discord_id_for(self, username: str) -> Optional[str]:
        """Reverse lookup, first linked identity wins."""
        for discord_id, linked in self.load().items():
            if linked == username:
                return discord_id
        return None

    def link(self, discord_id: int | str, username: str) -> None:
        links = self.load()
        links[str(discord_id)] = username
        self.save(links)

    def save(self, links: Dict[str, str]) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(links, f, indent=2)


class EntityPermissionRecord(BaseModel):
    """Who may act on behalf of an entity treasury."""

    model_config = ConfigDict(extra="ignore")

    entity_name: Optional[str] = None
    user_permissions: Dict[str, List[str]] = Field(default_factory=dict)


class EntityPermissionStore:
    """Read-only view of the entity permission file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Dict[str, EntityPermissionRecord]:
        records = {}
        for key, raw in load_json(self.path).items():
            try:
                records[str(key)] = EntityPermissionRecord.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"Skipping entity permission record {key}: {e.error_count()} errors")
        return records
