"""
Entity treasury permission checks.

An entity record matches a requested entity name when the record key
contains the name or the record's entity_name equals it. Several records
can match; the user is authorized if any of them grants the permission.
"""

import logging
from typing import Mapping

from .storage import EntityPermissionRecord

logger = logging.getLogger(__name__)

ADMIN_PERMISSION = "admin"

# Permission required by /pay
PAY_PERMISSION = "pay"


def entity_matches(key: str, record: EntityPermissionRecord, entity_name: str) -> bool:
    """Loose match: substring of the key or exact entity_name."""
    return entity_name in key or record.entity_name == entity_name


def user_has_entity_perm(
    records: Mapping[str, EntityPermissionRecord],
    user_id: int | str,
    entity_name: str,
    permission: str,
) -> bool:
    """
    Check whether a Discord user may act on an entity.

    Args:
        records: Entity permission records keyed as in the permission file
        user_id: Discord user ID
        entity_name: Entity named by the command
        permission: Required permission string (admin always grants)

    Returns:
        True if any matching record grants the permission
    """
    uid = str(user_id)
    for key, record in records.items():
        if not entity_matches(key, record, entity_name):
            continue
        granted = record.user_permissions.get(uid)
        if granted and (permission in granted or ADMIN_PERMISSION in granted):
            logger.debug(f"User {uid} granted {permission} on {entity_name} via {key}")
            return True
    return False
