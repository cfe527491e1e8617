"""
Best-effort direct messages to third parties (e.g. cash recipients).
"""

import logging
from typing import Awaitable, Callable, Optional

import discord

logger = logging.getLogger(__name__)

Notifier = Callable[[int, discord.Embed], Awaitable[None]]


class DirectMessageNotifier:
    """Sends an embed to a Discord user by DM."""

    def __init__(self, client: discord.Client):
        self.client = client

    async def __call__(self, user_id: int, embed: discord.Embed) -> None:
        user = self.client.get_user(user_id) or await self.client.fetch_user(user_id)
        await user.send(embed=embed)


async def notify_best_effort(
    notifier: Optional[Notifier], user_id: int | str, embed: discord.Embed
) -> None:
    """
    Deliver a notification, discarding the outcome.

    Any failure (unknown user, closed DMs, bad ID) is logged and dropped so
    the caller's reply is never affected.
    """
    if notifier is None:
        return
    try:
        await notifier(int(user_id), embed)
        logger.debug(f"Notification delivered to {user_id}")
    except Exception as e:
        logger.info(f"Notification to {user_id} not delivered: {e}")
