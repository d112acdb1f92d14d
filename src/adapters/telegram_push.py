"""Telegram push adapter — implements PushSender.

Wraps a telegram.Bot instance. Endpoints look like "telegram:<chat_id>";
a chat that blocked the bot is reported as gone.
"""

from __future__ import annotations

import logging

from telegram import Bot
from telegram.error import Forbidden

from src.ports.notification_port import EndpointGoneError

logger = logging.getLogger(__name__)

ENDPOINT_PREFIX = "telegram:"


def chat_id_for(subscription: dict) -> int:
    """Extract the chat id from a stored telegram subscription."""
    endpoint = subscription["endpoint"]
    if not endpoint.startswith(ENDPOINT_PREFIX):
        raise ValueError(f"Not a telegram endpoint: {endpoint!r}")
    return int(endpoint[len(ENDPOINT_PREFIX):])


class TelegramPushSender:
    """Telegram implementation of PushSender."""

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def send(self, subscription: dict, payload: dict) -> None:
        chat_id = chat_id_for(subscription)
        text = "\n".join(
            part for part in (payload.get("title"), payload.get("body"), payload.get("url")) if part
        )
        try:
            await self._bot.send_message(chat_id=chat_id, text=text)
        except Forbidden as exc:
            raise EndpointGoneError(f"chat {chat_id}: {exc}") from exc
