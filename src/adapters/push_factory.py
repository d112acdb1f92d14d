"""Push adapter factory — creates the right sender based on config."""

from __future__ import annotations

from src.config import settings
from src.ports.notification_port import PushSender


def create_push_sender() -> PushSender:
    """Return the push sender matching the PUSH_PROVIDER setting."""
    provider = settings.PUSH_PROVIDER.lower()

    if provider == "webhook":
        from src.adapters.webhook_push import WebhookPushSender

        return WebhookPushSender()

    if provider == "telegram":
        if not settings.TELEGRAM_BOT_TOKEN:
            raise ValueError("PUSH_PROVIDER=telegram needs TELEGRAM_BOT_TOKEN")

        from telegram import Bot

        from src.adapters.telegram_push import TelegramPushSender

        return TelegramPushSender(Bot(token=settings.TELEGRAM_BOT_TOKEN))

    if provider == "webpush":
        if not settings.VAPID_PRIVATE_KEY or not settings.VAPID_SUBJECT:
            raise ValueError("PUSH_PROVIDER=webpush needs VAPID_PRIVATE_KEY and VAPID_SUBJECT")

        from src.adapters.web_push import WebPushSender

        return WebPushSender(settings.VAPID_PRIVATE_KEY, settings.VAPID_SUBJECT)

    raise ValueError(f"Unknown PUSH_PROVIDER: {provider!r}")
