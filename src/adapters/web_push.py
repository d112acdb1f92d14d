"""Web Push adapter — implements PushSender with pywebpush.

Sends the payload to a browser push service, signed with the family's VAPID
key. pywebpush is synchronous, so each send runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import json
import logging

from pywebpush import WebPushException, webpush

from src.ports.notification_port import EndpointGoneError

logger = logging.getLogger(__name__)

_GONE_STATUSES = frozenset({404, 410})
_TTL_SECONDS = 60 * 60 * 24


class WebPushSender:
    """VAPID-signed Web Push implementation of PushSender."""

    def __init__(self, vapid_private_key: str, vapid_subject: str) -> None:
        self._private_key = vapid_private_key
        self._claims = {"sub": vapid_subject}

    async def send(self, subscription: dict, payload: dict) -> None:
        # Registered rows keep the browser's PushSubscription JSON under "subscription"
        info = subscription.get("subscription") or subscription
        try:
            await asyncio.to_thread(
                webpush,
                subscription_info={"endpoint": info["endpoint"], "keys": info.get("keys") or {}},
                data=json.dumps(payload),
                vapid_private_key=self._private_key,
                vapid_claims=dict(self._claims),
                ttl=_TTL_SECONDS,
            )
        except WebPushException as exc:
            status = getattr(exc.response, "status_code", None)
            if status in _GONE_STATUSES:
                raise EndpointGoneError(f"{info['endpoint']} returned {status}") from exc
            raise
        logger.debug("Web push to %s sent", info["endpoint"])
