"""Webhook push adapter — implements PushSender over HTTP.

POSTs the notification payload as JSON to the endpoint URL stored with the
subscription. 404/410 mean the endpoint is gone; any other error status is
raised for the delivery service to log.
"""

from __future__ import annotations

import logging

import httpx

from src.ports.notification_port import EndpointGoneError

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 10
_GONE_STATUSES = frozenset({404, 410})


class WebhookPushSender:
    """HTTP implementation of PushSender."""

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client

    async def send(self, subscription: dict, payload: dict) -> None:
        endpoint = subscription["endpoint"]
        if self._client is not None:
            resp = await self._client.post(endpoint, json=payload)
        else:
            async with httpx.AsyncClient(timeout=_TIMEOUT_SECONDS) as client:
                resp = await client.post(endpoint, json=payload)

        if resp.status_code in _GONE_STATUSES:
            raise EndpointGoneError(f"{endpoint} returned {resp.status_code}")
        resp.raise_for_status()
        logger.debug("Webhook push to %s: %d", endpoint, resp.status_code)
