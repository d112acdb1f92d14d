"""
Family Organizer — Notification Delivery.

Fans a notification out to every registered endpoint of the selected family
members. One endpoint failing never stops delivery to the others; endpoints
the provider reports as gone are deregistered on the spot.

Implements NotificationPort, so chat threads hand requests straight to it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from src.core.collections import PUSH_SUBSCRIPTIONS
from src.core.retry import RetryPolicy
from src.data.models import DeliveryReport, Filter, NotificationRequest, StoreError, StoreResult
from src.ports.notification_port import EndpointGoneError

if TYPE_CHECKING:
    from src.ports.notification_port import PushSender
    from src.ports.remote_store import RemoteStore

logger = logging.getLogger(__name__)

_DELIVERED = "delivered"
_REMOVED = "removed"
_FAILED = "failed"


class NotificationDeliveryService:
    """Looks up push endpoints in the store and sends to each of them."""

    def __init__(
        self,
        store: RemoteStore,
        sender: PushSender,
        retry: RetryPolicy | None = None,
    ) -> None:
        self._store = store
        self._sender = sender
        self._retry = retry or RetryPolicy()

    async def deliver(self, request: NotificationRequest) -> DeliveryReport:
        """Send `request` to every matching endpoint; never raises."""
        filters: list[Filter] = []
        if request.recipients.exclude:
            filters.append(Filter("user_name", request.recipients.exclude, op="neq"))
        if request.recipients.only:
            filters.append(Filter("user_name", request.recipients.only))

        result = await self._retry.run(lambda: self._store.select(PUSH_SUBSCRIPTIONS, filters))
        if result.error is not None:
            logger.error("Could not load push endpoints: %s", result.error.message)
            return DeliveryReport()

        rows = result.data or []
        if not rows:
            return DeliveryReport()

        payload = request.payload()
        outcomes = await asyncio.gather(*(self._send_one(row, payload) for row in rows))

        report = DeliveryReport(
            attempted=len(rows),
            delivered=outcomes.count(_DELIVERED),
            removed=outcomes.count(_REMOVED),
        )
        logger.info(
            "Notification '%s': %d/%d delivered, %d endpoint(s) removed",
            request.title, report.delivered, report.attempted, report.removed,
        )
        return report

    async def _send_one(self, row: dict, payload: dict) -> str:
        try:
            await self._sender.send(row, payload)
            return _DELIVERED
        except EndpointGoneError:
            result = await self._retry.run(lambda: self._store.delete(PUSH_SUBSCRIPTIONS, row["id"]))
            if result.error is not None:
                logger.warning(
                    "Failed to remove expired endpoint %s: %s",
                    row.get("endpoint"), result.error.message,
                )
                return _FAILED
            logger.info("Removed expired endpoint for %s", row.get("user_name"))
            return _REMOVED
        except Exception as exc:
            logger.warning("Push to %s failed: %s", row.get("endpoint"), exc)
            return _FAILED

    async def register(self, user_name: str, subscription: dict) -> StoreResult:
        """Upsert a push endpoint for `user_name`, keyed on its endpoint.

        Raises ValueError when the user name or endpoint is missing.
        """
        endpoint = (subscription or {}).get("endpoint")
        if not endpoint or not user_name:
            raise ValueError("Push registration needs a user name and an endpoint")

        row = {"user_name": user_name, "endpoint": endpoint, "subscription": subscription}
        result = await self._retry.run(lambda: self._store.insert(PUSH_SUBSCRIPTIONS, row))
        if result.error is None or result.error.code != "23505":
            return result

        # Endpoint already registered: refresh the owner and keys
        existing = await self._retry.run(
            lambda: self._store.select(PUSH_SUBSCRIPTIONS, [Filter("endpoint", endpoint)], limit=1)
        )
        if existing.error is not None:
            return existing
        if not existing.data:
            return StoreResult(error=StoreError(code="PGRST116", message=f"endpoint {endpoint} vanished"))
        record_id = existing.data[0]["id"]
        return await self._retry.run(
            lambda: self._store.update(PUSH_SUBSCRIPTIONS, record_id, row)
        )
