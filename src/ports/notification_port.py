"""Notification ports — abstract interfaces for push delivery.

Core modules depend on these protocols, never on a specific messaging provider.
"""

from __future__ import annotations

from typing import Protocol

from src.data.models import DeliveryReport, NotificationRequest


class EndpointGoneError(Exception):
    """Raised by a PushSender when an endpoint no longer exists (404/410)."""


class NotificationPort(Protocol):
    """Fan-out delivery used by core modules after a confirmed write."""

    async def deliver(self, request: NotificationRequest) -> DeliveryReport: ...


class PushSender(Protocol):
    """Sends one payload to one registered endpoint."""

    async def send(self, subscription: dict, payload: dict) -> None: ...
