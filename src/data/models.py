"""
Family Organizer — Data Models.

Records themselves are plain dicts: their fields belong to each feature and
are opaque to the sync core. The dataclasses here describe what travels
between the core, the store and the notification service.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Op names carried by ChangeEvent
INSERT = "insert"
UPDATE = "update"
DELETE = "delete"


@dataclass
class StoreError:
    """An error returned (not raised) by a store call.

    `code` follows the PostgREST/Postgres convention, e.g. "23505" for a
    unique violation, so the retry wrapper can tell permanent from transient.
    """

    code: str | None
    message: str = ""


@dataclass
class StoreResult:
    """Outcome of a store call: either data or an error, never an exception."""

    data: Any = None
    error: StoreError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class Filter:
    """A single column filter: eq / neq / in."""

    field: str
    value: Any
    op: str = "eq"

    def matches(self, record: dict) -> bool:
        actual = record.get(self.field)
        if self.op == "eq":
            return actual == self.value
        if self.op == "neq":
            return actual != self.value
        if self.op == "in":
            return actual in self.value
        raise ValueError(f"Unknown filter op: {self.op!r}")


@dataclass
class ChangeEvent:
    """A realtime change pushed by the store (op + affected record)."""

    op: str
    record: dict


@dataclass
class MutationResult:
    """What a controller operation hands back to its caller."""

    record: dict | None = None
    error: StoreError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RecipientSelector:
    """Who should get a notification.

    `exclude` is never notified (the sender); `only`, when set, narrows
    delivery to a single family member (direct-message threads).
    """

    exclude: str | None = None
    only: str | None = None


@dataclass
class NotificationRequest:
    """A notification to fan out to every matching registered endpoint."""

    recipients: RecipientSelector
    title: str
    body: str
    url: str

    def payload(self) -> dict:
        return {"title": self.title, "body": self.body, "url": self.url}


@dataclass
class DeliveryReport:
    """Outcome of one fan-out: how many endpoints were tried, reached, dropped."""

    attempted: int = 0
    delivered: int = 0
    removed: int = 0


@dataclass
class LayoutSlot:
    """An event placed in a day grid column."""

    event: dict
    column: int
    total_columns: int = field(default=1)
