"""
Family Organizer — Calendar board.

Holds the stored events, expands repeats around the viewed date and lays
out a day grid. Anything done to an occurrence (edit, delete) is applied to
the stored event behind it, never to the synthesized occurrence id.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import TYPE_CHECKING, Iterable
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

from src.core.layout import assign_columns, events_for_day
from src.core.recurrence import expand, parent_id, resolve_parent
from src.data.models import LayoutSlot, MutationResult

if TYPE_CHECKING:
    from src.core.controller import OptimisticListController

logger = logging.getLogger(__name__)


class CalendarBoard:
    """Calendar view-model over the events controller."""

    def __init__(
        self,
        controller: OptimisticListController,
        tz: str,
        window_months: int = 3,
    ) -> None:
        self._controller = controller
        self.tz = tz
        self.window_months = window_months

    @property
    def events(self) -> list[dict]:
        """Stored (base) events, ordered by start time."""
        return self._controller.items

    def window(self, around: datetime) -> tuple[datetime, datetime]:
        span = relativedelta(months=self.window_months)
        return around - span, around + span

    def expanded(self, around: datetime) -> list[dict]:
        start, end = self.window(around)
        return list(expand(self.events, start, end))

    def day_layout(self, day: date, members: Iterable[str] = ()) -> list[LayoutSlot]:
        """Column layout of every event (repeats included) starting on `day`."""
        around = datetime.combine(day, time(12), tzinfo=ZoneInfo(self.tz))
        todays = events_for_day(self.expanded(around), day, self.tz, members)
        return assign_columns(todays)

    def edit_target(self, event: dict) -> dict:
        """The stored event a click on `event` should open."""
        return resolve_parent(event, self.events)

    async def create_event(self, payload: dict) -> MutationResult:
        return await self._controller.submit_create({"recurrence": "none", **payload})

    async def save_event(self, event: dict, changes: dict) -> MutationResult:
        """Apply `changes` to the stored event behind `event`."""
        changes = {k: v for k, v in changes.items() if k not in ("id", "_parentId")}
        return await self._controller.submit_update(parent_id(event), changes)

    async def delete_event(self, event: dict) -> MutationResult:
        """Delete the stored event (and so every repeat) behind `event`."""
        return await self._controller.submit_delete(parent_id(event))
