"""
Family Organizer — Meal plan.

One dinner plan per date for this week and next. Saving a date that
already has a plan updates it; otherwise a new plan is created.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable

from src.core.controller import is_provisional
from src.data.models import MutationResult, StoreError

if TYPE_CHECKING:
    from src.core.controller import OptimisticListController

logger = logging.getLogger(__name__)

WEEKS_SHOWN = 2


def monday_of(day: date, offset: int = 0) -> date:
    """The Monday starting the week of `day`, shifted by `offset` weeks."""
    return day - timedelta(days=day.weekday()) + timedelta(weeks=offset)


def week_days(today: date, offset: int = 0) -> list[str]:
    """Monday..Sunday of the week `offset` weeks from today, as ISO dates."""
    monday = monday_of(today, offset)
    return [(monday + timedelta(days=i)).isoformat() for i in range(7)]


def planned_days(today: date) -> list[str]:
    """Every date the meal plan covers (this week and next)."""
    return [d for offset in range(WEEKS_SHOWN) for d in week_days(today, offset)]


class MealPlan:
    """Dinner plans keyed by `meal_date`."""

    def __init__(
        self,
        controller: OptimisticListController,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._controller = controller
        self._today = today

    @property
    def controller(self) -> OptimisticListController:
        return self._controller

    @property
    def meals(self) -> list[dict]:
        return self._controller.items

    def week(self, offset: int = 0) -> list[str]:
        return week_days(self._today(), offset)

    def meal_for_date(self, day_iso: str) -> dict | None:
        return next((m for m in self.meals if m.get("meal_date") == day_iso), None)

    def first_unplanned(self, offset: int = 0) -> str:
        """The first date of the week with no plan, else the Monday."""
        days = self.week(offset)
        return next((d for d in days if self.meal_for_date(d) is None), days[0])

    async def save_for_date(self, day_iso: str, fields: dict) -> MutationResult:
        """Create or update the plan for `day_iso`.

        Raises ValueError when the meal name is blank.
        """
        if not (fields.get("meal_name") or "").strip():
            raise ValueError("Meal name is required")

        existing = self.meal_for_date(day_iso)
        if existing is None:
            return await self._controller.submit_create({**fields, "meal_date": day_iso})
        if is_provisional(existing["id"]):
            return MutationResult(
                record=existing,
                error=StoreError(code="PENDING", message="meal plan is still being saved"),
            )
        changes = {**fields, "updated_at": datetime.now(timezone.utc).isoformat()}
        changes.pop("meal_date", None)
        return await self._controller.submit_update(existing["id"], changes)

    async def clear_date(self, day_iso: str) -> MutationResult | None:
        existing = self.meal_for_date(day_iso)
        if existing is None or is_provisional(existing["id"]):
            return None
        return await self._controller.submit_delete(existing["id"])
