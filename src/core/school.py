"""
Family Organizer — School planner.

Drop-off, pick-up, uniform and after-school activities for each school day
of this week and next. One stored row per (week_start, day_of_week); saving
a week writes every day, updating rows that exist and creating the rest.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import TYPE_CHECKING, Callable

from src.core.controller import is_provisional
from src.core.meals import WEEKS_SHOWN, monday_of
from src.data.models import MutationResult, StoreError

if TYPE_CHECKING:
    from src.core.controller import OptimisticListController

logger = logging.getLogger(__name__)

SCHOOL_DAYS = ("monday", "tuesday", "wednesday", "thursday", "friday")
PE = "pe"
UNIFORM = "uniform"
_PLAN_FIELDS = ("dropoff_person", "pickup_person", "uniforms", "activities")


def empty_day() -> dict:
    return {"dropoff_person": None, "pickup_person": None, "uniforms": {}, "activities": {}}


def week_start(today: date, offset: int = 0) -> str:
    return monday_of(today, offset).isoformat()


def planned_weeks(today: date) -> list[str]:
    return [week_start(today, offset) for offset in range(WEEKS_SHOWN)]


def row_to_plan(row: dict) -> dict:
    """The editable part of a stored row, with defaults for missing fields."""
    plan = empty_day()
    for field in _PLAN_FIELDS:
        if row.get(field) is not None:
            plan[field] = row[field]
    return plan


def day_summary(plan: dict) -> list[str]:
    """Short tags for a collapsed day, e.g. ["Mum drop · Dad pick", "Isabel PE"]."""
    tags = []
    parts = []
    if plan.get("dropoff_person"):
        parts.append(f"{plan['dropoff_person']} drop")
    if plan.get("pickup_person"):
        parts.append(f"{plan['pickup_person']} pick")
    if parts:
        tags.append(" · ".join(parts))
    for child, kit in sorted((plan.get("uniforms") or {}).items()):
        if kit == PE:
            tags.append(f"{child} PE")
    return tags or ["Not set"]


class SchoolPlanner:
    """School plans for the current and the next week."""

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

    def _row(self, start: str, day: str) -> dict | None:
        return next(
            (r for r in self._controller.items
             if r.get("week_start") == start and r.get("day_of_week") == day),
            None,
        )

    def week(self, offset: int = 0) -> dict[str, dict]:
        """Plan per school day; days without a stored row get defaults."""
        start = week_start(self._today(), offset)
        result = {}
        for day in SCHOOL_DAYS:
            row = self._row(start, day)
            result[day] = row_to_plan(row) if row is not None else empty_day()
        return result

    def today_plan(self) -> dict | None:
        """Today's plan, or None at the weekend."""
        today = self._today()
        if today.weekday() >= len(SCHOOL_DAYS):
            return None
        return self.week(0)[SCHOOL_DAYS[today.weekday()]]

    async def _save_day(self, start: str, day: str, plan: dict) -> MutationResult:
        changes = {field: plan.get(field, empty_day()[field]) for field in _PLAN_FIELDS}
        existing = self._row(start, day)
        if existing is None:
            return await self._controller.submit_create(
                {"week_start": start, "day_of_week": day, **changes}
            )
        if is_provisional(existing["id"]):
            return MutationResult(
                record=existing,
                error=StoreError(code="PENDING", message="school plan is still being saved"),
            )
        return await self._controller.submit_update(existing["id"], changes)

    async def save_week(self, offset: int, plans: dict[str, dict]) -> list[str]:
        """Write every school day of the week. Returns the days that failed.

        Days missing from `plans` are saved with defaults. Raises ValueError
        for a day name that is not a school day.
        """
        unknown = set(plans) - set(SCHOOL_DAYS)
        if unknown:
            raise ValueError(f"Not school days: {sorted(unknown)}")

        start = week_start(self._today(), offset)
        results = await asyncio.gather(*(
            self._save_day(start, day, plans.get(day) or empty_day()) for day in SCHOOL_DAYS
        ))
        failed = [day for day, result in zip(SCHOOL_DAYS, results) if not result.ok]
        if failed:
            logger.warning("School plan for week %s not saved for: %s", start, ", ".join(failed))
        else:
            logger.info("School plan saved for week %s", start)
        return failed
