"""
Family Organizer — Task board.

Recurring household tasks plus today's completions. Both lists are kept by
optimistic controllers; ticking a task off creates a completion record for
today, ticking it again deletes that record.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Callable

from src.core.controller import is_provisional
from src.core.recurrence import is_task_due_on
from src.data.models import MutationResult, StoreError

if TYPE_CHECKING:
    from src.core.controller import OptimisticListController

logger = logging.getLogger(__name__)

RECURRENCES = ("once", "daily", "weekly", "monthly")


def normalize_task(fields: dict, today: date) -> dict:
    """Build the stored task payload from form fields.

    Recurrence-specific fields are only kept for their own recurrence
    (e.g. `recurrence_days` only for weekly tasks). Raises ValueError on a
    blank title or an unknown recurrence.
    """
    title = (fields.get("title") or "").strip()
    if not title:
        raise ValueError("Task title is required")

    recurrence = fields.get("recurrence") or "once"
    if recurrence not in RECURRENCES:
        raise ValueError(f"Unknown recurrence: {recurrence!r}")

    description = (fields.get("description") or "").strip()
    due_time = (fields.get("due_time") or "").strip()

    return {
        "title": title,
        "description": description or None,
        "assigned_to": [m for m in fields.get("assigned_to") or [] if m],
        "recurrence": recurrence,
        "recurrence_days": list(fields.get("recurrence_days") or []) if recurrence == "weekly" else None,
        "recurrence_day_of_month": fields.get("recurrence_day_of_month") if recurrence == "monthly" else None,
        "due_date": (fields.get("due_date") or today.isoformat()) if recurrence == "once" else None,
        "due_time": due_time or None,
        "start_date": fields.get("start_date") or today.isoformat(),
        "is_active": True,
        "priority": fields.get("priority") or "normal",
        "category": fields.get("category") or "general",
        "icon": fields.get("icon") or "✓",
    }


class TaskBoard:
    """Tasks and today's completions."""

    def __init__(
        self,
        tasks: OptimisticListController,
        completions: OptimisticListController,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._tasks = tasks
        self._completions = completions
        self._today = today

    @property
    def tasks(self) -> list[dict]:
        return self._tasks.items

    @property
    def completions(self) -> list[dict]:
        return self._completions.items

    async def create_task(self, fields: dict) -> MutationResult:
        return await self._tasks.submit_create(normalize_task(fields, self._today()))

    async def edit_task(self, task_id: str, fields: dict) -> MutationResult:
        return await self._tasks.submit_update(task_id, normalize_task(fields, self._today()))

    async def archive_task(self, task: dict) -> MutationResult:
        """Toggle `is_active` (archived tasks are never due)."""
        return await self._tasks.submit_update(task["id"], {"is_active": not task.get("is_active", True)})

    async def delete_task(self, task_id: str) -> MutationResult:
        return await self._tasks.submit_delete(task_id)

    def completion_for(self, task_id: str) -> dict | None:
        """Today's completion of `task_id`, if any."""
        day = self._today().isoformat()
        return next(
            (c for c in self.completions
             if c.get("task_id") == task_id and c.get("completed_for_date") == day),
            None,
        )

    def is_completed(self, task_id: str) -> bool:
        return self.completion_for(task_id) is not None

    async def toggle_complete(self, task: dict, member: str) -> MutationResult:
        """Complete `task` for today as `member`, or undo today's completion."""
        existing = self.completion_for(task["id"])
        if existing is not None:
            if is_provisional(existing["id"]):
                return MutationResult(
                    record=existing,
                    error=StoreError(code="PENDING", message="completion is still being saved"),
                )
            return await self._completions.submit_delete(existing["id"])

        return await self._completions.submit_create({
            "task_id": task["id"],
            "completed_by": member,
            "completed_for_date": self._today().isoformat(),
            "completed_at": datetime.now(timezone.utc).isoformat(),
        })

    def due_on(self, day: date) -> list[dict]:
        return [t for t in self.tasks if is_task_due_on(t, day)]

    def due_today(self) -> list[dict]:
        return self.due_on(self._today())
