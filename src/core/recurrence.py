"""Recurrence expansion — pure calendar logic.

Materializes daily/weekly/monthly repeats of stored events for a display
window, and decides which recurring tasks are due on a given day.

No I/O: occurrences are synthesized on demand and never written back.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Iterable, Iterator

from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)

MAX_STEPS = 400

_STEPS: dict[str, relativedelta] = {
    "daily": relativedelta(days=1),
    "weekly": relativedelta(weeks=1),
    "monthly": relativedelta(months=1),
}


def to_datetime(value: str | datetime) -> datetime:
    """Parse an ISO timestamp ("Z" suffix accepted) or pass a datetime through."""
    if isinstance(value, datetime):
        return value
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def _like(dt: datetime, original: str | datetime) -> str | datetime:
    """Render `dt` the way the base event stored its timestamp."""
    if isinstance(original, datetime):
        return dt
    return dt.isoformat()


def occurrence_id(base_id: str, n: int) -> str:
    return f"{base_id}_r{n}"


def expand(
    base_events: Iterable[dict],
    window_start: str | datetime,
    window_end: str | datetime,
    *,
    max_steps: int = MAX_STEPS,
) -> Iterator[dict]:
    """Yield every base event plus its repeats inside [window_start, window_end].

    Base events pass through untouched (windowing them is the caller's job).
    For a recurring event, the n-th step from its own start becomes an
    occurrence with id "<id>_r<n>", `_parentId` pointing at the base, and the
    base duration preserved. Iteration stops past `window_end` or after
    `max_steps` steps. Both window bounds are inclusive.

    Month steps use calendar-month arithmetic and chain from the previous
    occurrence (Jan 31 -> Feb 28 -> Mar 28).
    """
    lo = to_datetime(window_start)
    hi = to_datetime(window_end)

    for event in base_events:
        yield event

        recurrence = event.get("recurrence") or "none"
        if recurrence == "none":
            continue
        step = _STEPS.get(recurrence)
        if step is None:
            logger.debug("Unknown recurrence %r on event %s", recurrence, event.get("id"))
            continue

        start = to_datetime(event["start_time"])
        duration = to_datetime(event["end_time"]) - start
        current = start
        for n in range(1, max_steps + 1):
            current = current + step
            if current > hi:
                break
            if current < lo:
                continue
            yield {
                **event,
                "id": occurrence_id(event["id"], n),
                "start_time": _like(current, event["start_time"]),
                "end_time": _like(current + duration, event["end_time"]),
                "_parentId": event["id"],
            }


def parent_id(event: dict) -> str:
    """Id of the stored record behind `event` (itself unless an occurrence)."""
    return event.get("_parentId") or event["id"]


def resolve_parent(event: dict, base_events: Iterable[dict]) -> dict:
    """Return the stored base record for an occurrence.

    Falls back to `event` itself when it is not an occurrence or its parent
    is not loaded.
    """
    pid = event.get("_parentId")
    if not pid:
        return event
    for base in base_events:
        if base.get("id") == pid:
            return base
    return event


def is_task_due_on(task: dict, day: date) -> bool:
    """Whether a recurring task is due on `day`.

    Weekly tasks with no `recurrence_days` are due every day; day numbers
    count from Sunday = 0. Monthly tasks without a day fall on the 1st.
    """
    if not task.get("is_active", True):
        return False

    recurrence = task.get("recurrence")
    if recurrence == "daily":
        return True
    if recurrence == "weekly":
        days = task.get("recurrence_days") or []
        if not days:
            return True
        return (day.weekday() + 1) % 7 in days
    if recurrence == "monthly":
        day_of_month = task.get("recurrence_day_of_month")
        if not day_of_month:
            return day.day == 1
        return day.day == day_of_month
    if recurrence == "once":
        return task.get("due_date") == day.isoformat()
    return False
