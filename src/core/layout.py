"""Day/week grid layout — pure business logic.

Places overlapping timed events side by side: each event gets a column and
the number of columns in use around it, for proportional widths.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable
from zoneinfo import ZoneInfo

from src.core.recurrence import to_datetime
from src.data.models import LayoutSlot


def _bounds(event: dict) -> tuple:
    return to_datetime(event["start_time"]), to_datetime(event["end_time"])


def assign_columns(events: Iterable[dict]) -> list[LayoutSlot]:
    """Greedy column assignment for a set of events on one day.

    Each event (by ascending start) takes the lowest column whose last
    occupant ended at or before its start, else opens a new column.
    `total_columns` is one more than the highest column used by any event
    overlapping it (itself included).
    """
    ordered = sorted(events, key=lambda ev: _bounds(ev)[0])
    spans = [_bounds(ev) for ev in ordered]

    column_ends: list = []
    slots: list[LayoutSlot] = []
    for event, (start, end) in zip(ordered, spans):
        column = next(
            (i for i, col_end in enumerate(column_ends) if col_end <= start),
            len(column_ends),
        )
        if column == len(column_ends):
            column_ends.append(end)
        else:
            column_ends[column] = end
        slots.append(LayoutSlot(event=event, column=column))

    for slot, (start, end) in zip(slots, spans):
        highest = slot.column
        for other, (other_start, other_end) in zip(slots, spans):
            if other_start < end and other_end > start:
                highest = max(highest, other.column)
        slot.total_columns = highest + 1

    return slots


def events_for_day(
    events: Iterable[dict],
    day: date,
    tz: str,
    members: Iterable[str] = (),
) -> list[dict]:
    """Events whose start falls on `day` in time zone `tz`.

    When `members` is given, only events shared with at least one of them.
    """
    zone = ZoneInfo(tz)
    wanted = set(members)
    result = []
    for event in events:
        start = to_datetime(event["start_time"])
        local = start.astimezone(zone) if start.tzinfo else start
        if local.date() != day:
            continue
        if wanted and not wanted.intersection(event.get("members") or []):
            continue
        result.append(event)
    return result
