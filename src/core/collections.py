"""
Family Organizer — Collection specs.

Describes, per logical list, how records are ordered and which fields
identify "the same logical write" when a realtime echo has to be matched
against a provisional record (the store cannot echo a client-side id).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from src.data.models import Filter

MESSAGES = "messages"
TASKS = "tasks"
TASK_COMPLETIONS = "task_completions"
EVENTS = "events"
GROCERIES = "groceries"
MEAL_PLANS = "meal_plans"
PUSH_SUBSCRIPTIONS = "push_subscriptions"
SCHOOL_PLANS = "school_plans"


@dataclass(frozen=True)
class CollectionSpec:
    """Ordering + matching rules for one logical list."""

    name: str
    order_by: str = "created_at"
    descending: bool = False
    match_fields: tuple[str, ...] = ()
    filters: tuple[Filter, ...] = ()

    def sort_key(self, record: dict) -> tuple[bool, Any]:
        value = record.get(self.order_by)
        # Records missing the ordering field sort last in either direction
        present = value is not None
        return (present if self.descending else not present, "" if value is None else value)

    def match_key(self, record: dict) -> tuple:
        return tuple(record.get(f) for f in self.match_fields)

    def with_filters(self, *filters: Filter) -> CollectionSpec:
        return replace(self, filters=tuple(filters))

    def accepts(self, record: dict) -> bool:
        """True if a pushed record belongs to this list's window."""
        return all(f.matches(record) for f in self.filters)


MESSAGES_SPEC = CollectionSpec(MESSAGES, match_fields=("sender", "message_type"))
TASKS_SPEC = CollectionSpec(TASKS, descending=True, match_fields=("title",))
TASK_COMPLETIONS_SPEC = CollectionSpec(
    TASK_COMPLETIONS, order_by="completed_at", match_fields=("task_id", "completed_by"),
)
EVENTS_SPEC = CollectionSpec(EVENTS, order_by="start_time", match_fields=("title", "start_time"))
GROCERIES_SPEC = CollectionSpec(GROCERIES, match_fields=("name",))
MEAL_PLANS_SPEC = CollectionSpec(MEAL_PLANS, order_by="meal_date", match_fields=("meal_date",))
SCHOOL_PLANS_SPEC = CollectionSpec(
    SCHOOL_PLANS, order_by="week_start", match_fields=("week_start", "day_of_week"),
)

# Unique columns per collection (the store enforces these as 23505)
UNIQUE_FIELDS: dict[str, tuple[str, ...]] = {
    MESSAGES: (),
    TASKS: (),
    TASK_COMPLETIONS: (),
    EVENTS: (),
    GROCERIES: (),
    MEAL_PLANS: (),
    PUSH_SUBSCRIPTIONS: ("endpoint",),
    SCHOOL_PLANS: (),
}


def thread_messages(thread_id: str) -> CollectionSpec:
    """Messages of one chat thread."""
    return MESSAGES_SPEC.with_filters(Filter("thread_id", thread_id))


def completions_for_day(day_iso: str) -> CollectionSpec:
    """Task completions recorded for one calendar day."""
    return TASK_COMPLETIONS_SPEC.with_filters(Filter("completed_for_date", day_iso))


def messages_in_threads(thread_ids: list[str] | tuple[str, ...]) -> CollectionSpec:
    """Messages of several threads, newest first (the inbox view)."""
    return replace(
        MESSAGES_SPEC,
        descending=True,
        filters=(Filter("thread_id", list(thread_ids), op="in"),),
    )


def school_weeks(week_starts: list[str] | tuple[str, ...]) -> CollectionSpec:
    """School plan rows for the given Monday dates."""
    return SCHOOL_PLANS_SPEC.with_filters(Filter("week_start", list(week_starts), op="in"))


def meal_days(day_isos: list[str] | tuple[str, ...]) -> CollectionSpec:
    """Meal plan rows for the given dates."""
    return MEAL_PLANS_SPEC.with_filters(Filter("meal_date", list(day_isos), op="in"))
