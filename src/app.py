"""
Family Organizer — Composition root.

Builds the one shared store connection, the retry policy, a controller per
logical list and the feature services on top of them. Owns their lifecycle:
`start()` loads and subscribes everything, `refresh()` is the
app-foregrounded hook that refetches every list, `close()` tears it all down.
Day-bound windows (today's completions, the meal and school weeks) move on
when the local date changes.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING, Callable
from zoneinfo import ZoneInfo

from src.core.calendar_board import CalendarBoard
from src.core.chat import ChatThread, ThreadList
from src.core.collections import (
    EVENTS_SPEC,
    GROCERIES_SPEC,
    TASKS,
    TASKS_SPEC,
    UNIQUE_FIELDS,
    completions_for_day,
    meal_days,
    messages_in_threads,
    school_weeks,
    thread_messages,
)
from src.core.controller import OptimisticListController
from src.core.delivery import NotificationDeliveryService
from src.core.groceries import GroceryList
from src.core.meals import MealPlan, planned_days
from src.core.retry import RetryPolicy, warm_up
from src.core.school import SchoolPlanner, planned_weeks
from src.core.tasks import TaskBoard

if TYPE_CHECKING:
    from src.core.collections import CollectionSpec
    from src.ports.notification_port import PushSender
    from src.ports.remote_store import RemoteStore

logger = logging.getLogger(__name__)


class FamilyOrganizer:
    """Wires every controller and service around one injected store."""

    def __init__(
        self,
        store: RemoteStore,
        current_user: str,
        push_sender: PushSender,
        *,
        tz: str = "Pacific/Auckland",
        retry: RetryPolicy | None = None,
        chat_threads: tuple[str, ...] = ("family",),
        window_months: int = 3,
        today: Callable[[], date] | None = None,
    ) -> None:
        self.store = store
        self.current_user = current_user
        self.tz = tz
        self._clock = today
        self._day = self.today()
        self.retry = retry or RetryPolicy()
        self._controllers: list[OptimisticListController] = []
        self.delivery = NotificationDeliveryService(store, push_sender, self.retry)

        self.threads: dict[str, ChatThread] = {
            thread_id: ChatThread(
                self._controller(thread_messages(thread_id)),
                self.delivery,
                current_user,
                thread_id,
            )
            for thread_id in chat_threads
        }
        self.inbox = ThreadList(self._controller(messages_in_threads(chat_threads)), current_user, chat_threads)
        self._completions = self._controller(completions_for_day(self._day.isoformat()))
        self.tasks = TaskBoard(self._controller(TASKS_SPEC), self._completions, today=self.today)
        self.calendar = CalendarBoard(self._controller(EVENTS_SPEC), tz, window_months)
        self.groceries = GroceryList(self._controller(GROCERIES_SPEC))
        self.meals = MealPlan(self._controller(meal_days(planned_days(self._day))), today=self.today)
        self.school = SchoolPlanner(self._controller(school_weeks(planned_weeks(self._day))), today=self.today)
        self._warmup_task: asyncio.Task | None = None
        self._midnight_task: asyncio.Task | None = None

    @classmethod
    def from_settings(cls) -> FamilyOrganizer:
        """Build the organizer from .env settings with the configured adapters."""
        from src.adapters.push_factory import create_push_sender
        from src.adapters.sqlite_store import SQLiteStore
        from src.config import settings

        store = SQLiteStore(settings.DATABASE_PATH, collections=UNIQUE_FIELDS)
        return cls(
            store,
            settings.CURRENT_USER,
            create_push_sender(),
            tz=settings.TIMEZONE,
            retry=RetryPolicy.from_settings(),
            chat_threads=tuple(settings.CHAT_THREADS),
            window_months=settings.CALENDAR_WINDOW_MONTHS,
        )

    def _controller(self, spec: CollectionSpec) -> OptimisticListController:
        controller = OptimisticListController(self.store, spec, retry=self.retry)
        self._controllers.append(controller)
        return controller

    def today(self) -> date:
        if self._clock is not None:
            return self._clock()
        return datetime.now(ZoneInfo(self.tz)).date()

    @property
    def controllers(self) -> list[OptimisticListController]:
        return list(self._controllers)

    async def start(self) -> None:
        """Warm the store up in the background, then load and subscribe every list."""
        self._warmup_task = asyncio.create_task(warm_up(self.store, TASKS))
        self._midnight_task = asyncio.create_task(self._watch_midnight(), name="midnight")
        errors = await asyncio.gather(*(c.start() for c in self.controllers))
        failed = [c.spec.name for c, err in zip(self.controllers, errors) if err is not None]
        if failed:
            logger.warning("Initial load failed for: %s (will heal on refresh)", ", ".join(failed))
        logger.info("Family organizer started for %s", self.current_user)

    async def refresh(self) -> None:
        """Refetch every list, e.g. when the app comes back to the foreground."""
        await self.roll_day()
        await asyncio.gather(*(c.refresh() for c in self.controllers))

    async def roll_day(self) -> bool:
        """Rebind the day-bound lists if the local date changed since the last check."""
        today = self.today()
        if today == self._day:
            return False
        self._day = today
        await asyncio.gather(
            self._completions.rebind(completions_for_day(today.isoformat())),
            self.meals.controller.rebind(meal_days(planned_days(today))),
            self.school.controller.rebind(school_weeks(planned_weeks(today))),
        )
        logger.info("Day rolled over to %s", today)
        return True

    async def _watch_midnight(self) -> None:
        zone = ZoneInfo(self.tz)
        while True:
            now = datetime.now(zone)
            midnight = datetime.combine(now.date() + timedelta(days=1), time.min, tzinfo=zone)
            await asyncio.sleep((midnight - now).total_seconds() + 1)
            await self.roll_day()

    async def close(self) -> None:
        for task in (self._warmup_task, self._midnight_task):
            if task is not None:
                task.cancel()
        for thread in self.threads.values():
            await thread.close()
        for controller in self.controllers:
            await controller.close()
        logger.info("Family organizer stopped")
