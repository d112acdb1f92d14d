"""
Family Organizer — Chat threads.

Sending a message shows it at once, persists it through the optimistic
controller, and once the store confirms it, notifies the other family
members in the background. Notification outcome never touches the thread.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from src.core.controller import is_provisional
from src.core.recurrence import to_datetime
from src.data.models import MutationResult, NotificationRequest, RecipientSelector

if TYPE_CHECKING:
    from src.core.controller import OptimisticListController
    from src.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

FAMILY_THREAD = "family"
GIF_PREVIEW = "📷 Sent a GIF"
GIF_LIST_PREVIEW = "🎞 GIF"
_PREVIEW_CHARS = 60


def recipients_for_thread(thread_id: str, sender: str) -> RecipientSelector:
    """Everyone but the sender on the family thread; the other person on a DM.

    DM thread ids are "<a>-<b>" in lowercase; the recipient's name is the
    other part with its first letter upper-cased.
    """
    if thread_id == FAMILY_THREAD:
        return RecipientSelector(exclude=sender)
    other = next((p for p in thread_id.split("-") if p != sender.lower()), None)
    if not other:
        return RecipientSelector(exclude=sender)
    return RecipientSelector(exclude=sender, only=other[:1].upper() + other[1:])


def dm_thread_id(name: str, other: str) -> str:
    """Id of the direct-message thread between two members, order-independent."""
    return "-".join(sorted((name.lower(), other.lower())))


def thread_ids_for(member: str, members: list[str] | tuple[str, ...]) -> list[str]:
    """The family thread followed by a DM thread with every other member."""
    return [FAMILY_THREAD, *(dm_thread_id(member, m) for m in members if m != member)]


def thread_url(thread_id: str) -> str:
    return f"/chat/{thread_id}"


def message_preview(content: str, message_type: str = "text") -> str:
    if message_type == "gif":
        return GIF_PREVIEW
    if len(content) > _PREVIEW_CHARS:
        return content[:_PREVIEW_CHARS] + "…"
    return content


def last_message_preview(message: dict, member: str) -> str:
    """Thread-list line for the newest message, from `member`'s point of view."""
    if message.get("message_type") == "gif":
        return GIF_LIST_PREVIEW
    if message.get("sender") == member:
        return f"You: {message.get('content', '')}"
    return message.get("content", "")


def relative_time(timestamp: str, now: datetime) -> str:
    """Age of a message as "now", "5m", "3h", "Yesterday" or a date like "2 Mar".

    `now` must be timezone-aware; naive timestamps are taken as UTC.
    """
    moment = to_datetime(timestamp)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(now.tzinfo)
    seconds = (now - moment).total_seconds()
    if seconds < 60:
        return "now"
    if seconds < 3600:
        return f"{int(seconds // 60)}m"
    if seconds < 86400:
        return f"{int(seconds // 3600)}h"
    if moment.date() == (now - timedelta(days=1)).date():
        return "Yesterday"
    return f"{moment.day} {moment:%b}"


class ChatThread:
    """One chat thread as seen by the current family member."""

    def __init__(
        self,
        controller: OptimisticListController,
        notifier: NotificationPort | None,
        sender: str,
        thread_id: str,
    ) -> None:
        self._controller = controller
        self._notifier = notifier
        self.sender = sender
        self.thread_id = thread_id
        self._read_marked: set[str] = set()
        self._notify_tasks: set[asyncio.Task] = set()

    @property
    def messages(self) -> list[dict]:
        return self._controller.items

    @property
    def controller(self) -> OptimisticListController:
        return self._controller

    async def send(self, content: str, message_type: str = "text") -> MutationResult:
        """Post a message; on confirmation, notify the other members."""
        if not content.strip():
            raise ValueError("Cannot send an empty message")

        payload = {
            "thread_id": self.thread_id,
            "sender": self.sender,
            "content": content,
            "message_type": message_type,
            "read_by": [self.sender],
        }
        result = await self._controller.submit_create(payload)
        if result.ok:
            self._notify(content, message_type)
        return result

    def _notify(self, content: str, message_type: str) -> None:
        if self._notifier is None:
            return
        request = NotificationRequest(
            recipients=recipients_for_thread(self.thread_id, self.sender),
            title=self.sender,
            body=message_preview(content, message_type),
            url=thread_url(self.thread_id),
        )
        task = asyncio.create_task(self._deliver(request))
        self._notify_tasks.add(task)
        task.add_done_callback(self._notify_tasks.discard)

    async def _deliver(self, request: NotificationRequest) -> None:
        try:
            await self._notifier.deliver(request)
        except Exception as exc:
            logger.warning("Notification for thread %s failed: %s", self.thread_id, exc)

    async def mark_read(self) -> int:
        """Add the current member to `read_by` of unread messages from others.

        Each message is marked at most once per thread instance. Returns the
        number of messages marked.
        """
        unread = [
            m for m in self.messages
            if m.get("sender") != self.sender
            and self.sender not in (m.get("read_by") or [])
            and m["id"] not in self._read_marked
            and not is_provisional(m["id"])
        ]
        if not unread:
            return 0
        for m in unread:
            self._read_marked.add(m["id"])
        await asyncio.gather(*(
            self._controller.submit_update(m["id"], {"read_by": [*(m.get("read_by") or []), self.sender]})
            for m in unread
        ))
        return len(unread)

    async def close(self) -> None:
        for task in list(self._notify_tasks):
            task.cancel()
        await self._controller.close()


@dataclass
class ThreadSummary:
    thread_id: str
    last_message: dict | None
    unread_count: int


def summarize_threads(
    messages: list[dict],
    member: str,
    thread_ids: list[str] | tuple[str, ...],
) -> list[ThreadSummary]:
    """Newest message and unread count per thread, in `thread_ids` order.

    `messages` must be newest first. A message is unread when someone else
    sent it and `member` is not in its `read_by`.
    """
    summaries = {tid: ThreadSummary(tid, None, 0) for tid in thread_ids}
    for message in messages:
        summary = summaries.get(message.get("thread_id"))
        if summary is None:
            continue
        if summary.last_message is None:
            summary.last_message = message
        if message.get("sender") != member and member not in (message.get("read_by") or []):
            summary.unread_count += 1
    return [summaries[tid] for tid in thread_ids]


class ThreadList:
    """The inbox: every thread the member takes part in."""

    def __init__(
        self,
        controller: OptimisticListController,
        member: str,
        thread_ids: list[str] | tuple[str, ...],
    ) -> None:
        self._controller = controller
        self.member = member
        self.thread_ids = tuple(thread_ids)

    @property
    def controller(self) -> OptimisticListController:
        return self._controller

    def summaries(self) -> list[ThreadSummary]:
        return summarize_threads(self._controller.items, self.member, self.thread_ids)

    def unread_total(self) -> int:
        return sum(s.unread_count for s in self.summaries())
