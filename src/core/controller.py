"""
Family Organizer — Optimistic Mutation Controller.

One controller per logical list (a chat thread's messages, the task board,
the calendar, the grocery list). It keeps the list the UI renders and
guarantees that a write is shown exactly once:

  1. the local write is shown at once under a provisional id ("temp-<ms>"),
  2. the store call runs through the retry wrapper,
  3. the confirmed record replaces the provisional one in place,
  4. realtime pushes from the store are merged without duplicating our own
     echo (matched by id, or by the collection's match key when the push
     beats the insert response).

Every state change is a pure function of the current list applied in one
synchronous step (`_commit`), so a realtime push and an insert response
landing back-to-back can never interleave a read-modify-write.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable

from src.core.reconciler import (
    contains,
    index_of,
    insert_sorted,
    merge_changes,
    remove_record,
    replace_record,
    upsert_by_id,
)
from src.core.retry import RetryPolicy
from src.data.models import DELETE, INSERT, UPDATE, ChangeEvent, MutationResult, StoreError

if TYPE_CHECKING:
    from src.core.collections import CollectionSpec
    from src.ports.remote_store import RemoteStore, Subscription

logger = logging.getLogger(__name__)

PROVISIONAL_PREFIX = "temp-"

Listener = Callable[[list[dict]], None]


def is_provisional(record_id: str | None) -> bool:
    return bool(record_id) and record_id.startswith(PROVISIONAL_PREFIX)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class OptimisticListController:
    """Local list state + optimistic writes + realtime merge for one collection."""

    def __init__(
        self,
        store: RemoteStore,
        spec: CollectionSpec,
        *,
        retry: RetryPolicy | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._store = store
        self.spec = spec
        self._retry = retry or RetryPolicy()
        self._clock = clock or _epoch_ms
        self._items: list[dict] = []
        # provisional id -> match key, oldest first
        self._provisional: dict[str, tuple] = {}
        # canonical ids this client placed itself, until their echo arrives
        self._seen: set[str] = set()
        self._listeners: list[Listener] = []
        self._subscription: Subscription | None = None
        self._pump_task: asyncio.Task | None = None
        self._closed = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def items(self) -> list[dict]:
        return list(self._items)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Number of provisional records still awaiting confirmation."""
        return len(self._provisional)

    def get(self, record_id: str) -> dict | None:
        pos = index_of(self._items, record_id)
        return self._items[pos] if pos != -1 else None

    def add_listener(self, callback: Listener) -> None:
        self._listeners.append(callback)

    def _commit(self, update: Callable[[list[dict]], list[dict]]) -> None:
        """Apply `update` to the current items; dropped once closed."""
        if self._closed:
            return
        new_items = update(self._items)
        if new_items is self._items:
            return
        self._items = new_items
        for callback in self._listeners:
            try:
                callback(list(new_items))
            except Exception:
                logger.exception("List listener for %s failed", self.spec.name)

    def _provisional_id(self) -> str:
        base = f"{PROVISIONAL_PREFIX}{self._clock()}"
        candidate, n = base, 0
        while candidate in self._provisional or contains(self._items, candidate):
            n += 1
            candidate = f"{base}-{n}"
        return candidate

    def _match_provisional(self, record: dict) -> str | None:
        """Oldest unreconciled provisional id whose match key equals `record`'s."""
        if not self.spec.match_fields:
            return None
        key = self.spec.match_key(record)
        for provisional_id, provisional_key in self._provisional.items():
            if provisional_key == key and contains(self._items, provisional_id):
                return provisional_id
        return None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> StoreError | None:
        """Subscribe to changes, then load the window."""
        self._subscribe()
        return await self.load()

    def _subscribe(self) -> None:
        self._subscription = self._store.subscribe(self.spec.name, self.spec.filters)
        self._pump_task = asyncio.create_task(self._pump(), name=f"realtime-{self.spec.name}")

    async def _unsubscribe(self) -> None:
        if self._pump_task is not None:
            self._pump_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._pump_task
            self._pump_task = None
        if self._subscription is not None:
            await self._subscription.close()
            self._subscription = None

    async def _pump(self) -> None:
        try:
            async for event in self._subscription:
                self.apply_remote_event(event)
        except Exception as exc:
            logger.error("Realtime feed for %s stopped: %s", self.spec.name, exc)

    async def close(self) -> None:
        """Stop the realtime feed; later completions become no-ops."""
        if self._closed:
            return
        self._closed = True
        await self._unsubscribe()
        logger.debug("Controller for %s closed", self.spec.name)

    async def rebind(self, spec: CollectionSpec) -> StoreError | None:
        """Move to a new window of the same collection and reload it.

        Records outside the new window are dropped at once; pending
        provisional records are kept. A live feed is re-subscribed with the
        new filters.
        """
        if spec.name != self.spec.name:
            raise ValueError(f"Cannot rebind {self.spec.name} to {spec.name}")
        if self._closed:
            return None
        live = self._pump_task is not None
        await self._unsubscribe()
        self.spec = spec
        self._commit(lambda items: [
            item for item in items
            if item.get("id") in self._provisional or spec.accepts(item)
        ])
        if live:
            self._subscribe()
        logger.info("Rebound %s to %s", spec.name, [f.value for f in spec.filters])
        return await self.load()

    async def load(self) -> StoreError | None:
        """Full refetch of the window; replaces items wholesale.

        Pending provisional records survive unless the fetch already holds
        their confirmed counterpart.
        """
        result = await self._retry.run(
            lambda: self._store.select(
                self.spec.name,
                self.spec.filters,
                order_by=self.spec.order_by,
                descending=self.spec.descending,
            )
        )
        if result.error is not None:
            logger.warning("Refetch of %s failed: %s", self.spec.name, result.error.message)
            return result.error
        if self._closed:
            return None

        fetched = list(result.data or [])
        known = {item.get("id") for item in self._items} | self._seen
        # The fetched list is authoritative; later echoes are deduped by id
        self._seen.clear()
        claimed: set[str] = set()
        merged = fetched
        for item in self._items:
            provisional_id = item.get("id")
            if provisional_id not in self._provisional:
                continue
            key = self._provisional[provisional_id]
            match = next(
                (
                    r for r in fetched
                    if r.get("id") not in known
                    and r.get("id") not in claimed
                    and self.spec.match_key(r) == key
                ),
                None,
            )
            if match is not None:
                claimed.add(match["id"])
                self._seen.add(match["id"])
                del self._provisional[provisional_id]
            else:
                merged = insert_sorted(merged, item, self.spec)

        self._commit(lambda _items: merged)
        logger.info("Loaded %d %s record(s)", len(fetched), self.spec.name)
        return None

    refresh = load

    # ------------------------------------------------------------------
    # Local writes
    # ------------------------------------------------------------------

    async def submit_create(self, payload: dict) -> MutationResult:
        """Show `payload` at once, persist it, then swap in the confirmed record."""
        provisional_id = self._provisional_id()
        provisional = {**payload, "id": provisional_id}
        provisional.setdefault(self.spec.order_by, _utc_now_iso())
        self._provisional[provisional_id] = self.spec.match_key(provisional)
        self._commit(lambda items: insert_sorted(items, provisional, self.spec))

        result = await self._retry.run(lambda: self._store.insert(self.spec.name, payload))

        # Already gone if a realtime push reconciled it first
        self._provisional.pop(provisional_id, None)

        if result.error is not None:
            self._commit(lambda items: remove_record(items, provisional_id))
            logger.error(
                "Create in %s failed (%s): %s",
                self.spec.name, result.error.code, result.error.message,
            )
            return MutationResult(error=result.error)

        record = result.data
        if contains(self._items, record["id"]):
            # A push or refetch placed it already
            self._seen.discard(record["id"])
        else:
            self._seen.add(record["id"])

        def _settle(items: list[dict]) -> list[dict]:
            if contains(items, record["id"]):
                return remove_record(items, provisional_id)
            if contains(items, provisional_id):
                return replace_record(items, provisional_id, record, self.spec)
            return insert_sorted(items, record, self.spec)

        self._commit(_settle)
        logger.debug("Reconciled %s -> %s in %s", provisional_id, record["id"], self.spec.name)
        return MutationResult(record=record)

    async def submit_update(self, record_id: str, changes: dict) -> MutationResult:
        """Merge `changes` locally, persist, revert on terminal failure."""
        if is_provisional(record_id):
            raise ValueError(f"Cannot update unconfirmed record {record_id!r}")

        previous = self.get(record_id)
        self._commit(lambda items: merge_changes(items, record_id, changes, self.spec))

        result = await self._retry.run(
            lambda: self._store.update(self.spec.name, record_id, changes)
        )
        if result.error is not None:
            if previous is not None:
                self._commit(lambda items: upsert_by_id(items, previous, self.spec))
            logger.error(
                "Update of %s/%s failed (%s): %s",
                self.spec.name, record_id, result.error.code, result.error.message,
            )
            return MutationResult(error=result.error)

        record = result.data
        self._commit(lambda items: upsert_by_id(items, record, self.spec))
        return MutationResult(record=record)

    async def submit_delete(self, record_id: str) -> MutationResult:
        """Remove locally, persist, re-insert on terminal failure."""
        if is_provisional(record_id):
            raise ValueError(f"Cannot delete unconfirmed record {record_id!r}")

        previous = self.get(record_id)
        self._commit(lambda items: remove_record(items, record_id))

        result = await self._retry.run(lambda: self._store.delete(self.spec.name, record_id))
        if result.error is not None:
            if previous is not None:
                self._commit(
                    lambda items: items if contains(items, record_id)
                    else insert_sorted(items, previous, self.spec)
                )
            logger.error(
                "Delete of %s/%s failed (%s): %s",
                self.spec.name, record_id, result.error.code, result.error.message,
            )
            return MutationResult(record=previous, error=result.error)

        return MutationResult(record=previous)

    # ------------------------------------------------------------------
    # Realtime merge
    # ------------------------------------------------------------------

    def apply_remote_event(self, event: ChangeEvent) -> None:
        """Merge a change pushed by the store."""
        if self._closed:
            return
        record = event.record
        record_id = record.get("id")

        if event.op == INSERT:
            if not self.spec.accepts(record):
                return
            if record_id in self._seen:
                # Our own write echoed back; one echo per insert
                self._seen.discard(record_id)
                return
            if contains(self._items, record_id):
                return
            provisional_id = self._match_provisional(record)
            if provisional_id is not None:
                # Push beat our own insert response
                del self._provisional[provisional_id]
                self._seen.add(record_id)
                self._commit(
                    lambda items: replace_record(items, provisional_id, record, self.spec)
                )
                logger.debug("Push %s reconciled provisional %s", record_id, provisional_id)
                return
            self._commit(lambda items: insert_sorted(items, record, self.spec))
        elif event.op == UPDATE:
            self._commit(lambda items: upsert_by_id(items, record, self.spec))
        elif event.op == DELETE:
            self._commit(lambda items: remove_record(items, record_id))
        else:
            logger.warning("Ignoring unknown change op %r on %s", event.op, self.spec.name)
