"""Tests for src.core.controller — optimistic writes and realtime merge.

Store calls are mocked (AsyncMock or gated coroutines) so each race can be
replayed in a fixed order; the end-to-end tests use the real SQLiteStore.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from src.core.collections import CollectionSpec, GROCERIES_SPEC, thread_messages
from src.core.controller import OptimisticListController, is_provisional
from src.core.reconciler import is_sorted
from src.data.models import DELETE, INSERT, UPDATE, ChangeEvent, StoreError, StoreResult


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _mock_store(items=None):
    store = MagicMock()
    store.select = AsyncMock(return_value=StoreResult(data=list(items or [])))
    store.insert = AsyncMock()
    store.update = AsyncMock()
    store.delete = AsyncMock(return_value=StoreResult())
    return store


def _controller(store, fast_retry, spec=None, clock=lambda: 1000):
    return OptimisticListController(
        store, spec or thread_messages("family"), retry=fast_retry, clock=clock,
    )


def _message(id_, ts, sender="Mum", content="hi", message_type="text"):
    return {
        "id": id_,
        "thread_id": "family",
        "sender": sender,
        "content": content,
        "message_type": message_type,
        "created_at": ts,
        "read_by": [sender],
    }


def _payload(content="hello", sender="Mum"):
    return {
        "thread_id": "family",
        "sender": sender,
        "content": content,
        "message_type": "text",
        "read_by": [sender],
    }


class _GatedInsert:
    """Insert that resolves only when released, returning the given ids in turn."""

    def __init__(self, *ids, created_at="2026-03-01T10:00:00+00:00"):
        self._ids = list(ids)
        self._created_at = created_at
        self.gates = [asyncio.Event() for _ in ids]
        self._calls = 0

    async def __call__(self, collection, payload):
        n = self._calls
        self._calls += 1
        await self.gates[n].wait()
        return StoreResult(data={**payload, "id": self._ids[n], "created_at": self._created_at})


async def _drain():
    for _ in range(20):
        await asyncio.sleep(0)


def _ids(controller):
    return [r["id"] for r in controller.items]


# ---------------------------------------------------------------------------
# submit_create
# ---------------------------------------------------------------------------


class TestSubmitCreate:
    @pytest.mark.asyncio
    async def test_provisional_shown_before_store_answers(self, fast_retry):
        store = _mock_store()
        gated = _GatedInsert("abc123")
        store.insert = gated
        ctrl = _controller(store, fast_retry)

        task = asyncio.create_task(ctrl.submit_create(_payload()))
        await asyncio.sleep(0)

        assert _ids(ctrl) == ["temp-1000"]
        assert ctrl.items[0]["content"] == "hello"
        assert ctrl.pending == 1

        gated.gates[0].set()
        result = await task
        assert result.ok
        assert _ids(ctrl) == ["abc123"]
        assert ctrl.pending == 0

    @pytest.mark.asyncio
    async def test_confirmed_record_takes_provisional_slot(self, fast_retry):
        existing = [_message("m1", "2026-03-01T09:00:00+00:00"), _message("m3", "2099-01-01T00:00:00+00:00")]
        store = _mock_store(existing)
        store.insert = AsyncMock(return_value=StoreResult(
            data={**_payload(), "id": "m2", "created_at": "2026-03-01T10:00:00+00:00"},
        ))
        ctrl = _controller(store, fast_retry)
        await ctrl.load()

        await ctrl.submit_create(_payload())
        assert _ids(ctrl) == ["m1", "m2", "m3"]

    @pytest.mark.asyncio
    async def test_sends_payload_without_provisional_id(self, fast_retry):
        store = _mock_store()
        store.insert = AsyncMock(return_value=StoreResult(data={**_payload(), "id": "x", "created_at": "t"}))
        ctrl = _controller(store, fast_retry)
        await ctrl.submit_create(_payload())
        sent = store.insert.await_args.args[1]
        assert "id" not in sent
        assert store.insert.await_args.args[0] == "messages"

    @pytest.mark.asyncio
    async def test_permanent_failure_restores_list_exactly(self, fast_retry):
        existing = [_message("m1", "2026-03-01T09:00:00+00:00")]
        store = _mock_store(existing)
        store.insert = AsyncMock(return_value=StoreResult(
            error=StoreError(code="42501", message="row-level security"),
        ))
        ctrl = _controller(store, fast_retry)
        await ctrl.load()
        before = ctrl.items

        result = await ctrl.submit_create(_payload())

        assert not result.ok
        assert result.error.code == "42501"
        assert ctrl.items == before
        assert store.insert.await_count == 1
        assert ctrl.pending == 0

    @pytest.mark.asyncio
    async def test_exhausted_retries_roll_back(self, fast_retry):
        store = _mock_store()
        store.insert = AsyncMock(side_effect=ConnectionError("offline"))
        ctrl = _controller(store, fast_retry)

        result = await ctrl.submit_create(_payload())

        assert not result.ok
        assert store.insert.await_count == 4
        assert ctrl.items == []

    @pytest.mark.asyncio
    async def test_provisional_ids_are_unique_within_a_tick(self, fast_retry):
        store = _mock_store()
        gated = _GatedInsert("a", "b")
        store.insert = gated
        ctrl = _controller(store, fast_retry)

        t1 = asyncio.create_task(ctrl.submit_create(_payload("one")))
        t2 = asyncio.create_task(ctrl.submit_create(_payload("two")))
        await asyncio.sleep(0)

        assert sorted(_ids(ctrl)) == ["temp-1000", "temp-1000-1"]
        for gate in gated.gates:
            gate.set()
        await asyncio.gather(t1, t2)
        assert sorted(_ids(ctrl)) == ["a", "b"]


# ---------------------------------------------------------------------------
# Realtime echo vs. local create
# ---------------------------------------------------------------------------


class TestEchoReconciliation:
    @pytest.mark.asyncio
    async def test_push_before_response_replaces_provisional(self, fast_retry):
        store = _mock_store()
        gated = _GatedInsert("abc123")
        store.insert = gated
        ctrl = _controller(store, fast_retry)

        task = asyncio.create_task(ctrl.submit_create(_payload()))
        await asyncio.sleep(0)

        echo = {**_payload(), "id": "abc123", "created_at": "2026-03-01T10:00:00+00:00"}
        ctrl.apply_remote_event(ChangeEvent(op=INSERT, record=echo))
        assert _ids(ctrl) == ["abc123"]

        gated.gates[0].set()
        await task
        assert _ids(ctrl) == ["abc123"]

    @pytest.mark.asyncio
    async def test_push_after_response_is_ignored(self, fast_retry):
        store = _mock_store()
        canonical = {**_payload(), "id": "abc123", "created_at": "2026-03-01T10:00:00+00:00"}
        store.insert = AsyncMock(return_value=StoreResult(data=canonical))
        ctrl = _controller(store, fast_retry)

        await ctrl.submit_create(_payload())
        ctrl.apply_remote_event(ChangeEvent(op=INSERT, record=dict(canonical)))

        assert _ids(ctrl) == ["abc123"]

    @pytest.mark.asyncio
    async def test_push_from_other_sender_does_not_claim_provisional(self, fast_retry):
        store = _mock_store()
        gated = _GatedInsert("mine")
        store.insert = gated
        ctrl = _controller(store, fast_retry)

        task = asyncio.create_task(ctrl.submit_create(_payload()))
        await asyncio.sleep(0)
        other = _message("theirs", "2000-01-01T00:00:00+00:00", sender="Dad")
        ctrl.apply_remote_event(ChangeEvent(op=INSERT, record=other))

        assert _ids(ctrl) == ["theirs", "temp-1000"]
        gated.gates[0].set()
        await task
        assert _ids(ctrl) == ["theirs", "mine"]

    @pytest.mark.asyncio
    async def test_two_same_key_creates_end_with_one_each(self, fast_retry):
        store = _mock_store()
        gated = _GatedInsert("first", "second")
        store.insert = gated
        ticks = iter([1000, 1001])
        ctrl = _controller(store, fast_retry, clock=lambda: next(ticks))

        t1 = asyncio.create_task(ctrl.submit_create(_payload("one")))
        t2 = asyncio.create_task(ctrl.submit_create(_payload("two")))
        await asyncio.sleep(0)

        # the second write's echo arrives first
        echo_second = {**_payload("two"), "id": "second", "created_at": "2026-03-01T10:00:00+00:00"}
        ctrl.apply_remote_event(ChangeEvent(op=INSERT, record=echo_second))
        gated.gates[1].set()
        await t2
        gated.gates[0].set()
        await t1

        assert sorted(_ids(ctrl)) == ["first", "second"]
        assert not any(is_provisional(i) for i in _ids(ctrl))

    @pytest.mark.asyncio
    async def test_duplicate_push_is_ignored(self, fast_retry):
        ctrl = _controller(_mock_store(), fast_retry)
        record = _message("m1", "2026-03-01T09:00:00+00:00", sender="Dad")
        ctrl.apply_remote_event(ChangeEvent(op=INSERT, record=record))
        ctrl.apply_remote_event(ChangeEvent(op=INSERT, record=dict(record)))
        assert _ids(ctrl) == ["m1"]

    @pytest.mark.asyncio
    async def test_seen_id_released_once_echo_arrives(self, fast_retry):
        store = _mock_store()
        canonical = {**_payload(), "id": "abc123", "created_at": "2026-03-01T10:00:00+00:00"}
        store.insert = AsyncMock(return_value=StoreResult(data=canonical))
        ctrl = _controller(store, fast_retry)

        await ctrl.submit_create(_payload())
        assert ctrl._seen == {"abc123"}
        ctrl.apply_remote_event(ChangeEvent(op=INSERT, record=dict(canonical)))

        assert ctrl._seen == set()
        assert _ids(ctrl) == ["abc123"]

    @pytest.mark.asyncio
    async def test_seen_id_released_when_push_beats_response(self, fast_retry):
        store = _mock_store()
        gated = _GatedInsert("abc123")
        store.insert = gated
        ctrl = _controller(store, fast_retry)

        task = asyncio.create_task(ctrl.submit_create(_payload()))
        await asyncio.sleep(0)
        echo = {**_payload(), "id": "abc123", "created_at": "2026-03-01T10:00:00+00:00"}
        ctrl.apply_remote_event(ChangeEvent(op=INSERT, record=echo))
        gated.gates[0].set()
        await task

        assert ctrl._seen == set()

    @pytest.mark.asyncio
    async def test_load_clears_seen_ids(self, fast_retry):
        store = _mock_store()
        canonical = {**_payload(), "id": "abc123", "created_at": "2026-03-01T10:00:00+00:00"}
        store.insert = AsyncMock(return_value=StoreResult(data=canonical))
        ctrl = _controller(store, fast_retry)
        await ctrl.submit_create(_payload())

        store.select.return_value = StoreResult(data=[canonical])
        await ctrl.load()
        ctrl.apply_remote_event(ChangeEvent(op=INSERT, record=dict(canonical)))

        assert ctrl._seen == set()
        assert _ids(ctrl) == ["abc123"]


# ---------------------------------------------------------------------------
# apply_remote_event — other clients' changes
# ---------------------------------------------------------------------------


class TestApplyRemoteEvent:
    def test_inserts_keep_chronological_order(self, fast_retry):
        ctrl = _controller(_mock_store(), fast_retry)
        for id_, ts in [("c", "03"), ("a", "01"), ("e", "05"), ("b", "02"), ("d", "04")]:
            ctrl.apply_remote_event(ChangeEvent(op=INSERT, record=_message(id_, ts, sender="Dad")))
        assert _ids(ctrl) == ["a", "b", "c", "d", "e"]
        assert is_sorted(ctrl.items, ctrl.spec)

    def test_update_replaces_known_record(self, fast_retry):
        ctrl = _controller(_mock_store(), fast_retry)
        ctrl.apply_remote_event(ChangeEvent(op=INSERT, record=_message("a", "01", content="old")))
        ctrl.apply_remote_event(ChangeEvent(op=UPDATE, record=_message("a", "01", content="new")))
        assert ctrl.items[0]["content"] == "new"

    def test_update_of_unknown_record_is_noop(self, fast_retry):
        ctrl = _controller(_mock_store(), fast_retry)
        ctrl.apply_remote_event(ChangeEvent(op=UPDATE, record=_message("ghost", "01")))
        assert ctrl.items == []

    def test_delete_removes_record(self, fast_retry):
        ctrl = _controller(_mock_store(), fast_retry)
        ctrl.apply_remote_event(ChangeEvent(op=INSERT, record=_message("a", "01")))
        ctrl.apply_remote_event(ChangeEvent(op=DELETE, record={"id": "a"}))
        assert ctrl.items == []

    def test_insert_outside_filter_is_ignored(self, fast_retry):
        ctrl = _controller(_mock_store(), fast_retry)
        stray = {**_message("x", "01"), "thread_id": "mum-dad"}
        ctrl.apply_remote_event(ChangeEvent(op=INSERT, record=stray))
        assert ctrl.items == []

    def test_listener_sees_each_commit(self, fast_retry):
        ctrl = _controller(_mock_store(), fast_retry)
        seen = []
        ctrl.add_listener(lambda items: seen.append([i["id"] for i in items]))
        ctrl.apply_remote_event(ChangeEvent(op=INSERT, record=_message("a", "01")))
        ctrl.apply_remote_event(ChangeEvent(op=INSERT, record=_message("b", "02")))
        assert seen == [["a"], ["a", "b"]]

    def test_failing_listener_does_not_block_commit(self, fast_retry):
        ctrl = _controller(_mock_store(), fast_retry)
        ctrl.add_listener(MagicMock(side_effect=RuntimeError("render crashed")))
        ctrl.apply_remote_event(ChangeEvent(op=INSERT, record=_message("a", "01")))
        assert _ids(ctrl) == ["a"]


# ---------------------------------------------------------------------------
# submit_update / submit_delete
# ---------------------------------------------------------------------------


def _grocery(id_, ts, name="Milk", checked=False):
    return {"id": id_, "name": name, "checked": checked, "created_at": ts}


class TestSubmitUpdate:
    @pytest.mark.asyncio
    async def test_optimistic_then_server_record(self, fast_retry):
        store = _mock_store([_grocery("g1", "01")])
        ctrl = _controller(store, fast_retry, spec=GROCERIES_SPEC)
        await ctrl.load()

        async def update(collection, record_id, changes):
            assert ctrl.get("g1")["checked"] is True  # already applied locally
            return StoreResult(data={**_grocery("g1", "01"), **changes, "updated_by": "server"})

        store.update = update
        result = await ctrl.submit_update("g1", {"checked": True})

        assert result.ok
        assert ctrl.get("g1")["updated_by"] == "server"

    @pytest.mark.asyncio
    async def test_failure_reverts(self, fast_retry):
        store = _mock_store([_grocery("g1", "01")])
        store.update = AsyncMock(return_value=StoreResult(error=StoreError(code="PGRST116", message="gone")))
        ctrl = _controller(store, fast_retry, spec=GROCERIES_SPEC)
        await ctrl.load()

        result = await ctrl.submit_update("g1", {"checked": True})

        assert result.error.code == "PGRST116"
        assert ctrl.get("g1")["checked"] is False

    @pytest.mark.asyncio
    async def test_rejects_provisional_id(self, fast_retry):
        ctrl = _controller(_mock_store(), fast_retry)
        with pytest.raises(ValueError):
            await ctrl.submit_update("temp-1000", {"content": "x"})


class TestSubmitDelete:
    @pytest.mark.asyncio
    async def test_removes_locally_and_remotely(self, fast_retry):
        store = _mock_store([_grocery("g1", "01"), _grocery("g2", "02")])
        ctrl = _controller(store, fast_retry, spec=GROCERIES_SPEC)
        await ctrl.load()

        result = await ctrl.submit_delete("g1")

        assert result.ok
        assert _ids(ctrl) == ["g2"]
        store.delete.assert_awaited_once_with("groceries", "g1")

    @pytest.mark.asyncio
    async def test_failure_reinserts_in_order(self, fast_retry):
        store = _mock_store([_grocery("g1", "01"), _grocery("g2", "02"), _grocery("g3", "03")])
        store.delete = AsyncMock(return_value=StoreResult(error=StoreError(code="42501", message="denied")))
        ctrl = _controller(store, fast_retry, spec=GROCERIES_SPEC)
        await ctrl.load()

        result = await ctrl.submit_delete("g2")

        assert not result.ok
        assert _ids(ctrl) == ["g1", "g2", "g3"]

    @pytest.mark.asyncio
    async def test_rejects_provisional_id(self, fast_retry):
        ctrl = _controller(_mock_store(), fast_retry)
        with pytest.raises(ValueError):
            await ctrl.submit_delete("temp-1")


# ---------------------------------------------------------------------------
# load / refresh
# ---------------------------------------------------------------------------


class TestRefresh:
    @pytest.mark.asyncio
    async def test_replaces_items_wholesale(self, fast_retry):
        store = _mock_store([_message("a", "01")])
        ctrl = _controller(store, fast_retry)
        await ctrl.load()
        ctrl.apply_remote_event(ChangeEvent(op=INSERT, record=_message("stale", "00", sender="Dad")))

        store.select.return_value = StoreResult(data=[_message("a", "01"), _message("b", "02")])
        await ctrl.refresh()

        assert _ids(ctrl) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_passes_window_and_order(self, fast_retry):
        store = _mock_store()
        ctrl = _controller(store, fast_retry)
        await ctrl.load()
        args, kwargs = store.select.await_args
        assert args[0] == "messages"
        assert args[1][0].field == "thread_id"
        assert kwargs == {"order_by": "created_at", "descending": False}

    @pytest.mark.asyncio
    async def test_failed_refetch_keeps_items(self, fast_retry):
        store = _mock_store([_message("a", "01")])
        ctrl = _controller(store, fast_retry)
        await ctrl.load()
        store.select.return_value = StoreResult(error=StoreError(code="42P01", message="no table"))

        error = await ctrl.refresh()

        assert error.code == "42P01"
        assert _ids(ctrl) == ["a"]

    @pytest.mark.asyncio
    async def test_keeps_pending_provisional(self, fast_retry):
        store = _mock_store([_message("a", "2026-03-01T09:00:00+00:00")])
        gated = _GatedInsert("new")
        store.insert = gated
        ctrl = _controller(store, fast_retry)
        await ctrl.load()

        task = asyncio.create_task(ctrl.submit_create(_payload()))
        await asyncio.sleep(0)
        await ctrl.refresh()
        assert "temp-1000" in _ids(ctrl)

        gated.gates[0].set()
        await task
        assert _ids(ctrl) == ["a", "new"]

    @pytest.mark.asyncio
    async def test_refetch_containing_confirmation_claims_provisional(self, fast_retry):
        store = _mock_store()
        gated = _GatedInsert("new")
        store.insert = gated
        ctrl = _controller(store, fast_retry)

        task = asyncio.create_task(ctrl.submit_create(_payload()))
        await asyncio.sleep(0)
        confirmed = {**_payload(), "id": "new", "created_at": "2026-03-01T10:00:00+00:00"}
        store.select.return_value = StoreResult(data=[confirmed])
        await ctrl.refresh()
        assert _ids(ctrl) == ["new"]

        gated.gates[0].set()
        await task
        assert _ids(ctrl) == ["new"]


# ---------------------------------------------------------------------------
# rebind
# ---------------------------------------------------------------------------


class TestRebind:
    @pytest.mark.asyncio
    async def test_rejects_other_collection(self, fast_retry):
        ctrl = _controller(_mock_store(), fast_retry)
        with pytest.raises(ValueError):
            await ctrl.rebind(GROCERIES_SPEC)

    @pytest.mark.asyncio
    async def test_drops_old_window_and_loads_new_one(self, fast_retry):
        store = _mock_store([_message("a", "01")])
        ctrl = _controller(store, fast_retry)
        await ctrl.load()

        other = {**_message("b", "02"), "thread_id": "mum-dad"}
        store.select.return_value = StoreResult(data=[other])
        error = await ctrl.rebind(thread_messages("mum-dad"))

        assert error is None
        assert _ids(ctrl) == ["b"]
        assert store.select.await_args.args[1][0].value == "mum-dad"
        ctrl.apply_remote_event(ChangeEvent(op=INSERT, record=_message("c", "03")))
        assert _ids(ctrl) == ["b"]

    @pytest.mark.asyncio
    async def test_keeps_pending_provisional(self, fast_retry):
        store = _mock_store()
        store.insert = _GatedInsert("new")
        ctrl = _controller(store, fast_retry)

        task = asyncio.create_task(ctrl.submit_create(_payload()))
        await asyncio.sleep(0)
        await ctrl.rebind(thread_messages("mum-dad"))

        assert _ids(ctrl) == ["temp-1000"]
        store.insert.gates[0].set()
        await task

    @pytest.mark.asyncio
    async def test_live_feed_follows_new_window(self, store, fast_retry):
        ctrl = _controller(store, fast_retry)
        await ctrl.start()
        await ctrl.rebind(thread_messages("mum-dad"))

        await store.insert("messages", {**_payload(), "thread_id": "family"})
        await store.insert("messages", {**_payload("psst"), "thread_id": "mum-dad"})
        await _drain()

        assert [m["content"] for m in ctrl.items] == ["psst"]
        assert len(store._subscribers) == 1
        await ctrl.close()


# ---------------------------------------------------------------------------
# close
# ---------------------------------------------------------------------------


class TestClose:
    @pytest.mark.asyncio
    async def test_events_after_close_are_dropped(self, fast_retry):
        ctrl = _controller(_mock_store(), fast_retry)
        await ctrl.close()
        ctrl.apply_remote_event(ChangeEvent(op=INSERT, record=_message("a", "01")))
        assert ctrl.items == []
        assert ctrl.closed

    @pytest.mark.asyncio
    async def test_late_insert_response_is_noop(self, fast_retry):
        store = _mock_store()
        gated = _GatedInsert("abc")
        store.insert = gated
        ctrl = _controller(store, fast_retry)

        task = asyncio.create_task(ctrl.submit_create(_payload()))
        await asyncio.sleep(0)
        snapshot = ctrl.items
        await ctrl.close()
        gated.gates[0].set()
        await task

        assert ctrl.items == snapshot

    @pytest.mark.asyncio
    async def test_close_is_idempotent_and_closes_subscription(self, store, fast_retry):
        ctrl = _controller(store, fast_retry)
        await ctrl.start()
        await ctrl.close()
        await ctrl.close()
        assert store._subscribers == []


# ---------------------------------------------------------------------------
# End-to-end with the SQLite store
# ---------------------------------------------------------------------------


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_hello_reconciles_to_single_canonical_message(self, store, fast_retry):
        ctrl = OptimisticListController(
            store, thread_messages("family"), retry=fast_retry, clock=lambda: 1000,
        )
        await ctrl.start()
        observed = []
        ctrl.add_listener(lambda items: observed.append([i["id"] for i in items]))

        with patch("src.adapters.sqlite_store.uuid.uuid4", return_value=MagicMock(hex="abc123")):
            result = await ctrl.submit_create(_payload("hello"))
        await _drain()

        # the store's own realtime echo arrives later; push it once more for good measure
        ctrl.apply_remote_event(ChangeEvent(op=INSERT, record=dict(result.record)))

        assert observed[0] == ["temp-1000"]
        assert len(ctrl.items) == 1
        assert ctrl.items[0]["id"] == "abc123"
        assert ctrl.items[0]["content"] == "hello"
        assert "temp-1000" not in _ids(ctrl)
        await ctrl.close()

    @pytest.mark.asyncio
    async def test_other_clients_writes_arrive_through_subscription(self, store, fast_retry):
        mine = OptimisticListController(store, GROCERIES_SPEC, retry=fast_retry)
        await mine.start()

        other = await store.insert("groceries", {"name": "Bread", "checked": False})
        await _drain()
        assert _ids(mine) == [other.data["id"]]

        await store.update("groceries", other.data["id"], {"checked": True})
        await _drain()
        assert mine.items[0]["checked"] is True

        await store.delete("groceries", other.data["id"])
        await _drain()
        assert mine.items == []
        await mine.close()

    @pytest.mark.asyncio
    async def test_two_clients_converge(self, store, fast_retry):
        spec = CollectionSpec("groceries", match_fields=("name",))
        alice = OptimisticListController(store, spec, retry=fast_retry)
        bob = OptimisticListController(store, spec, retry=fast_retry)
        await alice.start()
        await bob.start()

        await alice.submit_create({"name": "Eggs", "checked": False})
        await bob.submit_create({"name": "Milk", "checked": False})
        await _drain()

        assert _ids(alice) == _ids(bob)
        assert len(_ids(alice)) == 2
        await alice.close()
        await bob.close()
