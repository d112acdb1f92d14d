"""SQLite store adapter — implements RemoteStore with a local change feed.

Each collection is a table of JSON documents (id, created_at, body).
Filtering and ordering go through json_extract. Data errors are mapped to
the PostgREST/Postgres codes the retry wrapper understands, and every
successful write is pushed to the open subscriptions of that collection,
including the writer's own, just like a hosted realtime channel echoes it.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from src.data.models import DELETE, INSERT, UPDATE, ChangeEvent, Filter, StoreError, StoreResult

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")
_CLOSED = object()


def _check_identifier(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid collection or field name: {name!r}")
    return name


def _json_path(field: str) -> str:
    return f"$.{_check_identifier(field)}"


def _map_error(exc: sqlite3.Error) -> StoreError:
    """Translate a sqlite error into a Postgres-style error code."""
    message = str(exc)
    if isinstance(exc, sqlite3.IntegrityError):
        if "UNIQUE" in message:
            return StoreError(code="23505", message=message)
        if "FOREIGN KEY" in message:
            return StoreError(code="23503", message=message)
        return StoreError(code="23000", message=message)
    if isinstance(exc, sqlite3.OperationalError):
        if "no such table" in message:
            return StoreError(code="42P01", message=message)
        if "no such column" in message:
            return StoreError(code="42703", message=message)
        if "locked" in message:
            return StoreError(code="55P03", message=message)
    return StoreError(code="SQLITE", message=message)


class SQLiteSubscription:
    """Async iterator over the change events of one collection + filter."""

    def __init__(self, store: SQLiteStore, collection: str, filters: Sequence[Filter]) -> None:
        self._store = store
        self.collection = collection
        self._filters = tuple(filters)
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def offer(self, event: ChangeEvent) -> None:
        if self._closed:
            return
        if all(f.matches(event.record) for f in self._filters):
            self._queue.put_nowait(ChangeEvent(op=event.op, record=dict(event.record)))

    def __aiter__(self) -> SQLiteSubscription:
        return self

    async def __anext__(self) -> ChangeEvent:
        event = await self._queue.get()
        if event is _CLOSED:
            raise StopAsyncIteration
        return event

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._store._unsubscribe(self)
        self._queue.put_nowait(_CLOSED)


class SQLiteStore:
    """SQLite-backed document store with realtime change notifications."""

    def __init__(
        self,
        db_path: str | None = None,
        collections: dict[str, tuple[str, ...]] | None = None,
    ) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._subscribers: list[SQLiteSubscription] = []

        for name, unique in (collections or {}).items():
            self.ensure_collection(name, unique)

    def ensure_collection(self, name: str, unique: Sequence[str] = ()) -> None:
        """Create the collection table (and unique indexes) if missing."""
        table = _check_identifier(name)
        with self._conn:
            self._conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    id         TEXT PRIMARY KEY,
                    created_at TEXT NOT NULL,
                    body       TEXT NOT NULL
                )
            """)
            for field in unique:
                column = _check_identifier(field)
                self._conn.execute(
                    f"CREATE UNIQUE INDEX IF NOT EXISTS {table}_{column}_key "
                    f"ON {table} (json_extract(body, '$.{column}'))"
                )
        logger.debug("Collection %s initialized at %s", table, self._db_path)

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _where(filters: Sequence[Filter]) -> tuple[str, list]:
        conditions: list[str] = []
        params: list = []
        for f in filters:
            if f.op == "eq":
                conditions.append("json_extract(body, ?) = ?")
                params.extend([_json_path(f.field), f.value])
            elif f.op == "neq":
                conditions.append("json_extract(body, ?) <> ?")
                params.extend([_json_path(f.field), f.value])
            elif f.op == "in":
                values = list(f.value)
                if not values:
                    conditions.append("0")
                    continue
                placeholders = ", ".join("?" for _ in values)
                conditions.append(f"json_extract(body, ?) IN ({placeholders})")
                params.append(_json_path(f.field))
                params.extend(values)
            else:
                raise ValueError(f"Unknown filter op: {f.op!r}")
        if not conditions:
            return "", params
        return " WHERE " + " AND ".join(conditions), params

    def _fetch_one(self, table: str, record_id: str) -> dict | None:
        row = self._conn.execute(
            f"SELECT body FROM {table} WHERE id = ?", (record_id,)
        ).fetchone()
        return json.loads(row["body"]) if row else None

    def _publish(self, collection: str, event: ChangeEvent) -> None:
        for sub in list(self._subscribers):
            if sub.collection == collection:
                sub.offer(event)

    def _unsubscribe(self, sub: SQLiteSubscription) -> None:
        if sub in self._subscribers:
            self._subscribers.remove(sub)

    # ------------------------------------------------------------------
    # RemoteStore
    # ------------------------------------------------------------------

    async def select(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> StoreResult:
        table = _check_identifier(collection)
        where, params = self._where(filters)
        query = f"SELECT body FROM {table}{where}"
        if order_by:
            query += f" ORDER BY json_extract(body, ?) {'DESC' if descending else 'ASC'}, created_at"
            params.append(_json_path(order_by))
        if limit is not None:
            query += " LIMIT ?"
            params.append(int(limit))
        try:
            rows = self._conn.execute(query, params).fetchall()
        except sqlite3.Error as exc:
            return StoreResult(error=_map_error(exc))
        return StoreResult(data=[json.loads(r["body"]) for r in rows])

    async def insert(self, collection: str, payload: dict) -> StoreResult:
        table = _check_identifier(collection)
        record = {**payload, "id": uuid.uuid4().hex}
        record.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        try:
            with self._conn:
                self._conn.execute(
                    f"INSERT INTO {table} (id, created_at, body) VALUES (?, ?, ?)",
                    (record["id"], str(record["created_at"]), json.dumps(record, default=str)),
                )
        except sqlite3.Error as exc:
            return StoreResult(error=_map_error(exc))

        record = json.loads(json.dumps(record, default=str))
        logger.debug("Inserted %s/%s", table, record["id"])
        self._publish(table, ChangeEvent(op=INSERT, record=record))
        return StoreResult(data=dict(record))

    async def update(self, collection: str, record_id: str, changes: dict) -> StoreResult:
        table = _check_identifier(collection)
        try:
            current = self._fetch_one(table, record_id)
            if current is None:
                return StoreResult(error=StoreError(
                    code="PGRST116", message=f"{table}/{record_id} not found",
                ))
            record = {**current, **changes, "id": record_id}
            with self._conn:
                self._conn.execute(
                    f"UPDATE {table} SET body = ? WHERE id = ?",
                    (json.dumps(record, default=str), record_id),
                )
        except sqlite3.Error as exc:
            return StoreResult(error=_map_error(exc))

        record = json.loads(json.dumps(record, default=str))
        self._publish(table, ChangeEvent(op=UPDATE, record=record))
        return StoreResult(data=dict(record))

    async def delete(self, collection: str, record_id: str) -> StoreResult:
        table = _check_identifier(collection)
        try:
            current = self._fetch_one(table, record_id)
            with self._conn:
                self._conn.execute(f"DELETE FROM {table} WHERE id = ?", (record_id,))
        except sqlite3.Error as exc:
            return StoreResult(error=_map_error(exc))

        if current is not None:
            self._publish(table, ChangeEvent(op=DELETE, record=current))
        return StoreResult()

    def subscribe(self, collection: str, filters: Sequence[Filter] = ()) -> SQLiteSubscription:
        sub = SQLiteSubscription(self, _check_identifier(collection), filters)
        self._subscribers.append(sub)
        return sub
