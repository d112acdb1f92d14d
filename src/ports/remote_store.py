"""Remote store port — abstract interface for the hosted data store.

Core modules depend on this protocol, never on a specific backend.
Data errors come back inside StoreResult; only transport failures raise.
"""

from __future__ import annotations

from typing import AsyncIterator, Protocol, Sequence

from src.data.models import ChangeEvent, Filter, StoreResult


class Subscription(Protocol):
    """A live change feed for one collection + filter combination."""

    def __aiter__(self) -> AsyncIterator[ChangeEvent]: ...

    async def close(self) -> None: ...


class RemoteStore(Protocol):
    """Abstract query / mutate / subscribe interface used by core modules."""

    async def select(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> StoreResult: ...

    async def insert(self, collection: str, payload: dict) -> StoreResult: ...

    async def update(
        self, collection: str, record_id: str, changes: dict
    ) -> StoreResult: ...

    async def delete(self, collection: str, record_id: str) -> StoreResult: ...

    def subscribe(
        self, collection: str, filters: Sequence[Filter] = ()
    ) -> Subscription: ...
