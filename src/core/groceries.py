"""
Family Organizer — Grocery list.

A shared shopping list: add, tick off, delete, and clear everything ticked.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from src.core.controller import is_provisional
from src.data.models import MutationResult

if TYPE_CHECKING:
    from src.core.controller import OptimisticListController

logger = logging.getLogger(__name__)


class GroceryList:
    """Shared grocery list backed by one optimistic controller."""

    def __init__(self, controller: OptimisticListController) -> None:
        self._controller = controller

    @property
    def items(self) -> list[dict]:
        return self._controller.items

    @property
    def unchecked(self) -> list[dict]:
        return [i for i in self.items if not i.get("checked")]

    @property
    def checked(self) -> list[dict]:
        return [i for i in self.items if i.get("checked")]

    async def add(self, name: str) -> MutationResult | None:
        """Add an item; blank names are ignored (returns None)."""
        name = name.strip()
        if not name:
            return None
        return await self._controller.submit_create({"name": name, "checked": False})

    async def toggle(self, item_id: str) -> MutationResult:
        item = self._controller.get(item_id)
        if item is None:
            raise ValueError(f"Unknown grocery item {item_id!r}")
        return await self._controller.submit_update(item_id, {"checked": not item.get("checked")})

    async def delete(self, item_id: str) -> MutationResult:
        return await self._controller.submit_delete(item_id)

    async def clear_completed(self) -> list[MutationResult]:
        """Delete every ticked item; returns the deletes that failed."""
        ids = [i["id"] for i in self.checked if not is_provisional(i["id"])]
        if not ids:
            return []
        results = await asyncio.gather(*(self._controller.submit_delete(i) for i in ids))
        failed = [r for r in results if not r.ok]
        if failed:
            logger.warning("Clear completed: %d of %d deletes failed", len(failed), len(ids))
        return failed
