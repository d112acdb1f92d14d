"""Pure list-update functions used by the optimistic controller.

Each function takes the current item list and returns a new one; none of
them mutates its input. The controller applies them atomically.
"""

from __future__ import annotations

from src.core.collections import CollectionSpec


def index_of(items: list[dict], record_id: str) -> int:
    """Position of the record with this id, or -1."""
    for i, item in enumerate(items):
        if item.get("id") == record_id:
            return i
    return -1


def contains(items: list[dict], record_id: str) -> bool:
    return index_of(items, record_id) != -1


def _sorted_position(items: list[dict], record: dict, spec: CollectionSpec) -> int:
    """Index after every item that sorts at or before `record`."""
    key = spec.sort_key(record)
    for i, item in enumerate(items):
        other = spec.sort_key(item)
        if (other < key) if spec.descending else (other > key):
            return i
    return len(items)


def is_sorted(items: list[dict], spec: CollectionSpec) -> bool:
    keys = [spec.sort_key(item) for item in items]
    if spec.descending:
        return all(a >= b for a, b in zip(keys, keys[1:]))
    return all(a <= b for a, b in zip(keys, keys[1:]))


def insert_sorted(items: list[dict], record: dict, spec: CollectionSpec) -> list[dict]:
    """Insert at the record's sorted position (after equal keys)."""
    pos = _sorted_position(items, record, spec)
    return items[:pos] + [record] + items[pos:]


def replace_record(
    items: list[dict], record_id: str, record: dict, spec: CollectionSpec
) -> list[dict]:
    """Swap the record with `record_id` for `record`, keeping its slot.

    The slot only moves when the replacement's ordering value no longer fits
    there. No-op if `record_id` is absent.
    """
    pos = index_of(items, record_id)
    if pos == -1:
        return items
    updated = items[:pos] + [record] + items[pos + 1:]
    if is_sorted(updated, spec):
        return updated
    return sorted(updated, key=spec.sort_key, reverse=spec.descending)


def upsert_by_id(items: list[dict], record: dict, spec: CollectionSpec) -> list[dict]:
    """Replace in place if the id is present, else no-op (window not loaded)."""
    return replace_record(items, record["id"], record, spec)


def merge_changes(
    items: list[dict], record_id: str, changes: dict, spec: CollectionSpec
) -> list[dict]:
    pos = index_of(items, record_id)
    if pos == -1:
        return items
    return replace_record(items, record_id, {**items[pos], **changes}, spec)


def remove_record(items: list[dict], record_id: str) -> list[dict]:
    return [item for item in items if item.get("id") != record_id]
