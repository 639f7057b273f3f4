"""
Content API — Persisted reorder list

Drag-and-drop reordering for allergies, dietary preferences, class videos and
recipe banners. A move rewrites the order number of every item in the scope so
the stored sequence stays dense and zero-based (0..N-1).

Flow of ReorderService.move():
  1. Refuse while a search filter is active (indexes would refer to a subset)
  2. Take the per-scope lock without waiting; a held lock means another reorder
     is in flight, and the request is refused rather than queued
  3. Re-read the scope, check the item is still where the caller saw it
  4. Write every item's new position in one bulk update
  5. On a failed write, re-read the scope and hand it back as the state to show
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Generic, Protocol, Sequence, TypeVar

import redis.asyncio as aioredis

from infinite_flow.core.result import ErrorKind, Result
from infinite_flow.db.record_store import RecordStore

logger = logging.getLogger(__name__)

M = TypeVar("M")


@dataclass(frozen=True)
class OrderableItem:
    id: str
    order_number: int | None
    name: str = ""


@dataclass(frozen=True)
class OrderUpdate:
    id: str
    order_number: int


def sort_key(item: OrderableItem) -> tuple:
    # unset order numbers go last; ties fall back to name, case-insensitive
    return (
        item.order_number is None,
        item.order_number if item.order_number is not None else 0,
        item.name.casefold(),
    )


def sort_items(items: Sequence[OrderableItem]) -> list[OrderableItem]:
    return sorted(items, key=sort_key)


def reorder(items: Sequence[OrderableItem], from_index: int, to_index: int) -> list[OrderUpdate]:
    """
    Move the item at `from_index` of the sorted list to `to_index` and return the
    dense order for the whole scope. Raises ValueError on an out-of-range index.
    """
    ordered = sort_items(items)
    size = len(ordered)
    if not 0 <= from_index < size:
        raise ValueError(f"from_index {from_index} out of range for {size} items")
    if not 0 <= to_index < size:
        raise ValueError(f"to_index {to_index} out of range for {size} items")

    moved = ordered.pop(from_index)
    ordered.insert(to_index, moved)
    return [OrderUpdate(id=item.id, order_number=i) for i, item in enumerate(ordered)]


# ─── Scope locks ──────────────────────────────────────────────────────────────

class ScopeLock(Protocol):
    async def acquire(self, key: str) -> str | None:
        """Return a token if the lock was taken, None if it is already held."""
        ...

    async def release(self, key: str, token: str) -> None:
        ...


_RELEASE_SCRIPT = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
end
return 0
"""


class RedisScopeLock:
    """SET NX EX lock; release only deletes the key if we still own it."""

    def __init__(self, redis: aioredis.Redis, ttl_seconds: int = 30, prefix: str = "reorder-lock"):
        self.redis = redis
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix

    async def acquire(self, key: str) -> str | None:
        token = uuid.uuid4().hex
        taken = await self.redis.set(f"{self.prefix}:{key}", token, nx=True, ex=self.ttl_seconds)
        return token if taken else None

    async def release(self, key: str, token: str) -> None:
        await self.redis.eval(_RELEASE_SCRIPT, 1, f"{self.prefix}:{key}", token)


# ─── Service ──────────────────────────────────────────────────────────────────

class ReorderService(Generic[M]):
    def __init__(
        self,
        store: RecordStore[M],
        lock: ScopeLock,
        order_field: str = "order_number",
        name_field: str = "name",
        scope_field: str | None = None,
    ):
        self.store = store
        self.lock = lock
        self.order_field = order_field
        self.name_field = name_field
        self.scope_field = scope_field

    def _lock_key(self, scope_id: str | None) -> str:
        return f"{self.store.model.__tablename__}:{scope_id or 'all'}"

    def _as_item(self, record: Any) -> OrderableItem:
        name = getattr(record, self.name_field)
        return OrderableItem(
            id=getattr(record, self.store.pk_name),
            order_number=getattr(record, self.order_field),
            name=str(name) if name is not None else "",
        )

    async def fetch(self, scope_id: str | None = None) -> Result[list[M]]:
        """Every record in the scope, in display order."""
        filters = {self.scope_field: scope_id} if self.scope_field else None
        listed = await self.store.list(filters=filters)
        if not listed.success:
            return listed
        records = sorted(listed.data, key=lambda r: sort_key(self._as_item(r)))
        return Result.ok(records)

    async def _write(self, scope_id: str | None, updates: Sequence[OrderUpdate]) -> Result[list[M]]:
        written = await self.store.update_many(
            [(u.id, {self.order_field: u.order_number}) for u in updates]
        )
        refreshed = await self.fetch(scope_id)
        if not written.success:
            logger.warning(
                "Reorder of %s (scope=%s) failed after %s rows; resynced from store",
                self.store.label, scope_id, written.data,
            )
            return Result.fail(
                ErrorKind.PARTIAL,
                f"Failed to save the new {self.store.label} order. Showing the stored order.",
                data=refreshed.data if refreshed.success else None,
            )
        return refreshed

    async def move(
        self,
        scope_id: str | None,
        item_id: str,
        from_index: int,
        to_index: int,
        search_active: bool = False,
    ) -> Result[list[M]]:
        if search_active:
            return Result.fail(ErrorKind.CONFLICT, "Clear the search filter before reordering.")

        key = self._lock_key(scope_id)
        token = await self.lock.acquire(key)
        if token is None:
            return Result.fail(ErrorKind.CONFLICT, "Another reorder is already in progress.")
        try:
            current = await self.fetch(scope_id)
            if not current.success:
                return current
            items = [self._as_item(r) for r in current.data]
            try:
                updates = reorder(items, from_index, to_index)
            except ValueError as exc:
                return Result.fail(ErrorKind.VALIDATION, str(exc))
            if items[from_index].id != item_id:
                return Result.fail(
                    ErrorKind.CONFLICT,
                    "The list changed since it was loaded. Reload and try again.",
                    data=current.data,
                )
            if from_index == to_index:
                # dropped where it was picked up: nothing is written
                return current
            return await self._write(scope_id, updates)
        finally:
            await self.lock.release(key, token)

    async def apply_order(self, scope_id: str | None, ordered_ids: Sequence[str]) -> Result[list[M]]:
        """Persist an explicit full order, given as every id in the scope."""
        key = self._lock_key(scope_id)
        token = await self.lock.acquire(key)
        if token is None:
            return Result.fail(ErrorKind.CONFLICT, "Another reorder is already in progress.")
        try:
            current = await self.fetch(scope_id)
            if not current.success:
                return current
            known = {getattr(r, self.store.pk_name) for r in current.data}
            if len(ordered_ids) != len(set(ordered_ids)) or set(ordered_ids) != known:
                return Result.fail(
                    ErrorKind.VALIDATION,
                    f"Order must list every {self.store.label} in the scope exactly once.",
                )
            updates = [OrderUpdate(id=item_id, order_number=i) for i, item_id in enumerate(ordered_ids)]
            return await self._write(scope_id, updates)
        finally:
            await self.lock.release(key, token)
