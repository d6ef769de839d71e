"""Typed row-lock primitive.

Every transaction locks tables in one fixed order: orders, order items,
inventory allocations, warehouse inventory, shipments, fulfillments.
``RowLocker.acquire`` refuses to go backwards within a transaction, so a
deadlock-prone ordering fails loudly in tests instead of hanging in
production.  Keys are deduplicated and sorted before locking.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Hashable, Iterable
from enum import Enum


class LockTarget(Enum):
    ORDERS = ("orders", 1)
    ORDER_ITEMS = ("order_items", 2)
    INVENTORY_ALLOCATIONS = ("inventory_allocations", 3)
    WAREHOUSE_INVENTORY = ("warehouse_inventory", 4)
    OUTBOUND_SHIPMENTS = ("outbound_shipments", 5)
    ORDER_FULFILLMENTS = ("order_fulfillments", 6)

    def __init__(self, table: str, rank: int) -> None:
        self.table = table
        self.rank = rank


class LockOrderError(RuntimeError):
    """A lock was requested out of the fixed table order."""


class RowLocker(ABC):

    def __init__(self) -> None:
        self._highest: LockTarget | None = None

    def acquire(self, target: LockTarget, keys: Iterable[Hashable]) -> list:
        """Lock rows of ``target`` by primary key; returns the keys that exist.

        Warehouse inventory is keyed by ``(warehouse_id, batch_id)``; every
        other target by its id.
        """
        ordered = sorted(set(keys))
        if not ordered:
            return []
        if self._highest is not None and target.rank < self._highest.rank:
            raise LockOrderError(
                f"Cannot lock {target.table} after {self._highest.table}"
            )
        found = self._lock_rows(target, ordered)
        self._highest = target
        return found

    def reset(self) -> None:
        """Forget acquired locks; called when the transaction ends."""
        self._highest = None

    @abstractmethod
    def _lock_rows(self, target: LockTarget, keys: list) -> list:
        """Lock the rows in key order and return the keys that were found."""
