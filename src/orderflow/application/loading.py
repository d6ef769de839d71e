"""Loading helpers shared by the handlers."""

from __future__ import annotations

from orderflow.domain.exceptions import NotFoundError
from orderflow.domain.model.order import Order
from orderflow.domain.repository.locking import LockTarget
from orderflow.domain.repository.unit_of_work import UnitOfWork


def lock_order(uow: UnitOfWork, order_id: str) -> Order:
    """Lock the order row, then load the order with its items."""
    locked = uow.locks.acquire(LockTarget.ORDERS, [order_id])
    order = uow.orders.get_by_id(order_id) if locked else None
    if order is None:
        raise NotFoundError(f"Order {order_id} not found", context={"order_id": order_id})
    return order
