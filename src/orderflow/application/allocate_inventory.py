"""Application service: Allocate Inventory use case.

Locks the order, its items and every candidate warehouse batch, then lets
the batch allocation strategy decide which batches feed which items.  One
allocation row is written per (item, batch) assignment and the order moves
to ALLOCATING.  Running it again on a partially allocated or backordered
order only allocates what is still missing.  Reserved quantities are not
touched here; that happens when the allocations are confirmed.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date

from orderflow.application.boundary import service_boundary
from orderflow.application.dto import AllocationResult
from orderflow.application.loading import lock_order
from orderflow.domain.exceptions import ConflictError, NotFoundError, ValidationError
from orderflow.domain.model.allocation import NewAllocation
from orderflow.domain.model.inventory import BatchCandidate
from orderflow.domain.model.order import items_to_advance
from orderflow.domain.model.status import AllocationStatus, OrderStatus, StatusEntity
from orderflow.domain.repository.locking import LockTarget
from orderflow.domain.repository.unit_of_work import UnitOfWork
from orderflow.domain.service.batch_allocation import (
    AllocationStrategy,
    ItemDemand,
    allocate_batches,
)
from orderflow.domain.service.coverage import allocated_by_item
from orderflow.domain.service.inventory_adjustment import index_inventory
from orderflow.domain.service.status_resolver import StatusResolver

logger = logging.getLogger(__name__)


class AllocateInventoryHandler:

    def __init__(
        self,
        uow: UnitOfWork,
        status_resolver: StatusResolver,
        *,
        exclude_expired: bool = False,
        today: date | None = None,
    ) -> None:
        self._uow = uow
        self._status_resolver = status_resolver
        self._exclude_expired = exclude_expired
        self._today = today

    def handle(
        self,
        user_id: str,
        order_id: str,
        strategy: str | AllocationStrategy = AllocationStrategy.FEFO,
        warehouse_id: str | None = None,
    ) -> AllocationResult:
        with service_boundary(
            "Unable to allocate inventory for order.",
            "allocate_inventory",
            order_id=order_id,
            user_id=user_id,
        ):
            chosen = AllocationStrategy.parse(strategy)
            with self._uow as uow:
                result = self._allocate(uow, user_id, order_id, chosen, warehouse_id)
                uow.commit()

        logger.info(
            "Inventory allocated",
            extra={
                "order_id": order_id,
                "user_id": user_id,
                "strategy": chosen.value,
                "allocation_count": len(result.allocation_ids),
            },
        )
        return result

    def _allocate(
        self,
        uow: UnitOfWork,
        user_id: str,
        order_id: str,
        strategy: AllocationStrategy,
        warehouse_id: str | None,
    ) -> AllocationResult:
        order = lock_order(uow, order_id)
        # A short order is already ALLOCATING and is allocated again in place.
        advance_order = order.status is not OrderStatus.ALLOCATING
        if advance_order:
            order.status.ensure_transition(OrderStatus.ALLOCATING, f"order {order.order_number}")

        if not order.items:
            raise NotFoundError(
                f"No items found for order {order.order_number}",
                context={"order_id": order.id},
            )
        uow.locks.acquire(LockTarget.ORDER_ITEMS, [item.id for item in order.items])

        ineligible = order.ineligible_items()
        if ineligible:
            ids = [item.id for item in ineligible]
            raise ValidationError(
                f"Order items are not eligible for allocation: {', '.join(ids)}",
                context={"order_id": order.id, "order_item_ids": ids},
            )

        # Demand is what is still uncovered by earlier allocations.
        already = allocated_by_item(uow.allocations.list_for_order(order.id))
        demands = [
            ItemDemand(
                order_item_id=item.id,
                product_key=item.product_key,
                quantity=max(0, item.quantity_ordered - already.get(item.id, 0)),
            )
            for item in order.items
        ]
        if not any(d.quantity > 0 for d in demands):
            raise ConflictError(
                f"Order {order.order_number} is already fully allocated",
                context={"order_id": order.id},
            )

        candidates = self._locked_candidates(
            uow, {d.product_key for d in demands if d.quantity > 0}, warehouse_id
        )
        plans = allocate_batches(
            demands,
            candidates,
            strategy,
            exclude_expired=self._exclude_expired,
            today=self._today,
        )

        pending_id = self._status_resolver.resolve(
            StatusEntity.ALLOCATION, AllocationStatus.PENDING
        )
        new_rows = [
            NewAllocation(
                order_id=order.id,
                order_item_id=assignment.order_item_id,
                warehouse_id=assignment.warehouse_id,
                batch_id=assignment.batch_id,
                allocated_quantity=assignment.quantity,
                status_id=pending_id,
                created_by=user_id,
            )
            for plan in plans
            for assignment in plan.assignments
        ]
        allocation_ids = uow.allocations.add_many(new_rows) if new_rows else []

        short = {d.order_item_id for d in demands if d.quantity > 0}
        items = items_to_advance(
            [item for item in order.items if item.id in short], OrderStatus.ALLOCATING
        )
        if advance_order:
            order.advance_to(OrderStatus.ALLOCATING)
            uow.orders.update_status(
                order.id,
                self._status_resolver.resolve(StatusEntity.ORDER, OrderStatus.ALLOCATING),
                user_id,
            )
        if items:
            uow.orders.update_item_statuses(
                [item.id for item in items],
                self._status_resolver.resolve(StatusEntity.ORDER_ITEM, OrderStatus.ALLOCATING),
                user_id,
            )
            for item in items:
                item.status = OrderStatus.ALLOCATING

        return AllocationResult(order_id=order.id, allocation_ids=allocation_ids)

    @staticmethod
    def _locked_candidates(
        uow: UnitOfWork, product_keys: set[str], warehouse_id: str | None
    ) -> list[BatchCandidate]:
        """Lock candidate batches and recompute their availability under the lock.

        Allocations not yet confirmed do not show in ``reserved_quantity``, so
        a batch offers only what neither the reservation nor the pending
        allocations already claim.
        """
        if not product_keys:
            return []
        candidates = uow.inventory.find_candidates(product_keys, warehouse_id)
        keys = [c.key for c in candidates]
        uow.locks.acquire(LockTarget.WAREHOUSE_INVENTORY, keys)

        rows = index_inventory(uow.inventory.get_by_keys(keys))
        claimed = uow.allocations.reserving_totals(keys)
        fresh: list[BatchCandidate] = []
        for candidate in candidates:
            row = rows.get(candidate.key)
            if row is None:
                continue
            held = max(row.reserved_quantity, claimed.get(candidate.key, 0))
            fresh.append(
                replace(
                    candidate,
                    available_quantity=max(0, row.warehouse_quantity - held),
                )
            )
        return fresh
