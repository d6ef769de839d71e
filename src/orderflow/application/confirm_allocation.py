"""Application service: Confirm Allocation use case.

Compares what was allocated with what was ordered, item by item:
  matched   — item ALLOCATED, its allocations CONFIRMED
  partial   — item PARTIALLY_ALLOCATED, its allocations PARTIAL
  unmatched — item BACKORDERED
The order itself only moves to ALLOCATED when every item is matched.  A
short order can be allocated and confirmed again; only its pending and
partial allocations change status in that later round.

Then every touched batch gets its reserved quantity recomputed from the
allocations still holding stock, and one "reserve" log entry per batch is
written.
"""

from __future__ import annotations

import logging
from collections import defaultdict

from orderflow.application.boundary import service_boundary
from orderflow.application.dto import (
    AllocationConfirmationResult,
    ItemCoverageDTO,
    WarehouseUpdateDTO,
)
from orderflow.application.loading import lock_order
from orderflow.domain.exceptions import DatabaseError, NotFoundError
from orderflow.domain.model.inventory import WarehouseBatchKey
from orderflow.domain.model.order import OrderItem, items_to_advance
from orderflow.domain.model.status import (
    AllocationStatus,
    InventoryStatus,
    OrderStatus,
    StatusEntity,
)
from orderflow.domain.repository.locking import LockTarget
from orderflow.domain.repository.unit_of_work import UnitOfWork
from orderflow.domain.service.coverage import assess_coverage
from orderflow.domain.service.inventory_adjustment import (
    assert_inventory_coverage,
    index_inventory,
    recompute_reservations,
    reservation_log_entries,
    to_updates,
)
from orderflow.domain.service.status_resolver import StatusResolver

logger = logging.getLogger(__name__)


class ConfirmAllocationHandler:

    def __init__(self, uow: UnitOfWork, status_resolver: StatusResolver) -> None:
        self._uow = uow
        self._status_resolver = status_resolver

    def handle(self, user_id: str, order_id: str) -> AllocationConfirmationResult:
        with service_boundary(
            "Unable to confirm inventory allocation.",
            "confirm_allocation",
            order_id=order_id,
            user_id=user_id,
        ):
            with self._uow as uow:
                result = self._confirm(uow, user_id, order_id)
                uow.commit()

        logger.info(
            "Inventory allocation confirmed",
            extra={
                "order_id": order_id,
                "user_id": user_id,
                "order_advanced": result.order_advanced,
                "confirmed": len(result.confirmed_allocation_ids),
                "partial": len(result.partial_allocation_ids),
            },
        )
        return result

    def _confirm(
        self, uow: UnitOfWork, user_id: str, order_id: str
    ) -> AllocationConfirmationResult:
        order = lock_order(uow, order_id)
        if not order.items:
            raise NotFoundError(
                f"No items found for order {order.order_number}",
                context={"order_id": order.id},
            )
        # Confirmation is over once the order is ALLOCATED.
        order.status.ensure_transition(OrderStatus.ALLOCATED, f"order {order.order_number}")
        uow.locks.acquire(LockTarget.ORDER_ITEMS, [item.id for item in order.items])

        active = [
            a for a in uow.allocations.list_for_order(order.id)
            if a.status is not AllocationStatus.CANCELED
        ]
        uow.locks.acquire(LockTarget.INVENTORY_ALLOCATIONS, [a.id for a in active])
        # Allocations confirmed in an earlier round count towards coverage
        # but keep their status.
        allocations = [
            a for a in active
            if a.status in (AllocationStatus.PENDING, AllocationStatus.PARTIAL)
        ]
        for allocation in active:
            if allocation.status is not AllocationStatus.CONFIRMED:
                allocation.status.ensure_transition(
                    AllocationStatus.CONFIRMED, f"allocation {allocation.id}"
                )

        # --- Items and order ---------------------------------------------------
        coverage = assess_coverage(order.items, active)
        items_by_id = {item.id: item for item in order.items}
        by_status: dict[OrderStatus, list[OrderItem]] = defaultdict(list)
        for entry in coverage:
            by_status[entry.outcome.item_status].append(items_by_id[entry.order_item_id])

        for status, items in by_status.items():
            changed = items_to_advance(items, status)
            if not changed:
                continue
            uow.orders.update_item_statuses(
                [item.id for item in changed],
                self._status_resolver.resolve(StatusEntity.ORDER_ITEM, status),
                user_id,
            )
            for item in changed:
                item.status = status

        order_advanced = all(entry.is_matched for entry in coverage)
        if order_advanced:
            order.advance_to(OrderStatus.ALLOCATED)
            uow.orders.update_status(
                order.id,
                self._status_resolver.resolve(StatusEntity.ORDER, OrderStatus.ALLOCATED),
                user_id,
            )

        # --- Warehouse reservations --------------------------------------------
        keys = sorted({a.key for a in allocations})
        uow.locks.acquire(LockTarget.WAREHOUSE_INVENTORY, keys)
        rows_by_key = index_inventory(uow.inventory.get_by_keys(keys))
        assert_inventory_coverage(keys, rows_by_key)
        rows = [rows_by_key[key] for key in keys]

        movements = recompute_reservations(rows, uow.allocations.reserving_totals(keys))
        inventory_status_ids = {
            status: self._status_resolver.resolve(StatusEntity.INVENTORY, status)
            for status in InventoryStatus
        }
        updated = uow.inventory.apply_updates(to_updates(rows, inventory_status_ids), user_id)
        if len(updated) != len(rows):
            raise DatabaseError(
                "Warehouse inventory reservation update was not applied to every batch",
                context={"expected": len(rows), "updated": len(updated)},
            )

        # --- Allocation statuses -----------------------------------------------
        matched_items = {entry.order_item_id for entry in coverage if entry.is_matched}
        confirmed_ids = [a.id for a in allocations if a.order_item_id in matched_items]
        partial_ids = [a.id for a in allocations if a.order_item_id not in matched_items]
        for ids, status in (
            (confirmed_ids, AllocationStatus.CONFIRMED),
            (partial_ids, AllocationStatus.PARTIAL),
        ):
            if ids:
                uow.allocations.update_status(
                    ids,
                    self._status_resolver.resolve(StatusEntity.ALLOCATION, status),
                    user_id,
                )

        # --- Audit -------------------------------------------------------------
        allocation_ids_by_key: dict[WarehouseBatchKey, list[str]] = defaultdict(list)
        for allocation in allocations:
            allocation_ids_by_key[allocation.key].append(allocation.id)
        entries = reservation_log_entries(
            movements,
            order_id=order.id,
            order_number=order.order_number,
            allocation_ids=allocation_ids_by_key,
            status_ids=inventory_status_ids,
            user_id=user_id,
        )
        log_ids = uow.activity_logs.append_many(entries) if entries else []

        return AllocationConfirmationResult(
            order_id=order.id,
            order_status=order.status.value,
            order_advanced=order_advanced,
            items=[
                ItemCoverageDTO(
                    order_item_id=entry.order_item_id,
                    quantity_ordered=entry.quantity_ordered,
                    allocated_quantity=entry.allocated_quantity,
                    outcome=entry.outcome.value,
                    status=entry.outcome.item_status.value,
                )
                for entry in coverage
            ],
            confirmed_allocation_ids=confirmed_ids,
            partial_allocation_ids=partial_ids,
            warehouse_updates=[
                WarehouseUpdateDTO(
                    warehouse_inventory_id=row.id,
                    warehouse_id=row.warehouse_id,
                    batch_id=row.batch_id,
                    warehouse_quantity=row.warehouse_quantity,
                    reserved_quantity=row.reserved_quantity,
                    status=row.status.value,
                )
                for row in rows
            ],
            log_ids=log_ids,
        )
