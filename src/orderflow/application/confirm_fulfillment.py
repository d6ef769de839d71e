"""Application service: Confirm Fulfillment use case.

Finalizes the one open shipment of an order: shipped quantities leave both
on-hand and reserved stock, the order, its shipped items, their
allocations, the shipment and its fulfillment lines move to the requested
statuses, and one "fulfilled" log entry is written per allocation.

A second confirmation of the same shipment fails on the status checks
before any stock is touched.
"""

from __future__ import annotations

import logging

from orderflow.application.boundary import service_boundary
from orderflow.application.dto import (
    FulfillmentConfirmationRequest,
    FulfillmentConfirmationResult,
    WarehouseUpdateDTO,
)
from orderflow.application.loading import lock_order
from orderflow.domain.exceptions import DatabaseError, NotFoundError, ValidationError
from orderflow.domain.model.order import items_to_advance
from orderflow.domain.model.status import InventoryStatus, StatusEntity, parse_status
from orderflow.domain.repository.locking import LockTarget
from orderflow.domain.repository.unit_of_work import UnitOfWork
from orderflow.domain.service.inventory_adjustment import (
    deduct_allocations,
    fulfillment_log_entries,
    index_inventory,
    to_updates,
)
from orderflow.domain.service.status_resolver import StatusResolver

logger = logging.getLogger(__name__)


class ConfirmFulfillmentHandler:

    def __init__(self, uow: UnitOfWork, status_resolver: StatusResolver) -> None:
        self._uow = uow
        self._status_resolver = status_resolver

    def handle(
        self, request: FulfillmentConfirmationRequest, user_id: str
    ) -> FulfillmentConfirmationResult:
        with service_boundary(
            "Unable to adjust inventory for fulfillment.",
            "confirm_fulfillment",
            order_id=request.order_id,
            user_id=user_id,
        ):
            with self._uow as uow:
                result = self._confirm(uow, request, user_id)
                uow.commit()

        logger.info(
            "Inventory successfully adjusted for fulfillment",
            extra={
                "order_id": result.order_id,
                "shipment_id": result.shipment_id,
                "user_id": user_id,
                "log_count": len(result.log_ids),
            },
        )
        return result

    def _confirm(
        self, uow: UnitOfWork, request: FulfillmentConfirmationRequest, user_id: str
    ) -> FulfillmentConfirmationResult:
        order_target = parse_status(StatusEntity.ORDER, request.order_status)
        allocation_target = parse_status(StatusEntity.ALLOCATION, request.allocation_status)
        shipment_target = parse_status(StatusEntity.SHIPMENT, request.shipment_status)
        fulfillment_target = parse_status(StatusEntity.FULFILLMENT, request.fulfillment_status)

        order = lock_order(uow, request.order_id)

        fulfillments = uow.fulfillments.list_for_order(order.id)
        if not fulfillments:
            raise NotFoundError(
                f"No fulfillments found for order {order.order_number}",
                context={"order_id": order.id},
            )
        shipment_ids = sorted({f.shipment_id for f in fulfillments})
        if len(shipment_ids) != 1:
            raise ValidationError(
                f"Order {order.order_number} has fulfillments in several shipments "
                f"({', '.join(shipment_ids)}); confirm them one shipment at a time",
                context={"order_id": order.id, "shipment_ids": shipment_ids},
            )
        shipment_id = shipment_ids[0]

        item_ids = sorted({f.order_item_id for f in fulfillments})
        shipped_item_ids = set(item_ids)
        allocation_ids = sorted({aid for f in fulfillments for aid in f.allocation_ids})
        if not allocation_ids:
            raise ValidationError(
                f"Fulfillments of order {order.order_number} reference no allocations",
                context={"order_id": order.id, "shipment_id": shipment_id},
            )

        uow.locks.acquire(LockTarget.ORDER_ITEMS, item_ids)
        uow.locks.acquire(LockTarget.INVENTORY_ALLOCATIONS, allocation_ids)
        allocations = uow.allocations.list_for_order(order.id, allocation_ids)
        if len(allocations) != len(allocation_ids):
            raise NotFoundError(
                "Some allocations referenced by the shipment no longer exist",
                context={"order_id": order.id, "allocation_ids": allocation_ids},
            )

        keys = sorted({a.key for a in allocations})
        uow.locks.acquire(LockTarget.WAREHOUSE_INVENTORY, keys)
        uow.locks.acquire(LockTarget.OUTBOUND_SHIPMENTS, [shipment_id])
        uow.locks.acquire(LockTarget.ORDER_FULFILLMENTS, [f.id for f in fulfillments])

        shipment = uow.shipments.get_by_id(shipment_id)
        if shipment is None:
            raise NotFoundError(
                f"Shipment {shipment_id} not found",
                context={"shipment_id": shipment_id},
            )
        fulfillments = uow.fulfillments.list_for_shipment(shipment_id)

        # --- Every status must be able to make its move ------------------------
        order.status.ensure_transition(order_target, f"order {order.order_number}")
        items = items_to_advance(
            [item for item in order.items if item.id in shipped_item_ids], order_target
        )
        for allocation in allocations:
            allocation.status.ensure_transition(allocation_target, f"allocation {allocation.id}")
        shipment.status.ensure_transition(shipment_target, f"shipment {shipment.id}")
        for fulfillment in fulfillments:
            fulfillment.status.ensure_transition(
                fulfillment_target, f"fulfillment {fulfillment.id}"
            )

        # --- Stock -------------------------------------------------------------
        rows_by_key = index_inventory(uow.inventory.get_by_keys(keys))
        movements = deduct_allocations(allocations, rows_by_key)
        rows = [rows_by_key[key] for key in keys]
        inventory_status_ids = {
            status: self._status_resolver.resolve(StatusEntity.INVENTORY, status)
            for status in InventoryStatus
        }
        updated = uow.inventory.apply_updates(to_updates(rows, inventory_status_ids), user_id)
        if len(updated) != len(rows):
            raise DatabaseError(
                "Warehouse inventory update was not applied to every batch",
                context={"expected": len(rows), "updated": len(updated)},
            )

        # --- Statuses ----------------------------------------------------------
        order_status_id = self._status_resolver.resolve(StatusEntity.ORDER, order_target)
        uow.orders.update_status(order.id, order_status_id, user_id)
        if items:
            uow.orders.update_item_statuses(
                [item.id for item in items],
                self._status_resolver.resolve(StatusEntity.ORDER_ITEM, order_target),
                user_id,
            )
        uow.allocations.update_status(
            [a.id for a in allocations],
            self._status_resolver.resolve(StatusEntity.ALLOCATION, allocation_target),
            user_id,
        )
        uow.shipments.update_status(
            [shipment.id],
            self._status_resolver.resolve(StatusEntity.SHIPMENT, shipment_target),
            user_id,
        )
        uow.fulfillments.update_status(
            [f.id for f in fulfillments],
            self._status_resolver.resolve(StatusEntity.FULFILLMENT, fulfillment_target),
            user_id,
        )

        # --- Audit -------------------------------------------------------------
        entries = fulfillment_log_entries(
            movements,
            order_id=order.id,
            order_number=order.order_number,
            shipment_id=shipment.id,
            fulfillment_ids={f.order_item_id: f.id for f in fulfillments},
            status_ids=inventory_status_ids,
            user_id=user_id,
        )
        log_ids = uow.activity_logs.append_many(entries)

        return FulfillmentConfirmationResult(
            order_id=order.id,
            order_number=order.order_number,
            shipment_id=shipment.id,
            order_status=order_target.value,
            allocation_status=allocation_target.value,
            shipment_status=shipment_target.value,
            fulfillment_status=fulfillment_target.value,
            order_item_ids=item_ids,
            allocation_ids=[a.id for a in allocations],
            fulfillment_ids=[f.id for f in fulfillments],
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
