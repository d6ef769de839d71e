"""Application service: Fulfill Outbound use case.

Creates one shipment from a chosen set of confirmed allocations: a shipment
row, one fulfillment line per order item (merged into an existing line for
the same item and shipment), and batch links for traceability.  Stock
quantities are left alone; they only move when the shipment is confirmed.
"""

from __future__ import annotations

import logging

from orderflow.application.boundary import service_boundary
from orderflow.application.dto import (
    FulfillmentLineDTO,
    FulfillmentRequest,
    FulfillmentResult,
    ShipmentBatchDTO,
)
from orderflow.application.loading import lock_order
from orderflow.domain.exceptions import ValidationError
from orderflow.domain.model.order import items_to_advance
from orderflow.domain.model.shipment import NewShipment
from orderflow.domain.model.status import (
    AllocationStatus,
    FulfillmentStatus,
    OrderStatus,
    ShipmentStatus,
    StatusEntity,
)
from orderflow.domain.repository.locking import LockTarget
from orderflow.domain.repository.unit_of_work import UnitOfWork
from orderflow.domain.service.coverage import is_fully_allocated
from orderflow.domain.service.merge_policy import FULFILLMENT_MERGE_POLICY
from orderflow.domain.service.shipment_planning import (
    assert_allocations_valid,
    assert_single_warehouse,
    build_fulfillment_drafts,
    build_shipment_batches,
)
from orderflow.domain.service.status_resolver import StatusResolver

logger = logging.getLogger(__name__)


class FulfillOutboundHandler:

    def __init__(self, uow: UnitOfWork, status_resolver: StatusResolver) -> None:
        self._uow = uow
        self._status_resolver = status_resolver

    def handle(self, request: FulfillmentRequest, user_id: str) -> FulfillmentResult:
        with service_boundary(
            "Unable to create outbound shipment.",
            "fulfill_outbound",
            order_id=request.order_id,
            user_id=user_id,
        ):
            with self._uow as uow:
                result = self._fulfill(uow, request, user_id)
                uow.commit()

        logger.info(
            "Outbound shipment created",
            extra={
                "order_id": result.order_id,
                "shipment_id": result.shipment_id,
                "user_id": user_id,
                "allocation_count": len(result.allocation_ids),
            },
        )
        return result

    def _fulfill(
        self, uow: UnitOfWork, request: FulfillmentRequest, user_id: str
    ) -> FulfillmentResult:
        if not request.allocation_ids:
            raise ValidationError("At least one allocation id is required to fulfill an order")

        order = lock_order(uow, request.order_id)
        uow.locks.acquire(LockTarget.ORDER_ITEMS, [item.id for item in order.items])

        # Coverage is judged on every allocation of the order, so all of them
        # are locked before it is checked.
        known_ids = [a.id for a in uow.allocations.list_for_order(order.id)]
        uow.locks.acquire(
            LockTarget.INVENTORY_ALLOCATIONS, [*known_ids, *request.allocation_ids]
        )
        if not is_fully_allocated(order.items, uow.allocations.list_for_order(order.id)):
            raise ValidationError(
                "Order is not fully allocated. Fulfillment is only allowed when all "
                "items are fully allocated.",
                context={"order_id": order.id},
            )

        selected = uow.allocations.list_for_order(order.id, request.allocation_ids)
        assert_allocations_valid(selected, request.allocation_ids)
        warehouse_id = assert_single_warehouse(selected)
        for allocation in selected:
            allocation.status.ensure_transition(
                AllocationStatus.FULFILLING, f"allocation {allocation.id}"
            )

        # An order shipped from several warehouses is already PROCESSING after
        # its first shipment.
        advance_order = order.status is not OrderStatus.PROCESSING
        if advance_order:
            order.status.ensure_transition(OrderStatus.PROCESSING, f"order {order.order_number}")
        shipped_item_ids = {a.order_item_id for a in selected}
        items = items_to_advance(
            [item for item in order.items if item.id in shipped_item_ids],
            OrderStatus.PROCESSING,
        )

        delivery_method_id = order.shipping_delivery_method_id()
        shipment_id = uow.shipments.add(
            NewShipment(
                order_id=order.id,
                warehouse_id=warehouse_id,
                delivery_method_id=delivery_method_id,
                status_id=self._status_resolver.resolve(
                    StatusEntity.SHIPMENT, ShipmentStatus.PENDING
                ),
                notes=request.shipment_notes,
                created_by=user_id,
            )
        )

        drafts = build_fulfillment_drafts(
            selected,
            shipment_id=shipment_id,
            status_id=self._status_resolver.resolve(
                StatusEntity.FULFILLMENT, FulfillmentStatus.PENDING
            ),
            user_id=user_id,
            notes=request.fulfillment_notes,
        )
        fulfillments = uow.fulfillments.upsert_many(drafts, FULFILLMENT_MERGE_POLICY)
        fulfillment_ids = {f.order_item_id: f.id for f in fulfillments}

        batches = build_shipment_batches(
            selected,
            shipment_id=shipment_id,
            fulfillment_ids=fulfillment_ids,
            user_id=user_id,
            notes=request.shipment_batch_note,
        )
        uow.shipments.add_batches(batches)

        if advance_order:
            order.advance_to(OrderStatus.PROCESSING)
            uow.orders.update_status(
                order.id,
                self._status_resolver.resolve(StatusEntity.ORDER, OrderStatus.PROCESSING),
                user_id,
            )
        if items:
            uow.orders.update_item_statuses(
                [item.id for item in items],
                self._status_resolver.resolve(StatusEntity.ORDER_ITEM, OrderStatus.PROCESSING),
                user_id,
            )
        allocation_ids = [a.id for a in selected]
        uow.allocations.update_status(
            allocation_ids,
            self._status_resolver.resolve(StatusEntity.ALLOCATION, AllocationStatus.FULFILLING),
            user_id,
        )

        return FulfillmentResult(
            order_id=order.id,
            shipment_id=shipment_id,
            warehouse_id=warehouse_id,
            delivery_method_id=delivery_method_id,
            order_status=order.status.value,
            allocation_ids=allocation_ids,
            allocation_status=AllocationStatus.FULFILLING.value,
            fulfillments=[
                FulfillmentLineDTO(
                    fulfillment_id=f.id,
                    order_item_id=f.order_item_id,
                    quantity_fulfilled=f.quantity_fulfilled,
                    status=f.status.value,
                    allocation_ids=list(f.allocation_ids),
                )
                for f in fulfillments
            ],
            shipment_batches=[
                ShipmentBatchDTO(
                    fulfillment_id=b.fulfillment_id,
                    warehouse_id=b.warehouse_id,
                    batch_id=b.batch_id,
                    quantity_shipped=b.quantity_shipped,
                )
                for b in batches
            ],
        )
