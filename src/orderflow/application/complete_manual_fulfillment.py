"""Application service: Complete Manual Fulfillment use case.

Terminal transition for shipments that never meet a carrier (store pickup,
personal delivery).  Only statuses move, so the shipment must already have
been confirmed: every allocation on it is ALLOC_COMPLETED and its stock has
left the warehouse.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from orderflow.application.boundary import service_boundary
from orderflow.application.dto import ManualCompletionRequest, ManualCompletionResult
from orderflow.application.loading import lock_order
from orderflow.domain.exceptions import NotFoundError, ValidationError
from orderflow.domain.model.order import items_to_advance
from orderflow.domain.model.shipment import OutboundShipment
from orderflow.domain.model.status import AllocationStatus, StatusEntity, parse_status
from orderflow.domain.repository.locking import LockTarget
from orderflow.domain.repository.unit_of_work import UnitOfWork
from orderflow.domain.service.status_resolver import StatusResolver

logger = logging.getLogger(__name__)

DEFAULT_MANUAL_DELIVERY_METHODS = ("IN_STORE_PICKUP", "PERSONAL_DELIVERY")


class CompleteManualFulfillmentHandler:

    def __init__(
        self,
        uow: UnitOfWork,
        status_resolver: StatusResolver,
        manual_delivery_methods: Iterable[str] = DEFAULT_MANUAL_DELIVERY_METHODS,
    ) -> None:
        self._uow = uow
        self._status_resolver = status_resolver
        self._manual_methods = frozenset(m.upper() for m in manual_delivery_methods)

    def handle(self, request: ManualCompletionRequest, user_id: str) -> ManualCompletionResult:
        with service_boundary(
            "Unable to complete manual fulfillment.",
            "complete_manual_fulfillment",
            shipment_id=request.shipment_id,
            user_id=user_id,
        ):
            with self._uow as uow:
                result = self._complete(uow, request, user_id)
                uow.commit()

        logger.info(
            "Manual fulfillment completed",
            extra={
                "order_id": result.order_id,
                "shipment_id": result.shipment_id,
                "delivery_method": result.delivery_method,
                "user_id": user_id,
            },
        )
        return result

    def _complete(
        self, uow: UnitOfWork, request: ManualCompletionRequest, user_id: str
    ) -> ManualCompletionResult:
        order_target = parse_status(StatusEntity.ORDER, request.order_status)
        shipment_target = parse_status(StatusEntity.SHIPMENT, request.shipment_status)
        fulfillment_target = parse_status(StatusEntity.FULFILLMENT, request.fulfillment_status)

        shipment = self._load_shipment(uow, request.shipment_id)
        self._ensure_manual(shipment)

        order = lock_order(uow, shipment.order_id)
        fulfillments = uow.fulfillments.list_for_shipment(shipment.id)
        if not fulfillments:
            raise NotFoundError(
                f"No fulfillments found for shipment {shipment.id}",
                context={"shipment_id": shipment.id},
            )
        item_ids = sorted({f.order_item_id for f in fulfillments})
        allocation_ids = sorted({aid for f in fulfillments for aid in f.allocation_ids})

        uow.locks.acquire(LockTarget.ORDER_ITEMS, item_ids)
        uow.locks.acquire(LockTarget.INVENTORY_ALLOCATIONS, allocation_ids)
        uow.locks.acquire(LockTarget.OUTBOUND_SHIPMENTS, [shipment.id])
        uow.locks.acquire(LockTarget.ORDER_FULFILLMENTS, [f.id for f in fulfillments])

        # Reload under lock.
        shipment = self._load_shipment(uow, shipment.id)
        self._ensure_manual(shipment)
        fulfillments = uow.fulfillments.list_for_shipment(shipment.id)
        allocations = (
            uow.allocations.list_for_order(order.id, allocation_ids) if allocation_ids else []
        )

        # --- Every status must be able to make its move ------------------------
        order.status.ensure_transition(order_target, f"order {order.order_number}")
        shipped = set(item_ids)
        items = items_to_advance([i for i in order.items if i.id in shipped], order_target)
        # Stock only leaves the warehouse on fulfillment confirmation.
        unshipped = sorted(
            a.id for a in allocations if a.status is not AllocationStatus.COMPLETED
        )
        if unshipped:
            raise ValidationError(
                f"Shipment {shipment.id} has allocations whose stock was not deducted: "
                f"{', '.join(unshipped)}. Confirm the fulfillment before completing it manually",
                context={"shipment_id": shipment.id, "allocation_ids": unshipped},
            )
        shipment.status.ensure_transition(shipment_target, f"shipment {shipment.id}")
        for fulfillment in fulfillments:
            fulfillment.status.ensure_transition(
                fulfillment_target, f"fulfillment {fulfillment.id}"
            )

        # --- Apply -------------------------------------------------------------
        uow.orders.update_status(
            order.id, self._status_resolver.resolve(StatusEntity.ORDER, order_target), user_id
        )
        if items:
            uow.orders.update_item_statuses(
                [item.id for item in items],
                self._status_resolver.resolve(StatusEntity.ORDER_ITEM, order_target),
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

        return ManualCompletionResult(
            order_id=order.id,
            shipment_id=shipment.id,
            delivery_method=shipment.delivery_method_code or "",
            order_status=order_target.value,
            allocation_status=AllocationStatus.COMPLETED.value,
            shipment_status=shipment_target.value,
            fulfillment_status=fulfillment_target.value,
            order_item_ids=item_ids,
            allocation_ids=[a.id for a in allocations],
            fulfillment_ids=[f.id for f in fulfillments],
        )

    @staticmethod
    def _load_shipment(uow: UnitOfWork, shipment_id: str) -> OutboundShipment:
        shipment = uow.shipments.get_by_id(shipment_id)
        if shipment is None:
            raise NotFoundError(
                f"Shipment {shipment_id} not found", context={"shipment_id": shipment_id}
            )
        return shipment

    def _ensure_manual(self, shipment: OutboundShipment) -> None:
        method = (shipment.delivery_method_code or "").upper()
        if method not in self._manual_methods:
            raise ValidationError(
                f"Shipment {shipment.id} uses delivery method "
                f"'{shipment.delivery_method_code or 'none'}', which cannot be completed manually",
                context={"shipment_id": shipment.id, "delivery_method": shipment.delivery_method_code},
            )
