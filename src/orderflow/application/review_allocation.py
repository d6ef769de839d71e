"""Application service: Review Allocation query.

Read-only view of an order's allocations, optionally narrowed to some
warehouses or allocation ids.  Retried on transient store failures.
"""

from __future__ import annotations

import logging

from orderflow.application.boundary import service_boundary
from orderflow.application.dto import AllocationReview, ReviewHeader, ReviewItem
from orderflow.application.retry import retry
from orderflow.domain.exceptions import NotFoundError
from orderflow.domain.repository.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class ReviewAllocationHandler:

    def __init__(
        self,
        uow: UnitOfWork,
        *,
        retry_attempts: int = 3,
        retry_delay_seconds: float = 0.0,
    ) -> None:
        self._uow = uow
        self._retry_attempts = retry_attempts
        self._retry_delay_seconds = retry_delay_seconds

    def handle(
        self,
        order_id: str,
        warehouse_ids: list[str] | None = None,
        allocation_ids: list[str] | None = None,
    ) -> AllocationReview | None:
        with service_boundary(
            "Unable to review inventory allocations.",
            "review_allocation",
            order_id=order_id,
        ):
            review = retry(
                lambda: self._review(order_id, warehouse_ids, allocation_ids),
                attempts=self._retry_attempts,
                delay_seconds=self._retry_delay_seconds,
            )

        if review is None:
            logger.info("No allocations to review", extra={"order_id": order_id})
        return review

    def _review(
        self,
        order_id: str,
        warehouse_ids: list[str] | None,
        allocation_ids: list[str] | None,
    ) -> AllocationReview | None:
        with self._uow as uow:
            order = uow.orders.get_by_id(order_id)
            if order is None:
                raise NotFoundError(
                    f"Order {order_id} not found", context={"order_id": order_id}
                )
            allocations = uow.allocations.list_for_order(order.id, allocation_ids or None)

        if warehouse_ids:
            wanted = set(warehouse_ids)
            allocations = [a for a in allocations if a.warehouse_id in wanted]
        if not allocations:
            return None

        items_by_id = {item.id: item for item in order.items}
        rows = []
        for allocation in sorted(allocations, key=lambda a: (a.order_item_id, a.id)):
            item = items_by_id.get(allocation.order_item_id)
            if item is None:
                continue
            rows.append(
                ReviewItem(
                    order_item_id=item.id,
                    sku_id=item.sku_id,
                    packaging_material_id=item.packaging_material_id,
                    quantity_ordered=item.quantity_ordered,
                    item_status=item.status.value,
                    allocation_id=allocation.id,
                    warehouse_id=allocation.warehouse_id,
                    batch_id=allocation.batch_id,
                    allocated_quantity=allocation.allocated_quantity,
                    allocation_status=allocation.status.value,
                )
            )

        return AllocationReview(
            header=ReviewHeader(
                order_id=order.id,
                order_number=order.order_number,
                category=order.category.value,
                status=order.status.value,
                note=order.note,
            ),
            items=rows,
        )
