"""SQL-backed Order repository."""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from orderflow.domain.model.order import Order, OrderCategory, OrderItem
from orderflow.domain.model.status import OrderStatus
from orderflow.domain.repository.order_repository import OrderRepository
from orderflow.infrastructure.persistence.errors import database_errors
from orderflow.infrastructure.persistence.tables import (
    OrderItemRow,
    OrderRow,
    StatusRow,
    utcnow,
)


class SqlOrderRepository(OrderRepository):

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_by_id(self, order_id: str) -> Order | None:
        with database_errors("load_order", order_id=order_id):
            header = self._session.execute(
                select(OrderRow, StatusRow.code)
                .join(StatusRow, StatusRow.id == OrderRow.status_id)
                .where(OrderRow.id == order_id)
                .execution_options(populate_existing=True)
            ).first()
            if header is None:
                return None
            row, code = header

            items = self._session.execute(
                select(OrderItemRow, StatusRow.code)
                .join(StatusRow, StatusRow.id == OrderItemRow.status_id)
                .where(OrderItemRow.order_id == order_id)
                .order_by(OrderItemRow.id)
                .execution_options(populate_existing=True)
            ).all()

        return Order(
            id=row.id,
            order_number=row.order_number,
            category=OrderCategory(row.category),
            status=OrderStatus(code),
            note=row.note,
            delivery_method_id=row.delivery_method_id,
            items=[
                OrderItem(
                    id=item.id,
                    order_id=item.order_id,
                    quantity_ordered=item.quantity_ordered,
                    status=OrderStatus(item_code),
                    sku_id=item.sku_id,
                    packaging_material_id=item.packaging_material_id,
                )
                for item, item_code in items
            ],
        )

    def update_status(self, order_id: str, status_id: str, user_id: str) -> None:
        with database_errors("update_order_status", order_id=order_id):
            self._session.execute(
                update(OrderRow)
                .where(OrderRow.id == order_id)
                .values(status_id=status_id, updated_at=utcnow(), updated_by=user_id)
                .execution_options(synchronize_session=False)
            )

    def update_item_statuses(self, item_ids: list[str], status_id: str, user_id: str) -> int:
        if not item_ids:
            return 0
        with database_errors("update_order_item_status", count=len(item_ids)):
            result = self._session.execute(
                update(OrderItemRow)
                .where(OrderItemRow.id.in_(item_ids))
                .values(status_id=status_id, updated_at=utcnow(), updated_by=user_id)
                .execution_options(synchronize_session=False)
            )
        return result.rowcount
