"""SQL-backed outbound shipment repository."""

from __future__ import annotations

from sqlalchemy import insert, or_, select, update
from sqlalchemy.orm import Session

from orderflow.domain.model.listing import PageRequest, ShipmentFilters, ShipmentRow
from orderflow.domain.model.shipment import NewShipment, OutboundShipment, ShipmentBatch
from orderflow.domain.model.status import ShipmentStatus
from orderflow.domain.repository.shipment_repository import ShipmentRepository
from orderflow.infrastructure.persistence.errors import database_errors
from orderflow.infrastructure.persistence.queries import paginate
from orderflow.infrastructure.persistence.tables import (
    DeliveryMethodRow,
    OrderRow,
    OutboundShipmentRow,
    ShipmentBatchRow,
    StatusRow,
    new_id,
    utcnow,
)

_SORT_COLUMNS = {
    "created_at": OutboundShipmentRow.created_at,
    "order_number": OrderRow.order_number,
    "status": StatusRow.code,
    "warehouse_id": OutboundShipmentRow.warehouse_id,
    "delivery_method": DeliveryMethodRow.code,
}


class SqlShipmentRepository(ShipmentRepository):

    def __init__(self, session: Session) -> None:
        self._session = session

    def add(self, shipment: NewShipment) -> str:
        shipment_id = new_id()
        with database_errors("insert_shipment", order_id=shipment.order_id):
            self._session.execute(
                insert(OutboundShipmentRow).values(
                    id=shipment_id,
                    order_id=shipment.order_id,
                    warehouse_id=shipment.warehouse_id,
                    delivery_method_id=shipment.delivery_method_id,
                    status_id=shipment.status_id,
                    notes=shipment.notes,
                    created_at=utcnow(),
                    created_by=shipment.created_by,
                )
            )
        return shipment_id

    def get_by_id(self, shipment_id: str) -> OutboundShipment | None:
        stmt = (
            select(
                OutboundShipmentRow.id,
                OutboundShipmentRow.order_id,
                OutboundShipmentRow.warehouse_id,
                OutboundShipmentRow.delivery_method_id,
                OutboundShipmentRow.notes,
                OutboundShipmentRow.created_by,
                OutboundShipmentRow.created_at,
                StatusRow.code.label("status"),
                DeliveryMethodRow.code.label("delivery_method_code"),
            )
            .join(StatusRow, StatusRow.id == OutboundShipmentRow.status_id)
            .outerjoin(DeliveryMethodRow, DeliveryMethodRow.id == OutboundShipmentRow.delivery_method_id)
            .where(OutboundShipmentRow.id == shipment_id)
        )
        with database_errors("load_shipment", shipment_id=shipment_id):
            row = self._session.execute(stmt).first()
        if row is None:
            return None
        return OutboundShipment(
            id=row.id,
            order_id=row.order_id,
            warehouse_id=row.warehouse_id,
            status=ShipmentStatus(row.status),
            delivery_method_id=row.delivery_method_id,
            delivery_method_code=row.delivery_method_code,
            notes=row.notes,
            created_by=row.created_by,
            created_at=row.created_at,
        )

    def update_status(self, shipment_ids: list[str], status_id: str, user_id: str) -> int:
        if not shipment_ids:
            return 0
        with database_errors("update_shipment_status", count=len(shipment_ids)):
            result = self._session.execute(
                update(OutboundShipmentRow)
                .where(OutboundShipmentRow.id.in_(shipment_ids))
                .values(status_id=status_id, updated_at=utcnow(), updated_by=user_id)
                .execution_options(synchronize_session=False)
            )
        return result.rowcount

    def add_batches(self, batches: list[ShipmentBatch]) -> int:
        if not batches:
            return 0
        now = utcnow()
        rows = [
            {
                "id": new_id(),
                "shipment_id": b.shipment_id,
                "fulfillment_id": b.fulfillment_id,
                "warehouse_id": b.warehouse_id,
                "batch_id": b.batch_id,
                "quantity_shipped": b.quantity_shipped,
                "notes": b.notes,
                "created_at": now,
                "created_by": b.created_by,
            }
            for b in batches
        ]
        with database_errors("insert_shipment_batches", shipment_id=batches[0].shipment_id):
            self._session.execute(insert(ShipmentBatchRow), rows)
        return len(rows)

    def list_batches(self, shipment_id: str) -> list[ShipmentBatch]:
        stmt = (
            select(
                ShipmentBatchRow.shipment_id,
                ShipmentBatchRow.fulfillment_id,
                ShipmentBatchRow.warehouse_id,
                ShipmentBatchRow.batch_id,
                ShipmentBatchRow.quantity_shipped,
                ShipmentBatchRow.notes,
                ShipmentBatchRow.created_by,
            )
            .where(ShipmentBatchRow.shipment_id == shipment_id)
            .order_by(ShipmentBatchRow.created_at, ShipmentBatchRow.id)
        )
        with database_errors("load_shipment_batches", shipment_id=shipment_id):
            rows = self._session.execute(stmt).all()
        return [ShipmentBatch(**row._asdict()) for row in rows]

    def search(
        self, filters: ShipmentFilters, page: PageRequest
    ) -> tuple[list[ShipmentRow], int]:
        stmt = (
            select(
                OutboundShipmentRow.id.label("shipment_id"),
                OutboundShipmentRow.order_id,
                OrderRow.order_number,
                OutboundShipmentRow.warehouse_id,
                OutboundShipmentRow.delivery_method_id,
                DeliveryMethodRow.code.label("delivery_method"),
                StatusRow.code.label("status"),
                OutboundShipmentRow.notes,
                OutboundShipmentRow.created_by,
                OutboundShipmentRow.created_at,
            )
            .join(OrderRow, OrderRow.id == OutboundShipmentRow.order_id)
            .join(StatusRow, StatusRow.id == OutboundShipmentRow.status_id)
            .outerjoin(DeliveryMethodRow, DeliveryMethodRow.id == OutboundShipmentRow.delivery_method_id)
        )
        if filters.status_codes:
            stmt = stmt.where(StatusRow.code.in_(filters.status_codes))
        if filters.warehouse_ids:
            stmt = stmt.where(OutboundShipmentRow.warehouse_id.in_(filters.warehouse_ids))
        if filters.delivery_method_ids:
            stmt = stmt.where(
                OutboundShipmentRow.delivery_method_id.in_(filters.delivery_method_ids)
            )
        if filters.order_id:
            stmt = stmt.where(OutboundShipmentRow.order_id == filters.order_id)
        if filters.order_number:
            stmt = stmt.where(OrderRow.order_number == filters.order_number)
        if filters.keyword:
            pattern = f"%{filters.keyword}%"
            stmt = stmt.where(
                or_(OrderRow.order_number.ilike(pattern), OutboundShipmentRow.notes.ilike(pattern))
            )
        if filters.created_by:
            stmt = stmt.where(OutboundShipmentRow.created_by == filters.created_by)
        if filters.updated_by:
            stmt = stmt.where(OutboundShipmentRow.updated_by == filters.updated_by)
        if filters.created_after:
            stmt = stmt.where(OutboundShipmentRow.created_at >= filters.created_after)
        if filters.created_before:
            stmt = stmt.where(OutboundShipmentRow.created_at <= filters.created_before)

        with database_errors("search_shipments", page=page.page):
            rows, total = paginate(
                self._session,
                stmt,
                _SORT_COLUMNS.get(page.sort_by, OutboundShipmentRow.created_at),
                OutboundShipmentRow.id,
                page,
            )
        return [ShipmentRow(**row._asdict()) for row in rows], total
