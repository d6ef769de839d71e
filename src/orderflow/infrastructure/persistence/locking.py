"""Row locker backed by ``SELECT ... FOR UPDATE``.

Rows are locked in key order.  SQLite ignores ``FOR UPDATE``; there the
write transaction itself serializes access.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from orderflow.domain.repository.locking import LockTarget, RowLocker
from orderflow.infrastructure.persistence.errors import database_errors
from orderflow.infrastructure.persistence.queries import batch_key_filter
from orderflow.infrastructure.persistence.tables import (
    InventoryAllocationRow,
    OrderFulfillmentRow,
    OrderItemRow,
    OrderRow,
    OutboundShipmentRow,
    WarehouseInventoryRow,
)

_ID_COLUMNS = {
    LockTarget.ORDERS: OrderRow.id,
    LockTarget.ORDER_ITEMS: OrderItemRow.id,
    LockTarget.INVENTORY_ALLOCATIONS: InventoryAllocationRow.id,
    LockTarget.OUTBOUND_SHIPMENTS: OutboundShipmentRow.id,
    LockTarget.ORDER_FULFILLMENTS: OrderFulfillmentRow.id,
}


class SqlRowLocker(RowLocker):

    def __init__(self, session: Session) -> None:
        super().__init__()
        self._session = session

    def _lock_rows(self, target: LockTarget, keys: list) -> list:
        with database_errors("lock_rows", table=target.table, count=len(keys)):
            if target is LockTarget.WAREHOUSE_INVENTORY:
                stmt = (
                    select(WarehouseInventoryRow.warehouse_id, WarehouseInventoryRow.batch_id)
                    .where(batch_key_filter(keys))
                    .order_by(WarehouseInventoryRow.warehouse_id, WarehouseInventoryRow.batch_id)
                    .with_for_update()
                )
                return [(w, b) for w, b in self._session.execute(stmt)]

            column = _ID_COLUMNS[target]
            stmt = select(column).where(column.in_(keys)).order_by(column).with_for_update()
            return list(self._session.scalars(stmt))
