"""SQL-backed append-only inventory activity log."""

from __future__ import annotations

from sqlalchemy import insert
from sqlalchemy.orm import Session

from orderflow.domain.model.activity_log import ActivityLogEntry
from orderflow.domain.repository.activity_log_repository import ActivityLogRepository
from orderflow.infrastructure.persistence.errors import database_errors
from orderflow.infrastructure.persistence.tables import InventoryActivityLogRow, new_id


class SqlActivityLogRepository(ActivityLogRepository):

    def __init__(self, session: Session) -> None:
        self._session = session

    def append_many(self, entries: list[ActivityLogEntry]) -> list[str]:
        if not entries:
            return []
        rows = [
            {
                "id": new_id(),
                "warehouse_inventory_id": e.warehouse_inventory_id,
                "inventory_action": e.action.value,
                "order_id": e.order_id,
                "status_id": e.status_id,
                "previous_quantity": e.previous_quantity,
                "quantity_change": e.quantity_change,
                "new_quantity": e.new_quantity,
                "performed_by": e.performed_by,
                "comments": e.comments,
                "source_type": e.source_type.value,
                "source_ref_id": e.source_ref_id,
                "metadata_json": e.metadata,
                "checksum": e.checksum,
                "status_effective_at": e.status_effective_at,
            }
            for e in entries
        ]
        with database_errors("insert_activity_logs", count=len(rows)):
            self._session.execute(insert(InventoryActivityLogRow), rows)
        return [row["id"] for row in rows]
