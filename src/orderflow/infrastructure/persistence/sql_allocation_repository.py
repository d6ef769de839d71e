"""SQL-backed inventory allocation repository."""

from __future__ import annotations

from collections import defaultdict

from sqlalchemy import func, insert, or_, select, update
from sqlalchemy.orm import Session

from orderflow.domain.model.allocation import InventoryAllocation, NewAllocation
from orderflow.domain.model.inventory import WarehouseBatchKey
from orderflow.domain.model.listing import AllocationFilters, AllocationRow, PageRequest
from orderflow.domain.model.status import AllocationStatus, StatusEntity
from orderflow.domain.repository.allocation_repository import AllocationRepository
from orderflow.infrastructure.persistence.errors import database_errors
from orderflow.infrastructure.persistence.queries import batch_key_filter, paginate
from orderflow.infrastructure.persistence.tables import (
    InventoryAllocationRow,
    OrderRow,
    StatusRow,
    new_id,
    utcnow,
)

_RESERVING_CODES = tuple(s.value for s in AllocationStatus if s.holds_reservation)

_SORT_COLUMNS = {
    "created_at": InventoryAllocationRow.created_at,
    "allocated_quantity": InventoryAllocationRow.allocated_quantity,
    "order_number": OrderRow.order_number,
    "status": StatusRow.code,
    "warehouse_id": InventoryAllocationRow.warehouse_id,
}


class SqlAllocationRepository(AllocationRepository):

    def __init__(self, session: Session) -> None:
        self._session = session

    def add_many(self, allocations: list[NewAllocation]) -> list[str]:
        if not allocations:
            return []
        now = utcnow()
        rows = [
            {
                "id": new_id(),
                "order_id": a.order_id,
                "order_item_id": a.order_item_id,
                "warehouse_id": a.warehouse_id,
                "batch_id": a.batch_id,
                "allocated_quantity": a.allocated_quantity,
                "status_id": a.status_id,
                "created_at": now,
                "created_by": a.created_by,
            }
            for a in allocations
        ]
        with database_errors("insert_allocations", order_id=allocations[0].order_id):
            self._session.execute(insert(InventoryAllocationRow), rows)
        return [row["id"] for row in rows]

    def list_for_order(
        self, order_id: str, allocation_ids: list[str] | None = None
    ) -> list[InventoryAllocation]:
        stmt = (
            select(
                InventoryAllocationRow.id,
                InventoryAllocationRow.order_id,
                InventoryAllocationRow.order_item_id,
                InventoryAllocationRow.warehouse_id,
                InventoryAllocationRow.batch_id,
                InventoryAllocationRow.allocated_quantity,
                InventoryAllocationRow.created_by,
                InventoryAllocationRow.created_at,
                StatusRow.code,
            )
            .join(StatusRow, StatusRow.id == InventoryAllocationRow.status_id)
            .where(InventoryAllocationRow.order_id == order_id)
            .order_by(InventoryAllocationRow.id)
        )
        if allocation_ids is not None:
            stmt = stmt.where(InventoryAllocationRow.id.in_(allocation_ids))
        with database_errors("load_allocations", order_id=order_id):
            rows = self._session.execute(stmt).all()
        return [
            InventoryAllocation(
                id=row.id,
                order_id=row.order_id,
                order_item_id=row.order_item_id,
                warehouse_id=row.warehouse_id,
                batch_id=row.batch_id,
                allocated_quantity=row.allocated_quantity,
                status=AllocationStatus(row.code),
                created_by=row.created_by,
                created_at=row.created_at,
            )
            for row in rows
        ]

    def reserving_totals(self, keys: list[WarehouseBatchKey]) -> dict[WarehouseBatchKey, int]:
        if not keys:
            return {}
        stmt = (
            select(
                InventoryAllocationRow.warehouse_id,
                InventoryAllocationRow.batch_id,
                func.sum(InventoryAllocationRow.allocated_quantity),
            )
            .join(StatusRow, StatusRow.id == InventoryAllocationRow.status_id)
            .where(
                StatusRow.entity == StatusEntity.ALLOCATION.value,
                StatusRow.code.in_(_RESERVING_CODES),
                batch_key_filter(
                    keys,
                    warehouse_id=InventoryAllocationRow.warehouse_id,
                    batch_id=InventoryAllocationRow.batch_id,
                ),
            )
            .group_by(InventoryAllocationRow.warehouse_id, InventoryAllocationRow.batch_id)
        )
        with database_errors("sum_reserved_allocations", count=len(keys)):
            rows = self._session.execute(stmt).all()
        totals: dict[WarehouseBatchKey, int] = defaultdict(int)
        for warehouse_id, batch_id, total in rows:
            totals[(warehouse_id, batch_id)] = int(total or 0)
        return dict(totals)

    def update_status(self, allocation_ids: list[str], status_id: str, user_id: str) -> int:
        if not allocation_ids:
            return 0
        with database_errors("update_allocation_status", count=len(allocation_ids)):
            result = self._session.execute(
                update(InventoryAllocationRow)
                .where(InventoryAllocationRow.id.in_(allocation_ids))
                .values(status_id=status_id, updated_at=utcnow(), updated_by=user_id)
                .execution_options(synchronize_session=False)
            )
        return result.rowcount

    def search(
        self, filters: AllocationFilters, page: PageRequest
    ) -> tuple[list[AllocationRow], int]:
        stmt = (
            select(
                InventoryAllocationRow.id.label("allocation_id"),
                InventoryAllocationRow.order_id,
                OrderRow.order_number,
                InventoryAllocationRow.order_item_id,
                InventoryAllocationRow.warehouse_id,
                InventoryAllocationRow.batch_id,
                InventoryAllocationRow.allocated_quantity,
                StatusRow.code.label("status"),
                InventoryAllocationRow.created_by,
                InventoryAllocationRow.created_at,
            )
            .join(OrderRow, OrderRow.id == InventoryAllocationRow.order_id)
            .join(StatusRow, StatusRow.id == InventoryAllocationRow.status_id)
        )
        if filters.status_codes:
            stmt = stmt.where(StatusRow.code.in_(filters.status_codes))
        if filters.warehouse_ids:
            stmt = stmt.where(InventoryAllocationRow.warehouse_id.in_(filters.warehouse_ids))
        if filters.order_id:
            stmt = stmt.where(InventoryAllocationRow.order_id == filters.order_id)
        if filters.order_number:
            stmt = stmt.where(OrderRow.order_number == filters.order_number)
        if filters.keyword:
            pattern = f"%{filters.keyword}%"
            stmt = stmt.where(
                or_(
                    OrderRow.order_number.ilike(pattern),
                    InventoryAllocationRow.batch_id.ilike(pattern),
                )
            )
        if filters.created_by:
            stmt = stmt.where(InventoryAllocationRow.created_by == filters.created_by)
        if filters.updated_by:
            stmt = stmt.where(InventoryAllocationRow.updated_by == filters.updated_by)
        if filters.created_after:
            stmt = stmt.where(InventoryAllocationRow.created_at >= filters.created_after)
        if filters.created_before:
            stmt = stmt.where(InventoryAllocationRow.created_at <= filters.created_before)

        with database_errors("search_allocations", page=page.page):
            rows, total = paginate(
                self._session,
                stmt,
                _SORT_COLUMNS.get(page.sort_by, InventoryAllocationRow.created_at),
                InventoryAllocationRow.id,
                page,
            )
        return [AllocationRow(**row._asdict()) for row in rows], total
