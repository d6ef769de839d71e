"""SQL-backed warehouse inventory repository."""

from __future__ import annotations

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from orderflow.domain.model.inventory import (
    BatchCandidate,
    WarehouseBatchKey,
    WarehouseInventory,
)
from orderflow.domain.model.status import InventoryStatus
from orderflow.domain.repository.inventory_repository import (
    InventoryUpdate,
    WarehouseInventoryRepository,
)
from orderflow.infrastructure.persistence.errors import database_errors
from orderflow.infrastructure.persistence.queries import batch_key_filter
from orderflow.infrastructure.persistence.tables import (
    BatchRow,
    StatusRow,
    WarehouseInventoryRow,
    utcnow,
)

_SKU_PREFIX = "sku:"
_MATERIAL_PREFIX = "material:"


def _split_product_keys(product_keys: set[str]) -> tuple[list[str], list[str]]:
    skus = sorted(k[len(_SKU_PREFIX):] for k in product_keys if k.startswith(_SKU_PREFIX))
    materials = sorted(
        k[len(_MATERIAL_PREFIX):] for k in product_keys if k.startswith(_MATERIAL_PREFIX)
    )
    return skus, materials


class SqlWarehouseInventoryRepository(WarehouseInventoryRepository):

    def __init__(self, session: Session) -> None:
        self._session = session

    def find_candidates(
        self, product_keys: set[str], warehouse_id: str | None = None
    ) -> list[BatchCandidate]:
        skus, materials = _split_product_keys(product_keys)
        product_filters = []
        if skus:
            product_filters.append(BatchRow.sku_id.in_(skus))
        if materials:
            product_filters.append(BatchRow.packaging_material_id.in_(materials))
        if not product_filters:
            return []

        stmt = (
            select(
                WarehouseInventoryRow.id,
                WarehouseInventoryRow.warehouse_id,
                WarehouseInventoryRow.batch_id,
                WarehouseInventoryRow.warehouse_quantity,
                WarehouseInventoryRow.reserved_quantity,
                WarehouseInventoryRow.inbound_date,
                BatchRow.sku_id,
                BatchRow.packaging_material_id,
                BatchRow.expiry_date,
            )
            .join(BatchRow, BatchRow.id == WarehouseInventoryRow.batch_id)
            .where(or_(*product_filters))
            .where(WarehouseInventoryRow.warehouse_quantity > WarehouseInventoryRow.reserved_quantity)
        )
        if warehouse_id is not None:
            stmt = stmt.where(WarehouseInventoryRow.warehouse_id == warehouse_id)

        with database_errors("find_candidate_batches", warehouse_id=warehouse_id):
            rows = self._session.execute(stmt).all()

        return [
            BatchCandidate(
                warehouse_inventory_id=row.id,
                warehouse_id=row.warehouse_id,
                batch_id=row.batch_id,
                product_key=(
                    f"{_SKU_PREFIX}{row.sku_id}"
                    if row.sku_id
                    else f"{_MATERIAL_PREFIX}{row.packaging_material_id}"
                ),
                available_quantity=max(0, row.warehouse_quantity - row.reserved_quantity),
                expiry_date=row.expiry_date,
                inbound_date=row.inbound_date,
            )
            for row in rows
        ]

    def get_by_keys(self, keys: list[WarehouseBatchKey]) -> list[WarehouseInventory]:
        if not keys:
            return []
        stmt = (
            select(
                WarehouseInventoryRow.id,
                WarehouseInventoryRow.warehouse_id,
                WarehouseInventoryRow.batch_id,
                WarehouseInventoryRow.warehouse_quantity,
                WarehouseInventoryRow.reserved_quantity,
                StatusRow.code,
            )
            .join(StatusRow, StatusRow.id == WarehouseInventoryRow.status_id)
            .where(batch_key_filter(keys))
            .order_by(WarehouseInventoryRow.warehouse_id, WarehouseInventoryRow.batch_id)
        )
        with database_errors("load_warehouse_inventory", count=len(keys)):
            rows = self._session.execute(stmt).all()
        return [
            WarehouseInventory(
                id=row.id,
                warehouse_id=row.warehouse_id,
                batch_id=row.batch_id,
                warehouse_quantity=row.warehouse_quantity,
                reserved_quantity=row.reserved_quantity,
                status=InventoryStatus(row.code),
            )
            for row in rows
        ]

    def apply_updates(self, updates: list[InventoryUpdate], user_id: str) -> list[str]:
        updated: list[str] = []
        now = utcnow()
        with database_errors("update_warehouse_inventory", count=len(updates)):
            for change in updates:
                result = self._session.execute(
                    update(WarehouseInventoryRow)
                    .where(WarehouseInventoryRow.id == change.warehouse_inventory_id)
                    .values(
                        warehouse_quantity=change.warehouse_quantity,
                        reserved_quantity=change.reserved_quantity,
                        status_id=change.status_id,
                        updated_at=now,
                        updated_by=user_id,
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 1:
                    updated.append(change.warehouse_inventory_id)
        return updated
