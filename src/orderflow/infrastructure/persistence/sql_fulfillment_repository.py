"""SQL-backed order fulfillment repository.

Lines are upserted on (order item, shipment) with the merge policy rendered
as ``ON CONFLICT DO UPDATE``; allocation links are inserted with
``ON CONFLICT DO NOTHING`` so they accumulate as a set.
"""

from __future__ import annotations

from collections import defaultdict

from sqlalchemy import and_, or_, select, update
from sqlalchemy.orm import Session

from orderflow.domain.model.fulfillment import FulfillmentDraft, OrderFulfillment
from orderflow.domain.model.status import FulfillmentStatus
from orderflow.domain.repository.fulfillment_repository import FulfillmentRepository
from orderflow.domain.service.merge_policy import MergePolicy
from orderflow.infrastructure.persistence.errors import database_errors
from orderflow.infrastructure.persistence.tables import (
    FulfillmentAllocationRow,
    OrderFulfillmentRow,
    OrderItemRow,
    StatusRow,
    new_id,
    utcnow,
)
from orderflow.infrastructure.persistence.upsert import (
    insert_ignore_statement,
    upsert_statement,
)


class SqlFulfillmentRepository(FulfillmentRepository):

    def __init__(self, session: Session) -> None:
        self._session = session

    def upsert_many(
        self, drafts: list[FulfillmentDraft], policy: MergePolicy
    ) -> list[OrderFulfillment]:
        if not drafts:
            return []
        now = utcnow()
        rows = policy.collapse(
            [
                {"id": new_id(), **draft.as_row(), "fulfilled_at": now, "updated_at": now}
                for draft in drafts
            ],
            now,
        )
        pairs = [(row["order_item_id"], row["shipment_id"]) for row in rows]

        with database_errors("upsert_fulfillments", shipment_id=drafts[0].shipment_id):
            self._session.execute(
                upsert_statement(self._session, OrderFulfillmentRow.__table__, rows, policy, now)
            )
            ids = {
                (item_id, shipment_id): fulfillment_id
                for fulfillment_id, item_id, shipment_id in self._session.execute(
                    select(
                        OrderFulfillmentRow.id,
                        OrderFulfillmentRow.order_item_id,
                        OrderFulfillmentRow.shipment_id,
                    ).where(_pair_filter(pairs))
                )
            }
            links = sorted(
                {
                    (ids[(draft.order_item_id, draft.shipment_id)], allocation_id)
                    for draft in drafts
                    for allocation_id in draft.allocation_ids
                }
            )
            if links:
                self._session.execute(
                    insert_ignore_statement(
                        self._session,
                        FulfillmentAllocationRow.__table__,
                        [{"fulfillment_id": f, "allocation_id": a} for f, a in links],
                    )
                )

        return self._load(OrderFulfillmentRow.id.in_(list(ids.values())), "load_fulfillments")

    def list_for_order(self, order_id: str) -> list[OrderFulfillment]:
        return self._load(OrderItemRow.order_id == order_id, "load_order_fulfillments")

    def list_for_shipment(self, shipment_id: str) -> list[OrderFulfillment]:
        return self._load(
            OrderFulfillmentRow.shipment_id == shipment_id, "load_shipment_fulfillments"
        )

    def update_status(self, fulfillment_ids: list[str], status_id: str, user_id: str) -> int:
        if not fulfillment_ids:
            return 0
        with database_errors("update_fulfillment_status", count=len(fulfillment_ids)):
            result = self._session.execute(
                update(OrderFulfillmentRow)
                .where(OrderFulfillmentRow.id.in_(fulfillment_ids))
                .values(status_id=status_id, updated_at=utcnow(), updated_by=user_id)
                .execution_options(synchronize_session=False)
            )
        return result.rowcount

    def _load(self, condition, stage: str) -> list[OrderFulfillment]:
        stmt = (
            select(
                OrderFulfillmentRow.id,
                OrderItemRow.order_id,
                OrderFulfillmentRow.order_item_id,
                OrderFulfillmentRow.shipment_id,
                OrderFulfillmentRow.quantity_fulfilled,
                OrderFulfillmentRow.fulfillment_notes,
                OrderFulfillmentRow.fulfilled_by,
                OrderFulfillmentRow.updated_by,
                OrderFulfillmentRow.updated_at,
                StatusRow.code,
            )
            .join(OrderItemRow, OrderItemRow.id == OrderFulfillmentRow.order_item_id)
            .join(StatusRow, StatusRow.id == OrderFulfillmentRow.status_id)
            .where(condition)
            .order_by(OrderFulfillmentRow.order_item_id, OrderFulfillmentRow.shipment_id)
        )
        with database_errors(stage):
            rows = self._session.execute(stmt).all()
            allocation_ids: dict[str, list[str]] = defaultdict(list)
            if rows:
                links = self._session.execute(
                    select(FulfillmentAllocationRow.fulfillment_id, FulfillmentAllocationRow.allocation_id)
                    .where(FulfillmentAllocationRow.fulfillment_id.in_([r.id for r in rows]))
                    .order_by(FulfillmentAllocationRow.allocation_id)
                )
                for fulfillment_id, allocation_id in links:
                    allocation_ids[fulfillment_id].append(allocation_id)

        return [
            OrderFulfillment(
                id=row.id,
                order_id=row.order_id,
                order_item_id=row.order_item_id,
                shipment_id=row.shipment_id,
                quantity_fulfilled=row.quantity_fulfilled,
                status=FulfillmentStatus(row.code),
                allocation_ids=allocation_ids[row.id],
                fulfillment_notes=row.fulfillment_notes,
                fulfilled_by=row.fulfilled_by,
                updated_by=row.updated_by,
                updated_at=row.updated_at,
            )
            for row in rows
        ]


def _pair_filter(pairs: list[tuple[str, str]]):
    return or_(
        *(
            and_(OrderFulfillmentRow.order_item_id == item_id, OrderFulfillmentRow.shipment_id == shipment_id)
            for item_id, shipment_id in pairs
        )
    )
