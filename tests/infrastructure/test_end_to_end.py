"""Full allocate → confirm → ship → confirm flow on SQLite.

Exercises the handlers through SqlAlchemyUnitOfWork so that locking, the
upsert and the status joins run as real SQL.
"""

from datetime import date

import pytest
from sqlalchemy import func, select

from orderflow.application.allocate_inventory import AllocateInventoryHandler
from orderflow.application.complete_manual_fulfillment import (
    CompleteManualFulfillmentHandler,
)
from orderflow.application.confirm_allocation import ConfirmAllocationHandler
from orderflow.application.confirm_fulfillment import ConfirmFulfillmentHandler
from orderflow.application.dto import (
    FulfillmentConfirmationRequest,
    FulfillmentRequest,
    ManualCompletionRequest,
)
from orderflow.application.fulfill_outbound import FulfillOutboundHandler
from orderflow.application.list_allocations import ListAllocationsHandler
from orderflow.application.list_outbound_shipments import ListOutboundShipmentsHandler
from orderflow.application.review_allocation import ReviewAllocationHandler
from orderflow.domain.exceptions import ConflictError, ServiceError, ValidationError
from orderflow.domain.model.listing import ShipmentFilters
from orderflow.domain.model.status import InventoryStatus
from orderflow.infrastructure.persistence.database import session_scope
from orderflow.infrastructure.persistence.sql_order_repository import SqlOrderRepository
from orderflow.infrastructure.persistence.sql_inventory_repository import (
    SqlWarehouseInventoryRepository,
)
from orderflow.infrastructure.persistence.tables import (
    InventoryActivityLogRow,
    InventoryAllocationRow,
    OutboundShipmentRow,
    ShipmentBatchRow,
)
from orderflow.infrastructure.persistence.unit_of_work import SqlAlchemyUnitOfWork
from tests.sql_seed import (
    add_batch,
    add_delivery_method,
    add_order,
    create_test_database,
    sql_resolver,
)


@pytest.fixture
def world():
    factory = create_test_database()
    with session_scope(factory) as session:
        add_delivery_method(session, "dm-pickup", "IN_STORE_PICKUP")
        add_order(
            session,
            "o1",
            [("i1", 6, "A"), ("i2", 4, "B")],
            delivery_method_id="dm-pickup",
        )
        add_batch(session, "W1", "B1", "A", 4, expiry_date=date(2025, 1, 1))
        add_batch(session, "W1", "B3", "A", 10, expiry_date=date(2025, 3, 1))
        add_batch(session, "W1", "B2", "B", 4)
    return factory, sql_resolver(factory), SqlAlchemyUnitOfWork(factory)


def _stock(factory, *keys):
    with factory() as session:
        rows = SqlWarehouseInventoryRepository(session).get_by_keys(list(keys))
    return {(r.warehouse_id, r.batch_id): r for r in rows}


def _count(factory, table):
    with factory() as session:
        return session.scalar(select(func.count()).select_from(table))


def _order_status(factory, order_id="o1"):
    with factory() as session:
        return SqlOrderRepository(session).get_by_id(order_id).status.value


def _allocate_and_confirm(resolver, uow):
    allocated = AllocateInventoryHandler(uow, resolver).handle("u1", "o1")
    confirmed = ConfirmAllocationHandler(uow, resolver).handle("u1", "o1")
    return allocated, confirmed


def _ship(resolver, uow):
    allocated, _ = _allocate_and_confirm(resolver, uow)
    return FulfillOutboundHandler(uow, resolver).handle(
        FulfillmentRequest("o1", allocated.allocation_ids), "u1"
    )


def _confirmation():
    return FulfillmentConfirmationRequest(
        order_id="o1",
        order_status="ORDER_SHIPPED",
        allocation_status="ALLOC_COMPLETED",
        shipment_status="SHIPMENT_SHIPPED",
        fulfillment_status="FULFILLMENT_SHIPPED",
    )


class TestOrderLifecycle:

    def test_allocation_reserves_stock_fefo(self, world):
        factory, resolver, uow = world

        allocated, confirmed = _allocate_and_confirm(resolver, uow)

        assert len(allocated.allocation_ids) == 3
        assert confirmed.order_status == "ORDER_ALLOCATED"
        stock = _stock(factory, ("W1", "B1"), ("W1", "B2"), ("W1", "B3"))
        assert stock[("W1", "B1")].reserved_quantity == 4
        assert stock[("W1", "B1")].status is InventoryStatus.OUT_OF_STOCK
        assert stock[("W1", "B3")].reserved_quantity == 2
        assert stock[("W1", "B2")].reserved_quantity == 4
        assert _count(factory, InventoryActivityLogRow) == 3

    def test_review_and_listing_read_committed_rows(self, world):
        factory, resolver, uow = world
        _allocate_and_confirm(resolver, uow)

        review = ReviewAllocationHandler(uow).handle("o1")
        listed = ListAllocationsHandler(uow).handle(sort_by="allocated_quantity", sort_order="ASC")

        assert review.header.status == "ORDER_ALLOCATED"
        assert sorted(r.batch_id for r in review.items) == ["B1", "B2", "B3"]
        assert [row["allocated_quantity"] for row in listed.data] == [2, 4, 4]
        assert listed.pagination.total_records == 3

    def test_ship_then_confirm_deducts_stock(self, world):
        factory, resolver, uow = world
        allocated, _ = _allocate_and_confirm(resolver, uow)

        shipped = FulfillOutboundHandler(uow, resolver).handle(
            FulfillmentRequest("o1", allocated.allocation_ids, fulfillment_notes="packed"), "u1"
        )
        confirmed = ConfirmFulfillmentHandler(uow, resolver).handle(
            FulfillmentConfirmationRequest(
                order_id="o1",
                order_status="ORDER_SHIPPED",
                allocation_status="ALLOC_COMPLETED",
                shipment_status="SHIPMENT_SHIPPED",
                fulfillment_status="FULFILLMENT_SHIPPED",
            ),
            "u2",
        )

        assert shipped.delivery_method_id == "dm-pickup"
        assert sorted((f.order_item_id, f.quantity_fulfilled) for f in shipped.fulfillments) == [
            ("i1", 6),
            ("i2", 4),
        ]
        assert _count(factory, ShipmentBatchRow) == 3
        assert confirmed.shipment_id == shipped.shipment_id
        stock = _stock(factory, ("W1", "B1"), ("W1", "B2"), ("W1", "B3"))
        assert (stock[("W1", "B1")].warehouse_quantity, stock[("W1", "B1")].reserved_quantity) == (0, 0)
        assert (stock[("W1", "B3")].warehouse_quantity, stock[("W1", "B3")].reserved_quantity) == (8, 0)
        assert stock[("W1", "B3")].status is InventoryStatus.IN_STOCK
        assert _order_status(factory) == "ORDER_SHIPPED"
        assert _count(factory, InventoryActivityLogRow) == 6

        with pytest.raises(ConflictError):
            ConfirmFulfillmentHandler(uow, resolver).handle(
                FulfillmentConfirmationRequest(
                    order_id="o1",
                    order_status="ORDER_SHIPPED",
                    allocation_status="ALLOC_COMPLETED",
                    shipment_status="SHIPMENT_SHIPPED",
                    fulfillment_status="FULFILLMENT_SHIPPED",
                ),
                "u2",
            )

    def test_pickup_completed_manually(self, world):
        factory, resolver, uow = world
        shipped = _ship(resolver, uow)
        ConfirmFulfillmentHandler(uow, resolver).handle(_confirmation(), "u2")

        result = CompleteManualFulfillmentHandler(uow, resolver).handle(
            ManualCompletionRequest(
                shipment_id=shipped.shipment_id,
                order_status="ORDER_DELIVERED",
                shipment_status="SHIPMENT_DELIVERED",
                fulfillment_status="FULFILLMENT_DELIVERED",
            ),
            "u2",
        )
        listed = ListOutboundShipmentsHandler(uow).handle(ShipmentFilters(order_id="o1"))

        assert result.delivery_method == "IN_STORE_PICKUP"
        assert _order_status(factory) == "ORDER_DELIVERED"
        assert [row["status"] for row in listed.data] == ["SHIPMENT_DELIVERED"]
        assert listed.data[0]["delivery_method"] == "IN_STORE_PICKUP"

    def test_backordered_order_allocated_after_restock(self, world):
        factory, resolver, uow = world
        with session_scope(factory) as session:
            add_order(session, "o2", [("x1", 5, "C")])
        AllocateInventoryHandler(uow, resolver).handle("u1", "o2")
        ConfirmAllocationHandler(uow, resolver).handle("u1", "o2")
        with session_scope(factory) as session:
            add_batch(session, "W1", "C1", "C", 8)

        allocated = AllocateInventoryHandler(uow, resolver).handle("u1", "o2")
        confirmed = ConfirmAllocationHandler(uow, resolver).handle("u1", "o2")

        assert len(allocated.allocation_ids) == 1
        assert confirmed.order_status == "ORDER_ALLOCATED"
        assert _stock(factory, ("W1", "C1"))[("W1", "C1")].reserved_quantity == 5

    def test_unconfirmed_pickup_cannot_be_completed(self, world):
        factory, resolver, uow = world
        shipped = _ship(resolver, uow)

        with pytest.raises(ValidationError, match="stock was not deducted"):
            CompleteManualFulfillmentHandler(uow, resolver).handle(
                ManualCompletionRequest(
                    shipment_id=shipped.shipment_id,
                    order_status="ORDER_DELIVERED",
                    shipment_status="SHIPMENT_DELIVERED",
                    fulfillment_status="FULFILLMENT_DELIVERED",
                ),
                "u2",
            )

        stock = _stock(factory, ("W1", "B3"))
        assert (stock[("W1", "B3")].warehouse_quantity, stock[("W1", "B3")].reserved_quantity) == (10, 2)
        assert _order_status(factory) == "ORDER_PROCESSING"


class TestTransactions:

    def test_failed_allocation_leaves_no_rows(self, world, monkeypatch):
        factory, resolver, uow = world

        def broken(self, order_id, status_id, user_id):
            raise RuntimeError("connection dropped")

        monkeypatch.setattr(SqlOrderRepository, "update_status", broken)

        with pytest.raises(ServiceError, match="Unable to allocate inventory"):
            AllocateInventoryHandler(uow, resolver).handle("u1", "o1")

        assert _count(factory, InventoryAllocationRow) == 0

    def test_rejected_shipment_writes_nothing(self, world):
        factory, resolver, uow = world
        AllocateInventoryHandler(uow, resolver).handle("u1", "o1")

        with pytest.raises(ValidationError):
            FulfillOutboundHandler(uow, resolver).handle(FulfillmentRequest("o1", []), "u1")

        assert _count(factory, OutboundShipmentRow) == 0
        assert _order_status(factory) == "ORDER_ALLOCATING"
