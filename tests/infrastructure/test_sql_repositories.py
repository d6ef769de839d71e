"""SQL repositories against an in-memory SQLite database."""

import warnings
from datetime import date

import pytest
from sqlalchemy.exc import SADeprecationWarning

from orderflow.domain.model.allocation import NewAllocation
from orderflow.domain.model.listing import AllocationFilters, PageRequest, SortOrder
from orderflow.domain.model.status import (
    AllocationStatus,
    InventoryStatus,
    OrderStatus,
    StatusEntity,
)
from orderflow.domain.repository.inventory_repository import InventoryUpdate
from orderflow.domain.repository.locking import LockOrderError, LockTarget
from orderflow.infrastructure.persistence.database import session_scope
from orderflow.infrastructure.persistence.locking import SqlRowLocker
from orderflow.infrastructure.persistence.sql_allocation_repository import (
    SqlAllocationRepository,
)
from orderflow.infrastructure.persistence.sql_inventory_repository import (
    SqlWarehouseInventoryRepository,
)
from orderflow.infrastructure.persistence.sql_order_repository import SqlOrderRepository
from orderflow.infrastructure.persistence.sql_status_repository import (
    SqlStatusRepository,
    seed_statuses,
)
from tests.sql_seed import add_batch, add_order, create_test_database, sql_resolver


@pytest.fixture
def factory():
    factory = create_test_database()
    with session_scope(factory) as session:
        add_order(session, "o1", [("i1", 6, "A"), ("i2", 4, "B")])
        add_order(session, "o2", [("i3", 2, "A")])
        add_batch(session, "W1", "B1", "A", 10, expiry_date=date(2025, 1, 1))
        add_batch(session, "W1", "B2", "B", 4, reserved=4)
        add_batch(session, "W2", "B3", "A", 5, inbound_date=date(2024, 6, 1))
    return factory


@pytest.fixture
def resolver(factory):
    return sql_resolver(factory)


def _allocation(resolver, order_id, item_id, batch_id, quantity, status=AllocationStatus.PENDING):
    return NewAllocation(
        order_id=order_id,
        order_item_id=item_id,
        warehouse_id="W1",
        batch_id=batch_id,
        allocated_quantity=quantity,
        status_id=resolver.resolve(StatusEntity.ALLOCATION, status),
        created_by="u1",
    )


class TestStatuses:

    def test_seeding_is_idempotent(self, factory):
        with session_scope(factory) as session:
            assert seed_statuses(session) == 0

    def test_seeding_raises_no_deprecation_warnings(self, factory):
        with warnings.catch_warnings():
            warnings.simplefilter("error", SADeprecationWarning)
            with session_scope(factory) as session:
                assert seed_statuses(session) == 0

    def test_repository_finds_seeded_code(self, factory):
        repo = SqlStatusRepository(factory)

        record = repo.find(StatusEntity.SHIPMENT, "SHIPMENT_PENDING")

        assert record.code == "SHIPMENT_PENDING"
        assert repo.find(StatusEntity.SHIPMENT, "SHIPMENT_LOST") is None

    def test_order_items_resolve_to_order_rows(self, resolver):
        assert resolver.resolve(StatusEntity.ORDER_ITEM, OrderStatus.PROCESSING) == (
            resolver.resolve(StatusEntity.ORDER, OrderStatus.PROCESSING)
        )


class TestSqlOrderRepository:

    def test_get_by_id_loads_items(self, factory):
        with factory() as session:
            order = SqlOrderRepository(session).get_by_id("o1")

        assert order.order_number == "SO-O1"
        assert order.status is OrderStatus.CONFIRMED
        assert [(i.id, i.quantity_ordered, i.sku_id) for i in order.items] == [
            ("i1", 6, "A"),
            ("i2", 4, "B"),
        ]

    def test_unknown_order_is_none(self, factory):
        with factory() as session:
            assert SqlOrderRepository(session).get_by_id("nope") is None

    def test_status_updates_are_visible_on_reload(self, factory, resolver):
        with factory() as session:
            repo = SqlOrderRepository(session)
            repo.update_status("o1", resolver.resolve(StatusEntity.ORDER, OrderStatus.ALLOCATING), "u1")
            changed = repo.update_item_statuses(
                ["i1"], resolver.resolve(StatusEntity.ORDER_ITEM, OrderStatus.ALLOCATING), "u1"
            )
            order = repo.get_by_id("o1")

        assert changed == 1
        assert order.status is OrderStatus.ALLOCATING
        assert [i.status for i in order.items] == [OrderStatus.ALLOCATING, OrderStatus.CONFIRMED]


class TestSqlWarehouseInventoryRepository:

    def test_candidates_skip_fully_reserved_rows(self, factory):
        with factory() as session:
            candidates = SqlWarehouseInventoryRepository(session).find_candidates({"sku:A", "sku:B"})

        assert sorted((c.warehouse_id, c.batch_id, c.available_quantity) for c in candidates) == [
            ("W1", "B1", 10),
            ("W2", "B3", 5),
        ]
        b1 = next(c for c in candidates if c.batch_id == "B1")
        assert b1.product_key == "sku:A"
        assert b1.expiry_date == date(2025, 1, 1)

    def test_candidates_limited_to_warehouse(self, factory):
        with factory() as session:
            candidates = SqlWarehouseInventoryRepository(session).find_candidates({"sku:A"}, "W2")

        assert [(c.batch_id, c.inbound_date) for c in candidates] == [("B3", date(2024, 6, 1))]

    def test_no_product_keys_no_candidates(self, factory):
        with factory() as session:
            assert SqlWarehouseInventoryRepository(session).find_candidates(set()) == []

    def test_apply_updates_reports_rows_written(self, factory, resolver):
        with factory() as session:
            repo = SqlWarehouseInventoryRepository(session)
            (row,) = repo.get_by_keys([("W1", "B1")])

            updated = repo.apply_updates(
                [
                    InventoryUpdate(
                        warehouse_inventory_id=row.id,
                        warehouse_quantity=10,
                        reserved_quantity=10,
                        status_id=resolver.resolve(
                            StatusEntity.INVENTORY, InventoryStatus.OUT_OF_STOCK
                        ),
                    ),
                    InventoryUpdate(
                        warehouse_inventory_id="missing",
                        warehouse_quantity=1,
                        reserved_quantity=0,
                        status_id=resolver.resolve(StatusEntity.INVENTORY, InventoryStatus.IN_STOCK),
                    ),
                ],
                "u1",
            )
            (reloaded,) = repo.get_by_keys([("W1", "B1")])

        assert updated == [row.id]
        assert reloaded.reserved_quantity == 10
        assert reloaded.status is InventoryStatus.OUT_OF_STOCK


class TestSqlAllocationRepository:

    def test_add_and_list_for_order(self, factory, resolver):
        with session_scope(factory) as session:
            ids = SqlAllocationRepository(session).add_many(
                [
                    _allocation(resolver, "o1", "i1", "B1", 6),
                    _allocation(resolver, "o1", "i2", "B2", 4),
                ]
            )

        with factory() as session:
            repo = SqlAllocationRepository(session)
            everything = repo.list_for_order("o1")
            chosen = repo.list_for_order("o1", ids[:1])

        assert sorted(a.id for a in everything) == sorted(ids)
        assert {a.status for a in everything} == {AllocationStatus.PENDING}
        assert [a.allocated_quantity for a in chosen] == [6]

    def test_reserving_totals_ignore_released_allocations(self, factory, resolver):
        with session_scope(factory) as session:
            SqlAllocationRepository(session).add_many(
                [
                    _allocation(resolver, "o1", "i1", "B1", 6, AllocationStatus.CONFIRMED),
                    _allocation(resolver, "o2", "i3", "B1", 2),
                    _allocation(resolver, "o2", "i3", "B1", 5, AllocationStatus.CANCELED),
                    _allocation(resolver, "o1", "i1", "B1", 1, AllocationStatus.COMPLETED),
                ]
            )

        with factory() as session:
            totals = SqlAllocationRepository(session).reserving_totals([("W1", "B1"), ("W1", "B2")])

        assert totals == {("W1", "B1"): 8}

    def test_update_status(self, factory, resolver):
        with session_scope(factory) as session:
            ids = SqlAllocationRepository(session).add_many([_allocation(resolver, "o1", "i1", "B1", 6)])

        with session_scope(factory) as session:
            changed = SqlAllocationRepository(session).update_status(
                ids, resolver.resolve(StatusEntity.ALLOCATION, AllocationStatus.CONFIRMED), "u2"
            )

        with factory() as session:
            (allocation,) = SqlAllocationRepository(session).list_for_order("o1")
        assert changed == 1
        assert allocation.status is AllocationStatus.CONFIRMED

    def test_search_filters_and_pages(self, factory, resolver):
        with session_scope(factory) as session:
            SqlAllocationRepository(session).add_many(
                [_allocation(resolver, "o1", "i1", "B1", q) for q in (1, 2, 3)]
                + [_allocation(resolver, "o2", "i3", "B1", 9)]
            )

        with factory() as session:
            repo = SqlAllocationRepository(session)
            rows, total = repo.search(
                AllocationFilters(order_number="SO-O1"),
                PageRequest(page=1, limit=2, sort_by="allocated_quantity", sort_order=SortOrder.ASC),
            )
            by_keyword, keyword_total = repo.search(
                AllocationFilters(keyword="so-o2"), PageRequest()
            )

        assert total == 3
        assert [r.allocated_quantity for r in rows] == [1, 2]
        assert rows[0].status == "ALLOC_PENDING"
        assert keyword_total == 1
        assert by_keyword[0].order_number == "SO-O2"


class TestSqlRowLocker:

    def test_returns_keys_that_exist(self, factory):
        with factory() as session:
            locker = SqlRowLocker(session)
            assert locker.acquire(LockTarget.ORDERS, ["o2", "o1", "o9"]) == ["o1", "o2"]
            assert locker.acquire(
                LockTarget.WAREHOUSE_INVENTORY, [("W2", "B3"), ("W1", "B1"), ("W3", "B1")]
            ) == [("W1", "B1"), ("W2", "B3")]

    def test_backwards_lock_refused(self, factory):
        with factory() as session:
            locker = SqlRowLocker(session)
            locker.acquire(LockTarget.WAREHOUSE_INVENTORY, [("W1", "B1")])
            with pytest.raises(LockOrderError):
                locker.acquire(LockTarget.ORDERS, ["o1"])
