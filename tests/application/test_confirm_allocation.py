"""Integration tests for the ConfirmAllocation use case."""

from datetime import date

import pytest

from orderflow.application.allocate_inventory import AllocateInventoryHandler
from orderflow.application.confirm_allocation import ConfirmAllocationHandler
from orderflow.domain.exceptions import ConflictError, NotFoundError, ServiceError
from orderflow.domain.model.activity_log import InventoryAction, LogSource
from orderflow.domain.model.allocation import InventoryAllocation
from orderflow.domain.model.status import AllocationStatus, InventoryStatus, OrderStatus
from orderflow.domain.repository.locking import LockTarget
from tests.fakes import FakeStore, FakeUnitOfWork, loaded_resolver


def _setup(a_stock=10, b_stock=4):
    store = FakeStore()
    store.add_order("o1", [("i1", 6, "A"), ("i2", 4, "B")])
    if a_stock:
        store.add_batch("W1", "B1", "A", a_stock, expiry_date=date(2025, 1, 1))
    if b_stock:
        store.add_batch("W1", "B2", "B", b_stock, expiry_date=date(2025, 2, 1))
    uow = FakeUnitOfWork(store)
    resolver = loaded_resolver()
    AllocateInventoryHandler(uow, resolver).handle("u1", "o1")
    return store, uow, ConfirmAllocationHandler(uow, resolver)


def _allocation_statuses(store):
    return {a.order_item_id: a.status for a in store.allocations.values()}


class TestConfirmAllocationHappyPath:

    def test_fully_allocated_order(self):
        store, _, handler = _setup()

        result = handler.handle("u1", "o1")

        assert result.order_advanced
        assert result.order_status == "ORDER_ALLOCATED"
        assert store.orders["o1"].status is OrderStatus.ALLOCATED
        assert {i.status for i in store.orders["o1"].items} == {OrderStatus.ALLOCATED}
        assert set(_allocation_statuses(store).values()) == {AllocationStatus.CONFIRMED}
        assert sorted(result.confirmed_allocation_ids) == sorted(store.allocations)
        assert result.partial_allocation_ids == []

    def test_reserves_stock(self):
        store, _, handler = _setup()

        handler.handle("u1", "o1")

        b1 = store.inventory[("W1", "B1")]
        b2 = store.inventory[("W1", "B2")]
        assert (b1.warehouse_quantity, b1.reserved_quantity, b1.status) == (
            10, 6, InventoryStatus.IN_STOCK
        )
        assert (b2.warehouse_quantity, b2.reserved_quantity, b2.status) == (
            4, 4, InventoryStatus.OUT_OF_STOCK
        )

    def test_one_reserve_log_per_batch(self):
        store, uow, handler = _setup()

        result = handler.handle("u1", "o1")

        entries = uow.activity_logs.entries
        assert len(entries) == 2 == len(result.log_ids)
        first = entries[0]
        assert first.action is InventoryAction.RESERVE
        assert first.source_type is LogSource.ALLOCATION
        assert (first.previous_quantity, first.quantity_change, first.new_quantity) == (0, 6, 6)
        assert first.comments == "[System] Inventory reserved for order SO-O1"
        assert first.metadata["warehouse_quantity_snapshot"] == 10
        assert len(first.metadata["allocation_ids"]) == 1

    def test_reservation_includes_other_orders(self):
        store, _, handler = _setup()
        store.add_order("o2", [("x1", 3, "A")], status=OrderStatus.ALLOCATED)
        store.allocations["held"] = InventoryAllocation(
            id="held",
            order_id="o2",
            order_item_id="x1",
            warehouse_id="W1",
            batch_id="B1",
            allocated_quantity=3,
            status=AllocationStatus.CONFIRMED,
        )

        handler.handle("u1", "o1")

        assert store.inventory[("W1", "B1")].reserved_quantity == 9

    def test_locks_taken_in_table_order(self):
        _, uow, handler = _setup()

        handler.handle("u1", "o1")

        assert uow.locks.targets == [
            LockTarget.ORDERS,
            LockTarget.ORDER_ITEMS,
            LockTarget.INVENTORY_ALLOCATIONS,
            LockTarget.WAREHOUSE_INVENTORY,
        ]


class TestConfirmAllocationShortfall:

    def test_partial_item_keeps_order_allocating(self):
        store, _, handler = _setup(a_stock=4)

        result = handler.handle("u1", "o1")

        assert not result.order_advanced
        assert store.orders["o1"].status is OrderStatus.ALLOCATING
        assert store.item("i1").status is OrderStatus.PARTIALLY_ALLOCATED
        assert store.item("i2").status is OrderStatus.ALLOCATED
        assert _allocation_statuses(store) == {
            "i1": AllocationStatus.PARTIAL,
            "i2": AllocationStatus.CONFIRMED,
        }
        assert [i.outcome for i in result.items] == ["partial", "matched"]

    def test_partial_allocations_still_reserve(self):
        store, _, handler = _setup(a_stock=4)

        handler.handle("u1", "o1")

        assert store.inventory[("W1", "B1")].reserved_quantity == 4

    def test_unallocated_item_is_backordered(self):
        store, _, handler = _setup(b_stock=0)

        result = handler.handle("u1", "o1")

        assert store.item("i2").status is OrderStatus.BACKORDERED
        assert store.item("i1").status is OrderStatus.ALLOCATED
        assert store.orders["o1"].status is OrderStatus.ALLOCATING
        assert [i.outcome for i in result.items] == ["matched", "unmatched"]

    def test_partial_allocations_can_be_reconfirmed(self):
        store, _, handler = _setup(a_stock=4, b_stock=0)
        handler.handle("u1", "o1")

        result = handler.handle("u1", "o1")

        assert result.partial_allocation_ids == list(store.allocations)
        assert store.inventory[("W1", "B1")].reserved_quantity == 4

    def test_reconfirm_leaves_confirmed_allocations_alone(self):
        store, _, handler = _setup(a_stock=4)
        handler.handle("u1", "o1")

        result = handler.handle("u1", "o1")

        assert result.confirmed_allocation_ids == []
        assert result.partial_allocation_ids == [
            a.id for a in store.allocations.values() if a.order_item_id == "i1"
        ]
        assert _allocation_statuses(store) == {
            "i1": AllocationStatus.PARTIAL,
            "i2": AllocationStatus.CONFIRMED,
        }
        assert store.inventory[("W1", "B1")].reserved_quantity == 4


class TestConfirmAllocationValidation:

    def test_double_confirmation_rejected(self):
        store, uow, handler = _setup()
        handler.handle("u1", "o1")

        with pytest.raises(ConflictError, match="from ORDER_ALLOCATED to ORDER_ALLOCATED"):
            handler.handle("u1", "o1")

        assert store.inventory[("W1", "B1")].reserved_quantity == 6
        assert len(uow.activity_logs.entries) == 2

    def test_unknown_order_rejected(self):
        _, _, handler = _setup()
        with pytest.raises(NotFoundError, match="not found"):
            handler.handle("u1", "missing")

    def test_missing_inventory_row_rejected(self):
        store, _, handler = _setup()
        del store.inventory[("W1", "B2")]

        with pytest.raises(NotFoundError, match="W1/B2"):
            handler.handle("u1", "o1")
        assert store.orders["o1"].status is OrderStatus.ALLOCATING

    def test_unacknowledged_stock_update_rolls_back(self):
        store, uow, handler = _setup()
        uow.inventory.acknowledge_updates = False

        with pytest.raises(ServiceError, match="Unable to confirm inventory allocation"):
            handler.handle("u1", "o1")

        assert store.orders["o1"].status is OrderStatus.ALLOCATING
        assert set(_allocation_statuses(store).values()) == {AllocationStatus.PENDING}
        assert store.inventory[("W1", "B1")].reserved_quantity == 0


class TestReallocationAfterRestock:

    def test_backordered_item_allocated_after_restock(self):
        store, uow, handler = _setup(b_stock=0)
        handler.handle("u1", "o1")
        store.add_batch("W1", "B2", "B", 8, expiry_date=date(2025, 2, 1))

        allocated = AllocateInventoryHandler(uow, loaded_resolver()).handle("u1", "o1")
        assert store.item("i2").status is OrderStatus.ALLOCATING
        assert store.item("i1").status is OrderStatus.ALLOCATED
        result = handler.handle("u1", "o1")

        assert len(allocated.allocation_ids) == 1
        assert result.order_advanced
        assert store.orders["o1"].status is OrderStatus.ALLOCATED
        assert {i.status for i in store.orders["o1"].items} == {OrderStatus.ALLOCATED}
        assert result.confirmed_allocation_ids == allocated.allocation_ids
        assert set(_allocation_statuses(store).values()) == {AllocationStatus.CONFIRMED}
        assert store.inventory[("W1", "B1")].reserved_quantity == 6
        assert store.inventory[("W1", "B2")].reserved_quantity == 4

    def test_partial_item_topped_up_from_new_batch(self):
        store, uow, handler = _setup(a_stock=4)
        handler.handle("u1", "o1")
        store.add_batch("W1", "B3", "A", 5, expiry_date=date(2025, 3, 1))

        AllocateInventoryHandler(uow, loaded_resolver()).handle("u1", "o1")
        result = handler.handle("u1", "o1")

        i1 = sorted(
            (a.batch_id, a.allocated_quantity, a.status)
            for a in store.allocations.values()
            if a.order_item_id == "i1"
        )
        assert i1 == [
            ("B1", 4, AllocationStatus.CONFIRMED),
            ("B3", 2, AllocationStatus.CONFIRMED),
        ]
        assert result.order_status == "ORDER_ALLOCATED"
        assert store.inventory[("W1", "B3")].reserved_quantity == 2

    def test_still_short_item_stays_backordered(self):
        store, uow, handler = _setup(b_stock=0)
        handler.handle("u1", "o1")

        allocated = AllocateInventoryHandler(uow, loaded_resolver()).handle("u1", "o1")
        result = handler.handle("u1", "o1")

        assert allocated.allocation_ids == []
        assert not result.order_advanced
        assert store.item("i2").status is OrderStatus.BACKORDERED
        assert store.orders["o1"].status is OrderStatus.ALLOCATING

    def test_allocated_order_not_allocated_again(self):
        store, uow, handler = _setup()
        handler.handle("u1", "o1")

        with pytest.raises(ConflictError, match="from ORDER_ALLOCATED to ORDER_ALLOCATING"):
            AllocateInventoryHandler(uow, loaded_resolver()).handle("u1", "o1")
        assert len(store.allocations) == 2
