"""Tests for the order lifecycle manager."""

from decimal import Decimal

import pytest

from orderdesk.errors import NotFoundError, StorageError, ValidationError
from orderdesk.lifecycle import OrderManager, OrderSequence
from orderdesk.models import (
    CustomerInfo,
    LineItem,
    OrderFilter,
    OrderStatus,
    OrderType,
    PaymentMethod,
    Product,
    TableStatus,
)
from orderdesk.persistence import SqliteOrderStore

from .conftest import build_order, line


class FailingStore(SqliteOrderStore):
    """SQLite store whose inserts fail while `broken` is set."""

    broken = False

    def save_order(self, order):
        if self.broken:
            raise StorageError("save_order", OSError("disk full"))
        return super().save_order(order)


def dinein_for_table_five(manager, catalog, payer_amount=0):
    return manager.create_order(
        OrderType.DINEIN,
        [line(catalog, "burger", 2)],
        discount_percent=0,
        payer_amount=payer_amount,
        table_number=5,
    )


class TestOrderSequence:
    def test_starts_after_last_issued(self):
        seq = OrderSequence(41)
        assert seq.peek() == 42

    def test_advance_requires_peeked_id(self):
        seq = OrderSequence()
        seq.advance(1)
        assert seq.peek() == 2

        with pytest.raises(ValueError):
            seq.advance(5)


class TestScenarios:
    """The dine-in walk-through from seating to settlement."""

    def test_scenario_a_pending_dinein_occupies_table(self, manager, catalog):
        order = dinein_for_table_five(manager, catalog)

        assert order.total == Decimal("1000")
        assert order.status is OrderStatus.PENDING
        table = manager.tables.get(5)
        assert table.status is TableStatus.OCCUPIED
        assert table.current_order.id == order.id

    def test_scenario_b_partial_payment_keeps_table(self, manager, catalog):
        order = dinein_for_table_five(manager, catalog)
        paid = manager.record_payment(order.id, 400)

        assert paid.amount_paid == Decimal("400")
        assert paid.amount_remaining == Decimal("600")
        assert paid.status is OrderStatus.INCOMPLETE
        table = manager.tables.get(5)
        assert table.status is TableStatus.OCCUPIED
        assert table.current_order.amount_remaining == Decimal("600")

    def test_scenario_c_final_payment_frees_table(self, manager, catalog):
        order = dinein_for_table_five(manager, catalog)
        manager.record_payment(order.id, 400)
        paid = manager.record_payment(order.id, 600)

        assert paid.amount_paid == Decimal("1000")
        assert paid.amount_remaining == Decimal("0")
        assert paid.status is OrderStatus.COMPLETE
        table = manager.tables.get(5)
        assert table.status is TableStatus.AVAILABLE
        assert table.current_order is None

    def test_scenario_d_delivery_without_address(self, manager, catalog, sqlite_store):
        next_id = manager.sequence.peek()

        with pytest.raises(ValidationError, match="address"):
            manager.create_order(
                OrderType.DELIVERY,
                [line(catalog, "fries")],
                payer_amount=150,
                customer=CustomerInfo(name="Sam", address="   "),
            )

        assert sqlite_store.list_orders() == []
        assert manager.sequence.peek() == next_id

    def test_scenario_e_overpayment_capped(self, manager, catalog):
        order = dinein_for_table_five(manager, catalog)
        paid = manager.record_payment(order.id, 1500)

        assert paid.amount_paid == Decimal("1000")
        assert paid.amount_remaining == Decimal("0")
        assert paid.status is OrderStatus.COMPLETE


class TestCreateOrder:
    def test_ids_strictly_increase(self, manager, catalog):
        ids = [
            manager.create_order(OrderType.TAKEAWAY, [line(catalog, "fries")], payer_amount=150).id
            for _ in range(5)
        ]

        assert ids == sorted(ids)
        assert len(set(ids)) == 5
        assert ids[0] == 1

    def test_full_payment_completes(self, manager, catalog):
        order = manager.create_order(
            OrderType.TAKEAWAY,
            [line(catalog, "burger"), line(catalog, "cola", 2)],
            discount_percent=10,
            payment_method="card",
            payer_amount="629.10",
        )

        assert order.status is OrderStatus.COMPLETE
        assert order.subtotal == Decimal("699.00")
        assert order.discount_amount == Decimal("69.90")
        assert order.total == Decimal("629.10")
        assert order.payment_method is PaymentMethod.CARD
        assert order.staff_name == "alice"

    def test_partial_takeaway_is_incomplete(self, manager, catalog):
        order = manager.create_order(OrderType.TAKEAWAY, [line(catalog, "burger")], payer_amount=200)

        assert order.status is OrderStatus.INCOMPLETE
        assert order.amount_remaining == Decimal("300")

    def test_unpaid_takeaway_rejected(self, manager, catalog):
        with pytest.raises(ValidationError):
            manager.create_order(OrderType.TAKEAWAY, [line(catalog, "burger")], payer_amount=0)

    def test_empty_items_rejected(self, manager):
        with pytest.raises(ValidationError, match="at least one item"):
            manager.create_order(OrderType.TAKEAWAY, [], payer_amount=10)

    def test_payer_amount_above_total_rejected(self, manager, catalog):
        with pytest.raises(ValidationError, match="exceeds"):
            manager.create_order(OrderType.TAKEAWAY, [line(catalog, "fries")], payer_amount=151)

    def test_negative_payer_amount_rejected(self, manager, catalog):
        with pytest.raises(ValidationError):
            manager.create_order(OrderType.TAKEAWAY, [line(catalog, "fries")], payer_amount=-1)

    def test_unknown_order_type_rejected(self, manager, catalog):
        with pytest.raises(ValidationError, match="order type"):
            manager.create_order("drive-through", [line(catalog, "fries")], payer_amount=150)

    def test_dinein_needs_table(self, manager, catalog):
        with pytest.raises(ValidationError, match="table"):
            manager.create_order(OrderType.DINEIN, [line(catalog, "fries")])

    def test_unknown_table_not_found(self, manager, catalog):
        with pytest.raises(NotFoundError):
            manager.create_order(OrderType.DINEIN, [line(catalog, "fries")], table_number=99)

    def test_takeaway_with_table_rejected(self, manager, catalog):
        with pytest.raises(ValidationError):
            manager.create_order(OrderType.TAKEAWAY, [line(catalog, "fries")], payer_amount=150, table_number=3)

    def test_second_order_on_occupied_table_rejected(self, manager, catalog):
        first = dinein_for_table_five(manager, catalog)

        with pytest.raises(ValidationError, match=f"#{first.id}"):
            dinein_for_table_five(manager, catalog)
        assert manager.open_table(5).id == first.id

    def test_delivery_keeps_address(self, manager, catalog):
        order = manager.create_order(
            OrderType.DELIVERY,
            [line(catalog, "burger")],
            payer_amount=500,
            customer=CustomerInfo(name=" Sam ", contact="0300", address="12 Mall Road"),
        )

        assert order.customer == CustomerInfo(name="Sam", contact="0300", address="12 Mall Road")

    def test_address_dropped_for_takeaway(self, manager, catalog):
        order = manager.create_order(
            OrderType.TAKEAWAY,
            [line(catalog, "burger")],
            payer_amount=500,
            customer=CustomerInfo(address="ignored"),
        )

        assert order.customer.address is None

    def test_fully_paid_dinein_leaves_table_available(self, manager, catalog):
        dinein_for_table_five(manager, catalog, payer_amount=1000)

        assert manager.tables.get(5).status is TableStatus.AVAILABLE

    def test_timestamp_from_clock(self, manager, catalog, clock):
        expected = clock.current
        order = manager.create_order(OrderType.TAKEAWAY, [line(catalog, "fries")], payer_amount=150)

        assert order.timestamp == expected


class TestStorageFailure:
    def test_failed_save_does_not_consume_id_or_table(self, tmp_path, catalog, clock):
        store = FailingStore(tmp_path / "orders.db")
        store.bootstrap_schema()
        manager = OrderManager(store, catalog, table_count=12, clock=clock)

        store.broken = True
        with pytest.raises(StorageError):
            dinein_for_table_five(manager, catalog)

        assert manager.sequence.peek() == 1
        assert manager.tables.get(5).status is TableStatus.AVAILABLE

        store.broken = False
        order = dinein_for_table_five(manager, catalog)
        assert order.id == 1


class TestTableOrders:
    def test_save_table_order_creates_then_edits(self, manager, catalog):
        first = manager.save_table_order(3, [line(catalog, "burger")])
        edited = manager.save_table_order(3, [line(catalog, "burger"), line(catalog, "fries", 2)])

        assert edited.id == first.id
        assert edited.total == Decimal("800")
        assert edited.status is OrderStatus.PENDING
        assert manager.open_table(3).total == Decimal("800")
        assert manager.get_order(first.id).items == edited.items

    def test_resaving_a_free_draft_completes_it(self, manager, catalog):
        order = manager.save_table_order(3, [line(catalog, "burger")])
        water = LineItem(product=Product(id="water", name="Water", price=Decimal("0"), category="Beverages"), quantity=2)

        edited = manager.save_table_order(3, [water])

        assert edited.id == order.id
        assert edited.status is OrderStatus.COMPLETE
        assert edited.amount_remaining == Decimal("0.00")
        assert manager.tables.get(3).status is TableStatus.AVAILABLE

    def test_edit_after_billing_rejected(self, manager, catalog):
        order = manager.save_table_order(3, [line(catalog, "burger")])
        manager.record_payment(order.id, 100)

        with pytest.raises(ValidationError, match="locked"):
            manager.save_table_order(3, [line(catalog, "fries")])

    def test_open_table_returns_none_when_free(self, manager):
        assert manager.open_table(4) is None

    def test_bill_order_applies_discount_and_payment(self, manager, catalog):
        order = manager.save_table_order(2, [line(catalog, "burger", 2)])
        billed = manager.bill_order(
            order.id,
            payer_amount=300,
            discount_percent=10,
            payment_method=PaymentMethod.UPI,
            customer=CustomerInfo(name="Ayesha"),
        )

        assert billed.total == Decimal("900")
        assert billed.status is OrderStatus.INCOMPLETE
        assert billed.amount_remaining == Decimal("600")
        assert billed.payment_method is PaymentMethod.UPI
        assert billed.customer.name == "Ayesha"
        assert manager.tables.get(2).current_order.id == order.id

    def test_bill_order_in_full_frees_table(self, manager, catalog):
        order = manager.save_table_order(2, [line(catalog, "fries")])
        billed = manager.bill_order(order.id, payer_amount=150)

        assert billed.status is OrderStatus.COMPLETE
        assert manager.tables.get(2).status is TableStatus.AVAILABLE

    def test_bill_order_needs_payment(self, manager, catalog):
        order = manager.save_table_order(2, [line(catalog, "fries")])

        with pytest.raises(ValidationError):
            manager.bill_order(order.id, payer_amount=0)

    def test_bill_only_pending(self, manager, catalog):
        order = manager.create_order(OrderType.TAKEAWAY, [line(catalog, "fries")], payer_amount=50)

        with pytest.raises(ValidationError, match="pending"):
            manager.bill_order(order.id, payer_amount=50)


class TestPayments:
    def test_complete_incomplete_order(self, manager, catalog):
        order = manager.create_order(OrderType.TAKEAWAY, [line(catalog, "burger")], payer_amount=100)
        done = manager.complete_incomplete_order(order.id)

        assert done.status is OrderStatus.COMPLETE
        assert done.amount_paid == Decimal("500")
        assert manager.incomplete_orders() == []

    def test_complete_requires_incomplete(self, manager, catalog):
        order = dinein_for_table_five(manager, catalog)

        with pytest.raises(ValidationError, match="not incomplete"):
            manager.complete_incomplete_order(order.id)

    def test_payment_on_complete_order_rejected(self, manager, catalog):
        order = manager.create_order(OrderType.TAKEAWAY, [line(catalog, "fries")], payer_amount=150)

        with pytest.raises(ValidationError):
            manager.record_payment(order.id, 10)

    def test_payment_on_missing_order(self, manager):
        with pytest.raises(NotFoundError):
            manager.record_payment(404, 10)

    def test_payment_is_persisted(self, manager, catalog, sqlite_store):
        order = dinein_for_table_five(manager, catalog)
        manager.record_payment(order.id, 250)

        stored = sqlite_store.get_order(order.id)
        assert stored.amount_paid == Decimal("250")
        assert stored.status is OrderStatus.INCOMPLETE


class TestListAndDelete:
    def test_list_orders_by_status_and_type(self, manager, catalog):
        dinein_for_table_five(manager, catalog)
        manager.create_order(OrderType.TAKEAWAY, [line(catalog, "fries")], payer_amount=150)
        manager.create_order(OrderType.TAKEAWAY, [line(catalog, "fries")], payer_amount=50)

        assert len(manager.list_orders()) == 3
        assert [o.status for o in manager.list_orders(OrderFilter(status=OrderStatus.COMPLETE))] == [
            OrderStatus.COMPLETE
        ]
        assert len(manager.list_orders(OrderFilter(order_type=OrderType.TAKEAWAY))) == 2
        assert len(manager.completed_orders()) == 1

    def test_delete_refused_while_table_held(self, manager, catalog):
        order = dinein_for_table_five(manager, catalog)

        with pytest.raises(ValidationError, match="table 5"):
            manager.delete_order(order.id)
        assert manager.get_order(order.id).id == order.id

    def test_deleted_id_is_never_reused(self, manager, catalog, sqlite_store, clock):
        first = manager.create_order(OrderType.TAKEAWAY, [line(catalog, "fries")], payer_amount=150)
        second = manager.create_order(OrderType.TAKEAWAY, [line(catalog, "fries")], payer_amount=150)
        manager.delete_order(second.id)

        with pytest.raises(NotFoundError):
            manager.get_order(second.id)

        restarted = OrderManager(sqlite_store, catalog, clock=clock)
        third = restarted.create_order(OrderType.TAKEAWAY, [line(catalog, "fries")], payer_amount=150)
        assert third.id == second.id + 1
        assert first.id < second.id < third.id

    def test_new_manager_skips_an_early_deleted_id(self, manager, catalog, sqlite_store, clock):
        first = manager.create_order(OrderType.TAKEAWAY, [line(catalog, "fries")], payer_amount=150)
        manager.create_order(OrderType.TAKEAWAY, [line(catalog, "fries")], payer_amount=150)
        manager.delete_order(first.id)

        restarted = OrderManager(sqlite_store, catalog, clock=clock)
        order = restarted.create_order(OrderType.TAKEAWAY, [line(catalog, "fries")], payer_amount=150)

        assert order.id == 3
        assert [o.id for o in restarted.list_orders()] == [2, 3]

    def test_manager_refuses_to_start_without_storage(self, tmp_path, catalog):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")

        with pytest.raises(StorageError):
            OrderManager(SqliteOrderStore(blocker / "orders.db"), catalog)


class TestReload:
    def test_new_manager_rebuilds_tables_and_sequence(self, sqlite_store, catalog, clock):
        manager = OrderManager(sqlite_store, catalog, clock=clock)
        order = dinein_for_table_five(manager, catalog)
        manager.record_payment(order.id, 100)
        manager.save_table_order(7, [line(catalog, "cola")])

        fresh = OrderManager(sqlite_store, catalog, clock=clock)

        assert fresh.tables.snapshot() == manager.tables.snapshot()
        assert fresh.sequence.peek() == manager.sequence.peek()
        assert fresh.open_table(5).amount_paid == Decimal("100")

    def test_balances_and_tables_stay_consistent(self, manager, catalog):
        dinein_for_table_five(manager, catalog)
        manager.create_order(OrderType.TAKEAWAY, [line(catalog, "cola", 3)], payer_amount="100.25")
        manager.record_payment(1, "333.33")

        for order in manager.list_orders():
            assert order.amount_paid + order.amount_remaining == order.total
        for table in manager.table_list():
            assert (table.status is TableStatus.OCCUPIED) == (table.current_order is not None)
            if table.current_order is not None:
                assert table.current_order.table_number == table.number


class TestSharedTableOrders:
    """A store where two open orders name table 2."""

    @pytest.fixture
    def shared(self, sqlite_store, catalog, clock):
        sqlite_store.save_order(build_order(catalog, order_id=3, table_number=2))
        sqlite_store.save_order(build_order(catalog, order_id=5, table_number=2))
        return OrderManager(sqlite_store, catalog, clock=clock)

    def test_live_tables_match_a_fresh_load(self, shared, sqlite_store, catalog, clock):
        shared.record_payment(5, 100)

        assert shared.tables.snapshot() == OrderManager(sqlite_store, catalog, clock=clock).tables.snapshot()
        assert shared.open_table(2).id == 3

        shared.record_payment(3, 1000)

        assert shared.tables.snapshot() == OrderManager(sqlite_store, catalog, clock=clock).tables.snapshot()
        assert shared.open_table(2).id == 5

    def test_no_new_order_while_one_is_still_open(self, shared, catalog):
        shared.record_payment(3, 1000)

        with pytest.raises(ValidationError, match="#5"):
            shared.create_order(OrderType.DINEIN, [line(catalog, "fries")], table_number=2)

    def test_waiting_order_cannot_be_deleted(self, shared):
        with pytest.raises(ValidationError, match="table 2"):
            shared.delete_order(5)
