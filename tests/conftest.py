"""Pytest fixtures for orderdesk tests."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from orderdesk.cart import compute_totals
from orderdesk.data import Catalog
from orderdesk.json_store import JsonOrderStore
from orderdesk.lifecycle import OrderManager
from orderdesk.models import (
    CustomerInfo,
    LineItem,
    Order,
    OrderStatus,
    OrderType,
    PaymentMethod,
    Product,
)
from orderdesk.persistence import SqliteOrderStore

START = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class TickingClock:
    """Deterministic clock advancing one minute per call."""

    def __init__(self, start: datetime = START):
        self.current = start

    def __call__(self) -> datetime:
        now = self.current
        self.current = now + timedelta(minutes=1)
        return now


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def catalog():
    return Catalog(
        [
            Product(id="burger", name="Burger", price=Decimal("500"), category="Mains"),
            Product(id="fries", name="Fries", price=Decimal("150"), category="Sides"),
            Product(id="cola", name="Cola", price=Decimal("99.50"), category="Beverages"),
        ]
    )


@pytest.fixture
def sqlite_store(tmp_path):
    store = SqliteOrderStore(tmp_path / "orders.db")
    store.bootstrap_schema()
    return store


@pytest.fixture
def json_store(tmp_path):
    return JsonOrderStore(tmp_path / "orders.json")


@pytest.fixture(params=["sqlite", "json"])
def store(request, tmp_path):
    """Each storage backend in turn."""
    if request.param == "sqlite":
        sqlite = SqliteOrderStore(tmp_path / "orders.db")
        sqlite.bootstrap_schema()
        return sqlite
    return JsonOrderStore(tmp_path / "orders.json")


@pytest.fixture
def manager(sqlite_store, catalog, clock):
    mgr = OrderManager(sqlite_store, catalog, table_count=12, clock=clock, staff_name="alice")
    return mgr


def line(catalog, product_id, quantity=1):
    """Build a line item from the test catalog."""
    return LineItem(product=catalog.get_product(product_id), quantity=quantity)


def build_order(
    catalog,
    order_id=1,
    order_type=OrderType.DINEIN,
    status=OrderStatus.PENDING,
    table_number=None,
    items=None,
    paid=None,
    discount_percent=0,
    payment_method=PaymentMethod.CASH,
    customer=None,
    timestamp=START,
):
    """Build an Order record directly, bypassing the manager's rules."""
    items = tuple(items) if items is not None else (line(catalog, "burger", 2),)
    totals = compute_totals(items, discount_percent)
    if paid is None:
        paid = totals.total if status is OrderStatus.COMPLETE else Decimal("0.00")
    paid = Decimal(paid)
    return Order(
        id=order_id,
        order_type=order_type,
        table_number=table_number,
        items=items,
        subtotal=totals.subtotal,
        discount_percent=totals.discount_percent,
        discount_amount=totals.discount_amount,
        total=totals.total,
        amount_paid=paid,
        amount_remaining=totals.total - paid,
        status=status,
        payment_method=payment_method,
        staff_name="alice",
        timestamp=timestamp,
        customer=customer or CustomerInfo(),
    )
