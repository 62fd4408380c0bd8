"""Tests for payment settlement."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from orderdesk.errors import ValidationError
from orderdesk.models import Order, OrderStatus, OrderType, PaymentMethod
from orderdesk.settlement import classify_payment, settle

from .conftest import line


def make_order(catalog, paid="0", status=OrderStatus.PENDING):
    total = Decimal("1000.00")
    paid = Decimal(paid)
    return Order(
        id=7,
        order_type=OrderType.DINEIN,
        table_number=5,
        items=(line(catalog, "burger", 2),),
        subtotal=total,
        discount_percent=Decimal(0),
        discount_amount=Decimal("0.00"),
        total=total,
        amount_paid=paid,
        amount_remaining=total - paid,
        status=status,
        payment_method=PaymentMethod.CASH,
        staff_name="alice",
        timestamp=datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc),
    )


class TestClassifyPayment:
    def test_full_payment_completes(self):
        assert classify_payment(Decimal("1000"), Decimal("1000")) == (
            OrderStatus.COMPLETE,
            Decimal("1000.00"),
            Decimal("0.00"),
        )

    def test_partial_payment_is_incomplete(self):
        status, paid, remaining = classify_payment(Decimal("1000"), Decimal("250"))

        assert status is OrderStatus.INCOMPLETE
        assert paid == Decimal("250")
        assert remaining == Decimal("750")

    def test_nothing_paid_is_pending(self):
        status, paid, remaining = classify_payment(Decimal("1000"), Decimal("0"))

        assert status is OrderStatus.PENDING
        assert paid + remaining == Decimal("1000")


class TestSettle:
    def test_first_payment_on_pending_order(self, catalog):
        settled = settle(make_order(catalog), 400)

        assert settled.status is OrderStatus.INCOMPLETE
        assert settled.amount_paid == Decimal("400")
        assert settled.amount_remaining == Decimal("600")

    def test_payment_completes_incomplete_order(self, catalog):
        settled = settle(make_order(catalog, paid="400", status=OrderStatus.INCOMPLETE), 600)

        assert settled.status is OrderStatus.COMPLETE
        assert settled.amount_paid == Decimal("1000")
        assert settled.amount_remaining == Decimal("0")

    def test_overpayment_is_capped_at_total(self, catalog):
        settled = settle(make_order(catalog), 1500)

        assert settled.status is OrderStatus.COMPLETE
        assert settled.amount_paid == Decimal("1000")
        assert settled.amount_remaining == Decimal("0")

    def test_paid_plus_remaining_equals_total(self, catalog):
        order = make_order(catalog)
        for amount in ("0.01", "333.33", "123.45", "1"):
            order = settle(order, amount)
            assert order.amount_paid + order.amount_remaining == order.total

    @pytest.mark.parametrize("amount", [0, -10, "-0.01"])
    def test_non_positive_amount_rejected(self, catalog, amount):
        with pytest.raises(ValidationError):
            settle(make_order(catalog), amount)

    def test_complete_order_rejected(self, catalog):
        order = make_order(catalog, paid="1000", status=OrderStatus.COMPLETE)

        with pytest.raises(ValidationError, match="already complete"):
            settle(order, 10)

    def test_settle_does_not_touch_items(self, catalog):
        order = make_order(catalog)
        settled = settle(order, 1000)

        assert settled.items == order.items
        assert settled.timestamp == order.timestamp
