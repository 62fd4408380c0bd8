"""Payment settlement against open orders."""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal

from orderdesk.errors import ValidationError
from orderdesk.models import Order, OrderStatus, to_money


def classify_payment(total: Decimal, amount_paid: Decimal) -> tuple[OrderStatus, Decimal, Decimal]:
    """Return (status, amount_paid, amount_remaining) for a payment level.

    A payment at or above the total completes the order and is capped at the
    total; any positive shortfall leaves it incomplete; nothing paid is pending.
    """
    total = to_money(total)
    amount_paid = to_money(amount_paid)
    if amount_paid >= total:
        return (OrderStatus.COMPLETE, total, Decimal("0.00"))
    if amount_paid > 0:
        return (OrderStatus.INCOMPLETE, amount_paid, total - amount_paid)
    return (OrderStatus.PENDING, Decimal("0.00"), total)


def settle(order: Order, amount: Decimal | int | str) -> Order:
    """Apply a payment to an open order and return the updated order."""
    payment = to_money(amount)
    if payment <= 0:
        raise ValidationError("payment amount must be greater than zero")
    if order.status is OrderStatus.COMPLETE:
        raise ValidationError(f"order #{order.id} is already complete")

    status, paid, remaining = classify_payment(order.total, order.amount_paid + payment)
    return replace(order, status=status, amount_paid=paid, amount_remaining=remaining)
