"""Fixed-width thermal receipt layout."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from orderdesk.config import CURRENCY_PREFIX, RECEIPT_WIDTH_CHARS, RESTAURANT_NAME
from orderdesk.models import Order, OrderStatus


def format_money(amount: Decimal, prefix: str = CURRENCY_PREFIX) -> str:
    """Whole-unit money label, e.g. `Rs. 1000`."""
    return f"{prefix} {amount.quantize(Decimal(1), rounding=ROUND_HALF_UP)}"


def _pair(left: str, right: str, width: int) -> str:
    gap = width - len(left) - len(right)
    if gap < 1:
        left = left[: max(0, width - len(right) - 1)]
        gap = 1
    return f"{left}{' ' * gap}{right}"


def receipt_lines(
    order: Order,
    restaurant_name: str = RESTAURANT_NAME,
    width: int = RECEIPT_WIDTH_CHARS,
) -> list[str]:
    """Lay out a receipt for one order as fixed-width text lines."""
    rule = "-" * width
    lines = [restaurant_name.upper().center(width).rstrip(), "Restaurant Bill".center(width).rstrip(), rule]

    lines.append(_pair("Bill #:", str(order.id), width))
    lines.append(_pair("Date:", order.timestamp.strftime("%d/%m/%Y %I:%M %p"), width))
    lines.append(_pair("Type:", order.order_type.value.upper(), width))
    if order.table_number is not None:
        lines.append(_pair("Table:", f"#{order.table_number}", width))
    if order.customer.name:
        lines.append(_pair("Customer:", order.customer.name, width))
    if order.customer.contact:
        lines.append(_pair("Contact:", order.customer.contact, width))
    if order.customer.address:
        lines.append("Address:")
        lines.append(f"  {order.customer.address}")
    lines.append(_pair("Staff:", order.staff_name, width))

    lines.append(rule)
    lines.append(_pair("ITEM", "AMOUNT", width))
    for item in order.items:
        lines.append(_pair(item.product.name, format_money(item.line_total), width))
        lines.append(f"  {item.quantity} x {format_money(item.product.price)}")
    lines.append(rule)

    lines.append(_pair("Subtotal:", format_money(order.subtotal), width))
    if order.discount_amount > 0:
        lines.append(_pair("Discount:", f"-{format_money(order.discount_amount)}", width))
    lines.append(_pair("TOTAL:", format_money(order.total), width))
    if order.status is OrderStatus.INCOMPLETE:
        lines.append(_pair("Paid:", format_money(order.amount_paid), width))
        lines.append(_pair("Remaining:", format_money(order.amount_remaining), width))
    elif order.status is OrderStatus.PENDING:
        lines.append("NOT PAID".center(width).rstrip())

    lines.append(rule)
    lines.append(f"Payment: {order.payment_method.value.upper()}")
    lines.append("Thank you for dining with us!".center(width).rstrip())
    return lines
