"""Rich text helpers for the operator console."""

from __future__ import annotations

from rich.text import Text

from orderdesk.models import LineItem, Order, OrderStatus, OrderType, Table, TableStatus
from orderdesk.persistence import StoreStats
from orderdesk.receipt import format_money
from orderdesk.reports import SalesReport


def status_style(status: OrderStatus) -> str:
    """Return a consistent badge style for order statuses."""
    if status is OrderStatus.COMPLETE:
        return "bold #0b1f0f on #5fbf72"
    if status is OrderStatus.INCOMPLETE:
        return "bold #ffffff on #b23a48"
    return "bold #1f1a0b on #e0b94f"


def type_badge(order_type: OrderType) -> str:
    """One-letter marker for an order type."""
    if order_type is OrderType.DINEIN:
        return "D"
    if order_type is OrderType.DELIVERY:
        return "V"
    return "T"


def format_table_cell(table: Table) -> Text:
    """Render a table as `T05 occupied #12 Rs. 1000`."""
    text = Text()
    label = f"T{table.number:02d}"
    if table.status is TableStatus.AVAILABLE:
        text.append(label, style="bold #0b1f0f on #5fbf72")
        text.append(" available", style="dim")
        return text

    text.append(label, style="bold #ffffff on #b23a48")
    order = table.current_order
    if order is not None:
        text.append(f" #{order.id} ")
        text.append(order.status.value, style=status_style(order.status))
        text.append(f" {format_money(order.amount_remaining)} due")
    return text


def format_order_row(order: Order) -> Text:
    """Render a one-line summary of an order."""
    text = Text()
    text.append(type_badge(order.order_type), style=status_style(order.status))
    text.append(f" #{order.id}")
    if order.table_number is not None:
        text.append(f" T{order.table_number:02d}")
    text.append(f" {order.status.value}")
    text.append(f"  {format_money(order.total)}")
    if order.amount_remaining > 0:
        text.append(f"  due {format_money(order.amount_remaining)}", style="bold")
    return text


def format_cart_line(item: LineItem) -> Text:
    """Render a cart line as `2 x Burger  Rs. 1000`."""
    text = Text()
    text.append(f"{item.quantity} x ", style="bold")
    text.append(item.product.name)
    text.append(f"  {format_money(item.line_total)}", style="dim")
    return text


def format_report(report: SalesReport) -> Text:
    """Render one sales report: totals, then each order type and payment method."""
    text = Text()
    text.append(report.title, style="bold")
    text.append(
        f"\n  {report.total_orders} orders  {format_money(report.total_revenue)}"
        f"  avg {format_money(report.average_order)}"
    )
    for order_type, part in report.by_type.items():
        text.append(f"\n  {type_badge(order_type)} {order_type.value:<9}{part.count:>4}  {format_money(part.revenue)}")
    for method, part in report.by_payment.items():
        text.append(f"\n    {method.value:<9}{part.count:>4}  {format_money(part.revenue)}", style="dim")
    return text


def format_stats(stats: StoreStats) -> Text:
    """Render stored order counts by status."""
    text = Text()
    text.append("Stored orders", style="bold")
    text.append(f"\n  total       {stats.total_orders:>5}")
    text.append(f"\n  complete    {stats.complete_orders:>5}", style=status_style(OrderStatus.COMPLETE))
    text.append(f"\n  incomplete  {stats.incomplete_orders:>5}", style=status_style(OrderStatus.INCOMPLETE))
    text.append(f"\n  pending     {stats.pending_orders:>5}", style=status_style(OrderStatus.PENDING))
    return text
