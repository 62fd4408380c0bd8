"""Sales summaries and CSV export over completed orders."""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Iterable

from orderdesk.errors import StorageError
from orderdesk.models import CENT, Order, OrderStatus, OrderType, PaymentMethod

CSV_COLUMNS = [
    "Order ID",
    "Date",
    "Type",
    "Table",
    "Items",
    "Subtotal",
    "Discount",
    "Total",
    "Payment",
    "Customer",
    "Contact",
    "Staff",
    "Status",
    "Paid",
    "Remaining",
]


@dataclass(frozen=True)
class Breakdown:
    """Order count and revenue for one slice of a report."""

    count: int
    revenue: Decimal


@dataclass(frozen=True)
class SalesReport:
    """Totals for completed orders within a period."""

    title: str
    total_orders: int
    total_revenue: Decimal
    average_order: Decimal
    by_type: dict[OrderType, Breakdown]
    by_payment: dict[PaymentMethod, Breakdown]


def _breakdown(orders: list[Order]) -> Breakdown:
    return Breakdown(count=len(orders), revenue=sum((o.total for o in orders), Decimal("0.00")))


def start_of_day(now: datetime) -> datetime:
    """Midnight at the start of the given day."""
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def week_start(now: datetime) -> datetime:
    """Start of the current week; weeks begin on Sunday."""
    days_since_sunday = (now.weekday() + 1) % 7
    return start_of_day(now - timedelta(days=days_since_sunday))


def month_start(now: datetime) -> datetime:
    """Midnight on the first of the month."""
    return start_of_day(now.replace(day=1))


def orders_in_range(orders: Iterable[Order], date_from: datetime, date_to: datetime) -> list[Order]:
    """Completed orders whose timestamp falls within [date_from, date_to]."""
    return [
        order
        for order in orders
        if order.status is OrderStatus.COMPLETE and date_from <= order.timestamp <= date_to
    ]


def generate_report(orders: Iterable[Order], title: str) -> SalesReport:
    """Summarize completed orders by type and payment method."""
    completed = [order for order in orders if order.status is OrderStatus.COMPLETE]
    overall = _breakdown(completed)
    average = (overall.revenue / overall.count).quantize(CENT) if overall.count else Decimal("0.00")
    return SalesReport(
        title=title,
        total_orders=overall.count,
        total_revenue=overall.revenue,
        average_order=average,
        by_type={
            order_type: _breakdown([o for o in completed if o.order_type is order_type])
            for order_type in OrderType
        },
        by_payment={
            method: _breakdown([o for o in completed if o.payment_method is method])
            for method in PaymentMethod
        },
    )


def period_reports(orders: Iterable[Order], now: datetime) -> list[SalesReport]:
    """Today, week-to-date and month-to-date reports."""
    orders = list(orders)
    return [
        generate_report(orders_in_range(orders, start_of_day(now), now), "Today"),
        generate_report(orders_in_range(orders, week_start(now), now), "This Week"),
        generate_report(orders_in_range(orders, month_start(now), now), "This Month"),
    ]


def _csv_row(order: Order) -> list[str]:
    return [
        str(order.id),
        order.timestamp.isoformat(sep=" ", timespec="seconds"),
        order.order_type.value,
        str(order.table_number) if order.table_number is not None else "N/A",
        str(order.item_count),
        f"{order.subtotal:.2f}",
        f"{order.discount_amount:.2f}",
        f"{order.total:.2f}",
        order.payment_method.value,
        order.customer.name or "N/A",
        order.customer.contact or "N/A",
        order.staff_name,
        order.status.value,
        f"{order.amount_paid:.2f}",
        f"{order.amount_remaining:.2f}",
    ]


def orders_to_csv(orders: Iterable[Order]) -> str:
    """Render orders as CSV text with a header row."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for order in orders:
        writer.writerow(_csv_row(order))
    return buffer.getvalue()


def export_filename(now: datetime) -> str:
    """CSV file name stamped with the export time."""
    return f"orders-{now:%Y-%m-%dT%H-%M-%S}.csv"


def write_orders_csv(orders: Iterable[Order], path: str | Path) -> Path:
    """Write orders as CSV, creating parent directories."""
    out = Path(path)
    try:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(orders_to_csv(orders), encoding="utf-8")
    except OSError as exc:
        raise StorageError("export_csv", exc) from exc
    return out
