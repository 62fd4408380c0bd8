"""Order lifecycle: numbering, creation, billing, payment and table coordination."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Callable, Iterable

from orderdesk.cart import compute_totals
from orderdesk.config import STAFF_NAME, TABLE_COUNT
from orderdesk.data import Catalog
from orderdesk.errors import NotFoundError, ValidationError
from orderdesk.models import (
    CustomerInfo,
    LineItem,
    Order,
    OrderFilter,
    OrderStatus,
    OrderType,
    PaymentMethod,
    Table,
    to_money,
)
from orderdesk.persistence import OrderStore
from orderdesk.settlement import classify_payment, settle
from orderdesk.tables import TableRegistry, reconcile_tables

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OrderSequence:
    """Monotonic order-id allocator seeded from the highest id ever issued."""

    def __init__(self, last_issued: int = 0) -> None:
        if last_issued < 0:
            raise ValueError("last_issued must not be negative")
        self._next = last_issued + 1

    @classmethod
    def from_store(cls, store: OrderStore) -> OrderSequence:
        """Seed from the highest id the store has ever issued."""
        return cls(store.last_order_id())

    def peek(self) -> int:
        """Id the next successful create will receive."""
        return self._next

    def advance(self, issued_id: int) -> None:
        """Mark an id as consumed once its order is persisted."""
        if issued_id != self._next:
            raise ValueError(f"expected to consume id {self._next}, got {issued_id}")
        self._next += 1


def _coerce_enum(enum_cls, value, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"{field_name} must be one of: {allowed}") from exc


def _coerce_amount(value: Decimal | int | str, field_name: str) -> Decimal:
    try:
        return to_money(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValidationError(f"{field_name} must be a number") from exc


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _validate_items(items: Iterable[LineItem]) -> tuple[LineItem, ...]:
    items = tuple(items)
    if not items:
        raise ValidationError("an order needs at least one item")
    for item in items:
        if item.quantity < 1:
            raise ValidationError(f"quantity for {item.product.name} must be at least 1")
    return items


class OrderManager:
    """Owns the order sequence and table registry and keeps them in step with storage."""

    def __init__(
        self,
        store: OrderStore,
        catalog: Catalog,
        table_count: int = TABLE_COUNT,
        clock: Clock = _utc_now,
        staff_name: str = STAFF_NAME,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.clock = clock
        self.staff_name = staff_name
        self.sequence = OrderSequence()
        self.tables = TableRegistry(table_count)
        self.reload()

    def reload(self) -> list[Order]:
        """Re-read all orders, reseed numbering and rebuild table occupancy."""
        orders = self.store.list_orders()
        self.sequence = OrderSequence.from_store(self.store)
        reconcile_tables(self.tables, orders)
        logger.info("loaded %d orders, next order id %d", len(orders), self.sequence.peek())
        return orders

    def get_order(self, order_id: int) -> Order:
        """Fetch a stored order, raising NotFoundError when it is missing."""
        order = self.store.get_order(order_id)
        if order is None:
            raise NotFoundError("order", order_id)
        return order

    def list_orders(self, order_filter: OrderFilter | None = None) -> list[Order]:
        """Stored orders matching a filter, by id."""
        return self.store.list_orders(order_filter)

    def incomplete_orders(self) -> list[Order]:
        """Orders with a part payment still outstanding."""
        return self.store.list_orders(OrderFilter(status=OrderStatus.INCOMPLETE))

    def completed_orders(self) -> list[Order]:
        """Fully paid orders."""
        return self.store.list_orders(OrderFilter(status=OrderStatus.COMPLETE))

    def table_list(self) -> list[Table]:
        """Current state of every table."""
        return self.tables.all()

    def open_table(self, table_number: int) -> Order | None:
        """Resolve a table to its open order, or None when a new order should start."""
        return self.tables.current_order(table_number)

    def create_order(
        self,
        order_type: OrderType | str,
        items: Iterable[LineItem],
        *,
        discount_percent: Decimal | int | str = 0,
        payment_method: PaymentMethod | str = PaymentMethod.CASH,
        payer_amount: Decimal | int | str = 0,
        customer: CustomerInfo | None = None,
        staff_name: str | None = None,
        table_number: int | None = None,
    ) -> Order:
        """Validate, number and persist a new order; dine-in orders claim their table."""
        order_type = _coerce_enum(OrderType, order_type, "order type")
        payment_method = _coerce_enum(PaymentMethod, payment_method, "payment method")
        items = _validate_items(items)
        customer = customer or CustomerInfo()
        address = _clean(customer.address)

        if order_type is OrderType.DINEIN:
            if table_number is None:
                raise ValidationError("dine-in orders need a table number")
            current = self.tables.current_order(table_number)
            if current is not None:
                raise ValidationError(
                    f"table {table_number} already has open order #{current.id}; edit that order instead"
                )
        elif table_number is not None:
            raise ValidationError(f"{order_type.value} orders cannot be seated at a table")
        if order_type is OrderType.DELIVERY and address is None:
            raise ValidationError("delivery orders need a customer address")

        try:
            totals = compute_totals(items, discount_percent)
        except InvalidOperation as exc:
            raise ValidationError("discount must be a number") from exc
        paid_in = _coerce_amount(payer_amount, "payer amount")
        if paid_in < 0:
            raise ValidationError("payer amount must not be negative")
        if paid_in > totals.total:
            raise ValidationError(f"payer amount {paid_in} exceeds order total {totals.total}")

        status, amount_paid, amount_remaining = classify_payment(totals.total, paid_in)
        if status is OrderStatus.PENDING and order_type is not OrderType.DINEIN:
            raise ValidationError(f"{order_type.value} orders must be paid at least in part")

        order = Order(
            id=self.sequence.peek(),
            order_type=order_type,
            table_number=table_number,
            items=items,
            subtotal=totals.subtotal,
            discount_percent=totals.discount_percent,
            discount_amount=totals.discount_amount,
            total=totals.total,
            amount_paid=amount_paid,
            amount_remaining=amount_remaining,
            status=status,
            payment_method=payment_method,
            customer=CustomerInfo(
                name=_clean(customer.name),
                contact=_clean(customer.contact),
                address=address if order_type is OrderType.DELIVERY else None,
            ),
            staff_name=staff_name or self.staff_name,
            timestamp=self.clock(),
        )
        self.store.save_order(order)
        self.sequence.advance(order.id)
        self.tables.sync_order(order)
        logger.info(
            "created order #%d type=%s status=%s total=%s paid=%s table=%s",
            order.id,
            order.order_type.value,
            order.status.value,
            order.total,
            order.amount_paid,
            order.table_number,
        )
        return order

    def save_table_order(self, table_number: int, items: Iterable[LineItem], staff_name: str | None = None) -> Order:
        """Save the working cart for a table as a pending draft, creating or editing it."""
        current = self.open_table(table_number)
        if current is None:
            return self.create_order(
                OrderType.DINEIN, items, table_number=table_number, staff_name=staff_name
            )
        if current.status is not OrderStatus.PENDING:
            raise ValidationError(f"order #{current.id} has been billed; its items are locked")

        items = _validate_items(items)
        totals = compute_totals(items, current.discount_percent)
        status, amount_paid, amount_remaining = classify_payment(totals.total, Decimal("0.00"))
        updated = self.store.update_order(
            current.id,
            items=items,
            subtotal=totals.subtotal,
            discount_amount=totals.discount_amount,
            total=totals.total,
            amount_paid=amount_paid,
            amount_remaining=amount_remaining,
            status=status,
        )
        self.tables.sync_order(updated)
        logger.info("re-saved order #%d on table %d total=%s", updated.id, table_number, updated.total)
        return updated

    def bill_order(
        self,
        order_id: int,
        *,
        payer_amount: Decimal | int | str,
        discount_percent: Decimal | int | str = 0,
        payment_method: PaymentMethod | str = PaymentMethod.CASH,
        customer: CustomerInfo | None = None,
    ) -> Order:
        """Take the first payment for a pending draft, fixing its discount and payment method."""
        order = self.get_order(order_id)
        if order.status is not OrderStatus.PENDING:
            raise ValidationError(f"order #{order.id} is {order.status.value}; only pending orders are billed")
        payment_method = _coerce_enum(PaymentMethod, payment_method, "payment method")
        try:
            totals = compute_totals(order.items, discount_percent)
        except InvalidOperation as exc:
            raise ValidationError("discount must be a number") from exc
        paid_in = _coerce_amount(payer_amount, "payer amount")
        if paid_in < 0:
            raise ValidationError("payer amount must not be negative")
        if paid_in > totals.total:
            raise ValidationError(f"payer amount {paid_in} exceeds order total {totals.total}")

        status, amount_paid, amount_remaining = classify_payment(totals.total, paid_in)
        if status is OrderStatus.PENDING:
            raise ValidationError("billing needs a payment greater than zero")

        customer = customer or order.customer
        updated = self.store.update_order(
            order.id,
            discount_percent=totals.discount_percent,
            discount_amount=totals.discount_amount,
            total=totals.total,
            amount_paid=amount_paid,
            amount_remaining=amount_remaining,
            status=status,
            payment_method=payment_method,
            customer=CustomerInfo(name=_clean(customer.name), contact=_clean(customer.contact)),
        )
        self.tables.sync_order(updated)
        logger.info("billed order #%d status=%s paid=%s", updated.id, updated.status.value, updated.amount_paid)
        return updated

    def record_payment(self, order_id: int, amount: Decimal | int | str) -> Order:
        """Apply a payment to an open order; a full settlement frees its table."""
        order = self.get_order(order_id)
        settled = settle(order, _coerce_amount(amount, "payment amount"))
        updated = self.store.update_order(
            order.id,
            status=settled.status,
            amount_paid=settled.amount_paid,
            amount_remaining=settled.amount_remaining,
        )
        self.tables.sync_order(updated)
        logger.info(
            "payment on order #%d amount=%s status=%s remaining=%s",
            updated.id,
            amount,
            updated.status.value,
            updated.amount_remaining,
        )
        return updated

    def complete_incomplete_order(self, order_id: int) -> Order:
        """Settle the full remaining balance of an incomplete order."""
        order = self.get_order(order_id)
        if order.status is not OrderStatus.INCOMPLETE:
            raise ValidationError(f"order #{order.id} is {order.status.value}, not incomplete")
        return self.record_payment(order.id, order.amount_remaining)

    def delete_order(self, order_id: int) -> None:
        """Administrative delete; refused while the order is open on a table."""
        order = self.get_order(order_id)
        if order.is_open_dinein:
            raise ValidationError(
                f"order #{order.id} is open on table {order.table_number}; settle it before deleting"
            )
        self.store.delete_order(order.id)
        logger.warning("deleted order #%d", order.id)
