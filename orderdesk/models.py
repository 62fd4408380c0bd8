"""Domain models for orderdesk."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

CENT = Decimal("0.01")


def to_money(value: Decimal | int | float | str) -> Decimal:
    """Coerce a number to a cent-quantized Decimal."""
    if isinstance(value, float):
        value = repr(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class OrderType(str, Enum):
    TAKEAWAY = "takeaway"
    DINEIN = "dinein"
    DELIVERY = "delivery"


class OrderStatus(str, Enum):
    PENDING = "pending"
    INCOMPLETE = "incomplete"
    COMPLETE = "complete"

    @property
    def is_open(self) -> bool:
        """True until the order is fully paid."""
        return self is not OrderStatus.COMPLETE


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    UPI = "upi"


class TableStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"


@dataclass(frozen=True)
class Product:
    """A sellable catalog product."""

    id: str
    name: str
    price: Decimal
    category: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "price": str(self.price), "category": self.category}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Product:
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            price=to_money(data["price"]),
            category=str(data["category"]),
        )


@dataclass(frozen=True)
class LineItem:
    """One product snapshot and its quantity within an order."""

    product: Product
    quantity: int

    @property
    def line_total(self) -> Decimal:
        """Unit price times quantity."""
        return to_money(self.product.price * self.quantity)

    def to_dict(self) -> dict[str, Any]:
        return {"product": self.product.to_dict(), "quantity": self.quantity}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LineItem:
        return cls(product=Product.from_dict(data["product"]), quantity=int(data["quantity"]))


@dataclass(frozen=True)
class CustomerInfo:
    """Optional customer details captured at billing time."""

    name: str | None = None
    contact: str | None = None
    address: str | None = None


@dataclass(frozen=True)
class Totals:
    """Computed money figures for a set of line items."""

    subtotal: Decimal
    discount_percent: Decimal
    discount_amount: Decimal
    total: Decimal


@dataclass(frozen=True)
class Order:
    """A committed order record."""

    id: int
    order_type: OrderType
    items: tuple[LineItem, ...]
    subtotal: Decimal
    discount_percent: Decimal
    discount_amount: Decimal
    total: Decimal
    amount_paid: Decimal
    amount_remaining: Decimal
    status: OrderStatus
    payment_method: PaymentMethod
    staff_name: str
    timestamp: datetime
    table_number: int | None = None
    customer: CustomerInfo = field(default_factory=CustomerInfo)

    @property
    def is_open_dinein(self) -> bool:
        """True when the order should hold its table."""
        return self.order_type is OrderType.DINEIN and self.status.is_open

    @property
    def item_count(self) -> int:
        """Total units across all lines."""
        return sum(item.quantity for item in self.items)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.order_type.value,
            "tableNumber": self.table_number,
            "items": [item.to_dict() for item in self.items],
            "subtotal": str(self.subtotal),
            "discountPercent": str(self.discount_percent),
            "discountAmount": str(self.discount_amount),
            "total": str(self.total),
            "amountPaid": str(self.amount_paid),
            "amountRemaining": str(self.amount_remaining),
            "status": self.status.value,
            "paymentMethod": self.payment_method.value,
            "customerName": self.customer.name,
            "customerContact": self.customer.contact,
            "customerAddress": self.customer.address,
            "staffName": self.staff_name,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Order:
        table_number = data.get("tableNumber")
        return cls(
            id=int(data["id"]),
            order_type=OrderType(data["type"]),
            table_number=int(table_number) if table_number is not None else None,
            items=tuple(LineItem.from_dict(item) for item in data["items"]),
            subtotal=to_money(data["subtotal"]),
            discount_percent=Decimal(str(data["discountPercent"])),
            discount_amount=to_money(data["discountAmount"]),
            total=to_money(data["total"]),
            amount_paid=to_money(data["amountPaid"]),
            amount_remaining=to_money(data["amountRemaining"]),
            status=OrderStatus(data["status"]),
            payment_method=PaymentMethod(data["paymentMethod"]),
            customer=CustomerInfo(
                name=data.get("customerName"),
                contact=data.get("customerContact"),
                address=data.get("customerAddress"),
            ),
            staff_name=str(data["staffName"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass(frozen=True)
class Table:
    """A physical table and the open dine-in order seated at it."""

    number: int
    status: TableStatus = TableStatus.AVAILABLE
    current_order: Order | None = None


@dataclass(frozen=True)
class OrderFilter:
    """Predicate for listing orders; unset fields match everything."""

    status: OrderStatus | None = None
    order_type: OrderType | None = None
    table_number: int | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None

    def matches(self, order: Order) -> bool:
        """True when the order passes every set criterion."""
        if self.status is not None and order.status is not self.status:
            return False
        if self.order_type is not None and order.order_type is not self.order_type:
            return False
        if self.table_number is not None and order.table_number != self.table_number:
            return False
        if self.date_from is not None and order.timestamp < self.date_from:
            return False
        if self.date_to is not None and order.timestamp > self.date_to:
            return False
        return True
