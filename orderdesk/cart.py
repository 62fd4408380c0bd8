"""Working cart for an order that has not been committed yet."""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from orderdesk.data import Catalog
from orderdesk.errors import NotFoundError
from orderdesk.models import LineItem, Totals, to_money

_HUNDRED = Decimal(100)


def clamp_discount(discount_percent: Decimal | int | float | str) -> Decimal:
    """Clamp a discount percentage into [0, 100]."""
    percent = Decimal(str(discount_percent))
    if percent < 0:
        return Decimal(0)
    if percent > _HUNDRED:
        return _HUNDRED
    return percent


def compute_totals(items: Iterable[LineItem], discount_percent: Decimal | int | float | str = 0) -> Totals:
    """Compute subtotal, discount and total for line items."""
    percent = clamp_discount(discount_percent)
    subtotal = to_money(sum((item.product.price * item.quantity for item in items), Decimal(0)))
    discount_amount = to_money(subtotal * percent / _HUNDRED)
    return Totals(
        subtotal=subtotal,
        discount_percent=percent,
        discount_amount=discount_amount,
        total=subtotal - discount_amount,
    )


class Cart:
    """Accumulates line items in insertion order."""

    def __init__(self, items: Iterable[LineItem] = ()) -> None:
        self._items: list[LineItem] = list(items)

    @property
    def items(self) -> tuple[LineItem, ...]:
        """Snapshot of the cart lines."""
        return tuple(self._items)

    def is_empty(self) -> bool:
        return not self._items

    def quantity_of(self, product_id: str) -> int:
        """Units of a product in the cart, 0 when absent."""
        idx = self._index_of(product_id)
        return 0 if idx is None else self._items[idx].quantity

    def add_item(self, product_id: str, catalog: Catalog) -> LineItem:
        """Add one unit of a product, snapshotting it from the catalog on first add."""
        idx = self._index_of(product_id)
        if idx is not None:
            current = self._items[idx]
            updated = LineItem(product=current.product, quantity=current.quantity + 1)
            self._items[idx] = updated
            return updated

        product = catalog.get_product(product_id)
        if product is None:
            raise NotFoundError("product", product_id)
        line = LineItem(product=product, quantity=1)
        self._items.append(line)
        return line

    def remove_one_unit(self, product_id: str) -> LineItem | None:
        """Take one unit off a line; returns the remaining line or None when it was dropped."""
        idx = self._index_of(product_id)
        if idx is None:
            raise NotFoundError("cart item", product_id)
        current = self._items[idx]
        if current.quantity <= 1:
            del self._items[idx]
            return None
        updated = LineItem(product=current.product, quantity=current.quantity - 1)
        self._items[idx] = updated
        return updated

    def remove_item(self, product_id: str) -> None:
        """Drop a whole line regardless of quantity."""
        idx = self._index_of(product_id)
        if idx is None:
            raise NotFoundError("cart item", product_id)
        del self._items[idx]

    def clear(self) -> None:
        self._items.clear()

    def compute_totals(self, discount_percent: Decimal | int | float | str = 0) -> Totals:
        """Totals for the current lines."""
        return compute_totals(self._items, discount_percent)

    def _index_of(self, product_id: str) -> int | None:
        for idx, item in enumerate(self._items):
            if item.product.id == product_id:
                return idx
        return None
