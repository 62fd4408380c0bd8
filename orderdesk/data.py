"""Static product catalog."""

from __future__ import annotations

from typing import Iterable

from orderdesk.constant import CATEGORY_ORDER, DEFAULT_PRODUCTS
from orderdesk.models import Product, to_money


class Catalog:
    """Read-only product lookup used while building orders."""

    def __init__(self, products: Iterable[Product]) -> None:
        self._products: dict[str, Product] = {}
        for product in products:
            if product.price < 0:
                raise ValueError(f"Product {product.id} has a negative price")
            self._products[product.id] = product

    def get_product(self, product_id: str) -> Product | None:
        """Look up a product by id, or None."""
        return self._products.get(product_id)

    def list_products(self) -> list[Product]:
        """Every product in catalog order."""
        return list(self._products.values())

    def by_category(self) -> list[tuple[str, list[Product]]]:
        """Group products by category, known categories first in menu order."""
        grouped: dict[str, list[Product]] = {}
        for product in self._products.values():
            grouped.setdefault(product.category, []).append(product)
        ordered = [category for category in CATEGORY_ORDER if category in grouped]
        ordered.extend(sorted(category for category in grouped if category not in CATEGORY_ORDER))
        return [(category, grouped[category]) for category in ordered]

    def search(self, query: str) -> list[Product]:
        """Case-insensitive substring search over product names and categories."""
        q = query.strip().lower()
        if not q:
            return self.list_products()
        return [
            product
            for product in self._products.values()
            if q in product.name.lower() or q in product.category.lower()
        ]


DEFAULT_CATALOG_PRODUCTS: list[Product] = [
    Product(
        id=raw["id"],
        name=raw["name"],
        price=to_money(raw["price"]),
        category=raw["category"],
    )
    for raw in DEFAULT_PRODUCTS
]


def default_catalog() -> Catalog:
    """Build a catalog from the editable default menu."""
    return Catalog(DEFAULT_CATALOG_PRODUCTS)
