"""Editable static menu configuration."""

from __future__ import annotations

CATEGORY_ORDER: list[str] = ["Pizza", "Deals", "Sides", "Beverages", "Appetizer", "Dessert"]

# Canonical product values consumed by orderdesk.data (which wraps these into Product instances).
DEFAULT_PRODUCTS: list[dict[str, str]] = [
    {"id": "1", "name": "Margherita Pizza", "price": "899", "category": "Pizza"},
    {"id": "2", "name": "Chicken Tikka Pizza", "price": "1299", "category": "Pizza"},
    {"id": "3", "name": "Pepperoni Pizza", "price": "1199", "category": "Pizza"},
    {"id": "4", "name": "Fajita Pizza", "price": "1399", "category": "Pizza"},
    {"id": "deal1", "name": "Family Deal", "price": "2999", "category": "Deals"},
    {"id": "deal2", "name": "Student Deal", "price": "699", "category": "Deals"},
    {"id": "5", "name": "Coca Cola", "price": "99", "category": "Beverages"},
    {"id": "6", "name": "Pepsi", "price": "99", "category": "Beverages"},
    {"id": "7", "name": "Garlic Bread", "price": "299", "category": "Sides"},
    {"id": "8", "name": "French Fries", "price": "199", "category": "Sides"},
]
