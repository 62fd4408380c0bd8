"""SQLite persistence for orders, settings and backup logs."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterable, Iterator, Protocol

from orderdesk.errors import NotFoundError, StorageError, ValidationError
from orderdesk.models import (
    CustomerInfo,
    LineItem,
    Order,
    OrderFilter,
    OrderStatus,
    OrderType,
    PaymentMethod,
    Product,
    to_money,
)

logger = logging.getLogger(__name__)

LAST_ORDER_ID_KEY = "last_order_id"
_IMMUTABLE_FIELDS = frozenset({"id", "timestamp"})


@dataclass(frozen=True)
class BackupLogEntry:
    """One recorded backup attempt."""

    timestamp: str
    kind: str
    success: bool
    file_path: str


@dataclass(frozen=True)
class StoreStats:
    """Order counts by status."""

    total_orders: int
    complete_orders: int
    incomplete_orders: int
    pending_orders: int


class OrderStore(Protocol):
    """Storage contract consumed by the order lifecycle."""

    def save_order(self, order: Order) -> int: ...

    def get_order(self, order_id: int) -> Order | None: ...

    def list_orders(self, order_filter: OrderFilter | None = None) -> list[Order]: ...

    def update_order(self, order_id: int, **fields: Any) -> Order: ...

    def delete_order(self, order_id: int) -> None: ...

    def last_order_id(self) -> int: ...

    def replace_all(self, orders: Iterable[Order]) -> None: ...

    def get_setting(self, key: str, default: str | None = None) -> str | None: ...

    def set_setting(self, key: str, value: str) -> None: ...

    def add_backup_log(self, kind: str, success: bool, file_path: str) -> None: ...

    def list_backup_logs(self, limit: int = 20) -> list[BackupLogEntry]: ...

    def list_settings(self) -> dict[str, str]: ...

    def stats(self) -> StoreStats: ...


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def apply_order_fields(order: Order, fields: dict[str, Any]) -> Order:
    """Return a copy of an order with partial fields applied."""
    blocked = _IMMUTABLE_FIELDS.intersection(fields)
    if blocked:
        raise ValidationError(f"order fields are immutable: {', '.join(sorted(blocked))}")
    if "items" in fields:
        fields = {**fields, "items": tuple(fields["items"])}
    try:
        return replace(order, **fields)
    except TypeError as exc:
        raise ValidationError(f"unknown order field: {exc}") from exc


class SqliteOrderStore:
    """Order store backed by a local SQLite file."""

    def __init__(self, db_path: str | Path, timeout: float = 5.0) -> None:
        self.db_path = Path(db_path)
        self.timeout = timeout

    @contextmanager
    def _connect(self, operation: str) -> Iterator[sqlite3.Connection]:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        except (OSError, sqlite3.Error) as exc:
            logger.error("storage open failed op=%s error=%r", operation, exc)
            raise StorageError(operation, exc) from exc
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            with conn:
                yield conn
        except sqlite3.Error as exc:
            logger.error("storage failed op=%s error=%r", operation, exc)
            raise StorageError(operation, exc) from exc
        finally:
            conn.close()

    def bootstrap_schema(self) -> None:
        """Create persistence schema if it does not already exist."""
        with self._connect("bootstrap_schema") as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS orders (
                    id INTEGER PRIMARY KEY,
                    order_type TEXT NOT NULL CHECK(order_type IN ('takeaway', 'dinein', 'delivery')),
                    table_number INTEGER,
                    subtotal TEXT NOT NULL,
                    discount_percent TEXT NOT NULL DEFAULT '0',
                    discount_amount TEXT NOT NULL DEFAULT '0.00',
                    total TEXT NOT NULL,
                    amount_paid TEXT NOT NULL DEFAULT '0.00',
                    amount_remaining TEXT NOT NULL DEFAULT '0.00',
                    status TEXT NOT NULL CHECK(status IN ('pending', 'complete', 'incomplete')),
                    payment_method TEXT NOT NULL CHECK(payment_method IN ('cash', 'card', 'upi')),
                    customer_name TEXT,
                    customer_contact TEXT,
                    customer_address TEXT,
                    staff_name TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS order_items (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    order_id INTEGER NOT NULL,
                    line_index INTEGER NOT NULL,
                    product_id TEXT NOT NULL,
                    product_name TEXT NOT NULL,
                    product_price TEXT NOT NULL,
                    product_category TEXT NOT NULL,
                    quantity INTEGER NOT NULL CHECK(quantity >= 1),
                    FOREIGN KEY(order_id) REFERENCES orders(id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS backup_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    type TEXT NOT NULL CHECK(type IN ('auto', 'manual')),
                    success INTEGER NOT NULL,
                    file_path TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_orders_status ON orders(status);
                CREATE INDEX IF NOT EXISTS idx_orders_type ON orders(order_type);
                CREATE INDEX IF NOT EXISTS idx_orders_created ON orders(created_at);
                CREATE INDEX IF NOT EXISTS idx_order_items_order_line
                    ON order_items(order_id, line_index);
                """
            )
            order_columns = {row[1] for row in conn.execute("PRAGMA table_info(orders)")}
            if "customer_address" not in order_columns:
                conn.execute("ALTER TABLE orders ADD COLUMN customer_address TEXT")
            conn.execute(
                "INSERT OR IGNORE INTO settings (key, value) VALUES ('auto_backup_enabled', 'true')"
            )

    def save_order(self, order: Order) -> int:
        """Insert an order with its items and advance the durable id counter, atomically.

        Ids at or below the highest id ever issued are refused.
        """
        with self._connect("save_order") as conn:
            last_issued = self._last_order_id(conn)
            if order.id <= last_issued:
                raise StorageError(
                    "save_order", ValueError(f"order id {order.id} already issued; last issued id is {last_issued}")
                )
            self._insert_order(conn, order)
            self._bump_counter(conn, order.id)
        return order.id

    def get_order(self, order_id: int) -> Order | None:
        with self._connect("get_order") as conn:
            row = conn.execute("SELECT * FROM orders WHERE id = ?", (order_id,)).fetchone()
            if row is None:
                return None
            items = conn.execute(
                "SELECT * FROM order_items WHERE order_id = ? ORDER BY line_index", (order_id,)
            ).fetchall()
        return _row_to_order(row, items)

    def list_orders(self, order_filter: OrderFilter | None = None) -> list[Order]:
        """Stored orders matching a filter, by id."""
        order_filter = order_filter or OrderFilter()
        clauses: list[str] = []
        params: list[Any] = []
        if order_filter.status is not None:
            clauses.append("status = ?")
            params.append(order_filter.status.value)
        if order_filter.order_type is not None:
            clauses.append("order_type = ?")
            params.append(order_filter.order_type.value)
        if order_filter.table_number is not None:
            clauses.append("table_number = ?")
            params.append(order_filter.table_number)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with self._connect("list_orders") as conn:
            rows = conn.execute(f"SELECT * FROM orders {where} ORDER BY id", params).fetchall()
            items_by_order: dict[int, list[sqlite3.Row]] = {}
            for item in conn.execute("SELECT * FROM order_items ORDER BY order_id, line_index"):
                items_by_order.setdefault(int(item["order_id"]), []).append(item)

        orders = [_row_to_order(row, items_by_order.get(int(row["id"]), [])) for row in rows]
        # Date bounds are compared as datetimes rather than stored strings.
        return [order for order in orders if order_filter.matches(order)]

    def update_order(self, order_id: int, **fields: Any) -> Order:
        """Apply partial fields to a stored order and return the updated record."""
        with self._connect("update_order") as conn:
            row = conn.execute("SELECT * FROM orders WHERE id = ?", (order_id,)).fetchone()
            if row is None:
                raise NotFoundError("order", order_id)
            items = conn.execute(
                "SELECT * FROM order_items WHERE order_id = ? ORDER BY line_index", (order_id,)
            ).fetchall()
            updated = apply_order_fields(_row_to_order(row, items), fields)
            conn.execute(
                """
                UPDATE orders SET
                    order_type = ?, table_number = ?, subtotal = ?, discount_percent = ?,
                    discount_amount = ?, total = ?, amount_paid = ?, amount_remaining = ?,
                    status = ?, payment_method = ?, customer_name = ?, customer_contact = ?,
                    customer_address = ?, staff_name = ?, updated_at = ?
                WHERE id = ?
                """,
                (*_order_columns(updated)[1:-1], _utc_now_iso(), order_id),
            )
            if "items" in fields:
                conn.execute("DELETE FROM order_items WHERE order_id = ?", (order_id,))
                self._insert_items(conn, updated)
        return updated

    def delete_order(self, order_id: int) -> None:
        with self._connect("delete_order") as conn:
            cur = conn.execute("DELETE FROM orders WHERE id = ?", (order_id,))
            if cur.rowcount == 0:
                raise NotFoundError("order", order_id)

    def last_order_id(self) -> int:
        """Highest id ever issued, including ids of deleted orders."""
        with self._connect("last_order_id") as conn:
            return self._last_order_id(conn)

    def _last_order_id(self, conn: sqlite3.Connection) -> int:
        max_row = conn.execute("SELECT MAX(id) FROM orders").fetchone()
        counter_row = conn.execute("SELECT value FROM settings WHERE key = ?", (LAST_ORDER_ID_KEY,)).fetchone()
        max_id = int(max_row[0]) if max_row[0] is not None else 0
        counter = int(counter_row[0]) if counter_row is not None else 0
        return max(max_id, counter)

    def replace_all(self, orders: Iterable[Order]) -> None:
        """Replace every stored order in one transaction."""
        orders = list(orders)
        with self._connect("replace_all") as conn:
            conn.execute("DELETE FROM order_items")
            conn.execute("DELETE FROM orders")
            for order in orders:
                self._insert_order(conn, order)
            if orders:
                self._bump_counter(conn, max(order.id for order in orders))

    def get_setting(self, key: str, default: str | None = None) -> str | None:
        with self._connect("get_setting") as conn:
            row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        return default if row is None else str(row[0])

    def set_setting(self, key: str, value: str) -> None:
        with self._connect("set_setting") as conn:
            conn.execute("INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)", (key, value))

    def list_settings(self) -> dict[str, str]:
        with self._connect("list_settings") as conn:
            return {str(row[0]): str(row[1]) for row in conn.execute("SELECT key, value FROM settings")}

    def add_backup_log(self, kind: str, success: bool, file_path: str) -> None:
        with self._connect("add_backup_log") as conn:
            conn.execute(
                "INSERT INTO backup_logs (timestamp, type, success, file_path) VALUES (?, ?, ?, ?)",
                (_utc_now_iso(), kind, 1 if success else 0, file_path),
            )

    def list_backup_logs(self, limit: int = 20) -> list[BackupLogEntry]:
        with self._connect("list_backup_logs") as conn:
            rows = conn.execute(
                "SELECT * FROM backup_logs ORDER BY timestamp DESC, id DESC LIMIT ?", (limit,)
            ).fetchall()
        return [
            BackupLogEntry(
                timestamp=str(row["timestamp"]),
                kind=str(row["type"]),
                success=bool(row["success"]),
                file_path=str(row["file_path"] or ""),
            )
            for row in rows
        ]

    def stats(self) -> StoreStats:
        """Order counts by status."""
        with self._connect("stats") as conn:
            counts = {
                str(row[0]): int(row[1])
                for row in conn.execute("SELECT status, COUNT(*) FROM orders GROUP BY status")
            }
        return StoreStats(
            total_orders=sum(counts.values()),
            complete_orders=counts.get(OrderStatus.COMPLETE.value, 0),
            incomplete_orders=counts.get(OrderStatus.INCOMPLETE.value, 0),
            pending_orders=counts.get(OrderStatus.PENDING.value, 0),
        )

    def _insert_order(self, conn: sqlite3.Connection, order: Order) -> None:
        conn.execute(
            """
            INSERT INTO orders (
                id, order_type, table_number, subtotal, discount_percent, discount_amount,
                total, amount_paid, amount_remaining, status, payment_method,
                customer_name, customer_contact, customer_address, staff_name,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (*_order_columns(order), _utc_now_iso()),
        )
        self._insert_items(conn, order)

    def _insert_items(self, conn: sqlite3.Connection, order: Order) -> None:
        for idx, item in enumerate(order.items):
            conn.execute(
                """
                INSERT INTO order_items (
                    order_id, line_index, product_id, product_name,
                    product_price, product_category, quantity
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    order.id,
                    idx,
                    item.product.id,
                    item.product.name,
                    str(item.product.price),
                    item.product.category,
                    item.quantity,
                ),
            )

    def _bump_counter(self, conn: sqlite3.Connection, order_id: int) -> None:
        conn.execute(
            """
            INSERT INTO settings (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = CAST(MAX(CAST(value AS INTEGER), ?) AS TEXT)
            """,
            (LAST_ORDER_ID_KEY, str(order_id), order_id),
        )


def _order_columns(order: Order) -> tuple[Any, ...]:
    return (
        order.id,
        order.order_type.value,
        order.table_number,
        str(order.subtotal),
        str(order.discount_percent),
        str(order.discount_amount),
        str(order.total),
        str(order.amount_paid),
        str(order.amount_remaining),
        order.status.value,
        order.payment_method.value,
        order.customer.name,
        order.customer.contact,
        order.customer.address,
        order.staff_name,
        order.timestamp.isoformat(),
    )


def _row_to_order(row: sqlite3.Row, item_rows: Iterable[sqlite3.Row]) -> Order:
    items = tuple(
        LineItem(
            product=Product(
                id=str(item["product_id"]),
                name=str(item["product_name"]),
                price=to_money(item["product_price"]),
                category=str(item["product_category"]),
            ),
            quantity=int(item["quantity"]),
        )
        for item in item_rows
    )
    return Order(
        id=int(row["id"]),
        order_type=OrderType(row["order_type"]),
        table_number=int(row["table_number"]) if row["table_number"] is not None else None,
        items=items,
        subtotal=to_money(row["subtotal"]),
        discount_percent=Decimal(row["discount_percent"]),
        discount_amount=to_money(row["discount_amount"]),
        total=to_money(row["total"]),
        amount_paid=to_money(row["amount_paid"]),
        amount_remaining=to_money(row["amount_remaining"]),
        status=OrderStatus(row["status"]),
        payment_method=PaymentMethod(row["payment_method"]),
        customer=CustomerInfo(
            name=row["customer_name"],
            contact=row["customer_contact"],
            address=row["customer_address"],
        ),
        staff_name=str(row["staff_name"]),
        timestamp=datetime.fromisoformat(row["created_at"]),
    )
