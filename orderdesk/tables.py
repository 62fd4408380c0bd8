"""Table occupancy derived from open dine-in orders."""

from __future__ import annotations

import logging
from typing import Iterable

from orderdesk.errors import NotFoundError
from orderdesk.models import Order, Table, TableStatus

logger = logging.getLogger(__name__)


class TableRegistry:
    """Tables 1..N keyed by number; never persisted, always rebuilt from orders.

    Each table remembers every open dine-in order that names it. The lowest id
    among them is the table's current order, so applying orders one at a time
    lands on the same state as rebuilding from the full order set.
    """

    def __init__(self, table_count: int) -> None:
        if table_count < 1:
            raise ValueError("table_count must be at least 1")
        self.table_count = table_count
        self._tables: dict[int, Table] = {}
        self._open: dict[int, dict[int, Order]] = {}
        self.reset()

    def reset(self) -> None:
        """Mark every table available and forget all open orders."""
        self._tables = {number: Table(number=number) for number in range(1, self.table_count + 1)}
        self._open = {number: {} for number in self._tables}

    def get(self, number: int) -> Table:
        """Return one table, raising NotFoundError for an unknown number."""
        table = self._tables.get(number)
        if table is None:
            raise NotFoundError("table", number)
        return table

    def all(self) -> list[Table]:
        """Every table in number order."""
        return [self._tables[number] for number in sorted(self._tables)]

    def current_order(self, number: int) -> Order | None:
        """The open order holding a table, if any."""
        return self.get(number).current_order

    def conflicts(self) -> dict[int, list[int]]:
        """Tables named by more than one open order, mapped to those order ids."""
        return {number: sorted(orders) for number, orders in self._open.items() if len(orders) > 1}

    def sync_order(self, order: Order) -> Table | None:
        """Apply one order's effect on its table.

        An open dine-in order joins its table's open set; any other state leaves
        it. The table is then held by the lowest open id, or freed when none is
        left. Orders without a known table are ignored.
        """
        for number, orders in self._open.items():
            if order.id in orders and number != order.table_number:
                del orders[order.id]
                self._settle(number)

        if order.table_number is None:
            return None
        if order.table_number not in self._tables:
            logger.warning("order #%s references unknown table %s", order.id, order.table_number)
            return None

        orders = self._open[order.table_number]
        if order.is_open_dinein:
            orders[order.id] = order
        else:
            orders.pop(order.id, None)
        return self._settle(order.table_number)

    def snapshot(self) -> list[tuple[int, TableStatus, int | None]]:
        """Comparable view of table state: (number, status, current order id)."""
        return [
            (table.number, table.status, table.current_order.id if table.current_order else None)
            for table in self.all()
        ]

    def _settle(self, number: int) -> Table:
        orders = self._open[number]
        if orders:
            table = Table(number=number, status=TableStatus.OCCUPIED, current_order=orders[min(orders)])
        else:
            table = Table(number=number)
        self._tables[number] = table
        return table


def reconcile_tables(registry: TableRegistry, orders: Iterable[Order]) -> TableRegistry:
    """Rebuild table state from the authoritative order set.

    Tables start available and every order is applied through `sync_order`.
    When several open orders point at one table the lowest id holds it and the
    rest wait behind it; those conflicts are reported.
    """
    registry.reset()
    for order in orders:
        registry.sync_order(order)
    for number, order_ids in registry.conflicts().items():
        logger.warning(
            "table %s named by open orders %s; order #%s holds it",
            number,
            ", ".join(f"#{order_id}" for order_id in order_ids),
            order_ids[0],
        )
    occupied = sum(1 for table in registry.all() if table.status is TableStatus.OCCUPIED)
    logger.info("reconciled tables: %d occupied of %d", occupied, registry.table_count)
    return registry
