"""Single-document JSON key-value store for installs without SQLite files."""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from orderdesk.errors import NotFoundError, StorageError
from orderdesk.models import Order, OrderFilter, OrderStatus
from orderdesk.persistence import BackupLogEntry, StoreStats, apply_order_fields

logger = logging.getLogger(__name__)


def _empty_document() -> dict[str, Any]:
    return {"counter": 0, "orders": [], "settings": {"auto_backup_enabled": "true"}, "backupLogs": []}


class JsonOrderStore:
    """Order store that rewrites one JSON document per mutation.

    There is no auto-increment here, so the issued-id counter is kept as an
    explicit field and written together with each inserted order.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _load(self, operation: str) -> dict[str, Any]:
        if not self.path.exists():
            return _empty_document()
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                document = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("json store read failed op=%s error=%r", operation, exc)
            raise StorageError(operation, exc) from exc
        base = _empty_document()
        base.update(document)
        return base

    def _write(self, operation: str, document: dict[str, Any]) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as fh:
                json.dump(document, fh, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            logger.error("json store write failed op=%s error=%r", operation, exc)
            raise StorageError(operation, exc) from exc

    def _orders(self, document: dict[str, Any]) -> list[Order]:
        return [Order.from_dict(raw) for raw in document["orders"]]

    def save_order(self, order: Order) -> int:
        """Append an order and raise the counter; reused ids are refused."""
        document = self._load("save_order")
        last_issued = self._last_issued(document)
        if order.id <= last_issued:
            raise StorageError(
                "save_order", ValueError(f"order id {order.id} already issued; last issued id is {last_issued}")
            )
        document["orders"].append(order.to_dict())
        document["counter"] = max(int(document["counter"]), order.id)
        self._write("save_order", document)
        return order.id

    def get_order(self, order_id: int) -> Order | None:
        for order in self._orders(self._load("get_order")):
            if order.id == order_id:
                return order
        return None

    def list_orders(self, order_filter: OrderFilter | None = None) -> list[Order]:
        order_filter = order_filter or OrderFilter()
        orders = self._orders(self._load("list_orders"))
        return sorted((order for order in orders if order_filter.matches(order)), key=lambda o: o.id)

    def update_order(self, order_id: int, **fields: Any) -> Order:
        """Apply partial fields to a stored order and return the updated record."""
        document = self._load("update_order")
        for idx, raw in enumerate(document["orders"]):
            if int(raw["id"]) != order_id:
                continue
            updated = apply_order_fields(Order.from_dict(raw), fields)
            document["orders"][idx] = updated.to_dict()
            self._write("update_order", document)
            return updated
        raise NotFoundError("order", order_id)

    def delete_order(self, order_id: int) -> None:
        document = self._load("delete_order")
        remaining = [raw for raw in document["orders"] if int(raw["id"]) != order_id]
        if len(remaining) == len(document["orders"]):
            raise NotFoundError("order", order_id)
        document["orders"] = remaining
        self._write("delete_order", document)

    def last_order_id(self) -> int:
        """Highest id ever issued, including ids of deleted orders."""
        return self._last_issued(self._load("last_order_id"))

    @staticmethod
    def _last_issued(document: dict[str, Any]) -> int:
        max_id = max((int(raw["id"]) for raw in document["orders"]), default=0)
        return max(max_id, int(document["counter"]))

    def replace_all(self, orders: Iterable[Order]) -> None:
        """Replace every stored order in one rewrite."""
        orders = list(orders)
        document = self._load("replace_all")
        document["orders"] = [order.to_dict() for order in orders]
        document["counter"] = max([int(document["counter"]), *(order.id for order in orders)])
        self._write("replace_all", document)

    def get_setting(self, key: str, default: str | None = None) -> str | None:
        return self._load("get_setting")["settings"].get(key, default)

    def set_setting(self, key: str, value: str) -> None:
        document = self._load("set_setting")
        document["settings"][key] = value
        self._write("set_setting", document)

    def list_settings(self) -> dict[str, str]:
        return dict(self._load("list_settings")["settings"])

    def add_backup_log(self, kind: str, success: bool, file_path: str) -> None:
        document = self._load("add_backup_log")
        document["backupLogs"].append(
            {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "type": kind,
                "success": success,
                "file_path": file_path,
            }
        )
        self._write("add_backup_log", document)

    def list_backup_logs(self, limit: int = 20) -> list[BackupLogEntry]:
        logs = self._load("list_backup_logs")["backupLogs"]
        newest_first = list(reversed(logs))[:limit]
        return [
            BackupLogEntry(
                timestamp=str(entry["timestamp"]),
                kind=str(entry["type"]),
                success=bool(entry["success"]),
                file_path=str(entry.get("file_path") or ""),
            )
            for entry in newest_first
        ]

    def stats(self) -> StoreStats:
        orders = self._orders(self._load("stats"))
        return StoreStats(
            total_orders=len(orders),
            complete_orders=sum(1 for o in orders if o.status is OrderStatus.COMPLETE),
            incomplete_orders=sum(1 for o in orders if o.status is OrderStatus.INCOMPLETE),
            pending_orders=sum(1 for o in orders if o.status is OrderStatus.PENDING),
        )
