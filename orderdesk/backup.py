"""JSON backup export, restore and the automatic backup schedule."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

from orderdesk.config import AUTO_BACKUP_INTERVAL_HOURS, BACKUP_RETENTION_DAYS
from orderdesk.errors import StorageError, ValidationError
from orderdesk.models import Order
from orderdesk.persistence import LAST_ORDER_ID_KEY, OrderStore

logger = logging.getLogger(__name__)

BACKUP_VERSION = 1
AUTO_BACKUP_ENABLED_KEY = "auto_backup_enabled"
LAST_BACKUP_DATE_KEY = "last_backup_date"


def export_data(store: OrderStore, now: datetime) -> dict[str, Any]:
    """Build a versioned backup document of every order and setting."""
    return {
        "version": BACKUP_VERSION,
        "timestamp": now.isoformat(),
        "data": {
            "orders": [order.to_dict() for order in store.list_orders()],
            "settings": store.list_settings(),
            "backupLogs": [
                {
                    "timestamp": entry.timestamp,
                    "type": entry.kind,
                    "success": entry.success,
                    "file_path": entry.file_path,
                }
                for entry in store.list_backup_logs()
            ],
        },
    }


def parse_orders(document: dict[str, Any]) -> list[Order]:
    """Validate a backup document and decode its orders."""
    version = document.get("version")
    if version != BACKUP_VERSION:
        raise ValidationError(f"unsupported backup version {version!r}; expected {BACKUP_VERSION}")
    data = document.get("data")
    if not isinstance(data, dict):
        raise ValidationError("backup document has no data section")
    try:
        orders = [Order.from_dict(raw) for raw in data.get("orders", [])]
    except (KeyError, TypeError, ValueError, ArithmeticError) as exc:
        raise ValidationError(f"backup contains a malformed order: {exc}") from exc
    ids = [order.id for order in orders]
    if len(ids) != len(set(ids)):
        raise ValidationError("backup contains duplicate order ids")
    return orders


def import_data(store: OrderStore, document: dict[str, Any]) -> list[Order]:
    """Replace all stored orders (and settings) with a backup's contents."""
    orders = parse_orders(document)
    store.replace_all(orders)
    for key, value in document["data"].get("settings", {}).items():
        # The issued-id counter only moves forward; replace_all already raised it.
        if key == LAST_ORDER_ID_KEY:
            continue
        store.set_setting(str(key), str(value))
    logger.info("imported %d orders from backup", len(orders))
    return orders


class BackupService:
    """Writes manual and scheduled JSON backups into a directory."""

    def __init__(
        self,
        store: OrderStore,
        backup_dir: str | Path,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        interval: timedelta = timedelta(hours=AUTO_BACKUP_INTERVAL_HOURS),
        retention_days: int = BACKUP_RETENTION_DAYS,
    ) -> None:
        self.store = store
        self.backup_dir = Path(backup_dir)
        self.clock = clock
        self.interval = interval
        self.retention_days = retention_days

    def is_auto_enabled(self) -> bool:
        return self.store.get_setting(AUTO_BACKUP_ENABLED_KEY, "true") == "true"

    def set_auto_enabled(self, enabled: bool) -> None:
        self.store.set_setting(AUTO_BACKUP_ENABLED_KEY, "true" if enabled else "false")

    def last_backup_at(self) -> datetime | None:
        """When the last successful backup was written."""
        raw = self.store.get_setting(LAST_BACKUP_DATE_KEY, "")
        if not raw:
            return None
        return datetime.fromisoformat(raw)

    def is_due(self) -> bool:
        """True when auto backup is enabled and the interval has passed."""
        if not self.is_auto_enabled():
            return False
        last = self.last_backup_at()
        return last is None or self.clock() - last >= self.interval

    def check_and_backup(self) -> Path | None:
        """Write an automatic backup when enabled and the interval has passed."""
        if not self.is_due():
            return None
        path = self._write_backup("auto")
        self.clean_old_backups()
        return path

    def perform_manual_backup(self) -> Path:
        """Write a backup now, regardless of the schedule."""
        return self._write_backup("manual")

    def list_backups(self) -> list[Path]:
        """Backup files, newest first."""
        if not self.backup_dir.is_dir():
            return []
        return sorted(self.backup_dir.glob("*-backup-*.json"), key=lambda p: p.name.split("-backup-")[-1], reverse=True)

    def clean_old_backups(self, days: int | None = None) -> list[Path]:
        """Delete backup files older than the retention window."""
        keep_days = self.retention_days if days is None else days
        cutoff = self.clock() - timedelta(days=keep_days)
        removed: list[Path] = []
        for path in self.list_backups():
            written = self._timestamp_from_name(path)
            if written is None or written >= cutoff:
                continue
            try:
                path.unlink()
            except OSError as exc:
                raise StorageError("clean_old_backups", exc) from exc
            removed.append(path)
        if removed:
            logger.info("removed %d backups older than %d days", len(removed), keep_days)
        return removed

    def restore_from_file(self, path: str | Path) -> list[Order]:
        """Load a backup file and replace the stored orders with it."""
        try:
            with Path(path).open("r", encoding="utf-8") as fh:
                document = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError("restore_from_file", exc) from exc
        return import_data(self.store, document)

    def _write_backup(self, kind: str) -> Path:
        now = self.clock()
        stamp = now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
        path = self.backup_dir / f"{kind}-backup-{stamp}.json"
        try:
            document = export_data(self.store, now)
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(document, indent=2), encoding="utf-8")
        except (OSError, StorageError) as exc:
            logger.error("%s backup failed: %r", kind, exc)
            self.store.add_backup_log(kind, False, "")
            if isinstance(exc, StorageError):
                raise
            raise StorageError(f"{kind} backup", exc) from exc

        self.store.set_setting(LAST_BACKUP_DATE_KEY, now.isoformat())
        self.store.add_backup_log(kind, True, str(path))
        logger.info("%s backup written to %s", kind, path)
        return path

    @staticmethod
    def _timestamp_from_name(path: Path) -> datetime | None:
        stamp = path.stem.split("-backup-")[-1]
        try:
            return datetime.strptime(stamp, "%Y-%m-%dT%H-%M-%S").replace(tzinfo=timezone.utc)
        except ValueError:
            return None
