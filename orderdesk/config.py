"""Runtime configuration defaults for storage, backups, tables and printing."""

from __future__ import annotations

import os


def _env_str(name: str, default: str) -> str:
    value = os.environ.get(name, "").strip()
    return value or default


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {value!r}") from exc


# "sqlite" or "json"; the json backend keeps everything in one document.
STORAGE_BACKEND = _env_str("ORDERDESK_STORAGE_BACKEND", "sqlite")
DB_PATH = _env_str("ORDERDESK_DB_PATH", "data/orderdesk.db")
JSON_STORE_PATH = _env_str("ORDERDESK_JSON_STORE_PATH", "data/orderdesk.json")
STORAGE_TIMEOUT_SECONDS = _env_int("ORDERDESK_STORAGE_TIMEOUT_SECONDS", 5)

BACKUP_DIR = _env_str("ORDERDESK_BACKUP_DIR", "data/backups")
AUTO_BACKUP_INTERVAL_HOURS = _env_int("ORDERDESK_AUTO_BACKUP_INTERVAL_HOURS", 24)
BACKUP_RETENTION_DAYS = _env_int("ORDERDESK_BACKUP_RETENTION_DAYS", 30)
EXPORT_DIR = _env_str("ORDERDESK_EXPORT_DIR", "data/exports")

LOG_PATH = _env_str("ORDERDESK_LOG_PATH", "/tmp/orderdesk.log")

# Fixed at deployment; tables are numbered 1..TABLE_COUNT.
TABLE_COUNT = _env_int("ORDERDESK_TABLE_COUNT", 12)

RESTAURANT_NAME = _env_str("ORDERDESK_RESTAURANT_NAME", "Shah Je Pizza")
CURRENCY_PREFIX = _env_str("ORDERDESK_CURRENCY_PREFIX", "Rs.")
STAFF_NAME = _env_str("ORDERDESK_STAFF_NAME", "admin")

PRINTER_USB_VENDOR_ID = 0x28E9
PRINTER_USB_PRODUCT_ID = 0x0289
PRINTER_WIDTH_PX = 576
PRINTER_FONT_SIZE = 22
PRINTER_FONT_PATH = "/System/Library/Fonts/Menlo.ttc"
PRINTER_LEFT_INDENT_PX = 8
RECEIPT_WIDTH_CHARS = 42
