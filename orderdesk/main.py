"""Entry point for the orderdesk Textual app."""

from __future__ import annotations

import logging
from pathlib import Path

from orderdesk.backup import BackupService
from orderdesk.config import (
    BACKUP_DIR,
    DB_PATH,
    JSON_STORE_PATH,
    LOG_PATH,
    STORAGE_BACKEND,
    STORAGE_TIMEOUT_SECONDS,
    TABLE_COUNT,
)
from orderdesk.data import default_catalog
from orderdesk.json_store import JsonOrderStore
from orderdesk.lifecycle import OrderManager
from orderdesk.persistence import OrderStore, SqliteOrderStore
from orderdesk.pos_app import PosApp


def configure_logging(log_path: str = LOG_PATH) -> None:
    """Send logs to a file; the terminal belongs to the UI."""
    path = Path(log_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=path,
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_store(backend: str = STORAGE_BACKEND) -> OrderStore:
    """Open the configured order store, creating its schema when needed."""
    if backend == "json":
        return JsonOrderStore(JSON_STORE_PATH)
    if backend != "sqlite":
        raise RuntimeError(f"Unknown storage backend {backend!r}; use 'sqlite' or 'json'")
    store = SqliteOrderStore(DB_PATH, timeout=STORAGE_TIMEOUT_SECONDS)
    store.bootstrap_schema()
    return store


def main() -> None:
    """Run the Textual application."""
    configure_logging()
    store = build_store()
    manager = OrderManager(store, default_catalog(), table_count=TABLE_COUNT)
    PosApp(manager, BackupService(store, BACKUP_DIR)).run()


if __name__ == "__main__":
    main()
