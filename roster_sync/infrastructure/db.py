from __future__ import annotations

import sqlite3
from pathlib import Path

from roster_sync.infrastructure.local_config import resolve_appdata_dir

DB_FILENAME = "roster_sync.db"
DEFAULT_BUSY_TIMEOUT_MS = 30000


def default_db_path() -> Path:
    return resolve_appdata_dir() / "runtime" / DB_FILENAME


def configure_sqlite_connection(connection: sqlite3.Connection, busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> None:
    connection.row_factory = sqlite3.Row
    connection.execute("PRAGMA journal_mode=WAL")
    connection.execute("PRAGMA synchronous=NORMAL")
    connection.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")


def get_connection(
    db_path: Path | None = None,
    *,
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
) -> sqlite3.Connection:
    path = db_path or default_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    connection = sqlite3.connect(path, timeout=max(1.0, busy_timeout_ms / 1000))
    configure_sqlite_connection(connection, busy_timeout_ms=busy_timeout_ms)
    return connection
