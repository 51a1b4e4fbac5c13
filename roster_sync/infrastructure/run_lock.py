from __future__ import annotations

import logging
import os
import socket
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator

from roster_sync.core.errors import PersistenceError, RunAlreadyInProgressError
from roster_sync.domain.ports import RunLockPort

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[], sqlite3.Connection]


def default_owner() -> str:
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


class SQLiteRunLock(RunLockPort):
    """Advisory lock, one row per date key.

    The primary key makes acquisition atomic across processes sharing the
    database file. A lock older than ``ttl_seconds`` belongs to a run that
    died without releasing it and is taken over.
    """

    def __init__(
        self,
        connection_factory: ConnectionFactory,
        *,
        ttl_seconds: int = 1800,
        owner: str | None = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._connection_factory = connection_factory
        self._ttl = timedelta(seconds=ttl_seconds)
        self._owner = owner or default_owner()
        self._now = now

    @contextmanager
    def hold(self, date_key: str) -> Iterator[None]:
        connection = self._connection_factory()
        try:
            self._ensure_table(connection)
            self._acquire(connection, date_key)
            try:
                yield
            finally:
                self._release(connection, date_key)
        finally:
            connection.close()

    def _ensure_table(self, connection: sqlite3.Connection) -> None:
        with connection:
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS run_locks (
                    date_key TEXT PRIMARY KEY,
                    owner TEXT NOT NULL,
                    acquired_at TEXT NOT NULL
                )
                """
            )

    def _acquire(self, connection: sqlite3.Connection, date_key: str) -> None:
        now = self._now()
        try:
            with connection:
                connection.execute("BEGIN IMMEDIATE")
                row = connection.execute(
                    "SELECT owner, acquired_at FROM run_locks WHERE date_key = ?",
                    (date_key,),
                ).fetchone()
                if row is not None:
                    acquired_at = datetime.fromisoformat(row[1])
                    if now - acquired_at < self._ttl:
                        raise RunAlreadyInProgressError(date_key, owner=row[0])
                    logger.warning("Taking over stale lock for %s held by %s since %s.", date_key, row[0], row[1])
                connection.execute(
                    """
                    INSERT INTO run_locks (date_key, owner, acquired_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(date_key) DO UPDATE SET
                        owner = excluded.owner,
                        acquired_at = excluded.acquired_at
                    """,
                    (date_key, self._owner, now.isoformat()),
                )
        except sqlite3.OperationalError as exc:
            if "locked" in str(exc).lower():
                raise RunAlreadyInProgressError(date_key) from exc
            raise PersistenceError(f"Could not acquire the run lock: {exc}") from exc
        logger.debug("Run lock for %s acquired by %s.", date_key, self._owner)

    def _release(self, connection: sqlite3.Connection, date_key: str) -> None:
        try:
            with connection:
                connection.execute(
                    "DELETE FROM run_locks WHERE date_key = ? AND owner = ?",
                    (date_key, self._owner),
                )
        except sqlite3.Error:
            logger.exception("Could not release the run lock for %s; it will expire after the TTL.", date_key)
