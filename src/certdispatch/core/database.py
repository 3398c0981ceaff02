"""SQLite persistence adapter and schema management.

:class:`Database` owns a single ``sqlite3`` connection shared by the CLI,
the recovery pass and the job queue worker threads. Statements are
serialized through an internal lock so that a worker's claim write and
another worker's read never interleave on the same connection.

The adapter satisfies :class:`~certdispatch.core.protocols.Connection`, so
repositories take it exactly like a raw ``sqlite3.Connection``.

Usage::

    db = Database("data/certdispatch.db")
    db.init_schema()
    repo = CertificateRepository(db)
"""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from certdispatch.core.errors import DatabaseUnavailableError
from certdispatch.core.logging import get_logger
from certdispatch.core.settings import Settings, get_settings

logger = get_logger(__name__)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS certificate_authority (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_on TEXT NOT NULL,
    modified_on TEXT NOT NULL,
    name TEXT NOT NULL,
    acmesh_server TEXT NOT NULL DEFAULT '',
    ca_bundle TEXT NOT NULL DEFAULT '',
    is_wildcard_supported INTEGER NOT NULL DEFAULT 0,
    max_domains INTEGER NOT NULL DEFAULT 0,
    is_deleted INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS dns_provider (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_on TEXT NOT NULL,
    modified_on TEXT NOT NULL,
    name TEXT NOT NULL,
    acmesh_name TEXT NOT NULL DEFAULT '',
    dns_sleep INTEGER NOT NULL DEFAULT 0,
    meta TEXT NOT NULL DEFAULT '{}',
    is_deleted INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS certificate (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_on TEXT NOT NULL,
    modified_on TEXT NOT NULL,
    user_id INTEGER NOT NULL DEFAULT 0,
    type TEXT NOT NULL,
    certificate_authority_id INTEGER NOT NULL DEFAULT 0,
    dns_provider_id INTEGER NOT NULL DEFAULT 0,
    name TEXT NOT NULL,
    domain_names TEXT NOT NULL DEFAULT '[]',
    expires_on TEXT,
    status TEXT NOT NULL,
    error_message TEXT NOT NULL DEFAULT '',
    meta TEXT NOT NULL DEFAULT '{}',
    is_ecc INTEGER NOT NULL DEFAULT 0,
    is_deleted INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_certificate_status
    ON certificate (status, is_deleted);
"""


class Database:
    """
    Locked SQLite connection with explicit availability semantics.

    Parameters:
        path: Database file path, ``":memory:"``, or ``None`` when the
            store is not configured. ``None`` makes every statement raise
            :class:`DatabaseUnavailableError`.
        timeout: Seconds SQLite waits on a locked database file.
    """

    def __init__(self, path: str | None, *, timeout: float = 5.0) -> None:
        self.path = path
        self._timeout = timeout
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> Database:
        settings = settings or get_settings()
        return cls(settings.database_path)

    # -- lifecycle ---------------------------------------------------------

    def connect(self) -> sqlite3.Connection:
        """Open the connection if needed and return it."""
        with self._lock:
            if self._conn is not None:
                return self._conn
            if not self.path:
                raise DatabaseUnavailableError("Database is not configured")

            if self.path != ":memory:":
                Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            try:
                conn = sqlite3.connect(
                    self.path,
                    timeout=self._timeout,
                    check_same_thread=False,
                )
            except sqlite3.Error as e:
                raise DatabaseUnavailableError(
                    f"Failed to open database {self.path}: {e}",
                    cause=e,
                ) from e
            conn.row_factory = sqlite3.Row
            self._conn = conn
            logger.debug("database_connected", path=self.path)
            return conn

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.debug("database_closed", path=self.path)

    @property
    def is_available(self) -> bool:
        try:
            self.connect()
        except DatabaseUnavailableError:
            return False
        return True

    def init_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        with self._lock:
            conn = self.connect()
            conn.executescript(SCHEMA_SQL)
            conn.commit()
        logger.info("schema_initialized", path=self.path)

    # -- Connection protocol -----------------------------------------------

    def execute(self, sql: str, params: tuple = ()) -> Any:
        with self._lock:
            return self.connect().execute(sql, params)

    def commit(self) -> None:
        with self._lock:
            self.connect().commit()

    def rollback(self) -> None:
        with self._lock:
            self.connect().rollback()

    @contextmanager
    def transaction(self) -> Iterator[Database]:
        """Hold the connection for a group of statements and commit them together.

        Any failure, including the commit itself, rolls the group back.
        """
        with self._lock:
            conn = self.connect()
            try:
                yield self
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def __enter__(self) -> Database:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


__all__ = ["Database", "SCHEMA_SQL"]
