"""Base repository with parameterized database access.

Provides :class:`BaseRepository` — a thin base class over a
:class:`~certdispatch.core.protocols.Connection` that every entity
repository extends. It is the only place driver exceptions are translated
into :mod:`certdispatch.core.errors` types.

Architecture::

    ┌────────────────────────────────────────────────────────────────────┐
    │                       BaseRepository                               │
    │                                                                    │
    │   conn: Connection | None   ← None means "store not configured"    │
    │                                                                    │
    │   execute(sql, params)     → cursor                                │
    │   query(sql, params)       → list[dict]                            │
    │   query_one(sql, params)   → dict | None                           │
    │   insert(table, data)      → generated id                          │
    │   transaction()            → commit all or roll all back           │
    └────────────────────────────────────────────────────────────────────┘

Error translation:
    - no connection, closed connection, unopenable file
      → :class:`DatabaseUnavailableError`
    - any other ``sqlite3.Error`` → :class:`QueryError`, with the statement
      and parameters logged at DEBUG

Tags:
    repository, database, abstraction
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from certdispatch.core.errors import DatabaseError, DatabaseUnavailableError, ErrorContext, QueryError
from certdispatch.core.logging import get_logger
from certdispatch.core.protocols import Connection

logger = get_logger(__name__)

_UNAVAILABLE_MARKERS = (
    "closed database",
    "unable to open database",
    "disk i/o error",
)


def _is_unavailable(exc: sqlite3.Error) -> bool:
    message = str(exc).lower()
    return any(marker in message for marker in _UNAVAILABLE_MARKERS)


@contextmanager
def _connection_transaction(conn: Connection) -> Iterator[Connection]:
    """Commit-or-rollback scope for connections without their own ``transaction()``."""
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise


class BaseRepository:
    """Parameterized-SQL base class for data-access repositories.

    Parameters:
        conn: Any object satisfying the :class:`Connection` protocol, or
              ``None`` when no store is configured.
    """

    def __init__(self, conn: Connection | None) -> None:
        self.conn = conn

    def _translate(self, exc: sqlite3.Error, prefix: str) -> DatabaseError:
        if _is_unavailable(exc):
            return DatabaseUnavailableError(str(exc), cause=exc)
        return QueryError(f"{prefix}: {exc}", cause=exc)

    # -- Query helpers -----------------------------------------------------

    def execute(self, sql: str, params: tuple | dict[str, Any] = ()) -> Any:
        """Execute a statement and return the raw cursor."""
        if self.conn is None:
            raise DatabaseUnavailableError("Database is not configured")
        try:
            return self.conn.execute(sql, params)
        except DatabaseUnavailableError:
            raise
        except sqlite3.Error as e:
            error = self._translate(e, "Query failed")
            if isinstance(error, QueryError):
                logger.debug("query_failed", query=sql, params=params, error=str(e))
                error.context = ErrorContext(query=sql, params=params)
            raise error from e

    def query(self, sql: str, params: tuple = ()) -> list[dict[str, Any]]:
        """Execute a SELECT and return rows as dicts.

        An empty result is an empty list, never an error.
        """
        cursor = self.execute(sql, params)
        rows = cursor.fetchall()
        if not rows:
            return []

        if isinstance(rows[0], sqlite3.Row):
            return [dict(row) for row in rows]

        columns = [desc[0] for desc in cursor.description]
        return [dict(zip(columns, row, strict=False)) for row in rows]

    def query_one(self, sql: str, params: tuple = ()) -> dict[str, Any] | None:
        """Execute a SELECT and return the first row as a dict (or None)."""
        results = self.query(sql, params)
        return results[0] if results else None

    def scalar(self, sql: str, params: tuple = ()) -> Any:
        """Return the first column of the first row, or None."""
        row = self.query_one(sql, params)
        if row is None:
            return None
        return next(iter(row.values()))

    # -- Write helpers -----------------------------------------------------

    def insert(self, table: str, data: dict[str, Any]) -> int:
        """Insert a single row from a dict and return the generated id."""
        columns = list(data.keys())
        placeholders = ", ".join(f":{col}" for col in columns)
        sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"
        cursor = self.execute(sql, data)
        return int(cursor.lastrowid)

    def commit(self) -> None:
        """Commit the current transaction."""
        if self.conn is None:
            raise DatabaseUnavailableError("Database is not configured")
        try:
            self.conn.commit()
        except sqlite3.Error as e:
            raise self._translate(e, "Commit failed") from e

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the enclosed writes as one unit.

        The connection is held for the whole block when it supports
        ``transaction()`` (the :class:`Database` adapter does). A failed
        statement or a failed commit rolls everything back.

        Example:
            >>> with repo.transaction():
            ...     cursor = repo.execute("UPDATE certificate SET ...")
        """
        if self.conn is None:
            raise DatabaseUnavailableError("Database is not configured")
        scope = getattr(self.conn, "transaction", None)
        try:
            with scope() if scope is not None else _connection_transaction(self.conn):
                yield
        except sqlite3.Error as e:
            logger.warning("transaction_rolled_back", error=str(e))
            raise self._translate(e, "Commit failed") from e


__all__ = [
    "BaseRepository",
]
