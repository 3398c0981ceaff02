"""
Canonical protocol definitions for certdispatch.

Protocols define contracts without inheritance: repositories depend on the
shape of a connection, not on ``sqlite3``, so tests can pass an in-memory
SQLite connection, the locked :class:`~certdispatch.core.database.Database`
adapter, or a hand-built fake.

Architecture:
    ::

        protocols.py
        └── Connection   — sync DB protocol (sqlite3, Database adapter, fakes)

Tags:
    protocol, connection, database, contracts
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Connection(Protocol):
    """
    Minimal synchronous connection interface for database operations.

    ``execute`` returns a DB-API cursor exposing ``fetchall()``,
    ``rowcount`` and ``lastrowid``.
    """

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute SQL statement with optional parameters."""
        ...

    def commit(self) -> None:
        """Commit current transaction."""
        ...

    def rollback(self) -> None:
        """Rollback current transaction."""
        ...


__all__ = ["Connection"]
