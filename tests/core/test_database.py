"""Tests for the SQLite Database adapter."""

import sqlite3

import pytest

from certdispatch.core.database import Database
from certdispatch.core.errors import DatabaseUnavailableError
from certdispatch.core.protocols import Connection
from certdispatch.core.settings import Settings


class TestDatabase:
    def test_satisfies_connection_protocol(self):
        assert isinstance(Database(":memory:"), Connection)

    def test_init_schema_creates_tables(self, db):
        names = {
            row["name"]
            for row in db.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
        }
        assert {"certificate", "certificate_authority", "dns_provider"} <= names

    def test_init_schema_is_idempotent(self, db):
        db.init_schema()

    def test_rows_are_addressable_by_column(self, db):
        row = db.execute("SELECT 1 AS one").fetchone()
        assert isinstance(row, sqlite3.Row)
        assert row["one"] == 1

    def test_unconfigured_path_is_unavailable(self):
        database = Database(None)
        assert database.is_available is False
        with pytest.raises(DatabaseUnavailableError):
            database.execute("SELECT 1")

    def test_file_database_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "certs.db"
        with Database(str(path)) as database:
            database.init_schema()
        assert path.exists()

    def test_from_settings(self, tmp_path):
        settings = Settings(database_path=str(tmp_path / "x.db"))
        assert Database.from_settings(settings).path == str(tmp_path / "x.db")

    def test_transaction_commits(self, db):
        with db.transaction():
            db.execute("CREATE TABLE t (x INTEGER)")
            db.execute("INSERT INTO t VALUES (1)")
        db.rollback()
        assert db.execute("SELECT COUNT(*) FROM t").fetchone()[0] == 1

    def test_transaction_rolls_back(self, db):
        db.execute("CREATE TABLE t (x INTEGER)")
        db.commit()
        with pytest.raises(RuntimeError):
            with db.transaction():
                db.execute("INSERT INTO t VALUES (1)")
                raise RuntimeError("boom")
        assert db.execute("SELECT COUNT(*) FROM t").fetchone()[0] == 0

    def test_close_then_reconnect(self, tmp_path):
        database = Database(str(tmp_path / "c.db"))
        database.init_schema()
        database.close()
        assert database.execute("SELECT COUNT(*) FROM certificate").fetchone()[0] == 0
        database.close()
