"""
CLI utility helpers — output formatting and repository wiring.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from certdispatch.certificates.model import parse_automatable_types
from certdispatch.certificates.repository import CertificateRepository
from certdispatch.core.database import Database
from certdispatch.core.errors import CertError, ConfigError, ValidationError
from certdispatch.core.settings import get_settings

console = Console()
err_console = Console(stderr=True)


# ── Database helpers ─────────────────────────────────────────────────────


@contextmanager
def open_database(database: str | None = None) -> Iterator[Database]:
    """Open the configured database (or ``database`` when given)."""
    db = Database(database or get_settings().database_path)
    try:
        yield db
    finally:
        db.close()


def make_repository(db: Database) -> CertificateRepository:
    try:
        types = parse_automatable_types(get_settings().automatable_types)
    except ValidationError as e:
        raise ConfigError(f"CERTDISPATCH_AUTOMATABLE_TYPES: {e.message}", cause=e) from e
    return CertificateRepository(db, automatable_types=types)


@contextmanager
def handle_errors() -> Iterator[None]:
    """Turn certdispatch errors into a red message and exit status 1."""
    try:
        yield
    except CertError as e:
        err_console.print(f"[bold red]Error[/bold red] ({e.category.value}): {e.message}")
        raise typer.Exit(code=1) from e


# ── Output helpers ───────────────────────────────────────────────────────


def print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def print_table(rows: list[dict[str, Any]], columns: list[str], *, title: str = "") -> None:
    """Render dict rows as a Rich table limited to ``columns``."""
    if not rows:
        console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in columns:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*(_cell(row.get(col)) for col in columns))
    console.print(table)


def print_record(data: dict[str, Any], *, title: str = "") -> None:
    table = Table(title=title or None, show_header=False, pad_edge=False)
    table.add_column("field", style="bold")
    table.add_column("value", overflow="fold")
    for key, value in data.items():
        table.add_row(key, _cell(value))
    console.print(table)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list | dict):
        return json.dumps(value, default=str)
    return str(value)
