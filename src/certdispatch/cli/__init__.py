"""
Root Typer application for the certdispatch CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from certdispatch.core.logging import configure_logging

app = Typer(
    name="certdispatch",
    help="certdispatch — certificate records and issuance dispatch.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        from certdispatch import __version__

        typer.echo(f"certdispatch {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
    log_format: str | None = typer.Option(None, "--log-format", help="console or json"),
) -> None:
    """certdispatch CLI — manage certificates and run the recovery pass."""
    configure_logging(
        level="DEBUG" if verbose else None,
        format=log_format,  # type: ignore[arg-type]
        force=True,
    )


from certdispatch.cli.certificates import app as certificates_app  # noqa: E402
from certdispatch.cli.db import app as db_app  # noqa: E402
from certdispatch.cli.dispatch import recover  # noqa: E402

app.add_typer(db_app, name="db", help="Database operations.")
app.add_typer(certificates_app, name="certificates", help="Certificate records.")
app.command("recover")(recover)


if __name__ == "__main__":
    app()
