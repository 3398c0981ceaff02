"""
CLI: ``certdispatch recover`` — run the startup recovery pass.
"""

from __future__ import annotations

import typer

from certdispatch.certificates.issuer import CommandIssuer
from certdispatch.certificates.model import CertificateStatus
from certdispatch.certificates.recovery import add_pending_jobs
from certdispatch.certificates.request import CertificateRequester
from certdispatch.cli.utils import console, handle_errors, make_repository, open_database, print_table
from certdispatch.core.settings import get_settings
from certdispatch.execution.jobqueue import LocalJobQueue


def recover(
    dry_run: bool = typer.Option(False, "--dry-run", help="Only list eligible certificates"),
    workers: int | None = typer.Option(None, "--workers", "-w", help="Concurrent issuance threads"),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for queued jobs; jobs not started by then are dropped and stay ready",
    ),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Enqueue every ready certificate once and wait for the jobs to finish.

    Example::

        certdispatch recover --dry-run
        certdispatch recover --workers 4 --timeout 600
    """
    settings = get_settings()

    with handle_errors(), open_database(database) as db:
        repo = make_repository(db)

        if dry_run:
            rows = [c.to_dict() for c in repo.get_by_status(CertificateStatus.READY)]
            print_table(rows, ["id", "name", "type", "domain_names"], title="Eligible certificates")
            return

        requester = CertificateRequester(repo, CommandIssuer.from_settings(settings))
        jobs = LocalJobQueue(max_size=settings.queue_max_size, workers=workers or settings.queue_workers)
        jobs.start()
        finished = True
        try:
            result = add_pending_jobs(repo, jobs, requester)
            finished = jobs.join(timeout)
        finally:
            # Jobs already running are always waited for.
            jobs.stop(wait=True, drain=finished)

    if result.error is not None:
        console.print(f"[red]Recovery pass aborted: {result.error}[/red]")
        raise typer.Exit(code=1)

    console.print(
        f"Enqueued [bold]{len(result.enqueued)}[/bold] of {result.selected} ready certificates "
        f"(issued={jobs.stats.completed}, failed={jobs.stats.failed}, rejected={len(result.failed)})"
    )
    if not finished:
        console.print(
            f"[yellow]Timed out waiting for jobs; {jobs.stats.discarded} queued jobs were dropped "
            "and their certificates stay ready[/yellow]"
        )
    if result.failed or jobs.stats.failed:
        raise typer.Exit(code=1)
