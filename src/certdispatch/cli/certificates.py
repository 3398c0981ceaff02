"""
CLI: ``certdispatch certificates`` — certificate record management.
"""

from __future__ import annotations

import typer

from certdispatch.certificates.model import Certificate, CertificateStatus, CertificateType
from certdispatch.cli.utils import (
    console,
    handle_errors,
    make_repository,
    open_database,
    print_json,
    print_record,
    print_table,
)
from certdispatch.core.listing import DEFAULT_LIMIT, PageInfo, parse_filter, parse_sort

app = typer.Typer(no_args_is_help=True)

LIST_COLUMNS = ["id", "name", "type", "status", "domain_names", "expires_on", "error_message"]


@app.command("list")
def list_certificates(
    filter_: list[str] = typer.Option([], "--filter", "-f", help="field:modifier:value[,value]"),
    sort: list[str] = typer.Option([], "--sort", "-s", help="field or field.desc"),
    limit: int = typer.Option(DEFAULT_LIMIT, "--limit", "-n"),
    offset: int = typer.Option(0, "--offset"),
    expand: list[str] = typer.Option([], "--expand", "-e", help="certificate_authority, dns_provider"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """List certificates (deleted rows are never shown)."""
    with handle_errors(), open_database(database) as db:
        page = PageInfo(limit=limit, offset=offset, sort=[parse_sort(s) for s in sort])
        filters = [parse_filter(f) for f in filter_]
        result = make_repository(db).list(page, filters, expand or None)

    rows = [item.to_dict() for item in result.items]
    if json_out:
        print_json({"items": rows, "total": result.total, "limit": result.limit, "offset": result.offset})
        return
    print_table(rows, LIST_COLUMNS, title="Certificates")
    console.print(f"\n[dim]Showing {len(rows)} of {result.total} (offset {result.offset})[/dim]")


@app.command()
def show(
    certificate_id: int = typer.Argument(...),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show one certificate."""
    with handle_errors(), open_database(database) as db:
        certificate = make_repository(db).get_by_id(certificate_id)
    if json_out:
        print_json(certificate.to_dict())
    else:
        print_record(certificate.to_dict(), title=f"Certificate {certificate_id}")


@app.command()
def create(
    name: str = typer.Argument(..., help="Display name"),
    domain: list[str] = typer.Option(..., "--domain", help="Domain name (repeatable)"),
    cert_type: CertificateType = typer.Option(CertificateType.HTTP, "--type", case_sensitive=False),
    authority: int = typer.Option(0, "--authority", help="Certificate authority id"),
    dns_provider: int = typer.Option(0, "--dns-provider", help="DNS provider id"),
    ecc: bool = typer.Option(False, "--ecc", help="Use an ECDSA key"),
    ready: bool = typer.Option(False, "--ready", help="Mark ready for issuance immediately"),
    user_id: int = typer.Option(0, "--user"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Create a certificate record."""
    certificate = Certificate(
        user_id=user_id,
        type=cert_type,
        certificate_authority_id=authority,
        dns_provider_id=dns_provider,
        name=name,
        domain_names=list(domain),
        is_ecc=ecc,
        status=CertificateStatus.READY if ready else CertificateStatus.REQUESTED,
    )
    with handle_errors(), open_database(database) as db:
        new_id = make_repository(db).save(certificate)
    console.print(f"Certificate [bold]{new_id}[/bold] created ({certificate.status.value})")


@app.command()
def ready(
    certificate_id: int = typer.Argument(...),
    force: bool = typer.Option(
        False, "--force", help="Re-arm a certificate stuck in provisioning (no job may still be running)"
    ),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Re-arm a certificate for issuance on the next recovery pass."""
    with handle_errors(), open_database(database) as db:
        repo = make_repository(db)
        certificate = repo.get_by_id(certificate_id)
        if certificate.status is CertificateStatus.PROVISIONING and not force:
            console.print(
                f"[yellow]Certificate {certificate_id} is being provisioned; use --force to re-arm it[/yellow]"
            )
            raise typer.Exit(code=1)
        certificate.status = CertificateStatus.READY
        repo.save(certificate)
    console.print(f"Certificate [bold]{certificate_id}[/bold] is ready")


@app.command()
def delete(
    certificate_id: int = typer.Argument(...),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Soft-delete a certificate."""
    with handle_errors(), open_database(database) as db:
        repo = make_repository(db)
        repo.delete(repo.get_by_id(certificate_id))
    console.print(f"Certificate [bold]{certificate_id}[/bold] deleted")
