"""
CLI: ``certdispatch db`` — database management commands.
"""

from __future__ import annotations

import typer

from certdispatch.certificates.authorities import AuthorityRepository, CertificateAuthority, DnsProvider
from certdispatch.cli.utils import console, handle_errors, open_database

app = typer.Typer(no_args_is_help=True)


@app.command()
def init(
    database: str | None = typer.Option(None, "--database", "-d", help="Database path"),
) -> None:
    """Initialise database schema (create tables)."""
    with handle_errors(), open_database(database) as db:
        db.init_schema()
    console.print("[green]Schema initialised[/green]")


@app.command("add-authority")
def add_authority(
    name: str = typer.Argument(..., help="Display name"),
    server: str = typer.Option(..., "--server", help="ACME directory URL or acme.sh server alias"),
    wildcards: bool = typer.Option(False, "--wildcards/--no-wildcards", help="CA issues wildcard names"),
    max_domains: int = typer.Option(0, "--max-domains", help="Domains per certificate (0 = unlimited)"),
    ca_bundle: str = typer.Option("", "--ca-bundle", help="CA bundle path for private ACME servers"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Register a certificate authority."""
    with handle_errors(), open_database(database) as db:
        new_id = AuthorityRepository(db).create_certificate_authority(
            CertificateAuthority(
                name=name,
                acmesh_server=server,
                ca_bundle=ca_bundle,
                is_wildcard_supported=wildcards,
                max_domains=max_domains,
            )
        )
    console.print(f"Certificate authority [bold]{new_id}[/bold] created")


@app.command("add-dns-provider")
def add_dns_provider(
    name: str = typer.Argument(..., help="Display name"),
    acmesh_name: str = typer.Option(..., "--acmesh-name", help="acme.sh DNS hook, e.g. dns_cf"),
    dns_sleep: int = typer.Option(0, "--dns-sleep", help="Seconds to wait for DNS propagation"),
    credential: list[str] = typer.Option([], "--credential", "-c", help="KEY=VALUE passed to the hook"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Register a DNS provider."""
    meta: dict[str, str] = {}
    for item in credential:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected KEY=VALUE, got {item!r}", param_hint="--credential")
        meta[key] = value

    with handle_errors(), open_database(database) as db:
        new_id = AuthorityRepository(db).create_dns_provider(
            DnsProvider(name=name, acmesh_name=acmesh_name, dns_sleep=dns_sleep, meta=meta)
        )
    console.print(f"DNS provider [bold]{new_id}[/bold] created")
