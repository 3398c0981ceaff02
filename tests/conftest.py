"""
Shared pytest fixtures for certdispatch tests.

This module provides:
- An in-memory SQLite ``Database`` with the schema applied
- Certificate authority / DNS provider rows to reference
- A deterministic clock so timestamp ordering is testable
- A ``make_certificate`` factory for eligible/ineligible records
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from certdispatch.certificates.authorities import AuthorityRepository, CertificateAuthority, DnsProvider
from certdispatch.certificates.model import Certificate, CertificateStatus, CertificateType
from certdispatch.certificates.repository import CertificateRepository
from certdispatch.core.database import Database
from certdispatch.core.settings import reset_settings


class FakeClock:
    """Returns a strictly increasing UTC time on every call."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)) -> None:
        self.now = start or datetime(2026, 1, 1, tzinfo=UTC)
        self.step = step

    def __call__(self) -> datetime:
        self.now = self.now + self.step
        return self.now


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Settings are rebuilt per test from a clean environment."""
    for key in list(os.environ):
        if key.startswith("CERTDISPATCH_"):
            monkeypatch.delenv(key, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def db() -> Iterator[Database]:
    database = Database(":memory:")
    database.init_schema()
    yield database
    database.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def authorities(db: Database) -> AuthorityRepository:
    return AuthorityRepository(db)


@pytest.fixture
def ca_id(authorities: AuthorityRepository) -> int:
    return authorities.create_certificate_authority(
        CertificateAuthority(
            name="Let's Encrypt",
            acmesh_server="https://acme-v02.api.letsencrypt.org/directory",
            is_wildcard_supported=True,
        )
    )


@pytest.fixture
def dns_id(authorities: AuthorityRepository) -> int:
    return authorities.create_dns_provider(
        DnsProvider(name="Cloudflare", acmesh_name="dns_cf", meta={"CF_Token": "secret"})
    )


@pytest.fixture
def repo(db: Database, clock: FakeClock) -> CertificateRepository:
    return CertificateRepository(db, clock=clock)


@pytest.fixture
def make_certificate(
    repo: CertificateRepository, ca_id: int, dns_id: int
) -> Callable[..., Certificate]:
    """Persist a certificate; defaults describe an eligible http record."""
    counter = iter(range(1, 10_000))

    def _make(**overrides: Any) -> Certificate:
        n = next(counter)
        cert_type = overrides.pop("type", CertificateType.HTTP)
        fields: dict[str, Any] = {
            "name": f"site-{n}",
            "domain_names": [f"site{n}.example.com"],
            "type": cert_type,
            "certificate_authority_id": ca_id if cert_type.uses_certificate_authority else 0,
            "dns_provider_id": dns_id if cert_type is CertificateType.DNS else 0,
            "status": CertificateStatus.READY,
        }
        fields.update(overrides)
        certificate = Certificate(**fields)
        certificate.id = repo.create(certificate)
        return certificate

    return _make
