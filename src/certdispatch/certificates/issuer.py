"""Issuer — the client that actually obtains a certificate.

The dispatch core never talks to a certificate authority itself. A request
action calls :meth:`Issuer.issue` and records whatever comes back.
:class:`CommandIssuer` drives an acme.sh-compatible executable; tests use
their own objects satisfying the protocol.
"""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

from cryptography import x509

from certdispatch.certificates.authorities import CertificateAuthority, DnsProvider
from certdispatch.certificates.model import Certificate, CertificateType
from certdispatch.core.errors import IssuanceError
from certdispatch.core.logging import get_logger
from certdispatch.core.settings import Settings, get_settings

logger = get_logger(__name__)

_STDERR_TAIL = 2000


@dataclass(frozen=True)
class IssuedCertificate:
    expires_on: datetime
    certificate_path: Path | None = None
    key_path: Path | None = None


@runtime_checkable
class Issuer(Protocol):
    def issue(
        self,
        certificate: Certificate,
        authority: CertificateAuthority,
        dns_provider: DnsProvider | None,
    ) -> IssuedCertificate:
        """Obtain a certificate or raise :class:`IssuanceError`."""
        ...


def read_certificate_expiry(path: Path) -> datetime:
    """Return ``notAfter`` of the first PEM certificate in ``path``."""
    cert = x509.load_pem_x509_certificate(path.read_bytes())
    return cert.not_valid_after_utc


class CommandIssuer:
    """Issue certificates by running an acme.sh-style command.

    Output layout per certificate::

        <certificates_dir>/certificate-<id>/fullchain.pem
        <certificates_dir>/certificate-<id>/privkey.pem
    """

    def __init__(
        self,
        command: str = "acme.sh",
        certificates_dir: Path = Path("data/certificates"),
        webroot: Path = Path("data/acme-challenge"),
        timeout: float = 300.0,
    ) -> None:
        self.command = command
        self.certificates_dir = Path(certificates_dir)
        self.webroot = Path(webroot)
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> CommandIssuer:
        settings = settings or get_settings()
        return cls(
            command=settings.issuer_command,
            certificates_dir=settings.certificates_dir,
            webroot=settings.acme_webroot,
            timeout=settings.issuer_timeout,
        )

    def certificate_dir(self, certificate: Certificate) -> Path:
        return self.certificates_dir / f"certificate-{certificate.id}"

    def build_args(
        self,
        certificate: Certificate,
        authority: CertificateAuthority,
        dns_provider: DnsProvider | None,
    ) -> list[str]:
        target = self.certificate_dir(certificate)
        args = [self.command, "--issue", "--server", authority.acmesh_server]
        for domain in certificate.domain_names:
            args += ["-d", domain]

        match certificate.type:
            case CertificateType.HTTP:
                args += ["--webroot", str(self.webroot)]
            case CertificateType.DNS:
                if dns_provider is None:
                    raise IssuanceError("DNS certificate has no DNS provider").with_context(
                        certificate_id=certificate.id
                    )
                args += ["--dns", dns_provider.acmesh_name]
                if dns_provider.dns_sleep:
                    args += ["--dnssleep", str(dns_provider.dns_sleep)]
            case CertificateType.CUSTOM | CertificateType.MKCERT:
                raise IssuanceError(
                    f"Certificate type {certificate.type.value} is not issued by an ACME client"
                ).with_context(certificate_id=certificate.id)

        if certificate.is_ecc:
            args += ["--keylength", "ec-256"]
        if authority.ca_bundle:
            args += ["--ca-bundle", authority.ca_bundle]
        args += [
            "--fullchain-file",
            str(target / "fullchain.pem"),
            "--key-file",
            str(target / "privkey.pem"),
        ]
        return args

    def issue(
        self,
        certificate: Certificate,
        authority: CertificateAuthority,
        dns_provider: DnsProvider | None,
    ) -> IssuedCertificate:
        args = self.build_args(certificate, authority, dns_provider)
        target = self.certificate_dir(certificate)
        target.mkdir(parents=True, exist_ok=True)

        env = dict(os.environ)
        if dns_provider is not None:
            env.update(dns_provider.environment())

        logger.info("issuer_started", certificate_id=certificate.id, command=self.command)
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=env,
                check=False,
            )
        except FileNotFoundError as e:
            raise IssuanceError(f"Issuer command not found: {self.command}", cause=e) from e
        except subprocess.TimeoutExpired as e:
            raise IssuanceError(
                f"Issuer timed out after {self.timeout:.0f}s", cause=e
            ).with_context(certificate_id=certificate.id) from e

        if result.returncode != 0:
            detail = (result.stderr or result.stdout or "").strip()[-_STDERR_TAIL:]
            raise IssuanceError(
                f"Issuer exited with status {result.returncode}: {detail}"
            ).with_context(certificate_id=certificate.id)

        fullchain = target / "fullchain.pem"
        try:
            expires_on = read_certificate_expiry(fullchain)
        except (OSError, ValueError) as e:
            raise IssuanceError(f"Issued certificate is unreadable: {e}", cause=e).with_context(
                certificate_id=certificate.id
            ) from e

        return IssuedCertificate(
            expires_on=expires_on,
            certificate_path=fullchain,
            key_path=target / "privkey.pem",
        )
