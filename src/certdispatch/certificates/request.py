"""Request action — claim a ready certificate, issue it, record the outcome.

``CertificateRequester.action_for(id)`` produces the zero-argument callable
bound into each queued ``RequestCertificate`` job. The claim is the first
statement the action runs, so two jobs for the same record (two recovery
passes, or a recovery pass racing an operator) can never both issue.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import partial

from certdispatch.certificates.issuer import Issuer
from certdispatch.certificates.repository import CertificateRepository
from certdispatch.core.errors import CertError, IssuanceError
from certdispatch.core.logging import get_logger

logger = get_logger(__name__)

REQUEST_JOB_NAME = "RequestCertificate"


class CertificateRequester:
    def __init__(self, repository: CertificateRepository, issuer: Issuer) -> None:
        self.repository = repository
        self.issuer = issuer

    def action_for(self, certificate_id: int) -> Callable[[], bool]:
        return partial(self.request, certificate_id)

    def request(self, certificate_id: int) -> bool:
        """Issue one certificate.

        Returns False when the record was not ``ready`` any more (already
        claimed, deleted, or moved by an operator); nothing is issued then.

        Raises:
            IssuanceError: the issuer failed; the record is left in
                ``error`` with the message stored.
        """
        log = logger.bind(certificate_id=certificate_id)

        if not self.repository.claim(certificate_id):
            log.info("certificate_claim_skipped")
            return False

        try:
            certificate = self.repository.get_by_id(certificate_id)
            authority = self.repository.authorities.get_certificate_authority(
                certificate.certificate_authority_id
            )
            dns_provider = None
            if certificate.type.requires_dns_provider:
                dns_provider = self.repository.authorities.get_dns_provider(certificate.dns_provider_id)
            issued = self.issuer.issue(certificate, authority, dns_provider)
        except Exception as e:
            message = e.message if isinstance(e, CertError) else f"{type(e).__name__}: {e}"
            self.repository.mark_error(certificate_id, message)
            log.warning("certificate_request_failed", error=message)
            if isinstance(e, IssuanceError):
                raise
            raise IssuanceError(message, cause=e).with_context(certificate_id=certificate_id) from e

        self.repository.mark_valid(certificate_id, issued.expires_on)
        log.info("certificate_issued", expires_on=issued.expires_on.isoformat())
        return True
