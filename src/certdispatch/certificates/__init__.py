"""Certificate records and the status-driven dispatch around them.

Example:
    >>> from certdispatch.certificates import CertificateRepository, add_pending_jobs
    >>> repo = CertificateRepository(db)
    >>> add_pending_jobs(repo, jobs, CertificateRequester(repo, issuer))
"""

from .authorities import AuthorityRepository, CertificateAuthority, DnsProvider
from .issuer import CommandIssuer, IssuedCertificate, Issuer
from .model import Certificate, CertificateStatus, CertificateType, ListResponse
from .recovery import RecoveryResult, add_pending_jobs
from .repository import CertificateRepository
from .request import REQUEST_JOB_NAME, CertificateRequester

__all__ = [
    "REQUEST_JOB_NAME",
    "AuthorityRepository",
    "Certificate",
    "CertificateAuthority",
    "CertificateRepository",
    "CertificateRequester",
    "CertificateStatus",
    "CertificateType",
    "CommandIssuer",
    "DnsProvider",
    "IssuedCertificate",
    "Issuer",
    "ListResponse",
    "RecoveryResult",
    "add_pending_jobs",
]
