"""Startup recovery — re-arm certificates left ``ready`` across a restart.

Run once on the main initialization path, before the service starts taking
new work. The pass reads one snapshot of eligible rows and enqueues exactly
one ``RequestCertificate`` job per row:

1. ``get_by_status(READY)``; a store failure is logged and the pass ends
   with nothing enqueued. The next restart or sweep picks the rows up.
2. For each row, ``add_job``; a rejected job is logged and the remaining
   rows are still enqueued.

Rows that become ``ready`` after the snapshot are not this pass's concern.
Duplicate jobs across passes are harmless because every job claims its
row before issuing.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from certdispatch.certificates.model import CertificateStatus
from certdispatch.certificates.repository import CertificateRepository
from certdispatch.certificates.request import REQUEST_JOB_NAME, CertificateRequester
from certdispatch.core.errors import CertError
from certdispatch.core.logging import get_logger
from certdispatch.execution.jobqueue import Job, JobQueue

logger = get_logger(__name__)


@dataclass
class RecoveryResult:
    """Outcome of one recovery pass."""

    selected: int = 0
    enqueued: list[int] = field(default_factory=list)
    failed: dict[int, str] = field(default_factory=dict)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.failed


def add_pending_jobs(
    repository: CertificateRepository,
    jobs: JobQueue,
    requester: CertificateRequester,
) -> RecoveryResult:
    """Enqueue one request job per eligible ``ready`` certificate."""
    result = RecoveryResult()

    try:
        rows = repository.get_by_status(CertificateStatus.READY)
    except CertError as e:
        logger.error("add_pending_jobs_failed", **e.to_dict())
        result.error = e.message
        return result

    result.selected = len(rows)
    for row in rows:
        job = Job(
            name=REQUEST_JOB_NAME,
            action=requester.action_for(row.id),
            labels={"certificate_id": row.id},
        )
        logger.debug("adding_request_job", certificate_id=row.id, name=row.name, type=row.type.value)
        try:
            jobs.add_job(job)
        except Exception as e:
            message = e.message if isinstance(e, CertError) else f"{type(e).__name__}: {e}"
            logger.error("add_pending_job_failed", certificate_id=row.id, error=message)
            result.failed[row.id] = message
            continue
        result.enqueued.append(row.id)

    logger.info(
        "pending_jobs_added",
        selected=result.selected,
        enqueued=len(result.enqueued),
        failed=len(result.failed),
    )
    return result
