"""Certificate repository — CRUD, listing, eligibility and claim.

The repository is the persistence adapter seen by the rest of the
subsystem. Besides plain CRUD it owns the two statements the at-most-once
dispatch guarantee rests on:

- :meth:`CertificateRepository.get_by_status` — the eligibility selector:
  non-deleted rows of an automatable type whose certificate authority
  reference resolves to a live ``certificate_authority`` row.
- :meth:`CertificateRepository.claim` — a single conditional
  ``ready → provisioning`` update; only the caller whose statement changed
  exactly one row may issue.

Tags:
    certdispatch, repository, certificate
"""

from __future__ import annotations

from collections.abc import Callable, Collection, Sequence
from datetime import datetime

from certdispatch.certificates.authorities import AuthorityRepository
from certdispatch.certificates.model import (
    COLUMNS,
    DEFAULT_AUTOMATABLE_TYPES,
    DEFAULT_SORT,
    FIELD_MAP,
    TABLE,
    Certificate,
    CertificateStatus,
    CertificateType,
    ListResponse,
)
from certdispatch.core.errors import CertError, NotFoundError, ValidationError
from certdispatch.core.listing import Filter, PageInfo, build_list_query
from certdispatch.core.logging import get_logger
from certdispatch.core.protocols import Connection
from certdispatch.core.repository import BaseRepository
from certdispatch.core.timestamps import to_iso8601, utc_now

logger = get_logger(__name__)

# Only create sets created_on.
_UPDATE_ASSIGNMENTS = ", ".join(f"{col} = :{col}" for col in COLUMNS if col != "created_on")


class CertificateRepository(BaseRepository):
    """Reads and writes for the ``certificate`` table.

    Parameters:
        conn: Connection (or ``None`` when no store is configured).
        automatable_types: Types the eligibility selector returns.
        clock: Source of "now" for timestamps; injectable for tests.
    """

    def __init__(
        self,
        conn: Connection | None,
        automatable_types: Collection[CertificateType] = DEFAULT_AUTOMATABLE_TYPES,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(conn)
        self.automatable_types = frozenset(automatable_types)
        self.clock = clock
        self.authorities = AuthorityRepository(conn)

    # -- reads -----------------------------------------------------------------

    def get_by_id(self, certificate_id: int) -> Certificate:
        row = self.query_one(
            f"SELECT * FROM {TABLE} WHERE id = ? AND is_deleted = 0",
            (certificate_id,),
        )
        if row is None:
            raise NotFoundError(f"Certificate {certificate_id} not found").with_context(
                certificate_id=certificate_id
            )
        return Certificate.from_row(row)

    def list(
        self,
        page: PageInfo | None = None,
        filters: Sequence[Filter] = (),
        expand: Sequence[str] | None = None,
    ) -> ListResponse:
        """Return one page of non-deleted certificates.

        Expansion failures are logged per row and leave that row's
        relation empty; they never fail the listing.
        """
        page = page or PageInfo()
        filters = list(filters)
        columns = ("id", *COLUMNS)

        query, params = build_list_query(columns, TABLE, page, DEFAULT_SORT, filters, FIELD_MAP, count=True)
        total = int(self.scalar(query, params) or 0)

        query, params = build_list_query(columns, TABLE, page, DEFAULT_SORT, filters, FIELD_MAP, count=False)
        items = [Certificate.from_row(row) for row in self.query(query, params)]

        if expand:
            for item in items:
                try:
                    item.expand(
                        expand,
                        self.authorities.get_certificate_authority,
                        self.authorities.get_dns_provider,
                    )
                except CertError as e:
                    logger.error("certificate_expansion_failed", certificate_id=item.id, **e.to_dict())

        return ListResponse(
            items=items,
            total=total,
            limit=page.limit,
            offset=page.offset,
            sort=list(page.sort),
            filters=filters,
        )

    def get_by_status(self, status: CertificateStatus) -> list[Certificate]:
        """Select rows in ``status`` that may be dispatched automatically.

        Returns an empty list when nothing matches. Store failures propagate
        as :class:`DatabaseUnavailableError` or :class:`QueryError`.
        """
        if not self.automatable_types:
            return []

        types = sorted(t.value for t in self.automatable_types)
        query = (
            f"SELECT t.* FROM {TABLE} t "
            "INNER JOIN certificate_authority c "
            "ON c.id = t.certificate_authority_id AND c.is_deleted = 0 "
            f"WHERE t.type IN ({', '.join('?' for _ in types)}) "
            "AND t.status = ? "
            "AND t.certificate_authority_id > 0 "
            "AND t.is_deleted = 0 "
            "ORDER BY t.id"
        )
        params = (*types, CertificateStatus(status).value)
        try:
            rows = self.query(query, params)
        except CertError as e:
            logger.error("get_by_status_failed", status=str(status), **e.to_dict())
            logger.debug("get_by_status_query", query=query, params=params)
            raise
        return [Certificate.from_row(row) for row in rows]

    # -- writes ----------------------------------------------------------------

    def create(self, certificate: Certificate) -> int:
        """Insert a new row and return its generated id."""
        if certificate.id != 0:
            raise ValidationError("Cannot create certificate when model already has an ID")

        certificate.touch(True, self.clock())
        row = certificate.to_row()
        row.pop("id")
        with self.transaction():
            new_id = self.insert(TABLE, row)
        logger.debug("certificate_created", certificate_id=new_id, name=certificate.name)
        return new_id

    def update(self, certificate: Certificate) -> None:
        """Overwrite every persisted column of an existing row.

        ``created_on`` is never rewritten: a record built without one keeps
        the stored creation time.
        """
        if certificate.id == 0:
            raise ValidationError("Cannot update certificate when model doesn't have an ID")

        certificate.touch(False, self.clock())
        with self.transaction():
            self.execute(f"UPDATE {TABLE} SET {_UPDATE_ASSIGNMENTS} WHERE id = :id", certificate.to_row())
        logger.debug("certificate_updated", certificate_id=certificate.id)

    def save(self, certificate: Certificate) -> int:
        """Validate, then create or update depending on identity."""
        authority = None
        if certificate.type.uses_certificate_authority and certificate.certificate_authority_id > 0:
            authority = self.authorities.get_certificate_authority(certificate.certificate_authority_id)
        certificate.validate(authority)

        if certificate.id == 0:
            certificate.id = self.create(certificate)
        else:
            self.update(certificate)
        return certificate.id

    def delete(self, certificate: Certificate) -> None:
        """Soft delete; the row stays in the table."""
        if certificate.id == 0:
            raise ValidationError("Cannot delete certificate when model doesn't have an ID")
        certificate.is_deleted = True
        self.update(certificate)

    # -- dispatch state --------------------------------------------------------

    def claim(self, certificate_id: int) -> bool:
        """Atomically move a row from ``ready`` to ``provisioning``.

        Returns True only when this call changed exactly one row and the
        change was committed. A failed commit is rolled back, leaving the
        row ``ready``, and raised.
        """
        return self._transition(
            certificate_id,
            CertificateStatus.READY,
            "status = ?, modified_on = ?",
            (CertificateStatus.PROVISIONING.value, to_iso8601(self.clock())),
            live_only=True,
        )

    def mark_valid(self, certificate_id: int, expires_on: datetime) -> bool:
        """Record a successful issuance and clear the last error."""
        return self._transition(
            certificate_id,
            CertificateStatus.PROVISIONING,
            "status = ?, expires_on = ?, error_message = '', modified_on = ?",
            (CertificateStatus.VALID.value, to_iso8601(expires_on), to_iso8601(self.clock())),
        )

    def mark_error(self, certificate_id: int, message: str) -> bool:
        """Record a failed issuance, keeping the message for operators."""
        return self._transition(
            certificate_id,
            CertificateStatus.PROVISIONING,
            "status = ?, error_message = ?, modified_on = ?",
            (CertificateStatus.ERROR.value, message, to_iso8601(self.clock())),
        )

    def _transition(
        self,
        certificate_id: int,
        expected: CertificateStatus,
        assignments: str,
        params: tuple,
        live_only: bool = False,
    ) -> bool:
        where = "id = ? AND status = ?" + (" AND is_deleted = 0" if live_only else "")
        with self.transaction():
            cursor = self.execute(
                f"UPDATE {TABLE} SET {assignments} WHERE {where}",
                (*params, certificate_id, expected.value),
            )
            changed = cursor.rowcount == 1
        return changed
