"""Certificate record, its status/type enumerations, and list results.

Manifesto:
    A certificate row is the single source of truth for whether issuance
    work is owed. Status and type are closed enumerations; every branch on
    them is an exhaustive ``match`` ending in ``assert_never`` so a new
    member fails type checking at each decision point.

Lifecycle::

      requested ──(operator/scheduler)──► ready ──claim──► provisioning
                                           ▲                  │
                                           │          ┌───────┴───────┐
                                           │          ▼               ▼
                                           └────── error            valid
                                     (operator/scheduler re-arms either)

Tags:
    certdispatch, models, dataclasses, certificate
"""

from __future__ import annotations

import json
from collections.abc import Callable, Collection, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, assert_never

from certdispatch.certificates.authorities import CertificateAuthority, DnsProvider
from certdispatch.core.errors import ExpansionError, ValidationError
from certdispatch.core.listing import FieldKind, FieldSpec, Filter, Sort
from certdispatch.core.timestamps import from_iso8601, to_iso8601, utc_now

TABLE = "certificate"

# Persisted column contract, in insert order.
COLUMNS: tuple[str, ...] = (
    "created_on",
    "modified_on",
    "user_id",
    "type",
    "certificate_authority_id",
    "dns_provider_id",
    "name",
    "domain_names",
    "expires_on",
    "status",
    "error_message",
    "meta",
    "is_ecc",
    "is_deleted",
)


class CertificateType(str, Enum):
    """How a certificate is obtained."""

    HTTP = "http"  # ACME http-01 challenge
    DNS = "dns"  # ACME dns-01 challenge
    CUSTOM = "custom"  # uploaded by an operator
    MKCERT = "mkcert"  # generated by a local development CA

    @property
    def uses_certificate_authority(self) -> bool:
        match self:
            case CertificateType.HTTP | CertificateType.DNS:
                return True
            case CertificateType.CUSTOM | CertificateType.MKCERT:
                return False
            case _:
                assert_never(self)

    @property
    def requires_dns_provider(self) -> bool:
        match self:
            case CertificateType.DNS:
                return True
            case CertificateType.HTTP | CertificateType.CUSTOM | CertificateType.MKCERT:
                return False
            case _:
                assert_never(self)


class CertificateStatus(str, Enum):
    """Lifecycle state stored in ``certificate.status``."""

    REQUESTED = "requested"
    READY = "ready"
    PROVISIONING = "provisioning"
    VALID = "valid"
    ERROR = "error"

    @property
    def is_dispatchable(self) -> bool:
        """Only ``ready`` rows may be claimed for issuance."""
        match self:
            case CertificateStatus.READY:
                return True
            case (
                CertificateStatus.REQUESTED
                | CertificateStatus.PROVISIONING
                | CertificateStatus.VALID
                | CertificateStatus.ERROR
            ):
                return False
            case _:
                assert_never(self)


DEFAULT_AUTOMATABLE_TYPES: frozenset[CertificateType] = frozenset(
    {CertificateType.HTTP, CertificateType.DNS}
)


def parse_automatable_types(values: Collection[str]) -> frozenset[CertificateType]:
    """Turn configured type names into enum members, rejecting unknown names
    and types that have no certificate authority to dispatch to."""
    types = set()
    for value in values:
        try:
            cert_type = CertificateType(value)
        except ValueError:
            raise ValidationError(f"Unknown certificate type: {value!r}") from None
        if not cert_type.uses_certificate_authority:
            raise ValidationError(f"Certificate type {value!r} cannot be issued automatically")
        types.add(cert_type)
    return frozenset(types)


# Public filter/sort fields for list queries.
FIELD_MAP: dict[str, FieldSpec] = {
    "id": FieldSpec("id", FieldKind.INTEGER),
    "created_on": FieldSpec("created_on", FieldKind.DATE),
    "modified_on": FieldSpec("modified_on", FieldKind.DATE),
    "user_id": FieldSpec("user_id", FieldKind.INTEGER),
    "type": FieldSpec("type"),
    "certificate_authority_id": FieldSpec("certificate_authority_id", FieldKind.INTEGER),
    "dns_provider_id": FieldSpec("dns_provider_id", FieldKind.INTEGER),
    "name": FieldSpec("name"),
    "domain_names": FieldSpec("domain_names"),
    "expires_on": FieldSpec("expires_on", FieldKind.DATE),
    "status": FieldSpec("status"),
    "is_ecc": FieldSpec("is_ecc", FieldKind.BOOLEAN),
}

DEFAULT_SORT = Sort(field="name")

EXPANDABLE = ("certificate_authority", "dns_provider")


@dataclass
class Certificate:
    """A row in ``certificate``. ``id == 0`` means not yet persisted."""

    id: int = 0
    created_on: datetime | None = None
    modified_on: datetime | None = None
    user_id: int = 0
    type: CertificateType = CertificateType.HTTP
    certificate_authority_id: int = 0
    dns_provider_id: int = 0
    name: str = ""
    domain_names: list[str] = field(default_factory=list)
    expires_on: datetime | None = None
    status: CertificateStatus = CertificateStatus.REQUESTED
    error_message: str = ""
    meta: dict[str, Any] = field(default_factory=dict)
    is_ecc: bool = False
    is_deleted: bool = False

    # Expansions, never persisted
    certificate_authority: CertificateAuthority | None = field(default=None, compare=False)
    dns_provider: DnsProvider | None = field(default=None, compare=False)

    def touch(self, created: bool, now: datetime | None = None) -> None:
        """Advance ``modified_on``; set ``created_on`` only when creating."""
        now = now or utc_now()
        if created:
            self.created_on = now
        self.modified_on = now

    def validate(self, authority: CertificateAuthority | None = None) -> None:
        """Reject records that cannot be stored.

        ``authority`` is the resolved certificate authority when available;
        its wildcard and domain-count limits are then enforced too.
        """
        if not self.name.strip():
            raise ValidationError("Certificate name is required")
        if not self.domain_names:
            raise ValidationError("At least one domain name is required")

        has_wildcard = any(d.startswith("*.") for d in self.domain_names)

        if self.type.uses_certificate_authority:
            if self.certificate_authority_id <= 0:
                raise ValidationError(f"Certificate type {self.type.value} requires a certificate authority")
        elif self.certificate_authority_id:
            raise ValidationError(f"Certificate type {self.type.value} cannot use a certificate authority")

        if self.type.requires_dns_provider and self.dns_provider_id <= 0:
            raise ValidationError("DNS certificates require a DNS provider")

        if has_wildcard and self.type is CertificateType.HTTP:
            raise ValidationError("Wildcard domains require a DNS certificate")

        if authority is not None:
            if has_wildcard and not authority.is_wildcard_supported:
                raise ValidationError(f"Certificate authority {authority.name} does not support wildcards")
            if authority.max_domains and len(self.domain_names) > authority.max_domains:
                raise ValidationError(
                    f"Certificate authority {authority.name} allows at most "
                    f"{authority.max_domains} domains"
                )

    def is_automatable(self, types: Collection[CertificateType] = DEFAULT_AUTOMATABLE_TYPES) -> bool:
        return self.type in types and self.certificate_authority_id > 0

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_on is None:
            return False
        return self.expires_on <= (now or utc_now())

    def expand(
        self,
        names: Sequence[str],
        get_authority: Callable[[int], CertificateAuthority],
        get_dns_provider: Callable[[int], DnsProvider],
    ) -> None:
        """Attach related entities named in ``names``.

        Raises:
            ExpansionError: unknown name, or a referenced row is missing.
        """
        for name in names:
            if name not in EXPANDABLE:
                raise ExpansionError(f"Cannot expand unknown relation: {name!r}")
            try:
                if name == "certificate_authority":
                    if self.certificate_authority_id:
                        self.certificate_authority = get_authority(self.certificate_authority_id)
                elif self.dns_provider_id:
                    self.dns_provider = get_dns_provider(self.dns_provider_id)
            except Exception as e:
                raise ExpansionError(
                    f"Failed to expand {name} for certificate {self.id}: {e}",
                    cause=e,
                ).with_context(certificate_id=self.id) from e

    # -- row mapping ---------------------------------------------------------

    def to_row(self) -> dict[str, Any]:
        """Named parameters for the persisted columns (plus ``id``)."""
        return {
            "id": self.id,
            "created_on": to_iso8601(self.created_on),
            "modified_on": to_iso8601(self.modified_on),
            "user_id": self.user_id,
            "type": self.type.value,
            "certificate_authority_id": self.certificate_authority_id,
            "dns_provider_id": self.dns_provider_id,
            "name": self.name,
            "domain_names": json.dumps(self.domain_names),
            "expires_on": to_iso8601(self.expires_on),
            "status": self.status.value,
            "error_message": self.error_message,
            "meta": json.dumps(self.meta),
            "is_ecc": int(self.is_ecc),
            "is_deleted": int(self.is_deleted),
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Certificate:
        domain_names = row.get("domain_names") or "[]"
        meta = row.get("meta") or "{}"
        return cls(
            id=int(row["id"]),
            created_on=from_iso8601(row.get("created_on")),
            modified_on=from_iso8601(row.get("modified_on")),
            user_id=int(row.get("user_id") or 0),
            type=CertificateType(row["type"]),
            certificate_authority_id=int(row.get("certificate_authority_id") or 0),
            dns_provider_id=int(row.get("dns_provider_id") or 0),
            name=row.get("name") or "",
            domain_names=json.loads(domain_names) if isinstance(domain_names, str) else list(domain_names),
            expires_on=from_iso8601(row.get("expires_on")),
            status=CertificateStatus(row["status"]),
            error_message=row.get("error_message") or "",
            meta=json.loads(meta) if isinstance(meta, str) else dict(meta),
            is_ecc=bool(row.get("is_ecc")),
            is_deleted=bool(row.get("is_deleted")),
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly view for the CLI."""
        data = self.to_row()
        data["domain_names"] = list(self.domain_names)
        data["meta"] = dict(self.meta)
        data["is_ecc"] = self.is_ecc
        data["is_deleted"] = self.is_deleted
        if self.certificate_authority is not None:
            data["certificate_authority"] = {
                "id": self.certificate_authority.id,
                "name": self.certificate_authority.name,
            }
        if self.dns_provider is not None:
            data["dns_provider"] = {"id": self.dns_provider.id, "name": self.dns_provider.name}
        return data


@dataclass
class ListResponse:
    """One page of certificates plus the query that produced it."""

    items: list[Certificate] = field(default_factory=list)
    total: int = 0
    limit: int = 0
    offset: int = 0
    sort: list[Sort] = field(default_factory=list)
    filters: list[Filter] = field(default_factory=list)
