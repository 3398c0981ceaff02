"""Certificate authority and DNS provider records.

These are the external configuration entities a certificate references
through ``certificate_authority_id`` and ``dns_provider_id``. The dispatch
core only reads them: to resolve a certificate's references, to validate
wildcard and domain-count limits, and to expand list results.

Tags:
    certdispatch, repository, certificate-authority, dns-provider
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from certdispatch.core.errors import NotFoundError, ValidationError
from certdispatch.core.repository import BaseRepository
from certdispatch.core.timestamps import from_iso8601, to_iso8601, utc_now


@dataclass
class CertificateAuthority:
    """A row in ``certificate_authority``."""

    id: int = 0
    created_on: datetime | None = None
    modified_on: datetime | None = None
    name: str = ""
    acmesh_server: str = ""
    ca_bundle: str = ""
    is_wildcard_supported: bool = False
    max_domains: int = 0  # 0 = unlimited
    is_deleted: bool = False

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> CertificateAuthority:
        return cls(
            id=int(row["id"]),
            created_on=from_iso8601(row.get("created_on")),
            modified_on=from_iso8601(row.get("modified_on")),
            name=row.get("name") or "",
            acmesh_server=row.get("acmesh_server") or "",
            ca_bundle=row.get("ca_bundle") or "",
            is_wildcard_supported=bool(row.get("is_wildcard_supported")),
            max_domains=int(row.get("max_domains") or 0),
            is_deleted=bool(row.get("is_deleted")),
        )


@dataclass
class DnsProvider:
    """A row in ``dns_provider``."""

    id: int = 0
    created_on: datetime | None = None
    modified_on: datetime | None = None
    name: str = ""
    acmesh_name: str = ""
    dns_sleep: int = 0
    meta: dict[str, Any] = field(default_factory=dict)
    is_deleted: bool = False

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> DnsProvider:
        meta = row.get("meta") or "{}"
        return cls(
            id=int(row["id"]),
            created_on=from_iso8601(row.get("created_on")),
            modified_on=from_iso8601(row.get("modified_on")),
            name=row.get("name") or "",
            acmesh_name=row.get("acmesh_name") or "",
            dns_sleep=int(row.get("dns_sleep") or 0),
            meta=json.loads(meta) if isinstance(meta, str) else dict(meta),
            is_deleted=bool(row.get("is_deleted")),
        )

    def environment(self) -> dict[str, str]:
        """Credentials from ``meta`` as environment variables for the issuing client."""
        return {str(k): str(v) for k, v in self.meta.items()}


class AuthorityRepository(BaseRepository):
    """Reads for ``certificate_authority`` and ``dns_provider``.

    Soft-deleted rows are reported as not found.
    """

    CA_TABLE = "certificate_authority"
    DNS_TABLE = "dns_provider"

    def get_certificate_authority(self, authority_id: int) -> CertificateAuthority:
        row = self.query_one(
            f"SELECT * FROM {self.CA_TABLE} WHERE id = ? AND is_deleted = 0",
            (authority_id,),
        )
        if row is None:
            raise NotFoundError(f"Certificate authority {authority_id} not found")
        return CertificateAuthority.from_row(row)

    def get_dns_provider(self, provider_id: int) -> DnsProvider:
        row = self.query_one(
            f"SELECT * FROM {self.DNS_TABLE} WHERE id = ? AND is_deleted = 0",
            (provider_id,),
        )
        if row is None:
            raise NotFoundError(f"DNS provider {provider_id} not found")
        return DnsProvider.from_row(row)

    def create_certificate_authority(self, authority: CertificateAuthority) -> int:
        if authority.id != 0:
            raise ValidationError("Cannot create certificate authority when model already has an ID")
        now = utc_now()
        authority.created_on = authority.modified_on = now
        with self.transaction():
            new_id = self.insert(
                self.CA_TABLE,
                {
                    "created_on": to_iso8601(now),
                    "modified_on": to_iso8601(now),
                    "name": authority.name,
                    "acmesh_server": authority.acmesh_server,
                    "ca_bundle": authority.ca_bundle,
                    "is_wildcard_supported": int(authority.is_wildcard_supported),
                    "max_domains": authority.max_domains,
                    "is_deleted": int(authority.is_deleted),
                },
            )
        authority.id = new_id
        return new_id

    def create_dns_provider(self, provider: DnsProvider) -> int:
        if provider.id != 0:
            raise ValidationError("Cannot create DNS provider when model already has an ID")
        now = utc_now()
        provider.created_on = provider.modified_on = now
        with self.transaction():
            new_id = self.insert(
                self.DNS_TABLE,
                {
                    "created_on": to_iso8601(now),
                    "modified_on": to_iso8601(now),
                    "name": provider.name,
                    "acmesh_name": provider.acmesh_name,
                    "dns_sleep": provider.dns_sleep,
                    "meta": json.dumps(provider.meta),
                    "is_deleted": int(provider.is_deleted),
                },
            )
        provider.id = new_id
        return new_id
