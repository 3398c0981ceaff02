"""Tests for the Certificate record and its enumerations."""

from datetime import UTC, datetime, timedelta

import pytest

from certdispatch.certificates.authorities import CertificateAuthority, DnsProvider
from certdispatch.certificates.model import (
    Certificate,
    CertificateStatus,
    CertificateType,
    parse_automatable_types,
)
from certdispatch.core.errors import ExpansionError, NotFoundError, ValidationError

NOW = datetime(2026, 5, 1, tzinfo=UTC)


def http_cert(**overrides):
    fields = {
        "name": "web",
        "domain_names": ["web.example.com"],
        "type": CertificateType.HTTP,
        "certificate_authority_id": 1,
    }
    fields.update(overrides)
    return Certificate(**fields)


class TestEnumerations:
    @pytest.mark.parametrize(
        ("cert_type", "uses_ca", "needs_dns"),
        [
            (CertificateType.HTTP, True, False),
            (CertificateType.DNS, True, True),
            (CertificateType.CUSTOM, False, False),
            (CertificateType.MKCERT, False, False),
        ],
    )
    def test_type_properties(self, cert_type, uses_ca, needs_dns):
        assert cert_type.uses_certificate_authority is uses_ca
        assert cert_type.requires_dns_provider is needs_dns

    def test_only_ready_is_dispatchable(self):
        assert [s for s in CertificateStatus if s.is_dispatchable] == [CertificateStatus.READY]

    def test_parse_automatable_types(self):
        assert parse_automatable_types(["dns"]) == frozenset({CertificateType.DNS})
        assert parse_automatable_types([]) == frozenset()

    @pytest.mark.parametrize("value", ["ftp", "custom", "mkcert"])
    def test_parse_automatable_types_rejects(self, value):
        with pytest.raises(ValidationError):
            parse_automatable_types([value])


class TestTouch:
    def test_create_sets_both_timestamps(self):
        cert = http_cert()
        cert.touch(True, NOW)
        assert cert.created_on == cert.modified_on == NOW

    def test_update_keeps_created_on(self):
        cert = http_cert(created_on=NOW)
        later = NOW + timedelta(minutes=5)
        cert.touch(False, later)
        assert cert.created_on == NOW
        assert cert.modified_on == later

    def test_update_never_sets_created_on(self):
        cert = http_cert()
        cert.touch(False, NOW)
        assert cert.created_on is None
        assert cert.modified_on == NOW


class TestValidate:
    def test_valid_http(self):
        http_cert().validate()

    @pytest.mark.parametrize(
        "overrides",
        [
            {"name": "  "},
            {"domain_names": []},
            {"certificate_authority_id": 0},
            {"type": CertificateType.DNS, "dns_provider_id": 0},
            {"type": CertificateType.CUSTOM, "certificate_authority_id": 3},
            {"domain_names": ["*.example.com"]},
        ],
    )
    def test_rejects(self, overrides):
        with pytest.raises(ValidationError):
            http_cert(**overrides).validate()

    def test_custom_needs_no_authority(self):
        http_cert(type=CertificateType.CUSTOM, certificate_authority_id=0).validate()

    def test_wildcard_requires_supporting_authority(self):
        cert = http_cert(type=CertificateType.DNS, dns_provider_id=1, domain_names=["*.example.com"])
        cert.validate(CertificateAuthority(id=1, name="wild", is_wildcard_supported=True))
        with pytest.raises(ValidationError, match="wildcards"):
            cert.validate(CertificateAuthority(id=1, name="tame"))

    def test_authority_domain_limit(self):
        cert = http_cert(domain_names=["a.example.com", "b.example.com", "c.example.com"])
        cert.validate(CertificateAuthority(id=1, name="unlimited"))
        with pytest.raises(ValidationError, match="at most 2"):
            cert.validate(CertificateAuthority(id=1, name="small", max_domains=2))


class TestPredicates:
    def test_is_automatable(self):
        assert http_cert().is_automatable()
        assert not http_cert(certificate_authority_id=0).is_automatable()
        assert not http_cert(type=CertificateType.CUSTOM).is_automatable()
        assert not http_cert().is_automatable({CertificateType.DNS})

    def test_is_expired(self):
        assert not http_cert().is_expired(NOW)
        assert http_cert(expires_on=NOW).is_expired(NOW)
        assert not http_cert(expires_on=NOW + timedelta(days=1)).is_expired(NOW)


class TestExpand:
    def test_expands_named_relations(self):
        cert = http_cert(type=CertificateType.DNS, dns_provider_id=7)
        ca = CertificateAuthority(id=1, name="ca")
        provider = DnsProvider(id=7, name="cf")
        cert.expand(["certificate_authority", "dns_provider"], lambda _: ca, lambda _: provider)
        assert cert.certificate_authority is ca
        assert cert.dns_provider is provider

    def test_unset_reference_is_skipped(self):
        cert = http_cert()

        def fail(_):
            raise AssertionError("should not be called")

        cert.expand(["dns_provider"], fail, fail)
        assert cert.dns_provider is None

    def test_unknown_relation(self):
        with pytest.raises(ExpansionError):
            http_cert().expand(["owner"], lambda _: None, lambda _: None)

    def test_missing_row_becomes_expansion_error(self):
        def missing(authority_id):
            raise NotFoundError(f"Certificate authority {authority_id} not found")

        with pytest.raises(ExpansionError) as exc_info:
            http_cert(id=5).expand(["certificate_authority"], missing, missing)
        assert exc_info.value.context.certificate_id == 5


class TestRowMapping:
    def test_row_round_trip(self):
        cert = http_cert(
            id=4,
            created_on=NOW,
            modified_on=NOW,
            expires_on=NOW + timedelta(days=90),
            status=CertificateStatus.VALID,
            meta={"letsencrypt_email": "ops@example.com"},
            is_ecc=True,
        )
        row = cert.to_row()
        assert row["domain_names"] == '["web.example.com"]'
        assert row["is_ecc"] == 1
        assert row["status"] == "valid"
        assert Certificate.from_row(row) == cert

    def test_to_dict_includes_expansions(self):
        cert = http_cert(certificate_authority=CertificateAuthority(id=1, name="ca"))
        data = cert.to_dict()
        assert data["certificate_authority"] == {"id": 1, "name": "ca"}
        assert data["domain_names"] == ["web.example.com"]
        assert "dns_provider" not in data
