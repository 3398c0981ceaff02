"""Tests for certdispatch.core.errors."""

import sqlite3

import pytest

from certdispatch.core.errors import (
    CertError,
    DatabaseError,
    DatabaseUnavailableError,
    ErrorCategory,
    ErrorContext,
    IssuanceError,
    QueryError,
    QueueClosedError,
    QueueFullError,
    ValidationError,
    is_retryable,
)


class TestErrorContext:
    def test_empty_context_serializes_to_empty_dict(self):
        assert ErrorContext().to_dict() == {}

    def test_only_set_fields_are_emitted(self):
        ctx = ErrorContext(certificate_id=4, job_name="RequestCertificate")
        ctx.metadata["attempt"] = 2
        assert ctx.to_dict() == {"certificate_id": 4, "job_name": "RequestCertificate", "attempt": 2}


class TestCertError:
    def test_defaults(self):
        error = CertError("boom")
        assert error.category is ErrorCategory.INTERNAL
        assert error.retryable is False
        assert str(error) == "boom"

    def test_with_context_sets_known_fields_and_metadata(self):
        error = ValidationError("bad").with_context(certificate_id=9, field="name")
        assert error.context.certificate_id == 9
        assert error.context.metadata == {"field": "name"}

    def test_cause_is_chained(self):
        cause = sqlite3.OperationalError("no such table: certificate")
        error = QueryError("Query failed", cause=cause)
        assert error.__cause__ is cause
        assert error.to_dict()["cause"] == "no such table: certificate"

    def test_to_dict(self):
        d = ValidationError("Cannot update").with_context(certificate_id=1).to_dict()
        assert d["error_type"] == "ValidationError"
        assert d["category"] == "VALIDATION"
        assert d["context"] == {"certificate_id": 1}


class TestHierarchy:
    def test_store_unavailable_is_distinct_from_query_failure(self):
        assert issubclass(DatabaseUnavailableError, DatabaseError)
        assert issubclass(QueryError, DatabaseError)
        assert not issubclass(DatabaseUnavailableError, QueryError)
        assert not issubclass(QueryError, DatabaseUnavailableError)

    def test_unavailable_has_default_message(self):
        assert DatabaseUnavailableError().message == "Database is unavailable"

    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (DatabaseUnavailableError(), True),
            (QueueFullError("full"), True),
            (IssuanceError("ca down"), True),
            (QueueClosedError("closed"), False),
            (ValidationError("bad"), False),
            (RuntimeError("plain"), False),
        ],
    )
    def test_is_retryable(self, error, expected):
        assert is_retryable(error) is expected
