"""
Structured error types for certdispatch.

Every failure the certificate subsystem can surface is a :class:`CertError`
subclass carrying a category, a retry hint and structured context, so the
CLI, the job queue and the recovery pass can log and route errors without
string matching.

Manifesto:
    - **Typed Error Hierarchy:** Validation, store, queue and issuance
      failures are distinct types
    - **Store availability is not a query failure:** an unreachable or
      unconfigured store raises :class:`DatabaseUnavailableError`, a bad
      statement raises :class:`QueryError`
    - **Rich Context:** Errors carry certificate ids, job names and SQL
    - **Error Chaining:** The original driver exception is kept as cause

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                         CertError                               │
        │  (category, retryable, context, cause)                          │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                 │
        │  ValidationError      DatabaseError        QueueError           │
        │  (VALIDATION)         (DATABASE)           (QUEUE)              │
        │       │                    │                    │               │
        │  NotFoundError        DatabaseUnavailable  QueueFullError       │
        │  ExpansionError       QueryError           QueueClosedError     │
        │                                                                 │
        │  IssuanceError                                                  │
        │  (ISSUANCE)                                                     │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = ValidationError("Cannot create certificate when model already has an ID")
    >>> error.category
    <ErrorCategory.VALIDATION: 'VALIDATION'>
    >>> error.with_context(certificate_id=7).context.certificate_id
    7

Tags:
    error-handling, exception-hierarchy, certdispatch
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    VALIDATION = "VALIDATION"  # Bad input rejected before the store
    NOT_FOUND = "NOT_FOUND"  # Row absent or soft-deleted
    DATABASE = "DATABASE"  # Store unreachable or statement failed
    QUEUE = "QUEUE"  # Job could not be accepted
    ISSUANCE = "ISSUANCE"  # Certificate authority / client failure
    CONFIG = "CONFIG"  # Missing or invalid settings
    INTERNAL = "INTERNAL"  # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only non-None fields are emitted by :meth:`to_dict`, so the context can
    be splatted straight into a structlog call.
    """

    certificate_id: int | None = None
    job_name: str | None = None
    query: str | None = None
    params: tuple | dict[str, Any] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for key in ["certificate_id", "job_name", "query", "params"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class CertError(Exception):
    """
    Base exception for all certdispatch errors.

    Subclasses set ``default_category`` and ``default_retryable`` so callers
    rarely pass them explicitly.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> CertError:
        """
        Add context to this error (fluent API).

        Usage:
            raise NotFoundError("Certificate not found").with_context(certificate_id=3)
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(CertError):
    """
    Input rejected before the store is contacted.

    Never retryable - the record must be fixed.
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = False


class NotFoundError(CertError):
    """Requested row does not exist or is soft-deleted."""

    default_category = ErrorCategory.NOT_FOUND


class ExpansionError(CertError):
    """A related entity could not be attached to a record."""

    default_category = ErrorCategory.NOT_FOUND


# =============================================================================
# DATABASE ERRORS
# =============================================================================


class DatabaseError(CertError):
    """Base for persistence failures."""

    default_category = ErrorCategory.DATABASE


class DatabaseUnavailableError(DatabaseError):
    """Store is not configured, closed, or cannot be opened."""

    default_retryable = True

    def __init__(self, message: str = "Database is unavailable", **kwargs: Any):
        super().__init__(message, **kwargs)


class QueryError(DatabaseError):
    """A statement reached the store and failed."""


# =============================================================================
# QUEUE ERRORS
# =============================================================================


class QueueError(CertError):
    """A job could not be accepted by the action queue."""

    default_category = ErrorCategory.QUEUE


class QueueFullError(QueueError):
    """Queue is at capacity."""

    default_retryable = True


class QueueClosedError(QueueError):
    """Queue has not been started or is shutting down."""


# =============================================================================
# ISSUANCE ERRORS
# =============================================================================


class IssuanceError(CertError):
    """The issuing client failed to produce a certificate."""

    default_category = ErrorCategory.ISSUANCE
    default_retryable = True


class ConfigError(CertError):
    """Missing or invalid configuration."""

    default_category = ErrorCategory.CONFIG


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable by a later scheduled sweep."""
    if isinstance(error, CertError):
        return error.retryable
    return False


__all__ = [
    "CertError",
    "ConfigError",
    "DatabaseError",
    "DatabaseUnavailableError",
    "ErrorCategory",
    "ErrorContext",
    "ExpansionError",
    "IssuanceError",
    "NotFoundError",
    "QueryError",
    "QueueClosedError",
    "QueueError",
    "QueueFullError",
    "ValidationError",
    "is_retryable",
]
