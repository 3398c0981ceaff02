"""Core primitives shared by every certdispatch module.

Nothing in this package knows about certificates: errors, settings,
structured logging, timestamps, the SQLite adapter, the base repository
and the list query builder.
"""

from certdispatch.core.errors import (
    CertError,
    DatabaseUnavailableError,
    ErrorCategory,
    QueryError,
    ValidationError,
)
from certdispatch.core.listing import Filter, PageInfo, Sort, SortDirection

__all__ = [
    "CertError",
    "DatabaseUnavailableError",
    "ErrorCategory",
    "Filter",
    "PageInfo",
    "QueryError",
    "Sort",
    "SortDirection",
    "ValidationError",
]
