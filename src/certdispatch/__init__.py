"""
certdispatch - certificate records and status-driven issuance dispatch.

- certdispatch.core: errors, settings, logging, persistence, list queries
- certdispatch.certificates: certificate model, repository, recovery pass
- certdispatch.execution: action queue
"""

__version__ = "0.3.0"
