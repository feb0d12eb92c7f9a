"""Raw layer: resilient extraction of item store collections.

This package reads the six collections the reporting pipeline needs,
retrying transient failures and degrading optional reference sources to
empty record sets when they stay unavailable.
"""

from sales_bi.raw.extract import (
    ALL_SOURCES,
    CRITICAL_SOURCES,
    OPTIONAL_SOURCES,
    FetchAttemptState,
    RetryPolicy,
    SourceResult,
    fetch_collection,
    fetch_source,
    fetch_sources,
    fetch_with_retry,
    make_session,
)

__all__ = [
    "ALL_SOURCES",
    "CRITICAL_SOURCES",
    "OPTIONAL_SOURCES",
    "FetchAttemptState",
    "RetryPolicy",
    "SourceResult",
    "fetch_collection",
    "fetch_source",
    "fetch_sources",
    "fetch_with_retry",
    "make_session",
]
