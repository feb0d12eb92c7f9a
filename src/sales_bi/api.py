"""Public API for the executive sales dashboard.

This module provides the request-scoped pipeline entry point:

1. Fetch the six collections concurrently (raw layer)
2. Build reference indexes and reconcile returns (core layer)
3. Normalize invoices (core layer)
4. Filter and aggregate (marts layer)
5. Assemble the response

Nothing is cached between calls; every request recomputes from source.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

import requests

from sales_bi.assemble import to_response
from sales_bi.config import DEFAULT_TARGET, SourceConfig
from sales_bi.core.normalize import normalize_all
from sales_bi.core.reference import ReferenceIndexes
from sales_bi.core.returns import reconcile
from sales_bi.marts.aggregate import aggregate
from sales_bi.marts.filters import SalesFilter
from sales_bi.marts.views import AggregateView, PeriodComparison
from sales_bi.raw.extract import (
    RetryPolicy,
    SourceResult,
    fetch_collection,
    fetch_sources,
    make_session,
)

logger = logging.getLogger(__name__)


def build_view(
    sources: Mapping[str, SourceResult],
    sales_filter: SalesFilter | None = None,
    *,
    comparison: PeriodComparison | None = None,
    targets: Mapping[str, float] | None = None,
    default_target: float = DEFAULT_TARGET,
) -> AggregateView:
    """Run the core and marts layers over already-fetched sources.

    Args:
        sources: Collection name -> SourceResult, as returned by fetch_sources.
        sales_filter: Division/date filter.
        comparison: Externally supplied growth and collection rate.
        targets: Salesman id -> sales target.
        default_target: Target for salesmen without an entry in ``targets``.

    Returns:
        AggregateView for the filtered invoices.

    """
    indexes = ReferenceIndexes.from_sources(sources)
    invoices_src = sources.get("sales_invoice")
    returns_src = sources.get("sales_return")
    return_groups = reconcile(returns_src.records if returns_src else ())
    invoices = normalize_all(invoices_src.records if invoices_src else (), return_groups, indexes)

    return aggregate(
        invoices,
        sales_filter,
        comparison=comparison,
        targets=targets,
        default_target=default_target,
    )


def get_executive_dashboard(
    from_date: str | None = None,
    to_date: str | None = None,
    division: str | None = None,
    branch: str | None = None,
    *,
    config: SourceConfig | None = None,
    session: requests.Session | None = None,
    comparison: PeriodComparison | None = None,
    targets: Mapping[str, float] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> dict[str, Any]:
    """Fetch, normalize and aggregate sales data into the dashboard response.

    Args:
        from_date: Inclusive start date (YYYY-MM-DD), or None.
        to_date: Inclusive end date (YYYY-MM-DD), or None.
        division: Division name to keep, or "all"/None for every division.
        branch: Reserved; echoed in the response filters only.
        config: SourceConfig. Defaults to SourceConfig.from_env().
        session: Session shared by all fetches (tests inject a fake one).
        comparison: Growth and collection rate from a period comparison.
        targets: Salesman id -> sales target.
        sleep: Backoff delay function, injectable for tests.

    Returns:
        Dashboard response dict (see assemble.to_response).

    Raises:
        DataQualityError: If the dates are malformed or inverted.
        CriticalSourceError: If invoices or returns could not be fetched.
        ConfigError: If the item store is not configured.

    Example, with BI_ITEMS_BASE pointing at a live store:
        resp = get_executive_dashboard("2025-11-01", "2025-11-30", division="all")
        print(resp["kpi"]["totalNetSales"])

    """
    sales_filter = SalesFilter.from_params(from_date, to_date, division, branch)
    config = config or SourceConfig.from_env()

    logger.info("Building executive dashboard for %s", sales_filter.to_dict())
    sources = fetch_sources(config, session, sleep=sleep)
    view = build_view(
        sources,
        sales_filter,
        comparison=comparison,
        targets=targets,
        default_target=config.default_target,
    )
    return to_response(view, sales_filter=sales_filter, sources=sources)


def get_invoices(
    *,
    config: SourceConfig | None = None,
    session: requests.Session | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> dict[str, Any]:
    """Return the raw ``sales_invoice`` collection as ``{"data": [...]}``.

    Uses the critical retry policy.

    Raises:
        ExtractionError: If every attempt failed.
        ConfigError: If the item store is not configured.

    """
    config = config or SourceConfig.from_env()
    own = session if session is not None else make_session(config)
    try:
        records = fetch_collection(
            own,
            config,
            "sales_invoice",
            RetryPolicy.for_source(config, critical=True),
            sleep=sleep,
        )
    finally:
        if session is None:
            own.close()
    return {"data": records}
