"""Response assembly: AggregateView -> the JSON shape the dashboard renders.

The response is always structurally complete. Every block is present with
zero values or empty lists, so a request whose optional sources degraded
still renders.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from sales_bi.marts.views import AggregateView, GroupTotal

if TYPE_CHECKING:
    from sales_bi.marts.filters import SalesFilter
    from sales_bi.raw.extract import SourceResult


def _money(value: float) -> float:
    value = float(value)
    # Sums of large amounts can overflow, and JSON has no infinity
    return round(value, 2) if math.isfinite(value) else 0.0


def _group(total: GroupTotal, key: str) -> dict[str, Any]:
    entry: dict[str, Any] = {key: total.name}
    if key == "branch":
        entry["division"] = total.division
    entry.update(
        {
            "netSales": _money(total.net_sales),
            "grossSales": _money(total.gross_sales),
            "discount": _money(total.discount),
            "returns": _money(total.returns),
            "invoiceCount": total.invoice_count,
            "avgInvoice": _money(total.avg_invoice),
            "percentOfTotal": total.percent_of_total,
        }
    )
    return entry


def to_response(
    view: AggregateView | None = None,
    *,
    sales_filter: SalesFilter | None = None,
    sources: Mapping[str, SourceResult] | None = None,
) -> dict[str, Any]:
    """Serialize an AggregateView into the dashboard response.

    Args:
        view: Aggregated views. None yields the all-zero response.
        sales_filter: Effective filter, echoed under ``filters``.
        sources: Fetch outcomes, summarized under ``sources``.

    Returns:
        JSON-serializable dict with ``kpi``, ``salesTrend``, ``divisionSales``,
        ``branchSales``, ``topCustomers``, ``topSalesmen``, ``summary``,
        ``filters`` and ``sources``.

    """
    view = view or AggregateView()
    kpi = view.kpi
    summary = view.summary

    return {
        "kpi": {
            "totalNetSales": _money(kpi.total_net_sales),
            "growthVsPrevious": kpi.growth_vs_previous,
            "grossMargin": kpi.gross_margin,
            "collectionRate": kpi.collection_rate,
        },
        "salesTrend": [
            {"date": p.date, "netSales": _money(p.net_sales)} for p in view.sales_trend
        ],
        "divisionSales": [_group(d, "division") for d in view.division_sales],
        "branchSales": [_group(b, "branch") for b in view.branch_sales],
        "topCustomers": [
            {
                "rank": c.rank,
                "customerCode": c.customer_code,
                "customerName": c.customer_name,
                "division": c.division,
                "branch": c.branch,
                "netSales": _money(c.net_sales),
                "percentOfTotal": c.percent_of_total,
                "invoiceCount": c.invoice_count,
                "avgInvoice": _money(c.avg_invoice),
                "lastInvoiceDate": c.last_invoice_date,
            }
            for c in view.top_customers
        ],
        "topSalesmen": [
            {
                "rank": s.rank,
                "salesmanId": s.salesman_id,
                "salesmanName": s.salesman_name,
                "division": s.division,
                "branch": s.branch,
                "netSales": _money(s.net_sales),
                "grossSales": _money(s.gross_sales),
                "discount": _money(s.discount),
                "returns": _money(s.returns),
                "target": _money(s.target),
                "targetAttainment": s.target_attainment,
                "invoiceCount": s.invoice_count,
                "avgInvoice": _money(s.avg_invoice),
            }
            for s in view.top_salesmen
        ],
        "summary": {
            "grossSales": _money(summary.gross_sales),
            "totalDiscount": _money(summary.total_discount),
            "netSales": _money(summary.net_sales),
            "returns": _money(summary.returns),
            "invoiceCount": summary.invoice_count,
        },
        "filters": sales_filter.to_dict() if sales_filter is not None else {},
        "sources": {
            name: {"status": result.status, "records": len(result.records)}
            for name, result in (sources or {}).items()
        },
    }


def error_payload(error: str, details: str) -> dict[str, str]:
    """Error body returned when a request cannot produce a result."""
    return {
        "error": error,
        "details": details,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
