"""Marts layer: filtered, aggregated dashboard views.

Example, given a list of NormalizedInvoice:
    from sales_bi.marts import SalesFilter, aggregate

    view = aggregate(invoices, SalesFilter(division="Electronics"))
    print(view.kpi.total_net_sales)
"""

from sales_bi.marts.aggregate import (
    TOP_N,
    aggregate,
    branch_totals,
    division_totals,
    invoices_frame,
    kpi_block,
    sales_trend,
    summary_band,
    top_customers,
    top_salesmen,
)
from sales_bi.marts.filters import ALL, SalesFilter, apply_filter
from sales_bi.marts.views import (
    AggregateView,
    CustomerRank,
    GroupTotal,
    KPIBlock,
    PeriodComparison,
    SalesmanRank,
    SummaryBand,
    TrendPoint,
)

__all__ = [
    "ALL",
    "TOP_N",
    "AggregateView",
    "CustomerRank",
    "GroupTotal",
    "KPIBlock",
    "PeriodComparison",
    "SalesFilter",
    "SalesmanRank",
    "SummaryBand",
    "TrendPoint",
    "aggregate",
    "apply_filter",
    "branch_totals",
    "division_totals",
    "invoices_frame",
    "kpi_block",
    "sales_trend",
    "summary_band",
    "top_customers",
    "top_salesmen",
]
