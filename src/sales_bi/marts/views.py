"""Typed dashboard views produced by the aggregator.

All views are frozen: they are built once per request and handed to the
response assembler unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class PeriodComparison:
    """Period-over-period figures supplied from outside the aggregator.

    The aggregator does not derive these; they pass straight through to the
    KPI block and default to 0.
    """

    growth_vs_previous: float = 0.0
    collection_rate: float = 0.0


@dataclass(frozen=True)
class KPIBlock:
    total_net_sales: float = 0.0
    growth_vs_previous: float = 0.0
    gross_margin: float = 0.0
    collection_rate: float = 0.0


@dataclass(frozen=True)
class TrendPoint:
    date: str
    net_sales: float


@dataclass(frozen=True)
class GroupTotal:
    """Totals for one division or branch.

    ``division`` is the group's own name for division totals, and the
    division of the first invoice seen for branch totals.
    """

    name: str
    net_sales: float
    gross_sales: float = 0.0
    discount: float = 0.0
    returns: float = 0.0
    invoice_count: int = 0
    avg_invoice: float = 0.0
    percent_of_total: float = 0.0
    division: str = ""


@dataclass(frozen=True)
class CustomerRank:
    rank: int
    customer_code: str
    customer_name: str
    division: str
    branch: str
    net_sales: float
    percent_of_total: float
    invoice_count: int
    avg_invoice: float
    last_invoice_date: str


@dataclass(frozen=True)
class SalesmanRank:
    rank: int
    salesman_id: str
    salesman_name: str
    division: str
    branch: str
    net_sales: float
    gross_sales: float
    discount: float
    returns: float
    target: float
    target_attainment: float
    invoice_count: int
    avg_invoice: float


@dataclass(frozen=True)
class SummaryBand:
    gross_sales: float = 0.0
    total_discount: float = 0.0
    net_sales: float = 0.0
    returns: float = 0.0
    invoice_count: int = 0


@dataclass(frozen=True)
class AggregateView:
    """Every view the dashboard renders, for one filtered invoice set."""

    kpi: KPIBlock = field(default_factory=KPIBlock)
    sales_trend: tuple[TrendPoint, ...] = ()
    division_sales: tuple[GroupTotal, ...] = ()
    branch_sales: tuple[GroupTotal, ...] = ()
    top_customers: tuple[CustomerRank, ...] = ()
    top_salesmen: tuple[SalesmanRank, ...] = ()
    summary: SummaryBand = field(default_factory=SummaryBand)
