"""Marts layer: aggregate normalized invoices into dashboard views.

Every view is derived from ``net_sales`` (the summary band additionally
reports gross, discount and returns). Grouping keeps first-appearance
order and all sorts are stable, so equal totals keep their input order and
the same invoices always produce the same output.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import fields

import pandas as pd

from sales_bi.config import DEFAULT_TARGET
from sales_bi.core.normalize import NormalizedInvoice
from sales_bi.marts.filters import SalesFilter, apply_filter
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

logger = logging.getLogger(__name__)

TOP_N = 10

INVOICE_COLUMNS = [f.name for f in fields(NormalizedInvoice)] + ["net_sales"]
MONEY_COLUMNS = [
    "gross_amount",
    "discount_amount",
    "return_amount",
    "return_discount",
    "net_sales",
]


def _pct(part: float, whole: float) -> float:
    pct = part / whole * 100 if whole else 0.0
    return pct if math.isfinite(pct) else 0.0


def invoices_frame(invoices: Sequence[NormalizedInvoice]) -> pd.DataFrame:
    """One row per invoice, with every NormalizedInvoice field plus ``net_sales``."""
    df = pd.DataFrame([inv.to_row() for inv in invoices], columns=INVOICE_COLUMNS)
    df[MONEY_COLUMNS] = df[MONEY_COLUMNS].astype(float)
    return df


def kpi_block(df: pd.DataFrame, comparison: PeriodComparison | None = None) -> KPIBlock:
    """Total net sales and gross margin; growth and collection rate pass through."""
    comparison = comparison or PeriodComparison()
    total_net = float(df["net_sales"].sum())
    gross = float(df["gross_amount"].sum())
    return KPIBlock(
        total_net_sales=total_net,
        growth_vs_previous=comparison.growth_vs_previous,
        gross_margin=_pct(total_net, gross),
        collection_rate=comparison.collection_rate,
    )


def sales_trend(df: pd.DataFrame) -> tuple[TrendPoint, ...]:
    """Net sales per calendar date, ascending. Undated invoices are left out."""
    dated = df[df["invoice_date"] != ""]
    if dated.empty:
        return ()
    per_day = dated.groupby("invoice_date", sort=True)["net_sales"].sum()
    return tuple(TrendPoint(date=str(d), net_sales=float(v)) for d, v in per_day.items())


def _group_totals(df: pd.DataFrame, key: str, grand_total: float) -> tuple[GroupTotal, ...]:
    if df.empty:
        return ()
    named_aggs = {
        "net_sales": ("net_sales", "sum"),
        "gross_sales": ("gross_amount", "sum"),
        "discount": ("discount_amount", "sum"),
        "returns": ("return_amount", "sum"),
        "invoice_count": ("net_sales", "count"),
    }
    if key != "division_name":
        named_aggs["division"] = ("division_name", "first")
    grouped = df.groupby(key, sort=False).agg(**named_aggs)
    grouped = grouped.sort_values("net_sales", ascending=False, kind="stable")
    return tuple(
        GroupTotal(
            name=str(name),
            net_sales=float(row["net_sales"]),
            gross_sales=float(row["gross_sales"]),
            discount=float(row["discount"]),
            returns=float(row["returns"]),
            invoice_count=int(row["invoice_count"]),
            avg_invoice=float(row["net_sales"]) / int(row["invoice_count"]),
            percent_of_total=_pct(float(row["net_sales"]), grand_total),
            division=str(row["division"]) if "division" in grouped.columns else str(name),
        )
        for name, row in grouped.iterrows()
    )


def division_totals(df: pd.DataFrame, grand_total: float | None = None) -> tuple[GroupTotal, ...]:
    """Totals per resolved division name, descending by net sales."""
    if grand_total is None:
        grand_total = float(df["net_sales"].sum())
    return _group_totals(df, "division_name", grand_total)


def branch_totals(df: pd.DataFrame, grand_total: float | None = None) -> tuple[GroupTotal, ...]:
    """Totals per resolved branch name, descending by net sales."""
    if grand_total is None:
        grand_total = float(df["net_sales"].sum())
    return _group_totals(df, "branch_name", grand_total)


def top_customers(
    df: pd.DataFrame,
    grand_total: float | None = None,
    top_n: int = TOP_N,
) -> tuple[CustomerRank, ...]:
    """Rank customers (by customer code) on net sales.

    Division and branch are those of the customer's first invoice in input
    order; ``last_invoice_date`` is the latest invoice date seen.
    """
    if df.empty:
        return ()
    if grand_total is None:
        grand_total = float(df["net_sales"].sum())
    grouped = df.groupby("customer_code", sort=False).agg(
        customer_name=("customer_name", "first"),
        division=("division_name", "first"),
        branch=("branch_name", "first"),
        net_sales=("net_sales", "sum"),
        invoice_count=("net_sales", "count"),
        last_invoice_date=("invoice_date", "max"),
    )
    ranked = grouped.sort_values("net_sales", ascending=False, kind="stable").head(top_n)
    return tuple(
        CustomerRank(
            rank=rank,
            customer_code=str(code),
            customer_name=str(row["customer_name"]),
            division=str(row["division"]),
            branch=str(row["branch"]),
            net_sales=float(row["net_sales"]),
            percent_of_total=_pct(float(row["net_sales"]), grand_total),
            invoice_count=int(row["invoice_count"]),
            avg_invoice=float(row["net_sales"]) / int(row["invoice_count"]),
            last_invoice_date=str(row["last_invoice_date"]),
        )
        for rank, (code, row) in enumerate(ranked.iterrows(), start=1)
    )


def top_salesmen(
    df: pd.DataFrame,
    targets: Mapping[str, float] | None = None,
    default_target: float = DEFAULT_TARGET,
    top_n: int = TOP_N,
) -> tuple[SalesmanRank, ...]:
    """Rank salesmen (by salesman id) on net sales, with target attainment.

    ``targets`` maps salesman id to its sales target; ids without an entry
    get ``default_target``. Attainment is 0 when the target is 0.
    """
    if df.empty:
        return ()
    targets = targets or {}
    grouped = df.groupby("salesman_id", sort=False).agg(
        salesman_name=("salesman_name", "first"),
        division=("division_name", "first"),
        branch=("branch_name", "first"),
        net_sales=("net_sales", "sum"),
        gross_sales=("gross_amount", "sum"),
        discount=("discount_amount", "sum"),
        returns=("return_amount", "sum"),
        invoice_count=("net_sales", "count"),
    )
    ranked = grouped.sort_values("net_sales", ascending=False, kind="stable").head(top_n)
    out = []
    for rank, (salesman_id, row) in enumerate(ranked.iterrows(), start=1):
        target = float(targets.get(str(salesman_id), default_target))
        out.append(
            SalesmanRank(
                rank=rank,
                salesman_id=str(salesman_id),
                salesman_name=str(row["salesman_name"]),
                division=str(row["division"]),
                branch=str(row["branch"]),
                net_sales=float(row["net_sales"]),
                gross_sales=float(row["gross_sales"]),
                discount=float(row["discount"]),
                returns=float(row["returns"]),
                target=target,
                target_attainment=_pct(float(row["net_sales"]), target),
                invoice_count=int(row["invoice_count"]),
                avg_invoice=float(row["net_sales"]) / int(row["invoice_count"]),
            )
        )
    return tuple(out)


def summary_band(df: pd.DataFrame) -> SummaryBand:
    """Gross, discount, net, returns and invoice count over the filtered set."""
    return SummaryBand(
        gross_sales=float(df["gross_amount"].sum()),
        total_discount=float(df["discount_amount"].sum()),
        net_sales=float(df["net_sales"].sum()),
        returns=float(df["return_amount"].sum()),
        invoice_count=int(len(df)),
    )


def aggregate(
    invoices: Sequence[NormalizedInvoice],
    sales_filter: SalesFilter | None = None,
    *,
    comparison: PeriodComparison | None = None,
    targets: Mapping[str, float] | None = None,
    default_target: float = DEFAULT_TARGET,
    top_n: int = TOP_N,
) -> AggregateView:
    """Filter normalized invoices and derive every dashboard view.

    Args:
        invoices: Normalized invoices for the request.
        sales_filter: Division/date filter. None keeps everything.
        comparison: Externally supplied growth and collection rate.
        targets: Salesman id -> sales target.
        default_target: Target for salesmen missing from ``targets``.
        top_n: Length cap of the customer and salesman rankings.

    Returns:
        AggregateView. An empty filtered set yields zeros and empty lists.

    """
    df = apply_filter(invoices_frame(invoices), sales_filter or SalesFilter())
    grand_total = float(df["net_sales"].sum())

    view = AggregateView(
        kpi=kpi_block(df, comparison),
        sales_trend=sales_trend(df),
        division_sales=division_totals(df, grand_total),
        branch_sales=branch_totals(df, grand_total),
        top_customers=top_customers(df, grand_total, top_n),
        top_salesmen=top_salesmen(df, targets, default_target, top_n),
        summary=summary_band(df),
    )
    logger.info(
        "Aggregated %d invoice(s): net sales %.2f across %d division(s)",
        len(df),
        grand_total,
        len(view.division_sales),
    )
    return view
