"""Sales BI Core - sales reporting pipeline for the BI dashboard.

This package turns raw item store collections (invoices, returns,
salesmen, divisions, customers, branches) into the pre-aggregated views
the dashboard renders:

- **Raw**: resilient, concurrent collection reads with retry policies
- **Core**: reference indexes, return reconciliation, NormalizedInvoice
- **Marts**: KPI block, trend, division/branch totals, rankings, summary band

Module Structure:
    sales_bi.raw: Item store extraction (critical vs optional sources)
    sales_bi.core: Joins and normalization of raw records
    sales_bi.marts: Filtering and aggregation
    sales_bi.assemble: Response shape
    sales_bi.api: Request pipeline entry point
    sales_bi.server: HTTP endpoints
    sales_bi.cli: Command-line runner

Quick Start (needs a reachable item store):
    from sales_bi import SourceConfig, get_executive_dashboard

    config = SourceConfig(base_url="http://localhost:8060")
    resp = get_executive_dashboard("2025-11-01", "2025-11-30", config=config)
    print(resp["summary"]["invoiceCount"])
"""

__version__ = "0.1.0"

from sales_bi.api import build_view, get_executive_dashboard, get_invoices
from sales_bi.config import SourceConfig
from sales_bi.exceptions import (
    ConfigError,
    CriticalSourceError,
    DataQualityError,
    ETLError,
    ExtractionError,
    SalesBIError,
)

__all__ = [
    "ConfigError",
    "CriticalSourceError",
    "DataQualityError",
    "ETLError",
    "ExtractionError",
    "SalesBIError",
    "SourceConfig",
    "__version__",
    "build_view",
    "get_executive_dashboard",
    "get_invoices",
]
