"""HTTP endpoints for the sales dashboard.

Run with:
    uvicorn sales_bi.server:app --port 8000
or:
    sales-bi-server

Endpoints:
    GET /api/sales/executive?fromDate=&toDate=&division=&branch=
    GET /api/invoice
    GET /health
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse

# Load .env before any configuration is read
load_dotenv(override=False)

from sales_bi import __version__  # noqa: E402
from sales_bi.api import get_executive_dashboard, get_invoices  # noqa: E402
from sales_bi.assemble import error_payload  # noqa: E402
from sales_bi.exceptions import (  # noqa: E402
    CriticalSourceError,
    DataQualityError,
    SalesBIError,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Sales BI API", version=__version__)


def _error_response(e: SalesBIError, error: str) -> JSONResponse:
    if isinstance(e, DataQualityError):
        status = 400
    elif isinstance(e, CriticalSourceError):
        status = 502
    else:
        status = 500
    return JSONResponse(status_code=status, content=error_payload(error, str(e)))


def _unexpected_response(e: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content=error_payload("Server Error", str(e)))


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok", "version": __version__}


@app.get("/api/sales/executive", response_model=None)
def executive_sales(
    from_date: Optional[str] = Query(None, alias="fromDate"),
    to_date: Optional[str] = Query(None, alias="toDate"),
    division: str = Query("all"),
    branch: Optional[str] = Query(None),
) -> Any:
    """Aggregated KPIs, trend, rankings and summary band for the dashboard."""
    try:
        return get_executive_dashboard(from_date, to_date, division, branch)
    except SalesBIError as e:
        logger.error("Executive dashboard failed: %s", e)
        return _error_response(e, "Failed to build sales dashboard")
    except Exception as e:
        logger.exception("Unexpected error building sales dashboard")
        return _unexpected_response(e)


@app.get("/api/invoice", response_model=None)
def invoices() -> Any:
    """Raw sales_invoice collection from the item store."""
    try:
        return get_invoices()
    except SalesBIError as e:
        logger.error("Invoice fetch failed: %s", e)
        return _error_response(e, "Failed to fetch invoices from item store")
    except Exception as e:
        logger.exception("Unexpected error fetching invoices")
        return _unexpected_response(e)


def main() -> None:
    """Serve the API with uvicorn (host/port from BI_HOST / BI_PORT)."""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        app,
        host=os.environ.get("BI_HOST", "127.0.0.1"),
        port=int(os.environ.get("BI_PORT", "8000")),
    )


if __name__ == "__main__":
    main()
