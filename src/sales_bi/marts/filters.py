"""Request filters applied before aggregation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

import pandas as pd

from sales_bi.exceptions import DataQualityError
from sales_bi.utils import parse_date

logger = logging.getLogger(__name__)

ALL = "all"


@dataclass(frozen=True)
class SalesFilter:
    """Caller-supplied filter.

    Attributes:
        from_date: Inclusive lower bound on invoice date, or None.
        to_date: Inclusive upper bound on invoice date, or None.
        division: Exact (case-sensitive) division name, or ALL / None for no filter.
        branch: Reserved. Accepted and echoed back, not applied.
    """

    from_date: date | None = None
    to_date: date | None = None
    division: str | None = None
    branch: str | None = None

    @classmethod
    def from_params(
        cls,
        from_date: str | None = None,
        to_date: str | None = None,
        division: str | None = None,
        branch: str | None = None,
    ) -> SalesFilter:
        """Build a filter from query-string values.

        Dates may carry a time component (``2025-01-31T23:59:59``); only the
        date part is used.

        Raises:
            DataQualityError: If a date is not YYYY-MM-DD or the range is inverted.
        """

        def _date(name: str, value: str | None) -> date | None:
            if value is None or not value.strip():
                return None
            try:
                return parse_date(value.strip()[:10])
            except ValueError as e:
                raise DataQualityError(f"Invalid {name} '{value}': expected YYYY-MM-DD") from e

        start = _date("fromDate", from_date)
        end = _date("toDate", to_date)
        if start and end and start > end:
            raise DataQualityError(f"fromDate {start} is after toDate {end}")
        return cls(
            from_date=start,
            to_date=end,
            division=division or None,
            branch=branch or None,
        )

    @property
    def division_active(self) -> bool:
        return bool(self.division) and self.division != ALL

    def to_dict(self) -> dict[str, str | None]:
        return {
            "fromDate": self.from_date.isoformat() if self.from_date else None,
            "toDate": self.to_date.isoformat() if self.to_date else None,
            "division": self.division or ALL,
            "branch": self.branch or ALL,
        }


def apply_filter(df: pd.DataFrame, sales_filter: SalesFilter) -> pd.DataFrame:
    """Keep the invoices matching the division and date-range filter.

    Invoices without a date are dropped whenever a date bound is given.
    """
    mask = pd.Series(True, index=df.index)
    if sales_filter.division_active:
        mask &= df["division_name"] == sales_filter.division
    # ISO date strings compare correctly as text
    if sales_filter.from_date is not None:
        mask &= df["invoice_date"] >= sales_filter.from_date.isoformat()
    if sales_filter.to_date is not None:
        mask &= (df["invoice_date"] != "") & (
            df["invoice_date"] <= sales_filter.to_date.isoformat()
        )
    out = df[mask]
    logger.debug("Filter %s kept %d of %d invoice(s)", sales_filter, len(out), len(df))
    return out
