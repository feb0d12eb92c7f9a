"""Return reconciliation: group return records by the invoice they adjust."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from sales_bi.utils import to_number, to_text

logger = logging.getLogger(__name__)

RawRecord = dict[str, Any]

RETURN_INVOICE_FIELD = "invoice_no"
RETURN_AMOUNT_FIELD = "return_amount"
RETURN_DISCOUNT_FIELD = "return_discount"


@dataclass(frozen=True)
class ReturnTotals:
    """Summed return amount and return discount for one invoice."""

    amount: float = 0.0
    discount: float = 0.0


def reconcile(returns: Iterable[RawRecord]) -> dict[str, list[RawRecord]]:
    """Group return records by invoice number.

    Invoices without returns are absent from the result; callers treat a
    missing key as "no returns". Returns without an invoice number cannot be
    matched and are dropped.

    Args:
        returns: Raw ``sales_return`` records in source order.

    Returns:
        Mapping of invoice number to its return records, in source order.

    """
    groups: dict[str, list[RawRecord]] = {}
    unmatched = 0
    for record in returns:
        invoice_no = to_text(record.get(RETURN_INVOICE_FIELD))
        if invoice_no is None:
            unmatched += 1
            continue
        groups.setdefault(invoice_no, []).append(record)
    if unmatched:
        logger.warning("Ignored %d return(s) without an invoice number", unmatched)
    logger.debug("Reconciled returns for %d invoice(s)", len(groups))
    return groups


def return_totals(group: Sequence[RawRecord] | None) -> ReturnTotals:
    """Sum the amounts and discounts of one invoice's returns."""
    if not group:
        return ReturnTotals()
    return ReturnTotals(
        amount=sum(to_number(r.get(RETURN_AMOUNT_FIELD)) for r in group),
        discount=sum(to_number(r.get(RETURN_DISCOUNT_FIELD)) for r in group),
    )
