"""Invoice normalization: the typed boundary for raw ``sales_invoice`` records.

NormalizedInvoice.from_record is the only place that reads raw invoice
fields. Everything downstream works with finite floats, resolved names and
a YYYY-MM-DD invoice date.

Division is not an invoice attribute. It is reached through the salesman:
invoice.salesman_id -> salesman.division_id -> division name. An invoice
whose salesman cannot be resolved always has division UNKNOWN.

Net sales:
    net_sales = (gross_amount - discount_amount) - (return_amount - return_discount)
    (0.0 when that overflows)
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import asdict, dataclass
from typing import Any

from sales_bi.core.reference import ReferenceIndexes
from sales_bi.core.returns import ReturnTotals, return_totals
from sales_bi.utils import to_number, to_text, truncate_date

logger = logging.getLogger(__name__)

RawRecord = dict[str, Any]

UNKNOWN = "Unknown"

# sales_invoice fields
INVOICE_ID = "id"
INVOICE_NO = "invoice_no"
ORDER_ID = "order_id"
INVOICE_DATE = "invoice_date"
CUSTOMER_CODE = "customer_code"
SALESMAN_ID = "salesman_id"
BRANCH_ID = "branch_id"
GROSS_AMOUNT = "total_amount"
DISCOUNT_AMOUNT = "discount_amount"

# reference collection fields
SALESMAN_NAME = "salesman_name"
SALESMAN_DIVISION = "division_id"
SALESMAN_BRANCH = "branch_id"
DIVISION_NAME = "division_name"
CUSTOMER_NAME = "customer_name"
BRANCH_NAME = "branch_name"


def _name(record: Mapping[str, Any] | None, field_name: str) -> str:
    if record is None:
        return UNKNOWN
    return to_text(record.get(field_name)) or UNKNOWN


@dataclass(frozen=True)
class NormalizedInvoice:
    """One fully-enriched invoice.

    Attributes:
        invoice_id: Item store id of the invoice ("" when missing).
        invoice_no: Invoice number, the key returns are matched on.
        order_id: Originating order id ("" when missing).
        invoice_date: Calendar date as YYYY-MM-DD ("" when missing/unparseable).
        customer_code / customer_name: Customer reference and resolved name.
        salesman_id / salesman_name: Salesman reference and resolved name.
        division_id / division_name: Division reached through the salesman.
        branch_id / branch_name: Branch reference and resolved name.
        gross_amount, discount_amount: Invoice money fields.
        return_amount, return_discount: Totals of the matched returns.
    """

    invoice_id: str
    invoice_no: str
    order_id: str
    invoice_date: str
    customer_code: str
    customer_name: str
    salesman_id: str
    salesman_name: str
    division_id: str
    division_name: str
    branch_id: str
    branch_name: str
    gross_amount: float = 0.0
    discount_amount: float = 0.0
    return_amount: float = 0.0
    return_discount: float = 0.0

    @property
    def net_sales(self) -> float:
        net = (self.gross_amount - self.discount_amount) - (
            self.return_amount - self.return_discount
        )
        # Finite inputs can still overflow; treat that like a malformed amount
        return net if math.isfinite(net) else 0.0

    @classmethod
    def from_record(
        cls,
        raw: Mapping[str, Any],
        returns: ReturnTotals,
        indexes: ReferenceIndexes,
    ) -> NormalizedInvoice:
        """Build a NormalizedInvoice from a raw invoice record.

        Never raises for missing or malformed fields: money defaults to 0.0,
        unresolved references to UNKNOWN and missing keys to "".
        """
        salesman_id = to_text(raw.get(SALESMAN_ID)) or ""
        salesman = indexes.salesmen.get(salesman_id) if salesman_id else None

        division_id = ""
        division = None
        if salesman is not None:
            division_id = to_text(salesman.get(SALESMAN_DIVISION)) or ""
            division = indexes.divisions.get(division_id) if division_id else None

        # Invoices without a branch fall back to the salesman's branch
        branch_id = to_text(raw.get(BRANCH_ID)) or ""
        if not branch_id and salesman is not None:
            branch_id = to_text(salesman.get(SALESMAN_BRANCH)) or ""
        branch = indexes.branches.get(branch_id) if branch_id else None

        customer_code = to_text(raw.get(CUSTOMER_CODE)) or ""
        customer = indexes.customers.get(customer_code) if customer_code else None

        return cls(
            invoice_id=to_text(raw.get(INVOICE_ID)) or "",
            invoice_no=to_text(raw.get(INVOICE_NO)) or "",
            order_id=to_text(raw.get(ORDER_ID)) or "",
            invoice_date=truncate_date(raw.get(INVOICE_DATE)),
            customer_code=customer_code,
            customer_name=_name(customer, CUSTOMER_NAME),
            salesman_id=salesman_id,
            salesman_name=_name(salesman, SALESMAN_NAME),
            division_id=division_id,
            division_name=_name(division, DIVISION_NAME),
            branch_id=branch_id,
            branch_name=_name(branch, BRANCH_NAME),
            gross_amount=to_number(raw.get(GROSS_AMOUNT)),
            discount_amount=to_number(raw.get(DISCOUNT_AMOUNT)),
            return_amount=returns.amount,
            return_discount=returns.discount,
        )

    def to_row(self) -> dict[str, Any]:
        """Flat dict of all fields plus ``net_sales``, for DataFrame building."""
        row = asdict(self)
        row["net_sales"] = self.net_sales
        return row


def normalize(
    raw_invoice: Mapping[str, Any],
    return_groups: Mapping[str, Sequence[RawRecord]],
    salesman_index: Mapping[str, RawRecord],
    division_index: Mapping[str, RawRecord],
    customer_index: Mapping[str, RawRecord],
    branch_index: Mapping[str, RawRecord],
) -> NormalizedInvoice:
    """Join one raw invoice against the reference indexes and its returns.

    Args:
        raw_invoice: Raw ``sales_invoice`` record.
        return_groups: Output of returns.reconcile (invoice number -> returns).
        salesman_index: Salesman id -> salesman record.
        division_index: Division id -> division record.
        customer_index: Customer code -> customer record.
        branch_index: Branch id -> branch record.

    Returns:
        The normalized invoice.

    Examples:
        >>> inv = normalize({"invoice_no": "INV-2", "total_amount": "500"}, {}, {}, {}, {}, {})
        >>> inv.net_sales, inv.division_name
        (500.0, 'Unknown')

    """
    indexes = ReferenceIndexes(
        salesmen=salesman_index,
        divisions=division_index,
        customers=customer_index,
        branches=branch_index,
    )
    invoice_no = to_text(raw_invoice.get(INVOICE_NO))
    group = return_groups.get(invoice_no) if invoice_no else None
    return NormalizedInvoice.from_record(raw_invoice, return_totals(group), indexes)


def normalize_all(
    raw_invoices: Iterable[RawRecord],
    return_groups: Mapping[str, Sequence[RawRecord]],
    indexes: ReferenceIndexes,
) -> list[NormalizedInvoice]:
    """Normalize every raw invoice, preserving source order."""
    invoices = [
        normalize(
            raw,
            return_groups,
            indexes.salesmen,
            indexes.divisions,
            indexes.customers,
            indexes.branches,
        )
        for raw in raw_invoices
    ]
    unknown_division = sum(1 for inv in invoices if inv.division_name == UNKNOWN)
    logger.info(
        "Normalized %d invoice(s) (%d without a resolved division)",
        len(invoices),
        unknown_division,
    )
    return invoices
