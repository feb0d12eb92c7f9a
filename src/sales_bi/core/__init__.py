"""Core layer: joins raw collections into NormalizedInvoice records.

- reference: key -> record indexes over the optional reference collections
- returns: return records grouped by the invoice number they adjust
- normalize: the typed NormalizedInvoice and the join that builds it
"""

from sales_bi.core.normalize import UNKNOWN, NormalizedInvoice, normalize, normalize_all
from sales_bi.core.reference import ReferenceIndexes, build_index
from sales_bi.core.returns import ReturnTotals, reconcile, return_totals

__all__ = [
    "UNKNOWN",
    "NormalizedInvoice",
    "ReferenceIndexes",
    "ReturnTotals",
    "build_index",
    "normalize",
    "normalize_all",
    "reconcile",
    "return_totals",
]
