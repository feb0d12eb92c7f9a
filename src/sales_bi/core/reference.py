"""Reference indexes over the salesman, division, customer and branch collections.

Indexes are rebuilt for every request and never shared between requests.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from sales_bi.utils import to_text

if TYPE_CHECKING:
    from sales_bi.raw.extract import SourceResult

logger = logging.getLogger(__name__)

RawRecord = dict[str, Any]

# Key field per reference collection
SALESMAN_KEY = "id"
DIVISION_KEY = "id"
CUSTOMER_KEY = "customer_code"
BRANCH_KEY = "id"


def build_index(records: Iterable[RawRecord], key_field: str) -> dict[str, RawRecord]:
    """Map each record's ``key_field`` value to the record.

    Keys are compared as stripped strings, so ``12``, ``12.0`` and ``"12"``
    land on the same entry. Duplicate keys keep the last record seen;
    records without a usable key are skipped.

    Args:
        records: Raw records in source order.
        key_field: Field holding the lookup key.

    Returns:
        Dictionary from key to raw record (empty for empty input).

    Examples:
        >>> build_index([{"id": 1, "n": "a"}, {"id": "1", "n": "b"}], "id")
        {'1': {'id': '1', 'n': 'b'}}

    """
    index: dict[str, RawRecord] = {}
    skipped = 0
    for record in records:
        key = to_text(record.get(key_field))
        if key is None:
            skipped += 1
            continue
        index[key] = record
    if skipped:
        logger.debug("Skipped %d record(s) without '%s'", skipped, key_field)
    return index


def _frozen(index: dict[str, RawRecord]) -> Mapping[str, RawRecord]:
    return MappingProxyType(index)


@dataclass(frozen=True)
class ReferenceIndexes:
    """The four read-only lookup maps used by the invoice normalizer."""

    salesmen: Mapping[str, RawRecord] = field(default_factory=dict)
    divisions: Mapping[str, RawRecord] = field(default_factory=dict)
    customers: Mapping[str, RawRecord] = field(default_factory=dict)
    branches: Mapping[str, RawRecord] = field(default_factory=dict)

    @classmethod
    def from_records(
        cls,
        salesmen: Iterable[RawRecord] = (),
        divisions: Iterable[RawRecord] = (),
        customers: Iterable[RawRecord] = (),
        branches: Iterable[RawRecord] = (),
    ) -> ReferenceIndexes:
        """Build all four indexes from raw reference records."""
        return cls(
            salesmen=_frozen(build_index(salesmen, SALESMAN_KEY)),
            divisions=_frozen(build_index(divisions, DIVISION_KEY)),
            customers=_frozen(build_index(customers, CUSTOMER_KEY)),
            branches=_frozen(build_index(branches, BRANCH_KEY)),
        )

    @classmethod
    def from_sources(cls, sources: Mapping[str, SourceResult]) -> ReferenceIndexes:
        """Build indexes from fetched sources; missing or degraded sources are empty."""

        def records(name: str) -> tuple[RawRecord, ...]:
            result = sources.get(name)
            return result.records if result is not None else ()

        indexes = cls.from_records(
            salesmen=records("salesman"),
            divisions=records("division"),
            customers=records("customer"),
            branches=records("branches"),
        )
        logger.info(
            "Built reference indexes: %d salesmen, %d divisions, %d customers, %d branches",
            len(indexes.salesmen),
            len(indexes.divisions),
            len(indexes.customers),
            len(indexes.branches),
        )
        return indexes
