"""Tests for reference index building and return reconciliation."""

import pytest

from sales_bi.core.reference import ReferenceIndexes, build_index
from sales_bi.core.returns import ReturnTotals, reconcile, return_totals
from sales_bi.raw.extract import SourceResult
from tests.test_utils import BRANCHES, CUSTOMERS, DIVISIONS, SALESMEN


class TestBuildIndex:
    def test_empty_input(self) -> None:
        assert build_index([], "id") == {}

    def test_last_duplicate_wins(self) -> None:
        records = [
            {"id": 1, "name": "first"},
            {"id": 2, "name": "other"},
            {"id": "1", "name": "last"},
        ]
        index = build_index(records, "id")

        assert list(index) == ["1", "2"]
        assert index["1"]["name"] == "last"

    def test_skips_records_without_key(self) -> None:
        index = build_index([{"id": None}, {"name": "no id"}, {"id": ""}, {"id": 7}], "id")
        assert list(index) == ["7"]

    def test_numeric_keys_match_string_form(self) -> None:
        index = build_index([{"id": 12.0}], "id")
        assert "12" in index


class TestReferenceIndexes:
    def test_from_records(self) -> None:
        indexes = ReferenceIndexes.from_records(SALESMEN, DIVISIONS, CUSTOMERS, BRANCHES)

        assert indexes.salesmen["1"]["salesman_name"] == "John Doe"
        assert indexes.divisions["20"]["division_name"] == "Appliances"
        assert indexes.customers["C002"]["customer_name"] == "Beta Co"
        assert indexes.branches["100"]["branch_name"] == "Manila"

    def test_indexes_are_read_only(self) -> None:
        indexes = ReferenceIndexes.from_records(SALESMEN)
        with pytest.raises(TypeError):
            indexes.salesmen["3"] = {}  # type: ignore[index]

    def test_degraded_sources_give_empty_indexes(self) -> None:
        sources = {
            "salesman": SourceResult.success("salesman", SALESMEN),
            "customer": SourceResult.degraded("customer", "HTTP 503"),
        }
        indexes = ReferenceIndexes.from_sources(sources)

        assert len(indexes.salesmen) == 2
        assert len(indexes.customers) == 0
        assert len(indexes.divisions) == 0
        assert len(indexes.branches) == 0


class TestReconcile:
    def test_groups_by_invoice_number_in_source_order(self) -> None:
        returns = [
            {"id": 1, "invoice_no": "INV-1", "return_amount": 100},
            {"id": 2, "invoice_no": "INV-2", "return_amount": 50},
            {"id": 3, "invoice_no": "INV-1", "return_amount": 25},
        ]
        groups = reconcile(returns)

        assert [r["id"] for r in groups["INV-1"]] == [1, 3]
        assert [r["id"] for r in groups["INV-2"]] == [2]
        assert "INV-3" not in groups

    def test_returns_without_invoice_number_are_dropped(self) -> None:
        groups = reconcile([{"id": 1, "invoice_no": None}, {"id": 2}])
        assert groups == {}

    def test_totals(self) -> None:
        group = [
            {"return_amount": "200", "return_discount": "20"},
            {"return_amount": 50, "return_discount": None},
            {"return_amount": "oops"},
        ]
        assert return_totals(group) == ReturnTotals(amount=250.0, discount=20.0)

    def test_absent_group_is_zero(self) -> None:
        assert return_totals(None) == ReturnTotals(0.0, 0.0)
        assert return_totals([]) == ReturnTotals(0.0, 0.0)
