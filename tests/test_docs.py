"""Docstring examples stay runnable: every ``>>>`` block must pass as a doctest."""

import doctest
import importlib

import pytest

MODULES = [
    "sales_bi",
    "sales_bi.api",
    "sales_bi.assemble",
    "sales_bi.config",
    "sales_bi.utils",
    "sales_bi.core.normalize",
    "sales_bi.core.reference",
    "sales_bi.core.returns",
    "sales_bi.marts",
    "sales_bi.marts.aggregate",
    "sales_bi.marts.filters",
    "sales_bi.raw.extract",
]


@pytest.mark.parametrize("name", MODULES)
def test_docstring_examples_pass(name: str) -> None:
    result = doctest.testmod(importlib.import_module(name))
    assert result.failed == 0
