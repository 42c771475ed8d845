"""
test_summary.py - Raw POS report -> monthly summary tests

Usage: python -m pytest test_summary.py
"""

from __future__ import annotations

import os
import sys
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from models import StructuralError
from summary import EXPECTED_HEADERS, build_summary, find_header_row


def _report() -> list[list[str]]:
    header = list(EXPECTED_HEADERS)
    return [
        ["", "MILCO SALES DECEMBER 2025"],
        [],
        ["Printed 2026-01-02"],
        header,
        ["Milk", "2", "30", "100", "20", "Acme Foods", "9080001", "Standard", "5800"],
        ["Bread", "1", "60", "M 1,000.50", "10", "ACME  FOODS", "", "", ""],
        ["", "", "", "", "", "", "", "", ""],
        ["Jam", "1", "15", "12.25", "3", "Beta Farm", "", "", ""],
        ["Tea", "1", "5", "n/a", "1", "Beta Farm", "", "", ""],
        ["Salt", "1", "5", "4", "1", "", "", "", ""],
    ]


def test_header_row_found_below_title():
    index, columns = find_header_row(_report())
    assert index == 3
    assert columns["COST"] == 3
    assert columns["COMPANY NAME"] == 5


def test_summary_aggregates_by_normalized_name_in_first_seen_order():
    summary = build_summary(_report())
    assert summary.title == "MILCO SALES DECEMBER 2025"
    assert summary.period == "December 2025"
    assert [row.to_row() for row in summary.rows] == [
        {
            "COMPANY NAME": "ACME  FOODS",
            "SUM of COST": "1100.50",
            "COMMENT": "MILCO SALES DECEMBER 2025",
            "MONTH": "December",
            "YEAR": "2025",
        },
        {
            "COMPANY NAME": "Beta Farm",
            "SUM of COST": "12.25",
            "COMMENT": "MILCO SALES DECEMBER 2025",
            "MONTH": "December",
            "YEAR": "2025",
        },
    ]


def test_unaggregatable_lines_become_raw_invalid_rows():
    summary = build_summary(_report())
    assert [row.to_row() for row in summary.invalid_rows] == [
        {"ROW_NUMBER": "9", "COMPANY NAME": "Beta Farm", "COST": "n/a", "ISSUE": "Invalid COST (not a number)"},
        {"ROW_NUMBER": "10", "COMPANY NAME": "", "COST": "4", "ISSUE": "Missing COMPANY NAME"},
    ]


def test_summary_verification_conserves_raw_total():
    check = build_summary(_report()).verification
    assert check.passed
    assert check.raw_total == Decimal("1112.75")
    assert check.summary_total == Decimal("1112.75")
    assert check.non_empty == 5
    assert check.invalid_count == 2
    assert check.parsed_row_count == 6


def test_missing_expected_columns_are_warnings():
    grid = [["SALES MAY 2025"], ["COMPANY NAME", "COST"], ["Acme", "10"]]
    summary = build_summary(grid)
    assert "PRODUCTS" in summary.missing_expected
    assert "COST" not in summary.missing_expected
    assert summary.rows[0].sum_of_cost == Decimal("10")


@pytest.mark.parametrize(
    "grid, message",
    [
        ([[""], ["COMPANY NAME", "COST"]], "Missing title"),
        ([["MILCO SALES"], ["COMPANY NAME", "COST"]], "MONTH and YEAR"),
        ([["SALES MAY 2025"], ["NAME", "AMOUNT"]], "header row"),
    ],
)
def test_structural_errors(grid, message):
    with pytest.raises(StructuralError, match=message):
        build_summary(grid)


if __name__ == "__main__":
    raise SystemExit(pytest.main([__file__]))
