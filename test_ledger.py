"""
test_ledger.py - Ledger merge and overview tests

Usage: python -m pytest test_ledger.py
"""

from __future__ import annotations

import os
import sys
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from ledger import ledger_overview, merge_ledger, sort_ledger
from models import LedgerEntry


def _entry(name: str, month: str, year, amount: str = "10", mode: str = "BANK") -> LedgerEntry:
    period = f"{month} {year}" if month and year else ""
    return LedgerEntry(month=month, year=year, period=period, company_name=name, amount=Decimal(amount), mode=mode)


def test_merge_orders_by_year_then_calendar_month():
    existing = [
        {"MONTH": "March", "YEAR": "2025", "COMPANY NAME": "C", "AMOUNT": "1", "MODE": "BANK"},
        {"MONTH": "December", "YEAR": "2024", "COMPANY NAME": "A", "AMOUNT": "1", "MODE": "MOMO"},
    ]
    additions = [_entry("B", "January", 2025), _entry("D", "April", 2024)]
    merged = merge_ledger(existing, additions)
    assert [e.company_name for e in merged] == ["D", "A", "B", "C"]


def test_sort_is_stable_within_a_month():
    entries = [_entry("first", "May", 2025), _entry("early", "January", 2025), _entry("second", "May", 2025)]
    ordered = sort_ledger(entries)
    assert [e.company_name for e in ordered] == ["early", "first", "second"]


def test_sort_is_idempotent():
    entries = sort_ledger([_entry("x", "June", 2025), _entry("y", "February", 2026), _entry("z", "June", 2024)])
    assert sort_ledger(entries) == entries


def test_unknown_month_sorts_last_and_unknown_year_first():
    entries = [
        _entry("known", "December", 2025),
        _entry("no-month", "", 2025),
        _entry("no-year", "January", None),
    ]
    assert [e.company_name for e in sort_ledger(entries)] == ["no-year", "known", "no-month"]


def test_rerun_appends_duplicates():
    additions = [_entry("A", "May", 2025)]
    first = merge_ledger([], additions)
    second = merge_ledger([e.to_row() for e in first], additions)
    assert len(second) == 2


def test_merge_upgrades_legacy_rows():
    merged = merge_ledger([{"COMPANY": "Old", "TOTAL": "M 75", "REFERENCE": "MiLCo August 2023 Sales"}], [])
    assert merged[0].period == "August 2023"
    assert merged[0].amount == Decimal("75")


def test_overview_totals():
    entries = [
        _entry("A", "May", 2025, "100", "BANK"),
        _entry("B", "May", 2025, "50.25", "MOMO"),
        _entry("A", "June", 2025, "400", "BANK"),
    ]
    overview = ledger_overview(entries, latest=2)
    assert overview.period_count == 2
    assert overview.total_paid == Decimal("550.25")
    assert overview.mode_totals == {"BANK": Decimal("500"), "MOMO": Decimal("50.25")}
    assert list(overview.period_totals) == ["May 2025", "June 2025"]
    assert [e.amount for e in overview.latest] == [Decimal("400"), Decimal("50.25")]


def test_overview_of_empty_ledger():
    overview = ledger_overview([])
    assert overview.period_count == 0
    assert overview.total_paid == Decimal("0")
    assert overview.latest == []


if __name__ == "__main__":
    raise SystemExit(pytest.main([__file__]))
