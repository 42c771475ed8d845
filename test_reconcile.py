"""
test_reconcile.py - Classifier and reconciler tests

Covers:
- threshold boundary and threshold coercion
- each reconciler branch (invalid, not found, bank, momo, missing details)
- references and ledger mirroring
- exhaustive partition over a mixed batch
- structural check on sales columns

Usage: python -m pytest test_reconcile.py
"""

from __future__ import annotations

import os
import sys
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from classify import DEFAULT_THRESHOLD, classify_amount, to_threshold
from models import (
    BankBatchEntry,
    BankDetails,
    ExceptionEntry,
    InvalidEntry,
    MomoBatchEntry,
    MomoDetails,
    PaymentMode,
    StructuralError,
    SupplierRecord,
)
from normalize import normalize_sales_row, normalize_sales_rows
from reconcile import reconcile_record, reconcile_records, require_sales_columns
from registry import build_registry_index


def _row(name: str = "Acme Traders", cost: str = "1,200.00", comment: str = "", month: str = "January", year: str = "2026") -> dict[str, str]:
    return {"COMPANY NAME": name, "SUM of COST": cost, "COMMENT": comment, "MONTH": month, "YEAR": year}


def _index(*suppliers: SupplierRecord):
    return build_registry_index(suppliers)


def _complete(name: str = "Acme Traders") -> SupplierRecord:
    return SupplierRecord(
        company_name=name,
        bank=BankDetails(bank_name="Standard Lesotho", account="9080001", branch="060667"),
        momo=MomoDetails(provider="Mpesa", number="58001122", holder_names="A TRADER"),
    )


# -- Classifier --


def test_threshold_boundary_is_inclusive():
    assert classify_amount(Decimal("400"), DEFAULT_THRESHOLD) is PaymentMode.BANK
    assert classify_amount(Decimal("399.99"), DEFAULT_THRESHOLD) is PaymentMode.MOMO
    assert classify_amount(Decimal("399"), DEFAULT_THRESHOLD) is PaymentMode.MOMO


def test_custom_threshold():
    assert classify_amount(Decimal("450"), Decimal("500")) is PaymentMode.MOMO
    assert classify_amount(Decimal("500"), Decimal("500")) is PaymentMode.BANK


def test_to_threshold_defaults_and_rejects_junk():
    assert to_threshold(None) == Decimal("400")
    assert to_threshold("  ") == Decimal("400")
    assert to_threshold("250.5") == Decimal("250.5")
    with pytest.raises(ValueError):
        to_threshold("four hundred")
    with pytest.raises(ValueError):
        to_threshold("Infinity")


# -- Reconciler branches --


def test_bank_entry_for_complete_supplier():
    entry, ledger_entry = reconcile_record(normalize_sales_row(_row()), _index(_complete()))
    assert isinstance(entry, BankBatchEntry)
    assert entry.to_row() == {
        "NAME": "Acme Traders",
        "ACCOUNT": "9080001",
        "BRANCH": "060667",
        "AMOUNT": "1200.00",
        "COMMENT": "MiLCo January 2026 Sales",
    }
    assert ledger_entry is not None
    assert ledger_entry.mode == "BANK"
    assert ledger_entry.period == "January 2026"
    assert ledger_entry.reference == "MiLCo January 2026 Sales"


def test_amount_equal_to_threshold_goes_to_bank():
    entry, _ = reconcile_record(normalize_sales_row(_row(cost="400")), _index(_complete()))
    assert isinstance(entry, BankBatchEntry)


def test_momo_entry_for_small_amount():
    entry, ledger_entry = reconcile_record(normalize_sales_row(_row(cost="350.00")), _index(_complete()))
    assert isinstance(entry, MomoBatchEntry)
    assert entry.to_row()["AMOUNT"] == "350.00"
    assert entry.holder_names == "A TRADER"
    assert ledger_entry.mode == "MOMO"


def test_momo_missing_provider_and_number_is_exception():
    supplier = SupplierRecord(
        company_name="Acme Traders",
        bank=BankDetails(account="9080001", branch="060667"),
        momo=MomoDetails(holder_names="A TRADER"),
    )
    entry, ledger_entry = reconcile_record(normalize_sales_row(_row(cost="350.00")), _index(supplier))
    assert isinstance(entry, ExceptionEntry)
    assert entry.mode is PaymentMode.MOMO
    assert entry.issue == "Missing MOMO Provider, Missing MOMO Number"
    assert ledger_entry is None


def test_bank_missing_branch_is_exception_even_with_account():
    supplier = SupplierRecord(company_name="Acme Traders", bank=BankDetails(account="9080001"))
    entry, ledger_entry = reconcile_record(normalize_sales_row(_row()), _index(supplier))
    assert isinstance(entry, ExceptionEntry)
    assert entry.issue == "Missing Branch Code"
    assert entry.to_row()["MODE"] == "BANK"
    assert ledger_entry is None


def test_bank_missing_everything():
    entry, _ = reconcile_record(normalize_sales_row(_row()), _index(SupplierRecord(company_name="Acme Traders")))
    assert entry.issue == "Missing Bank Account, Missing Branch Code"


def test_non_numeric_cost_is_invalid():
    entry, ledger_entry = reconcile_record(normalize_sales_row(_row(cost="N/A"), row_number=7), _index(_complete()))
    assert isinstance(entry, InvalidEntry)
    assert entry.issue == "Invalid SUM of COST (not a number)"
    assert entry.row_number == 7
    assert entry.sum_of_cost == "N/A"
    assert ledger_entry is None


def test_unknown_supplier_is_exception():
    entry, ledger_entry = reconcile_record(normalize_sales_row(_row(name="Nobody Ltd")), _index(_complete()))
    assert isinstance(entry, ExceptionEntry)
    assert entry.issue == "supplier not found"
    assert entry.company_name == "Nobody Ltd"
    assert ledger_entry is None


def test_name_matching_ignores_case_and_spacing():
    index = _index(_complete("ACME TRADERS"))
    for name in ("Acme  Traders", "ACME TRADERS", " acme traders "):
        entry, _ = reconcile_record(normalize_sales_row(_row(name=name)), index)
        assert isinstance(entry, BankBatchEntry)
        assert entry.name == "ACME TRADERS"


def test_explicit_comment_wins_over_default_reference():
    entry, ledger_entry = reconcile_record(
        normalize_sales_row(_row(comment="MILCO SALES JANUARY 2026")),
        _index(_complete()),
        organization="OtherOrg",
    )
    assert entry.comment == "MILCO SALES JANUARY 2026"
    assert ledger_entry.reference == "MILCO SALES JANUARY 2026"


def test_default_reference_uses_organization():
    entry, _ = reconcile_record(normalize_sales_row(_row()), _index(_complete()), organization="Basotho Co")
    assert entry.comment == "Basotho Co January 2026 Sales"


# -- Whole batch --


def test_every_non_empty_row_lands_in_exactly_one_bucket():
    rows = [
        _row(),
        _row(cost="120"),
        _row(name="Nobody Ltd"),
        _row(cost="abc"),
        _row(name="Half Bank", cost="900"),
        {"COMPANY NAME": "", "SUM of COST": "", "COMMENT": "", "MONTH": "", "YEAR": ""},
    ]
    normalized = normalize_sales_rows(rows)
    index = _index(_complete(), SupplierRecord(company_name="Half Bank", bank=BankDetails(account="1")))
    result = reconcile_records(normalized.records, index)

    assert normalized.non_empty == 5
    assert result.bucket_count == 5
    assert (len(result.bank_batch), len(result.momo_batch), len(result.exceptions), len(result.invalid)) == (1, 1, 2, 1)
    assert len(result.ledger_additions) == 2
    assert [e.company_name for e in result.exceptions] == ["Nobody Ltd", "Half Bank"]
    assert result.period_of_first_entry() == ("January", "2026")


def test_sales_columns_require_name_and_amount():
    require_sales_columns(["company", "total", "MONTH"])
    with pytest.raises(StructuralError, match="SUM of COST"):
        require_sales_columns(["COMPANY NAME", "MONTH", "YEAR"])
    with pytest.raises(StructuralError, match="COMPANY NAME"):
        require_sales_columns(["SUM of COST"])


if __name__ == "__main__":
    raise SystemExit(pytest.main([__file__]))
