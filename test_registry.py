"""
test_registry.py - Supplier registry tests

Covers:
- registry index (normalized keys, last occurrence wins)
- bank details from a raw sales report grid
- MOMO details from an update sheet
- fill-missing registry merge
- supplier search precedence and payment history

Usage: python -m pytest test_registry.py
"""

from __future__ import annotations

import os
import sys
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from models import BankDetails, LedgerEntry, MomoDetails, StructuralError, SupplierRecord
from registry import (
    build_registry_index,
    lookup_supplier,
    parse_bank_details_report,
    parse_momo_update_sheet,
    search_supplier,
    update_registry,
)


def _supplier(name: str, account: str = "", branch: str = "", provider: str = "", number: str = "", names: str = "", bank_name: str = "") -> SupplierRecord:
    return SupplierRecord(
        company_name=name,
        bank=BankDetails(bank_name=bank_name, account=account, branch=branch),
        momo=MomoDetails(provider=provider, number=number, holder_names=names),
    )


def _raw_report() -> list[list[str]]:
    return [
        ["MILCO SALES DECEMBER 2025", "", ""],
        ["", "", ""],
        ["PRODUCTS", "COST", "COMPANY NAME", "BANK NAME", "BANK ACCOUNT/MOBILE"],
        ["Milk", "100", "Acme Foods", "", ""],
        ["Bread", "50", "acme  foods", "Standard Lesotho", "9080001"],
        ["Eggs", "20", "Acme Foods", "FNB", "111"],
        ["Jam", "10", "Beta Farm", "Nedbank", "222"],
        ["Tea", "5", "", "Nedbank", "333"],
    ]


# -- Index --


def test_index_uses_normalized_keys_and_last_occurrence_wins():
    index = build_registry_index([_supplier("Acme Foods", account="1"), _supplier(" ACME   foods ", account="2")])
    assert list(index) == ["ACME FOODS"]
    assert index["ACME FOODS"].bank.account == "2"


def test_lookup_is_exact_on_normalized_key():
    index = build_registry_index([_supplier("Acme Foods")])
    assert lookup_supplier(index, "acme foods") is not None
    assert lookup_supplier(index, "Acme Food") is None


# -- Auxiliary uploads --


def test_bank_details_first_non_empty_value_wins():
    details = parse_bank_details_report(_raw_report())
    assert set(details) == {"ACME FOODS", "BETA FARM"}
    assert details["ACME FOODS"]["bank_name"] == "Standard Lesotho"
    assert details["ACME FOODS"]["account"] == "9080001"


def test_bank_details_without_header_row_is_structural_error():
    with pytest.raises(StructuralError):
        parse_bank_details_report([["no header here"], ["at all"]])


def test_momo_update_sheet_with_form_labels():
    grid = [
        ["Timestamp", "1. Company Name", "2. Contact Person Full Name", "3. Mpesa / Ecocash Number", "5. Select your Mobile Money Platform"],
        ["2025-12-01", "Beta Farm", "Thabo Mokoena", "58001122", "Mpesa"],
        ["2025-12-02", "Gamma Ltd", "Lerato M", "62003344", "Ecocash"],
        ["2025-12-03", "Beta Farm", "Thabo Mokoena", "58009999", "Mpesa"],
    ]
    details = parse_momo_update_sheet(grid)
    assert details["BETA FARM"]["number"] == "58009999"
    assert details["GAMMA LTD"]["provider"] == "Ecocash"
    assert details["GAMMA LTD"]["holder_names"] == "Lerato M"


# -- Merge --


def test_update_registry_fills_only_missing_fields_and_adds_new_suppliers():
    suppliers = [
        _supplier("Acme Foods", account="EXISTING", branch="060667"),
        _supplier("Beta Farm", provider="Mpesa"),
    ]
    bank_updates = parse_bank_details_report(_raw_report())
    momo_updates = {
        "BETA FARM": {"company_name": "Beta Farm", "provider": "Ecocash", "number": "58001122", "holder_names": "thabo m"},
        "GAMMA LTD": {"company_name": "Gamma Ltd", "provider": "Mpesa", "number": "62003344", "holder_names": "lerato m"},
    }

    update = update_registry(suppliers, bank_updates, momo_updates)
    by_name = {s.company_name: s for s in update.suppliers}

    assert [s.company_name for s in update.suppliers] == ["ACME FOODS", "BETA FARM", "GAMMA LTD"]
    assert by_name["ACME FOODS"].bank.account == "EXISTING"
    assert by_name["ACME FOODS"].bank.bank_name == "STANDARD LESOTHO"
    assert by_name["BETA FARM"].momo.provider == "Mpesa"
    assert by_name["BETA FARM"].momo.number == "58001122"
    assert by_name["BETA FARM"].momo.holder_names == "THABO M"
    assert by_name["BETA FARM"].bank.account == "222"
    assert update.updated_count == 2
    assert update.added_count == 1


def test_update_registry_without_changes_counts_nothing():
    update = update_registry([_supplier("Acme", account="1", branch="2")], {}, {})
    assert update.updated_count == 0
    assert update.added_count == 0
    assert update.suppliers[0].company_name == "ACME"


# -- Search --


@pytest.fixture()
def search_registry() -> list[SupplierRecord]:
    return [
        _supplier("Acme Foods", account="1", branch="2", bank_name="FNB"),
        _supplier("Acme Foods Wholesale"),
        _supplier("Beta Farm", provider="Mpesa", number="5800"),
        _supplier("Lesotho Dairy Cooperative"),
    ]


@pytest.mark.parametrize(
    "query, expected, tier",
    [
        ("acme foods", "ACME FOODS", "exact"),
        ("acme", "ACME FOODS", "prefix"),
        ("farm", "BETA FARM", "substring"),
        ("Beta Farm (Pty) Ltd", "BETA FARM", "contained"),
        ("Lesoto Dairy Cooperativ", "LESOTHO DAIRY COOPERATIVE", "fuzzy"),
    ],
)
def test_search_precedence(search_registry, query, expected, tier):
    profile = search_supplier(query, search_registry)
    assert profile is not None
    assert profile.supplier.company_name.upper() == expected
    assert profile.matched_by == tier


def test_search_no_match_and_empty_query(search_registry):
    assert search_supplier("Zzyzx Quarry", search_registry) is None
    assert search_supplier("   ", search_registry) is None


def test_search_totals_ledger_history(search_registry):
    ledger = [
        LedgerEntry(month="November", year=2025, period="November 2025", company_name="Acme Foods", amount=Decimal("500"), mode="BANK"),
        LedgerEntry(month="December", year=2025, period="December 2025", company_name="ACME FOODS", amount=Decimal("120.50"), mode="MOMO"),
        LedgerEntry(month="December", year=2025, period="December 2025", company_name="Beta Farm", amount=Decimal("90"), mode="MOMO"),
    ]
    profile = search_supplier("Acme Foods", search_registry, ledger)
    assert profile.entry_count == 2
    assert profile.total_paid == Decimal("620.50")
    assert profile.mode_totals == {"BANK": Decimal("500"), "MOMO": Decimal("120.50")}


if __name__ == "__main__":
    raise SystemExit(pytest.main([__file__]))
