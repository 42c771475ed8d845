"""
registry.py - Supplier payment-details registry.

Three jobs, kept apart:
- build_registry_index: exact lookup structure used by the reconciler.
  Keyed by normalized company name, last occurrence wins. No fuzzy
  matching here - a record either finds its supplier or becomes an
  exception.
- update_registry: fill-missing merge of auxiliary uploads (bank details
  from the raw sales report, mobile money details from an update sheet)
  into the registry rows, between passes.
- search_supplier: operator lookup with a documented precedence
  (exact, prefix, substring, reverse substring, fuzzy) plus the supplier's
  payment history from the ledger.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional, Sequence

from rapidfuzz import fuzz, process

from logging_config import get_logger
from models import (
    BankDetails,
    LedgerEntry,
    MomoDetails,
    RegistryUpdate,
    StructuralError,
    SupplierProfile,
    SupplierRecord,
    ZERO,
)
from normalize import clean, is_empty_row, normalize_header, normalize_name
from summary import find_header_row, pick_company_name

logger = get_logger(__name__)

FUZZY_SCORE_CUTOFF = 85.0

# Numbered labels come from the supplier sign-up form export.
MOMO_PROVIDER_LABELS: tuple[str, ...] = (
    "5. SELECT YOUR MOBILE MONEY PLATFORM",
    "SELECT YOUR MOBILE MONEY PLATFORM",
    "MOBILE MONEY PLATFORM",
)
MOMO_NUMBER_LABELS: tuple[str, ...] = (
    "3. MPESA / ECOCASH NUMBER",
    "MPESA / ECOCASH NUMBER",
    "MOMO NUMBER",
)
MOMO_NAMES_LABELS: tuple[str, ...] = (
    "2. CONTACT PERSON FULL NAME",
    "CONTACT PERSON FULL NAME",
    "CONTACT NAME",
)


def build_registry_index(suppliers: Iterable[SupplierRecord]) -> dict[str, SupplierRecord]:
    """Index suppliers by normalized company name. Later rows replace earlier ones."""
    index: dict[str, SupplierRecord] = {}
    duplicates = 0

    for supplier in suppliers:
        key = normalize_name(supplier.company_name)
        if not key:
            continue
        if key in index:
            duplicates += 1
            logger.debug("registry_duplicate | key=%r | policy=last_wins", key)
        index[key] = supplier

    if duplicates:
        logger.warning(
            "registry_index_warning | duplicate_keys=%s | policy=last_wins",
            duplicates,
        )
    logger.info("registry_index_built | suppliers=%s", len(index))
    return index


def lookup_supplier(index: Mapping[str, SupplierRecord], company_name: str) -> Optional[SupplierRecord]:
    """Exact lookup by normalized company name."""
    return index.get(normalize_name(company_name))


def _cell(row: Sequence[Any], columns: Mapping[str, int], label: str) -> str:
    position = columns.get(normalize_header(label))
    if position is None or position >= len(row):
        return ""
    return clean(row[position])


def _first_cell(row: Sequence[Any], columns: Mapping[str, int], labels: Sequence[str]) -> str:
    for label in labels:
        value = _cell(row, columns, label)
        if value:
            return value
    return ""


def parse_bank_details_report(grid: Sequence[Sequence[Any]]) -> dict[str, dict[str, str]]:
    """Bank name/account per company from a raw sales report grid.

    The first non-empty value per company wins for each field.
    """
    header = find_header_row(grid)
    if header is None:
        raise StructuralError("Could not find header row in raw sales report.")
    header_index, columns = header

    details: dict[str, dict[str, str]] = {}
    for row in grid[header_index + 1 :]:
        if is_empty_row(row):
            continue
        company = pick_company_name(row, columns)
        if not company:
            continue
        bank = _cell(row, columns, "BANK NAME")
        account = _cell(row, columns, "BANK ACCOUNT/MOBILE")
        if not bank and not account:
            continue

        key = normalize_name(company)
        existing = details.get(key)
        if existing is None:
            details[key] = {"company_name": company, "bank_name": bank, "account": account}
            continue
        if not existing["bank_name"] and bank:
            existing["bank_name"] = bank
        if not existing["account"] and account:
            existing["account"] = account

    logger.info("bank_details_parsed | suppliers=%s", len(details))
    return details


def parse_momo_update_sheet(grid: Sequence[Sequence[Any]]) -> dict[str, dict[str, str]]:
    """Mobile money details per company from an update sheet.

    When no COMPANY NAME + COST header row exists the first row is taken as
    the header. Later rows for the same company replace earlier ones.
    """
    header = find_header_row(grid)
    header_index = header[0] if header else 0
    columns: dict[str, int] = {}
    if grid:
        for position, label in enumerate(grid[header_index]):
            key = normalize_header(label)
            if key:
                columns[key] = position

    details: dict[str, dict[str, str]] = {}
    for row in grid[header_index + 1 :]:
        if is_empty_row(row):
            continue
        company = pick_company_name(row, columns)
        if not company:
            continue
        provider = _first_cell(row, columns, MOMO_PROVIDER_LABELS)
        number = _first_cell(row, columns, MOMO_NUMBER_LABELS)
        names = _first_cell(row, columns, MOMO_NAMES_LABELS)
        if not provider and not number and not names:
            continue
        details[normalize_name(company)] = {
            "company_name": company,
            "provider": provider,
            "number": number,
            "holder_names": names,
        }

    logger.info("momo_details_parsed | suppliers=%s", len(details))
    return details


def _fill(current: str, incoming: Optional[str]) -> str:
    return current if clean(current) else clean(incoming)


def update_registry(
    suppliers: Iterable[SupplierRecord],
    bank_updates: Optional[Mapping[str, Mapping[str, str]]] = None,
    momo_updates: Optional[Mapping[str, Mapping[str, str]]] = None,
) -> RegistryUpdate:
    """Merge auxiliary details into the registry, filling only empty fields.

    Existing non-empty values are never overwritten. Companies seen only in
    the updates are added. The result is sorted by company name with the
    name, bank and holder names uppercased.
    """
    bank_updates = bank_updates or {}
    momo_updates = momo_updates or {}
    merged = dict(build_registry_index(suppliers))

    updated = 0
    added = 0
    keys = list(merged) + [k for k in bank_updates if k not in merged]
    keys += [k for k in momo_updates if k not in merged and k not in bank_updates]

    for key in keys:
        existing = merged.get(key)
        bank = bank_updates.get(key, {})
        momo = momo_updates.get(key, {})

        if existing is not None:
            new_bank = BankDetails(
                bank_name=_fill(existing.bank.bank_name, bank.get("bank_name")),
                account=_fill(existing.bank.account, bank.get("account")),
                branch=_fill(existing.bank.branch, bank.get("branch")),
            )
            new_momo = MomoDetails(
                provider=_fill(existing.momo.provider, momo.get("provider")),
                number=_fill(existing.momo.number, momo.get("number")),
                holder_names=_fill(existing.momo.holder_names, momo.get("holder_names")),
            )
            if new_bank != existing.bank or new_momo != existing.momo:
                updated += 1
                merged[key] = existing.model_copy(update={"bank": new_bank, "momo": new_momo})
            continue

        name = clean(bank.get("company_name")) or clean(momo.get("company_name"))
        if not name:
            continue
        merged[key] = SupplierRecord(
            company_name=name,
            bank=BankDetails(
                bank_name=clean(bank.get("bank_name")),
                account=clean(bank.get("account")),
            ),
            momo=MomoDetails(
                provider=clean(momo.get("provider")),
                number=clean(momo.get("number")),
                holder_names=clean(momo.get("holder_names")),
            ),
        )
        added += 1

    rows = sorted(merged.values(), key=lambda supplier: clean(supplier.company_name).upper())
    rows = [
        supplier.model_copy(
            update={
                "company_name": clean(supplier.company_name).upper(),
                "bank": supplier.bank.model_copy(update={"bank_name": supplier.bank.bank_name.upper()}),
                "momo": supplier.momo.model_copy(update={"holder_names": supplier.momo.holder_names.upper()}),
            }
        )
        for supplier in rows
    ]

    logger.info(
        "registry_update_complete | suppliers=%s | updated=%s | added=%s",
        len(rows),
        updated,
        added,
    )
    return RegistryUpdate(suppliers=rows, updated_count=updated, added_count=added)


def _match_key(query: str, keys: Sequence[str]) -> tuple[Optional[str], str]:
    """Pick a registry key for a search query, returning (key, tier)."""
    tiers = (
        ("exact", lambda key: key == query),
        ("prefix", lambda key: key.startswith(query)),
        ("substring", lambda key: query in key),
        ("contained", lambda key: key in query),
    )
    for tier, predicate in tiers:
        for key in keys:
            if predicate(key):
                return key, tier

    best = process.extractOne(query, keys, scorer=fuzz.WRatio, score_cutoff=FUZZY_SCORE_CUTOFF)
    if best is not None:
        logger.debug("supplier_search_fuzzy | query=%r | key=%r | score=%.1f", query, best[0], best[1])
        return best[0], "fuzzy"
    return None, ""


def search_supplier(
    query: str,
    suppliers: Iterable[SupplierRecord],
    ledger: Iterable[LedgerEntry] = (),
) -> Optional[SupplierProfile]:
    """Find a supplier by (partial) name and total its ledger history."""
    needle = normalize_name(query)
    if not needle:
        return None

    index = build_registry_index(suppliers)
    key, tier = _match_key(needle, list(index))
    if key is None:
        logger.info("supplier_search | query=%r | match=none", query)
        return None

    history = [entry for entry in ledger if normalize_name(entry.company_name) == key]
    mode_totals: dict[str, Decimal] = {}
    for entry in history:
        mode = entry.mode or "UNKNOWN"
        mode_totals[mode] = mode_totals.get(mode, ZERO) + entry.amount
    total = sum((entry.amount for entry in history), ZERO)

    logger.info(
        "supplier_search | query=%r | match=%r | tier=%s | history=%s",
        query,
        key,
        tier,
        len(history),
    )
    return SupplierProfile(
        supplier=index[key],
        matched_by=tier,
        history=history,
        total_paid=total,
        mode_totals=mode_totals,
    )
