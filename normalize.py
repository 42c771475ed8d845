"""
normalize.py - Record normalization module.

Core normalizers:
    normalize_name(text)         -> registry key (uppercase, single spaces)
    parse_amount(value)          -> Decimal or None
    parse_period(text)           -> ('December', 2025, 'December 2025') or None
    canonical_month(text)        -> 'December' or ''

Row upgraders (one fixed-schema model out of a loosely labelled row):
    normalize_sales_row(row, row_number)   -> SalesRecord
    normalize_sales_rows(rows)             -> NormalizedSales
    normalize_ledger_rows(rows)            -> list[LedgerEntry]
    normalize_registry_rows(rows)          -> list[SupplierRecord]

Design principles:
    - Column labels are resolved ONCE through explicit alias tables
      (canonical field -> ordered accepted labels, first present wins);
      everything downstream works on typed models
    - Header comparison ignores case and repeated whitespace
    - Invalid input is reported as issues on the record, never raised
"""

from __future__ import annotations

import math
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional, Sequence

from logging_config import get_logger
from models import (
    BankDetails,
    LedgerEntry,
    MomoDetails,
    NormalizedSales,
    SalesRecord,
    SupplierRecord,
)

logger = get_logger(__name__)

MONTHS: tuple[str, ...] = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)
_MONTH_BY_UPPER = {name.upper(): name for name in MONTHS}

# Full month names only; "Dec 2025" is deliberately not a period.
PERIOD_PATTERN = re.compile(r"\b(" + "|".join(MONTHS) + r")\s+(\d{4})\b", re.IGNORECASE)
YEAR_PATTERN = re.compile(r"^(\d{4})(?:\.0+)?$")
CURRENCY_MARKER = re.compile(r"^(?:LSL|ZAR|M|R|\$)\s*", re.IGNORECASE)
NUMBER_PATTERN = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")
THOUSANDS_SEPARATORS = (",", " ", "\u00a0")

# -- Alias tables --
# canonical field -> accepted source labels, in precedence order.

SALES_ALIASES: dict[str, tuple[str, ...]] = {
    "company_name": ("COMPANY NAME", "COMPANY", "NAME"),
    "amount": ("SUM of COST", "COST", "AMOUNT", "TOTAL"),
    "comment": ("COMMENT", "REFERENCE"),
    "month": ("MONTH",),
    "year": ("YEAR",),
    "period": ("PERIOD",),
}

LEDGER_ALIASES: dict[str, tuple[str, ...]] = {
    "company_name": ("COMPANY NAME", "COMPANY", "NAME"),
    "amount": ("AMOUNT", "SUM", "TOTAL"),
    "mode": ("MODE",),
    "reference": ("REFERENCE", "COMMENT", "PERIOD"),
    "month": ("MONTH",),
    "year": ("YEAR",),
    "period": ("PERIOD",),
}

REGISTRY_ALIASES: dict[str, tuple[str, ...]] = {
    "company_name": ("COMPANY NAME", "COMPANY", "NAME"),
    "bank_name": ("BANK", "BANK NAME"),
    "account": ("ACCOUNT", "BANK ACCOUNT/MOBILE"),
    "branch": ("BRANCH",),
    "provider": ("MOMO", "MOMO PROVIDER", "PROVIDER"),
    "number": ("MOMO NUMBER", "NUMBER"),
    "holder_names": ("MOMO NAMES", "HOLDER NAMES"),
}

REQUIRED_SALES_FIELDS: tuple[str, ...] = ("company_name", "amount")


def clean(value: Any) -> str:
    """Trimmed text for any cell value; None and NaN become ''."""
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value).strip()


def normalize_name(text: Any) -> str:
    """Registry key for a company name: uppercase, collapse whitespace, trim."""
    return re.sub(r"\s+", " ", clean(text)).upper()


def normalize_header(label: Any) -> str:
    """Comparable form of a column label."""
    return normalize_name(label)


def is_empty_row(row: Mapping[str, Any] | Sequence[Any] | None) -> bool:
    """True when every cell is empty after trimming."""
    if not row:
        return True
    values = row.values() if isinstance(row, Mapping) else row
    return not any(clean(value) for value in values)


def canonical_month(text: Any) -> str:
    """Full month name in title case, or '' when the text is not a month."""
    return _MONTH_BY_UPPER.get(clean(text).upper(), "")


def month_index(text: Any) -> int:
    """0-based calendar index of a month name, -1 when unrecognized."""
    month = canonical_month(text)
    return MONTHS.index(month) if month else -1


def month_short(text: Any) -> str:
    """'December' -> 'dec'. Unrecognized text falls back to its first three letters."""
    month = canonical_month(text)
    source = month or clean(text)
    return source[:3].lower()


def parse_year(value: Any) -> Optional[int]:
    """Four digit year from a cell ('2026' or spreadsheet float text '2026.0')."""
    match = YEAR_PATTERN.match(clean(value))
    return int(match.group(1)) if match else None


def parse_period(text: Any) -> Optional[tuple[str, int, str]]:
    """Find '<MonthName> <YYYY>' anywhere in free text (case-insensitive)."""
    match = PERIOD_PATTERN.search(clean(text))
    if not match:
        return None
    month = canonical_month(match.group(1))
    year = int(match.group(2))
    return month, year, f"{month} {year}"


def parse_amount(value: Any) -> Optional[Decimal]:
    """Tolerant amount parsing: 'M 1,200.50' -> Decimal('1200.50').

    Strips one optional leading currency marker and thousands separators,
    then requires a plain decimal number. Anything else is None.
    """
    if isinstance(value, Decimal):
        return value if value.is_finite() else None

    text = clean(value)
    if not text:
        return None

    text = CURRENCY_MARKER.sub("", text, count=1)
    for separator in THOUSANDS_SEPARATORS:
        text = text.replace(separator, "")

    if not NUMBER_PATTERN.match(text):
        return None
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def resolve_fields(row: Mapping[str, Any], aliases: Mapping[str, Sequence[str]]) -> dict[str, str]:
    """Resolve a loosely labelled row into canonical field -> trimmed text.

    For each field the first alias present among the row's labels wins,
    even when that cell is empty.
    """
    by_header: dict[str, Any] = {}
    for label, value in row.items():
        key = normalize_header(label)
        if key and key not in by_header:
            by_header[key] = value

    resolved: dict[str, str] = {}
    for field, labels in aliases.items():
        resolved[field] = ""
        for label in labels:
            key = normalize_header(label)
            if key in by_header:
                resolved[field] = clean(by_header[key])
                break
    return resolved


def missing_fields(labels: Iterable[Any], aliases: Mapping[str, Sequence[str]], required: Iterable[str]) -> list[str]:
    """Required canonical fields for which none of the aliases is present."""
    present = {normalize_header(label) for label in labels}
    missing = []
    for field in required:
        if not any(normalize_header(alias) in present for alias in aliases[field]):
            missing.append(field)
    return missing


def normalize_sales_row(row: Mapping[str, Any], row_number: int = 0) -> SalesRecord:
    """Upgrade one sales row into a SalesRecord.

    Period precedence when explicit fields are empty:
        1. MONTH / YEAR columns
        2. PERIOD column text
        3. COMMENT text
    Only the fields that are empty get filled from a recovered period.
    """
    fields = resolve_fields(row, SALES_ALIASES)

    company_name = fields["company_name"]
    raw_amount = fields["amount"]
    raw_month = fields["month"]
    raw_year = fields["year"]
    comment = fields["comment"]

    amount = parse_amount(raw_amount)
    month = canonical_month(raw_month)
    year = parse_year(raw_year)

    if not raw_month or not raw_year:
        for source in (fields["period"], comment):
            recovered = parse_period(source)
            if recovered is None:
                continue
            if not raw_month:
                month = recovered[0]
            if not raw_year:
                year = recovered[1]
            logger.debug(
                "period_recovered | row=%s | source=%r | month=%s | year=%s",
                row_number,
                source,
                month,
                year,
            )
            break

    issues: list[str] = []
    if not normalize_name(company_name):
        issues.append("Missing COMPANY NAME")
    if amount is None:
        issues.append("Invalid SUM of COST (not a number)")
    if not month:
        issues.append("Invalid MONTH (not a calendar month)" if raw_month else "Missing MONTH")
    if year is None:
        issues.append("Invalid YEAR" if raw_year else "Missing YEAR")

    return SalesRecord(
        company_name=company_name,
        amount=amount,
        month=month,
        year=year,
        period=f"{month} {year}" if month and year is not None else "",
        reference=comment,
        row_number=row_number,
        raw_amount=raw_amount,
        raw_month=raw_month,
        raw_year=raw_year,
        issues=tuple(issues),
    )


def normalize_sales_rows(rows: Iterable[Mapping[str, Any]], header_rows: int = 1) -> NormalizedSales:
    """Normalize every row of a sales sheet, counting fully empty rows."""
    records: list[SalesRecord] = []
    parsed = 0
    empty = 0

    for index, row in enumerate(rows):
        parsed += 1
        if is_empty_row(row):
            empty += 1
            continue
        records.append(normalize_sales_row(row, row_number=index + 1 + header_rows))

    invalid = sum(1 for record in records if not record.is_valid)
    logger.info(
        "normalize_sales_complete | parsed=%s | empty_dropped=%s | non_empty=%s | invalid=%s",
        parsed,
        empty,
        len(records),
        invalid,
    )
    return NormalizedSales(records=records, parsed_row_count=parsed, empty_row_count=empty)


def normalize_ledger_rows(rows: Iterable[Mapping[str, Any]]) -> list[LedgerEntry]:
    """Upgrade existing ledger rows (canonical or legacy) to LedgerEntry.

    Legacy files may only carry PERIOD or a free-text REFERENCE; month and
    year are recovered from those. Rows without a company or a numeric
    amount cannot be trusted and are dropped (counted in the log).
    """
    entries: list[LedgerEntry] = []
    dropped = 0

    for row in rows:
        if is_empty_row(row):
            continue
        fields = resolve_fields(row, LEDGER_ALIASES)

        company_name = fields["company_name"]
        amount = parse_amount(fields["amount"])
        reference = fields["reference"]
        month = canonical_month(fields["month"]) or fields["month"]
        year = parse_year(fields["year"])
        period = fields["period"]

        if (not month or year is None) and period:
            recovered = parse_period(period)
            if recovered:
                month, year, period = recovered

        if (not month or year is None) and reference:
            recovered = parse_period(reference)
            if recovered:
                month = month or recovered[0]
                year = year if year is not None else recovered[1]
                period = period or recovered[2]

        if not period and month and year is not None:
            period = f"{month} {year}"

        if not company_name or amount is None:
            dropped += 1
            continue

        entries.append(
            LedgerEntry(
                month=month,
                year=year,
                period=period,
                company_name=company_name,
                amount=amount,
                mode=fields["mode"].upper(),
                reference=reference,
            )
        )

    if dropped:
        logger.warning(
            "ledger_upgrade_warning | dropped_rows=%s | reason='missing company or amount'",
            dropped,
        )
    logger.debug("ledger_upgrade_complete | entries=%s", len(entries))
    return entries


def normalize_registry_rows(rows: Iterable[Mapping[str, Any]]) -> list[SupplierRecord]:
    """Upgrade registry rows to SupplierRecord, skipping rows without a name."""
    suppliers: list[SupplierRecord] = []
    skipped = 0

    for row in rows:
        fields = resolve_fields(row, REGISTRY_ALIASES)
        if not fields["company_name"]:
            skipped += 1
            continue
        suppliers.append(
            SupplierRecord(
                company_name=fields["company_name"],
                bank=BankDetails(
                    bank_name=fields["bank_name"],
                    account=fields["account"],
                    branch=fields["branch"],
                ),
                momo=MomoDetails(
                    provider=fields["provider"],
                    number=fields["number"],
                    holder_names=fields["holder_names"],
                ),
            )
        )

    if skipped:
        logger.debug("registry_rows_skipped | count=%s | reason='no company name'", skipped)
    return suppliers
