"""
reconcile.py - Per-record routing into payment buckets.

Every normalized sales record ends up in exactly one of four buckets.
The decision procedure, in order:

    1. record failed validation          -> InvalidEntry (all issues joined)
    2. supplier key not in the registry  -> ExceptionEntry("supplier not found")
    3. BANK (amount >= threshold):
         account and branch present      -> BankBatchEntry
         otherwise                       -> ExceptionEntry naming missing fields
    4. MOMO (amount < threshold):
         provider, number, holder names  -> MomoBatchEntry
         otherwise                       -> ExceptionEntry naming missing fields

Every batch entry is mirrored into a LedgerEntry. Row-level problems are
values, not exceptions: one bad record never stops the batch. Partially
complete channel details are always an exception, never a degraded payment.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Mapping, Optional

from classify import DEFAULT_THRESHOLD, classify_amount
from logging_config import get_logger
from models import (
    BankBatchEntry,
    ClassificationResult,
    ExceptionEntry,
    InvalidEntry,
    LedgerEntry,
    MomoBatchEntry,
    PaymentMode,
    ReconciliationResult,
    SalesRecord,
    StructuralError,
    SupplierRecord,
)
from normalize import REQUIRED_SALES_FIELDS, SALES_ALIASES, missing_fields
from registry import lookup_supplier

logger = get_logger(__name__)

DEFAULT_ORGANIZATION = "MiLCo"
SUPPLIER_NOT_FOUND = "supplier not found"
EXPECTED_SALES_COLUMNS = "COMPANY NAME, SUM of COST, COMMENT, MONTH, YEAR"


def require_sales_columns(columns: Iterable[str]) -> None:
    """Fail the whole pass when the sales file lacks a name or amount column."""
    columns = list(columns)
    missing = missing_fields(columns, SALES_ALIASES, REQUIRED_SALES_FIELDS)
    if missing:
        labels = [SALES_ALIASES[field][0] for field in missing]
        raise StructuralError(
            f"Sales report template mismatch. Missing column(s): {', '.join(labels)}. "
            f"Expected: {EXPECTED_SALES_COLUMNS}"
        )


def default_reference(period: str, organization: str = DEFAULT_ORGANIZATION) -> str:
    return f"{organization} {period} Sales"


def _invalid(record: SalesRecord) -> InvalidEntry:
    return InvalidEntry(
        row_number=record.row_number,
        company_name=record.company_name,
        sum_of_cost=record.raw_amount,
        comment=record.reference,
        month=record.raw_month or record.month,
        year=record.raw_year or (str(record.year) if record.year is not None else ""),
        issue=record.issue,
    )


def _exception(name: str, record: SalesRecord, mode: PaymentMode, issue: str) -> ExceptionEntry:
    return ExceptionEntry(
        company_name=name,
        amount=record.amount,
        mode=mode,
        month=record.month,
        year=record.year,
        issue=issue,
    )


def missing_bank_fields(supplier: SupplierRecord) -> list[str]:
    missing = []
    if not supplier.bank.account:
        missing.append("Missing Bank Account")
    if not supplier.bank.branch:
        missing.append("Missing Branch Code")
    return missing


def missing_momo_fields(supplier: SupplierRecord) -> list[str]:
    missing = []
    if not supplier.momo.provider:
        missing.append("Missing MOMO Provider")
    if not supplier.momo.number:
        missing.append("Missing MOMO Number")
    if not supplier.momo.holder_names:
        missing.append("Missing MOMO Names")
    return missing


def reconcile_record(
    record: SalesRecord,
    index: Mapping[str, SupplierRecord],
    threshold: Decimal = DEFAULT_THRESHOLD,
    organization: str = DEFAULT_ORGANIZATION,
) -> tuple[ClassificationResult, Optional[LedgerEntry]]:
    """Route one record. Returns the bucket entry and its ledger mirror, if any."""
    if not record.is_valid:
        return _invalid(record), None

    mode = classify_amount(record.amount, threshold)
    supplier = lookup_supplier(index, record.company_name)
    if supplier is None:
        return _exception(record.company_name, record, mode, SUPPLIER_NOT_FOUND), None

    name = supplier.company_name
    reference = record.reference or default_reference(record.period, organization)

    if mode is PaymentMode.BANK:
        missing = missing_bank_fields(supplier)
        if missing:
            return _exception(name, record, mode, ", ".join(missing)), None
        entry: ClassificationResult = BankBatchEntry(
            name=name,
            account=supplier.bank.account,
            branch=supplier.bank.branch,
            amount=record.amount,
            comment=reference,
        )
    else:
        missing = missing_momo_fields(supplier)
        if missing:
            return _exception(name, record, mode, ", ".join(missing)), None
        entry = MomoBatchEntry(
            name=name,
            provider=supplier.momo.provider,
            number=supplier.momo.number,
            holder_names=supplier.momo.holder_names,
            amount=record.amount,
            comment=reference,
        )

    ledger_entry = LedgerEntry(
        month=record.month,
        year=record.year,
        period=record.period,
        company_name=name,
        amount=record.amount,
        mode=mode.value,
        reference=reference,
    )
    return entry, ledger_entry


def reconcile_records(
    records: Iterable[SalesRecord],
    index: Mapping[str, SupplierRecord],
    threshold: Decimal = DEFAULT_THRESHOLD,
    organization: str = DEFAULT_ORGANIZATION,
) -> ReconciliationResult:
    """Route every record into the four buckets, in input order."""
    bank_batch: list[BankBatchEntry] = []
    momo_batch: list[MomoBatchEntry] = []
    exceptions: list[ExceptionEntry] = []
    invalid: list[InvalidEntry] = []
    ledger_additions: list[LedgerEntry] = []

    for record in records:
        entry, ledger_entry = reconcile_record(record, index, threshold, organization)

        if isinstance(entry, BankBatchEntry):
            bank_batch.append(entry)
        elif isinstance(entry, MomoBatchEntry):
            momo_batch.append(entry)
        elif isinstance(entry, ExceptionEntry):
            exceptions.append(entry)
            logger.debug(
                "reconcile_exception | row=%s | company=%r | mode=%s | issue=%s",
                record.row_number,
                entry.company_name,
                entry.mode.value,
                entry.issue,
            )
        else:
            invalid.append(entry)
            logger.debug("reconcile_invalid | row=%s | issue=%s", entry.row_number, entry.issue)

        if ledger_entry is not None:
            ledger_additions.append(ledger_entry)

    logger.info(
        "reconcile_complete | threshold=%s | bank=%s | momo=%s | exceptions=%s | invalid=%s",
        threshold,
        len(bank_batch),
        len(momo_batch),
        len(exceptions),
        len(invalid),
    )
    return ReconciliationResult(
        bank_batch=bank_batch,
        momo_batch=momo_batch,
        exceptions=exceptions,
        invalid=invalid,
        ledger_additions=ledger_additions,
    )
