"""
models.py - Data Models for the Supplier Payment Batch Generator

This file defines ALL data structures used across the batch generator.
Every module in the pipeline communicates exclusively through these models:

    normalize.py  ->  SalesRecord, LedgerEntry, SupplierRecord
    registry.py   ->  dict[str, SupplierRecord], RegistryUpdate, SupplierProfile
    classify.py   ->  PaymentMode
    reconcile.py  ->  ReconciliationResult (four buckets + ledger additions)
    ledger.py     ->  list[LedgerEntry], LedgerOverview
    verify.py     ->  VerificationMetrics, SummaryVerification
    summary.py    ->  SalesSummary

Design principles:
1. Each layer's output is the next layer's input
2. Models are frozen: a record is never edited after it is created,
   corrections happen by re-importing corrected files
3. Output models know their own column order (COLUMNS) and render
   themselves as trimmed text rows (to_row) with two-decimal amounts

Schema relationships:
    PaymentMode    --used by--> ExceptionEntry.mode, LedgerEntry.mode
    SalesRecord    --becomes--> exactly one of BankBatchEntry, MomoBatchEntry,
                                ExceptionEntry, InvalidEntry
    BankBatchEntry --mirrored--> LedgerEntry (mode=BANK)
    MomoBatchEntry --mirrored--> LedgerEntry (mode=MOMO)
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import ClassVar, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

MONEY_QUANTUM = Decimal("0.01")
TOTALS_TOLERANCE = Decimal("0.01")
ZERO = Decimal("0")


def format_money(value: Optional[Decimal]) -> str:
    """Render an amount with exactly two decimals ('' when unknown)."""
    if value is None:
        return ""
    return str(Decimal(value).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP))


def _text(value: object) -> str:
    return "" if value is None else str(value).strip()


class StructuralError(ValueError):
    """Raised when an input file does not follow the expected template.

    Structural errors are fatal to the whole pass and are raised before any
    row-level work begins (missing header row, missing required columns,
    no period in the report title).
    """


class PaymentMode(str, Enum):
    """The two disbursement channels a supplier can be paid through."""

    # Amounts at or above the threshold. Needs account + branch.
    BANK = "BANK"

    # Amounts below the threshold. Needs provider + number + holder names.
    MOMO = "MOMO"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class SalesRecord(_Frozen):
    """One sales row after normalization.

    A record is valid iff it carries no issues: company name present, amount
    parsed to a finite decimal, a calendar month and a year. The raw_* fields
    keep the original cell text so that an invalid row can be reported back
    to the operator exactly as it was uploaded.
    """

    company_name: str = Field(
        default="",
        description="Company name as uploaded, trimmed. Not uppercased here.",
    )
    amount: Optional[Decimal] = Field(
        default=None,
        description="Parsed amount. None when the cell was empty or not a number.",
    )
    month: str = Field(
        default="",
        description="Canonical full month name ('January'...), or '' when unknown.",
    )
    year: Optional[int] = Field(default=None, description="Four digit year.")
    period: str = Field(
        default="",
        description="'<Month> <Year>' label used in references and the ledger.",
    )
    reference: str = Field(
        default="",
        description="Explicit COMMENT text. Empty means a default reference is generated.",
    )
    row_number: int = Field(
        default=0,
        description="1-based row number in the uploaded sheet, header rows included.",
    )
    raw_amount: str = ""
    raw_month: str = ""
    raw_year: str = ""
    issues: tuple[str, ...] = Field(
        default=(),
        description="Every violated validation rule, in rule order.",
    )

    COLUMNS: ClassVar[tuple[str, ...]] = ("COMPANY NAME", "SUM of COST", "COMMENT", "MONTH", "YEAR")

    @property
    def is_valid(self) -> bool:
        return not self.issues

    @property
    def issue(self) -> str:
        return "; ".join(self.issues)

    def to_row(self) -> dict[str, str]:
        """Render back into the canonical summary row shape."""
        return {
            "COMPANY NAME": _text(self.company_name),
            "SUM of COST": format_money(self.amount) if self.amount is not None else _text(self.raw_amount),
            "COMMENT": _text(self.reference),
            "MONTH": self.month or _text(self.raw_month),
            "YEAR": str(self.year) if self.year is not None else _text(self.raw_year),
        }


class BankDetails(_Frozen):
    """Bank transfer details (channel A)."""

    bank_name: str = ""
    account: str = ""
    branch: str = ""


class MomoDetails(_Frozen):
    """Mobile money details (channel B)."""

    provider: str = ""
    number: str = ""
    holder_names: str = ""


class SupplierRecord(_Frozen):
    """One supplier in the payment-details registry.

    The registry key is the normalized company name (uppercase, collapsed
    whitespace). Both channel groups are optional; the reconciler decides
    which group is required from the amount of each sales record.
    """

    company_name: str
    bank: BankDetails = Field(default_factory=BankDetails)
    momo: MomoDetails = Field(default_factory=MomoDetails)

    COLUMNS: ClassVar[tuple[str, ...]] = (
        "COMPANY NAME",
        "BANK",
        "ACCOUNT",
        "BRANCH",
        "MOMO",
        "MOMO NUMBER",
        "MOMO NAMES",
    )

    @property
    def payment_mode_label(self) -> str:
        """Which channels are usable at a glance: BANK + MOMO, BANK, MOMO or MISSING."""
        has_bank = bool(self.bank.account and self.bank.bank_name)
        has_momo = bool(self.momo.number and self.momo.provider)
        if has_bank and has_momo:
            return "BANK + MOMO"
        if has_bank:
            return "BANK"
        if has_momo:
            return "MOMO"
        return "MISSING"

    @property
    def has_missing_details(self) -> bool:
        """True when either channel group is incomplete."""
        bank_missing = not (self.bank.bank_name and self.bank.account and self.bank.branch)
        momo_missing = not (self.momo.provider and self.momo.number and self.momo.holder_names)
        return bank_missing or momo_missing

    def to_row(self) -> dict[str, str]:
        return {
            "COMPANY NAME": _text(self.company_name),
            "BANK": _text(self.bank.bank_name),
            "ACCOUNT": _text(self.bank.account),
            "BRANCH": _text(self.bank.branch),
            "MOMO": _text(self.momo.provider),
            "MOMO NUMBER": _text(self.momo.number),
            "MOMO NAMES": _text(self.momo.holder_names),
        }


class BankBatchEntry(_Frozen):
    """A payable row in the bank transfer batch."""

    name: str
    account: str
    branch: str
    amount: Decimal
    comment: str

    COLUMNS: ClassVar[tuple[str, ...]] = ("NAME", "ACCOUNT", "BRANCH", "AMOUNT", "COMMENT")

    def to_row(self) -> dict[str, str]:
        return {
            "NAME": _text(self.name),
            "ACCOUNT": _text(self.account),
            "BRANCH": _text(self.branch),
            "AMOUNT": format_money(self.amount),
            "COMMENT": _text(self.comment),
        }


class MomoBatchEntry(_Frozen):
    """A payable row in the mobile money batch."""

    name: str
    provider: str
    number: str
    holder_names: str
    amount: Decimal
    comment: str

    COLUMNS: ClassVar[tuple[str, ...]] = (
        "NAME",
        "PROVIDER",
        "NUMBER",
        "HOLDER NAMES",
        "AMOUNT",
        "COMMENT",
    )

    def to_row(self) -> dict[str, str]:
        return {
            "NAME": _text(self.name),
            "PROVIDER": _text(self.provider),
            "NUMBER": _text(self.number),
            "HOLDER NAMES": _text(self.holder_names),
            "AMOUNT": format_money(self.amount),
            "COMMENT": _text(self.comment),
        }


class ExceptionEntry(_Frozen):
    """A valid record that cannot be paid: supplier unknown or channel details incomplete."""

    company_name: str
    amount: Decimal
    mode: PaymentMode
    month: str
    year: int
    issue: str

    COLUMNS: ClassVar[tuple[str, ...]] = ("COMPANY NAME", "AMOUNT", "MODE", "MONTH", "YEAR", "ISSUE")

    def to_row(self) -> dict[str, str]:
        return {
            "COMPANY NAME": _text(self.company_name),
            "AMOUNT": format_money(self.amount),
            "MODE": self.mode.value,
            "MONTH": _text(self.month),
            "YEAR": str(self.year),
            "ISSUE": _text(self.issue),
        }


class InvalidEntry(_Frozen):
    """A record rejected before reconciliation, carrying its raw cell text."""

    row_number: int
    company_name: str = ""
    sum_of_cost: str = ""
    comment: str = ""
    month: str = ""
    year: str = ""
    issue: str

    COLUMNS: ClassVar[tuple[str, ...]] = (
        "ROW_NUMBER",
        "COMPANY NAME",
        "SUM of COST",
        "COMMENT",
        "MONTH",
        "YEAR",
        "ISSUE",
    )

    def to_row(self) -> dict[str, str]:
        return {
            "ROW_NUMBER": str(self.row_number),
            "COMPANY NAME": _text(self.company_name),
            "SUM of COST": _text(self.sum_of_cost),
            "COMMENT": _text(self.comment),
            "MONTH": _text(self.month),
            "YEAR": _text(self.year),
            "ISSUE": _text(self.issue),
        }


ClassificationResult = Union[BankBatchEntry, MomoBatchEntry, ExceptionEntry, InvalidEntry]


class LedgerEntry(_Frozen):
    """One disbursed payment in the historical ledger.

    Legacy ledger files may lack MONTH/YEAR (recovered from PERIOD or
    REFERENCE by the normalizer) or carry an unknown MODE, so month, year and
    mode are allowed to be empty here. Entries created by the reconciler
    always carry all three.
    """

    month: str = ""
    year: Optional[int] = None
    period: str = ""
    company_name: str
    amount: Decimal
    mode: str = ""
    reference: str = ""

    COLUMNS: ClassVar[tuple[str, ...]] = (
        "MONTH",
        "YEAR",
        "PERIOD",
        "COMPANY NAME",
        "AMOUNT",
        "MODE",
        "REFERENCE",
    )

    def to_row(self) -> dict[str, str]:
        return {
            "MONTH": _text(self.month),
            "YEAR": str(self.year) if self.year is not None else "",
            "PERIOD": _text(self.period),
            "COMPANY NAME": _text(self.company_name),
            "AMOUNT": format_money(self.amount),
            "MODE": _text(self.mode),
            "REFERENCE": _text(self.reference),
        }


class NormalizedSales(_Frozen):
    """Output of the normalizer for one uploaded sales sheet."""

    records: list[SalesRecord] = Field(default_factory=list)
    parsed_row_count: int = Field(
        default=0,
        description="Rows handed over by the sheet reader, fully empty rows included.",
    )
    empty_row_count: int = Field(
        default=0,
        description="Rows dropped because every cell was empty after trimming.",
    )

    @property
    def non_empty(self) -> int:
        return len(self.records)

    @property
    def valid_total(self) -> Decimal:
        """Sum of amounts of every valid record (the conservation baseline)."""
        return sum((r.amount for r in self.records if r.is_valid and r.amount is not None), ZERO)


class ReconciliationResult(_Frozen):
    """The four disjoint output buckets of one reconciliation pass."""

    bank_batch: list[BankBatchEntry] = Field(default_factory=list)
    momo_batch: list[MomoBatchEntry] = Field(default_factory=list)
    exceptions: list[ExceptionEntry] = Field(default_factory=list)
    invalid: list[InvalidEntry] = Field(default_factory=list)
    ledger_additions: list[LedgerEntry] = Field(
        default_factory=list,
        description="One entry per BANK/MOMO batch row, in processing order.",
    )

    @property
    def bucket_count(self) -> int:
        return len(self.bank_batch) + len(self.momo_batch) + len(self.exceptions) + len(self.invalid)

    def period_of_first_entry(self) -> tuple[str, str]:
        """(month, year) of the first processed row: ledger, then exceptions, then invalid."""
        if self.ledger_additions:
            first = self.ledger_additions[0]
            return first.month, str(first.year) if first.year is not None else ""
        if self.exceptions:
            return self.exceptions[0].month, str(self.exceptions[0].year)
        if self.invalid:
            return self.invalid[0].month, self.invalid[0].year
        return "", ""


class VerificationMetrics(_Frozen):
    """Counts and totals recomputed for every pass. Never persisted."""

    parsed_row_count: int
    empty_row_count: int
    non_empty: int
    bank_count: int
    momo_count: int
    exception_count: int
    invalid_count: int
    ledger_added: int
    bank_total: Decimal
    momo_total: Decimal
    exception_total: Decimal
    total_payable: Decimal
    valid_input_total: Decimal
    counts_match: bool
    totals_match: bool

    @property
    def passed(self) -> bool:
        return self.counts_match and self.totals_match

    def as_report(self) -> list[tuple[str, str]]:
        return [
            ("Rows parsed (including empties)", str(self.parsed_row_count)),
            ("Fully empty rows dropped", str(self.empty_row_count)),
            ("Non-empty rows processed", str(self.non_empty)),
            ("BANK rows generated", str(self.bank_count)),
            ("MOMO rows generated", str(self.momo_count)),
            ("Exceptions (missing supplier/details)", str(self.exception_count)),
            ("Invalid rows (skipped with reason)", str(self.invalid_count)),
            ("Ledger rows added (BANK+MOMO)", str(self.ledger_added)),
            ("BANK amount total", format_money(self.bank_total)),
            ("MOMO amount total", format_money(self.momo_total)),
            ("Exceptions amount total", format_money(self.exception_total)),
            ("Total payable (BANK+MOMO+Exceptions)", format_money(self.total_payable)),
            ("Valid input total", format_money(self.valid_input_total)),
            ("Verification check passed", "YES" if self.passed else "NO"),
        ]


class SummaryRow(_Frozen):
    """Per-company total for one month, as written to the summary workbook."""

    company_name: str
    sum_of_cost: Decimal
    comment: str
    month: str
    year: int

    COLUMNS: ClassVar[tuple[str, ...]] = SalesRecord.COLUMNS

    def to_row(self) -> dict[str, str]:
        return {
            "COMPANY NAME": _text(self.company_name),
            "SUM of COST": format_money(self.sum_of_cost),
            "COMMENT": _text(self.comment),
            "MONTH": _text(self.month),
            "YEAR": str(self.year),
        }


class RawInvalidRow(_Frozen):
    """A raw report line that could not be aggregated."""

    row_number: int
    company_name: str = ""
    cost: str = ""
    issue: str

    COLUMNS: ClassVar[tuple[str, ...]] = ("ROW_NUMBER", "COMPANY NAME", "COST", "ISSUE")

    def to_row(self) -> dict[str, str]:
        return {
            "ROW_NUMBER": str(self.row_number),
            "COMPANY NAME": _text(self.company_name),
            "COST": _text(self.cost),
            "ISSUE": _text(self.issue),
        }


class SummaryVerification(_Frozen):
    """Raw-to-summary conservation check."""

    parsed_row_count: int
    non_empty: int
    invalid_count: int
    suppliers: int
    raw_total: Decimal
    summary_total: Decimal
    passed: bool

    def as_report(self) -> list[tuple[str, str]]:
        return [
            ("Parsed", str(self.parsed_row_count)),
            ("Non-empty", str(self.non_empty)),
            ("Invalid", str(self.invalid_count)),
            ("Suppliers", str(self.suppliers)),
            ("Raw total", format_money(self.raw_total)),
            ("Summary total", format_money(self.summary_total)),
            ("Verification check passed", "YES" if self.passed else "NO"),
        ]


class SalesSummary(_Frozen):
    """A raw POS report folded into one row per company."""

    title: str
    month: str
    year: int
    rows: list[SummaryRow] = Field(default_factory=list)
    invalid_rows: list[RawInvalidRow] = Field(default_factory=list)
    missing_expected: list[str] = Field(
        default_factory=list,
        description="Expected report columns that were absent. A warning, not an error.",
    )
    verification: SummaryVerification

    @property
    def period(self) -> str:
        return f"{self.month} {self.year}"


class BatchOutcome(_Frozen):
    """Everything one reconciliation pass produces."""

    result: ReconciliationResult
    ledger: list[LedgerEntry] = Field(default_factory=list)
    metrics: VerificationMetrics
    month: str = ""
    year: str = ""


class RegistryUpdate(_Frozen):
    """Registry rows after merging auxiliary uploads."""

    suppliers: list[SupplierRecord] = Field(default_factory=list)
    updated_count: int = 0
    added_count: int = 0


class SupplierProfile(_Frozen):
    """A supplier found by search, with its payment history."""

    supplier: SupplierRecord
    matched_by: str = Field(
        description="Which search tier matched: exact, prefix, substring, contained or fuzzy.",
    )
    history: list[LedgerEntry] = Field(default_factory=list)
    total_paid: Decimal = ZERO
    mode_totals: dict[str, Decimal] = Field(default_factory=dict)

    @property
    def entry_count(self) -> int:
        return len(self.history)


class LedgerOverview(_Frozen):
    """Headline numbers over the whole ledger."""

    period_count: int = 0
    total_paid: Decimal = ZERO
    mode_totals: dict[str, Decimal] = Field(default_factory=dict)
    period_totals: dict[str, Decimal] = Field(default_factory=dict)
    latest: list[LedgerEntry] = Field(default_factory=list)
