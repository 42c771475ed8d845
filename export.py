"""
export.py - Output file naming and writing.

Each pass produces a small set of downloadable files. File names carry
the period of the first processed row as a '-<mon>-<year>' suffix, e.g.
bank-payment-batch-dec-2025.csv. Exception and invalid files are only
produced when they have rows.

Files are described first (OutputFile) and written second, so the HTTP
layer can return the same files as CSV text without touching disk.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import NamedTuple, Sequence

from logging_config import get_logger
from models import (
    BankBatchEntry,
    BatchOutcome,
    ExceptionEntry,
    InvalidEntry,
    LedgerEntry,
    MomoBatchEntry,
    RawInvalidRow,
    SalesSummary,
    SummaryRow,
    SupplierRecord,
)
from normalize import clean, month_short
from reconcile import DEFAULT_ORGANIZATION
from sheets import to_csv_text, write_csv, write_xlsx

logger = get_logger(__name__)

REGISTRY_FILE_NAME = "banking-details.csv"


class OutputFile(NamedTuple):
    name: str
    columns: Sequence[str]
    rows: list[dict[str, str]]
    sheet_name: str = ""

    @property
    def is_workbook(self) -> bool:
        return self.name.lower().endswith(".xlsx")


def period_suffix(month: str, year: object) -> str:
    """'-dec-2025' for December 2025; parts that are unknown are left out."""
    parts = [part for part in (month_short(month), clean(year)) if part]
    return "".join(f"-{part}" for part in parts)


def batch_files(outcome: BatchOutcome) -> list[OutputFile]:
    """Files for one reconciliation pass, in download order."""
    result = outcome.result
    suffix = period_suffix(outcome.month, outcome.year)

    files = [
        OutputFile(
            f"bank-payment-batch{suffix}.csv",
            BankBatchEntry.COLUMNS,
            [entry.to_row() for entry in result.bank_batch],
        ),
        OutputFile(
            f"momo-payment-batch{suffix}.csv",
            MomoBatchEntry.COLUMNS,
            [entry.to_row() for entry in result.momo_batch],
        ),
        OutputFile(
            f"transactions{suffix}.csv",
            LedgerEntry.COLUMNS,
            [entry.to_row() for entry in outcome.ledger],
        ),
    ]
    if result.exceptions:
        files.append(
            OutputFile(
                f"exceptions{suffix}.csv",
                ExceptionEntry.COLUMNS,
                [entry.to_row() for entry in result.exceptions],
            )
        )
    if result.invalid:
        files.append(
            OutputFile(
                f"invalid-rows{suffix}.csv",
                InvalidEntry.COLUMNS,
                [entry.to_row() for entry in result.invalid],
            )
        )
    return files


def summary_sheet_name(summary: SalesSummary, organization: str = DEFAULT_ORGANIZATION) -> str:
    return f"{organization.upper()} SUMMARY {summary.month} {summary.year}"


def summary_files(summary: SalesSummary, organization: str = DEFAULT_ORGANIZATION) -> list[OutputFile]:
    suffix = period_suffix(summary.month, summary.year)
    files = [
        OutputFile(
            f"{organization.lower()}-sales-summary{suffix}.xlsx",
            SummaryRow.COLUMNS,
            [row.to_row() for row in summary.rows],
            sheet_name=summary_sheet_name(summary, organization),
        )
    ]
    if summary.invalid_rows:
        files.append(
            OutputFile(
                f"invalid-raw-rows{suffix}.csv",
                RawInvalidRow.COLUMNS,
                [row.to_row() for row in summary.invalid_rows],
            )
        )
    return files


def registry_file(suppliers: Sequence[SupplierRecord]) -> OutputFile:
    return OutputFile(REGISTRY_FILE_NAME, SupplierRecord.COLUMNS, [supplier.to_row() for supplier in suppliers])


def write_files(files: Sequence[OutputFile], output_dir: str | os.PathLike[str]) -> list[Path]:
    """Write every file into output_dir, returning the written paths."""
    directory = Path(output_dir)
    written: list[Path] = []
    for output in files:
        target = directory / output.name
        if output.is_workbook:
            write_xlsx(target, output.columns, output.rows, output.sheet_name or "Sheet1")
        else:
            write_csv(target, output.columns, output.rows)
        logger.info("export_written | path=%s | rows=%s", target, len(output.rows))
        written.append(target)
    return written


def files_as_text(files: Sequence[OutputFile]) -> dict[str, str]:
    """CSV text per file name. Workbooks are rendered as CSV too."""
    return {output.name: to_csv_text(output.columns, output.rows) for output in files}
