"""
summary.py - Raw POS sales report -> monthly per-company summary.

The raw report is a free-form sheet:
    row 1        title carrying the period, e.g. "MILCO SALES DECEMBER 2025"
    ...          anything (logos, blank rows, notes)
    header row   first row holding both COMPANY NAME and COST labels
    data rows    one line per product sold

Every non-empty data line is either aggregated into its company's total or
reported back as a raw invalid row. Nothing is skipped silently, and the
summary total is verified against the raw total before anything is
handed to the batch stage.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional, Sequence

from logging_config import get_logger
from models import RawInvalidRow, SalesSummary, StructuralError, SummaryRow, ZERO
from normalize import clean, is_empty_row, normalize_header, normalize_name, parse_amount, parse_period
from verify import verify_summary

logger = get_logger(__name__)

REQUIRED_HEADERS: tuple[str, ...] = ("COMPANY NAME", "COST")
EXPECTED_HEADERS: tuple[str, ...] = (
    "PRODUCTS",
    "QUANTITY",
    "SELLING",
    "COST",
    "PROFIT",
    "COMPANY NAME",
    "BANK ACCOUNT/MOBILE",
    "BANK NAME",
    "CONTACTS",
)


def find_header_row(grid: Sequence[Sequence[Any]]) -> Optional[tuple[int, dict[str, int]]]:
    """Locate the first row containing every required label.

    Returns (row index, normalized label -> column position), or None.
    """
    for index, row in enumerate(grid):
        columns: dict[str, int] = {}
        for position, cell in enumerate(row or ()):
            key = normalize_header(cell)
            if key:
                columns[key] = position
        if all(label in columns for label in REQUIRED_HEADERS):
            return index, columns
    return None


def pick_company_name(row: Sequence[Any], columns: dict[str, int]) -> str:
    """COMPANY NAME cell, or the first column whose label mentions both words."""
    position = columns.get("COMPANY NAME")
    if position is None:
        for label, candidate in columns.items():
            if "COMPANY" in label and "NAME" in label:
                position = candidate
                break
    if position is None or position >= len(row):
        return ""
    return clean(row[position])


def _title(grid: Sequence[Sequence[Any]]) -> str:
    if not grid:
        return ""
    for cell in grid[0] or ():
        if clean(cell):
            return clean(cell)
    return ""


def build_summary(grid: Sequence[Sequence[Any]]) -> SalesSummary:
    """Fold a raw report grid into one SummaryRow per company.

    Raises:
        StructuralError: no title, no period in the title, or no header row.
    """
    title = _title(grid)
    if not title:
        raise StructuralError("Missing title in A1 (or first row).")

    period = parse_period(title)
    if period is None:
        raise StructuralError("Could not extract MONTH and YEAR from the title.")
    month, year, _ = period

    header = find_header_row(grid)
    if header is None:
        raise StructuralError("Could not find header row with COMPANY NAME and COST.")
    header_index, columns = header
    missing_expected = [label for label in EXPECTED_HEADERS if label not in columns]
    if missing_expected:
        logger.warning("summary_template_warning | missing_expected=%s", missing_expected)

    cost_position = columns["COST"]
    data_rows = list(grid[header_index + 1 :])

    totals: dict[str, Decimal] = {}
    display_names: dict[str, str] = {}
    invalid_rows: list[RawInvalidRow] = []
    non_empty = 0
    raw_total = ZERO

    for offset, row in enumerate(data_rows):
        if is_empty_row(row):
            continue
        non_empty += 1

        company = pick_company_name(row, columns)
        raw_cost = clean(row[cost_position]) if cost_position < len(row) else ""
        cost = parse_amount(raw_cost)

        reasons: list[str] = []
        if not company:
            reasons.append("Missing COMPANY NAME")
        if cost is None:
            reasons.append("Invalid COST (not a number)")

        if reasons:
            invalid_rows.append(
                RawInvalidRow(
                    row_number=header_index + 2 + offset,
                    company_name=company,
                    cost=raw_cost,
                    issue="; ".join(reasons),
                )
            )
            continue

        key = normalize_name(company)
        display_names[key] = company
        totals[key] = totals.get(key, ZERO) + cost
        raw_total += cost

    rows = [
        SummaryRow(
            company_name=display_names[key],
            sum_of_cost=total,
            comment=title,
            month=month,
            year=year,
        )
        for key, total in totals.items()
    ]

    verification = verify_summary(
        rows,
        raw_total=raw_total,
        parsed_row_count=len(data_rows),
        non_empty=non_empty,
        invalid_count=len(invalid_rows),
    )

    logger.info(
        "summary_complete | title=%r | period=%s %s | suppliers=%s | invalid=%s | verified=%s",
        title,
        month,
        year,
        len(rows),
        len(invalid_rows),
        verification.passed,
    )
    return SalesSummary(
        title=title,
        month=month,
        year=year,
        rows=rows,
        invalid_rows=invalid_rows,
        missing_expected=missing_expected,
        verification=verification,
    )
