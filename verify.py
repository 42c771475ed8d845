"""
verify.py - Conservation checks for both pipeline stages.

Batch stage:
    every non-empty input row lands in exactly one bucket
        non_empty == BANK + MOMO + exceptions + invalid
    and the amounts routed to BANK + MOMO + exceptions add up to the
    total of the valid input rows.

Summary stage:
    the total of all validated raw report lines equals the total of the
    per-company summary amounts.

Totals are compared on the exact parsed amounts on both sides, within
TOTALS_TOLERANCE. A mismatch is logged and flagged, never corrected.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional

from logging_config import get_logger
from models import (
    ReconciliationResult,
    SummaryRow,
    SummaryVerification,
    TOTALS_TOLERANCE,
    VerificationMetrics,
    ZERO,
    format_money,
)

logger = get_logger(__name__)


def _total(amounts: Iterable[Decimal]) -> Decimal:
    return sum(amounts, ZERO)


def within_tolerance(left: Decimal, right: Decimal) -> bool:
    return abs(left - right) <= TOTALS_TOLERANCE


def verify_reconciliation(
    result: ReconciliationResult,
    non_empty: int,
    valid_input_total: Decimal,
    parsed_row_count: Optional[int] = None,
    empty_row_count: int = 0,
) -> VerificationMetrics:
    """Recompute bucket counts and totals for one reconciliation pass."""
    bank_count = len(result.bank_batch)
    momo_count = len(result.momo_batch)
    exception_count = len(result.exceptions)
    invalid_count = len(result.invalid)

    bank_total = _total(entry.amount for entry in result.bank_batch)
    momo_total = _total(entry.amount for entry in result.momo_batch)
    exception_total = _total(entry.amount for entry in result.exceptions)
    # Invalid rows carry no trusted amount.
    total_payable = bank_total + momo_total + exception_total

    counts_match = non_empty == bank_count + momo_count + exception_count + invalid_count
    totals_match = within_tolerance(total_payable, valid_input_total)

    metrics = VerificationMetrics(
        parsed_row_count=parsed_row_count if parsed_row_count is not None else non_empty + empty_row_count,
        empty_row_count=empty_row_count,
        non_empty=non_empty,
        bank_count=bank_count,
        momo_count=momo_count,
        exception_count=exception_count,
        invalid_count=invalid_count,
        ledger_added=len(result.ledger_additions),
        bank_total=bank_total,
        momo_total=momo_total,
        exception_total=exception_total,
        total_payable=total_payable,
        valid_input_total=valid_input_total,
        counts_match=counts_match,
        totals_match=totals_match,
    )

    if not counts_match:
        logger.warning(
            "verification_failed | check=counts | non_empty=%s | bank=%s | momo=%s | exceptions=%s | invalid=%s",
            non_empty,
            bank_count,
            momo_count,
            exception_count,
            invalid_count,
        )
    if not totals_match:
        logger.warning(
            "verification_failed | check=totals | total_payable=%s | valid_input_total=%s",
            format_money(total_payable),
            format_money(valid_input_total),
        )
    logger.info(
        "verification_complete | passed=%s | bank=%s | momo=%s | exceptions=%s | invalid=%s | total_payable=%s",
        metrics.passed,
        bank_count,
        momo_count,
        exception_count,
        invalid_count,
        format_money(total_payable),
    )
    return metrics


def verify_summary(
    rows: Iterable[SummaryRow],
    raw_total: Decimal,
    parsed_row_count: int,
    non_empty: int,
    invalid_count: int,
) -> SummaryVerification:
    """Check that the per-company summary conserves the raw report total."""
    rows = list(rows)
    summary_total = _total(row.sum_of_cost for row in rows)
    passed = within_tolerance(raw_total, summary_total)

    if not passed:
        logger.warning(
            "summary_verification_failed | raw_total=%s | summary_total=%s",
            format_money(raw_total),
            format_money(summary_total),
        )
    return SummaryVerification(
        parsed_row_count=parsed_row_count,
        non_empty=non_empty,
        invalid_count=invalid_count,
        suppliers=len(rows),
        raw_total=raw_total,
        summary_total=summary_total,
        passed=passed,
    )
