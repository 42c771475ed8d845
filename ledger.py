"""
ledger.py - Historical payment ledger.

The ledger is an append-only list of LedgerEntry rows ordered by
(year, calendar month). Merging a pass concatenates the new BANK/MOMO
entries onto the upgraded existing ledger and stable-sorts the result, so
entries of the same month keep their insertion order and re-sorting a
sorted ledger changes nothing.

Running the same pass twice appends the same entries twice. The operator
replaces the ledger file once per batch; duplicates are not detected here.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable, Mapping

from logging_config import get_logger
from models import LedgerEntry, LedgerOverview, ZERO
from normalize import month_index, normalize_ledger_rows

logger = get_logger(__name__)

UNKNOWN_MONTH_RANK = 99
LATEST_ENTRIES = 30


def ledger_sort_key(entry: LedgerEntry) -> tuple[int, int]:
    """(year, month rank). Unknown month sorts last in its year, unknown year first."""
    rank = month_index(entry.month)
    return (entry.year or 0, UNKNOWN_MONTH_RANK if rank == -1 else rank)


def sort_ledger(entries: Iterable[LedgerEntry]) -> list[LedgerEntry]:
    return sorted(entries, key=ledger_sort_key)


def merge_ledger(
    existing_rows: Iterable[Mapping[str, Any]],
    additions: Iterable[LedgerEntry],
) -> list[LedgerEntry]:
    """Upgrade the existing ledger rows, append this pass's entries, sort."""
    existing = normalize_ledger_rows(existing_rows)
    additions = list(additions)
    merged = sort_ledger([*existing, *additions])
    logger.info(
        "ledger_merge_complete | existing=%s | added=%s | total=%s",
        len(existing),
        len(additions),
        len(merged),
    )
    return merged


def ledger_overview(entries: Iterable[LedgerEntry], latest: int = LATEST_ENTRIES) -> LedgerOverview:
    """Headline totals over the ledger: per mode, per period, latest entries first."""
    entries = list(entries)
    mode_totals: dict[str, Decimal] = {}
    period_totals: dict[str, Decimal] = {}

    for entry in entries:
        mode = entry.mode.upper() or "UNKNOWN"
        mode_totals[mode] = mode_totals.get(mode, ZERO) + entry.amount
        if entry.period:
            period_totals[entry.period] = period_totals.get(entry.period, ZERO) + entry.amount

    recent = list(reversed(entries[-latest:])) if latest > 0 else []
    return LedgerOverview(
        period_count=len(period_totals),
        total_paid=sum((entry.amount for entry in entries), ZERO),
        mode_totals=mode_totals,
        period_totals=period_totals,
        latest=recent,
    )
