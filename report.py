"""
report.py - Human-readable and JSON-ready pass reports.

This module converts pass results into:
- terminal-friendly text blocks for CLI usage
- JSON-compatible dictionaries for the API and --json output
"""

from __future__ import annotations

from typing import Any, Sequence

from models import (
    BatchOutcome,
    LedgerOverview,
    RegistryUpdate,
    SalesSummary,
    SupplierProfile,
    format_money,
)

OUTPUT_WIDTH = 56
SEPARATOR = "=" * OUTPUT_WIDTH
MAX_ISSUES_DISPLAY = 8
MAX_HISTORY_DISPLAY = 12


def _block(header: str, body: list[str]) -> str:
    return "\n".join(["", SEPARATOR, f"  {header}", SEPARATOR, "", *body, "", SEPARATOR, ""])


def _pairs(pairs: Sequence[tuple[str, str]]) -> list[str]:
    width = max((len(label) for label, _ in pairs), default=0)
    return [f"  {label:<{width}}  {value}" for label, value in pairs]


def _bullets(items: Sequence[str], limit: int = MAX_ISSUES_DISPLAY) -> list[str]:
    if not items:
        return ["    - (none)"]
    if len(items) <= limit:
        return [f"    - {item}" for item in items]
    shown = [f"    - {item}" for item in items[: limit - 1]]
    shown.append(f"    - ... and {len(items) - (limit - 1)} more")
    return shown


def format_batch_report(outcome: BatchOutcome) -> str:
    """Verification report for one reconciliation pass."""
    metrics = outcome.metrics
    status = "Verification Passed" if metrics.passed else "VERIFICATION FAILED"
    period = " ".join(part for part in (outcome.month, outcome.year) if part) or "unknown period"

    lines = _pairs(metrics.as_report())
    if outcome.result.exceptions:
        lines.append("")
        lines.append("  Exceptions:")
        lines.extend(
            _bullets([f"{entry.company_name}: {entry.issue}" for entry in outcome.result.exceptions])
        )
    if outcome.result.invalid:
        lines.append("")
        lines.append("  Invalid rows:")
        lines.extend(_bullets([f"row {entry.row_number}: {entry.issue}" for entry in outcome.result.invalid]))
    if not metrics.passed:
        lines.append("")
        lines.append("  WARNING: counts or totals do not reconcile. Review before paying.")
    return _block(f"{status} - {period}", lines)


def format_summary_report(summary: SalesSummary) -> str:
    """Verification report for one raw report -> summary pass."""
    status = "Summary Verified" if summary.verification.passed else "SUMMARY TOTALS DO NOT MATCH"
    lines = _pairs(summary.verification.as_report())
    if summary.missing_expected:
        lines.append("")
        lines.append(f"  Missing expected columns: {', '.join(summary.missing_expected)}")
    if summary.invalid_rows:
        lines.append("")
        lines.append("  Invalid raw rows:")
        lines.extend(_bullets([f"row {row.row_number}: {row.issue}" for row in summary.invalid_rows]))
    return _block(f"{status} - {summary.period}", lines)


def format_registry_report(update: RegistryUpdate) -> str:
    pairs = [
        ("Suppliers", str(len(update.suppliers))),
        ("Updated", str(update.updated_count)),
        ("Added", str(update.added_count)),
        ("Still missing details", str(sum(1 for s in update.suppliers if s.has_missing_details))),
    ]
    return _block("Registry Updated", _pairs(pairs))


def format_supplier_profile(profile: SupplierProfile | None, query: str = "") -> str:
    if profile is None:
        return _block("NO SUPPLIER FOUND", [f"  Query: {query}"])

    supplier = profile.supplier
    pairs = [
        ("Company", supplier.company_name),
        ("Matched by", profile.matched_by),
        ("Payment mode", supplier.payment_mode_label),
        ("Bank", " | ".join(filter(None, (supplier.bank.bank_name, supplier.bank.account, supplier.bank.branch))) or "-"),
        ("MOMO", " | ".join(filter(None, (supplier.momo.provider, supplier.momo.number, supplier.momo.holder_names))) or "-"),
        ("Payments", str(profile.entry_count)),
        ("Total paid", format_money(profile.total_paid)),
    ]
    pairs.extend((f"  {mode}", format_money(total)) for mode, total in profile.mode_totals.items())

    lines = _pairs(pairs)
    lines.append("")
    lines.append("  History:")
    lines.extend(
        _bullets(
            [f"{entry.period or '-'}  {entry.mode or '-'}  {format_money(entry.amount)}" for entry in profile.history],
            limit=MAX_HISTORY_DISPLAY,
        )
    )
    return _block(f"Supplier - {supplier.company_name}", lines)


def format_ledger_overview(overview: LedgerOverview) -> str:
    pairs = [
        ("Periods", str(overview.period_count)),
        ("Total paid", format_money(overview.total_paid)),
    ]
    pairs.extend((f"{mode} total", format_money(total)) for mode, total in overview.mode_totals.items())
    lines = _pairs(pairs)
    lines.append("")
    lines.append("  Per period:")
    lines.extend(_bullets([f"{period}: {format_money(total)}" for period, total in overview.period_totals.items()], limit=24))
    lines.append("")
    lines.append("  Latest payments:")
    lines.extend(
        _bullets(
            [f"{entry.company_name}  {entry.mode or '-'}  {format_money(entry.amount)}" for entry in overview.latest],
            limit=MAX_HISTORY_DISPLAY,
        )
    )
    return _block("Ledger Overview", lines)


def batch_report_json(outcome: BatchOutcome, files: dict[str, str] | None = None) -> dict[str, Any]:
    """Structured payload for one reconciliation pass."""
    result = outcome.result
    payload: dict[str, Any] = {
        "status": "passed" if outcome.metrics.passed else "failed",
        "period": {"month": outcome.month, "year": outcome.year},
        "metrics": dict(outcome.metrics.as_report()),
        "bank_batch": [entry.to_row() for entry in result.bank_batch],
        "momo_batch": [entry.to_row() for entry in result.momo_batch],
        "exceptions": [entry.to_row() for entry in result.exceptions],
        "invalid": [entry.to_row() for entry in result.invalid],
        "ledger_added": [entry.to_row() for entry in result.ledger_additions],
        "ledger_size": len(outcome.ledger),
    }
    if files is not None:
        payload["files"] = files
    return payload


def summary_report_json(summary: SalesSummary, files: dict[str, str] | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "status": "passed" if summary.verification.passed else "failed",
        "title": summary.title,
        "period": {"month": summary.month, "year": str(summary.year)},
        "verification": dict(summary.verification.as_report()),
        "missing_expected": list(summary.missing_expected),
        "rows": [row.to_row() for row in summary.rows],
        "invalid_rows": [row.to_row() for row in summary.invalid_rows],
    }
    if files is not None:
        payload["files"] = files
    return payload


def registry_report_json(update: RegistryUpdate, files: dict[str, str] | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "suppliers": [supplier.to_row() for supplier in update.suppliers],
        "updated_count": update.updated_count,
        "added_count": update.added_count,
    }
    if files is not None:
        payload["files"] = files
    return payload


def supplier_profile_json(profile: SupplierProfile | None) -> dict[str, Any]:
    if profile is None:
        return {"found": False}
    return {
        "found": True,
        "matched_by": profile.matched_by,
        "supplier": profile.supplier.to_row(),
        "payment_mode": profile.supplier.payment_mode_label,
        "has_missing_details": profile.supplier.has_missing_details,
        "entry_count": profile.entry_count,
        "total_paid": format_money(profile.total_paid),
        "mode_totals": {mode: format_money(total) for mode, total in profile.mode_totals.items()},
        "history": [entry.to_row() for entry in profile.history],
    }


def ledger_overview_json(overview: LedgerOverview) -> dict[str, Any]:
    return {
        "period_count": overview.period_count,
        "total_paid": format_money(overview.total_paid),
        "mode_totals": {mode: format_money(total) for mode, total in overview.mode_totals.items()},
        "period_totals": {period: format_money(total) for period, total in overview.period_totals.items()},
        "latest": [entry.to_row() for entry in overview.latest],
    }
