"""
main.py - CLI orchestration for the supplier payment batch generator.

This module is orchestration-only:
1. summary   raw POS report -> per-company summary workbook
2. batch     summary -> normalize -> reconcile -> ledger merge -> verify
3. run       summary and batch in one go
4. update-registry / search / overview   registry and ledger housekeeping

The registry and ledger files are re-read on every invocation.
"""

from __future__ import annotations

import argparse
import json
import logging
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from classify import DEFAULT_THRESHOLD
from config import Settings, load_settings
from export import batch_files, registry_file, summary_files, write_files
from ledger import ledger_overview, merge_ledger
from logging_config import get_logger, log_stage, setup_logging
from models import BatchOutcome, LedgerEntry, RegistryUpdate, SalesRecord, SalesSummary, SupplierRecord
from normalize import normalize_ledger_rows, normalize_registry_rows, normalize_sales_rows
from reconcile import DEFAULT_ORGANIZATION, reconcile_records, require_sales_columns
from registry import (
    build_registry_index,
    parse_bank_details_report,
    parse_momo_update_sheet,
    search_supplier,
    update_registry,
)
from report import (
    batch_report_json,
    format_batch_report,
    format_ledger_overview,
    format_registry_report,
    format_summary_report,
    format_supplier_profile,
    ledger_overview_json,
    registry_report_json,
    summary_report_json,
    supplier_profile_json,
)
from sheets import Table, read_grid, read_optional_records, read_records
from summary import build_summary
from verify import verify_reconciliation

logger = get_logger("supplier-payouts")

VERIFICATION_FAILED_EXIT = 2


def load_registry(path: str | Path) -> list[SupplierRecord]:
    """Load the supplier registry. A missing registry is an error."""
    table = read_records(path)
    return normalize_registry_rows(table.rows)


def load_ledger_rows(path: str | Path) -> list[dict[str, str]]:
    """Raw rows of the existing ledger. A missing ledger is an empty ledger."""
    return read_optional_records(path).rows


def load_ledger(path: str | Path) -> list[LedgerEntry]:
    return normalize_ledger_rows(load_ledger_rows(path))


def run_summary_pass(grid: list[list[str]]) -> SalesSummary:
    with log_stage(logger, "1/1", "summary"):
        summary = build_summary(grid)
    return summary


def run_batch_pass(
    sales: Table,
    registry_rows: Iterable[Mapping[str, Any]],
    ledger_rows: Iterable[Mapping[str, Any]] = (),
    threshold: Decimal = DEFAULT_THRESHOLD,
    organization: str = DEFAULT_ORGANIZATION,
) -> BatchOutcome:
    """Run one full reconciliation pass over an in-memory sales table."""
    with log_stage(logger, "1/5", "normalize"):
        require_sales_columns(sales.columns)
        normalized = normalize_sales_rows(sales.rows)

    with log_stage(logger, "2/5", "registry"):
        index = build_registry_index(normalize_registry_rows(registry_rows))

    with log_stage(logger, "3/5", "reconcile"):
        result = reconcile_records(normalized.records, index, threshold, organization)

    with log_stage(logger, "4/5", "ledger"):
        ledger = merge_ledger(ledger_rows, result.ledger_additions)

    with log_stage(logger, "5/5", "verify"):
        metrics = verify_reconciliation(
            result,
            non_empty=normalized.non_empty,
            valid_input_total=normalized.valid_total,
            parsed_row_count=normalized.parsed_row_count,
            empty_row_count=normalized.empty_row_count,
        )

    month, year = result.period_of_first_entry()
    return BatchOutcome(result=result, ledger=ledger, metrics=metrics, month=month, year=year)


def summary_table(summary: SalesSummary) -> Table:
    """The summary as the batch stage would read it back from the workbook."""
    return Table(columns=list(SalesRecord.COLUMNS), rows=[row.to_row() for row in summary.rows])


def run_registry_update(
    suppliers: Iterable[SupplierRecord],
    raw_grid: Optional[list[list[str]]] = None,
    momo_grid: Optional[list[list[str]]] = None,
) -> RegistryUpdate:
    if raw_grid is None and momo_grid is None:
        raise ValueError("Provide a raw sales report, a MOMO update sheet, or both.")
    bank_updates = parse_bank_details_report(raw_grid) if raw_grid is not None else {}
    momo_updates = parse_momo_update_sheet(momo_grid) if momo_grid is not None else {}
    return update_registry(suppliers, bank_updates, momo_updates)


def _settings(args: argparse.Namespace) -> Settings:
    """Environment settings with command line overrides applied."""
    settings = load_settings()
    overrides: dict[str, Any] = {}
    for option, field in (
        ("registry", "registry_file"),
        ("ledger", "ledger_file"),
        ("out", "output_dir"),
        ("threshold", "threshold"),
        ("org", "organization"),
    ):
        value = getattr(args, option, None)
        if value is not None:
            overrides[field] = value
    if not overrides:
        return settings
    return Settings(**{**settings.model_dump(), **overrides})


def _emit(text: str, payload: dict[str, Any], as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, indent=2))
    else:
        print(text)


def _written_paths(paths: list[Path], as_json: bool) -> None:
    if as_json:
        return
    for path in paths:
        print(f"  wrote {path}")


def _batch(settings: Settings, sales: Table, as_json: bool) -> BatchOutcome:
    outcome = run_batch_pass(
        sales,
        read_records(settings.registry_file).rows,
        load_ledger_rows(settings.ledger_file),
        threshold=settings.threshold,
        organization=settings.organization,
    )
    paths = write_files(batch_files(outcome), settings.output_dir)
    _emit(format_batch_report(outcome), batch_report_json(outcome), as_json)
    _written_paths(paths, as_json)
    return outcome


def _summary(settings: Settings, report_path: str, as_json: bool) -> SalesSummary:
    summary = run_summary_pass(read_grid(report_path))
    paths = write_files(summary_files(summary, settings.organization), settings.output_dir)
    _emit(format_summary_report(summary), summary_report_json(summary), as_json)
    _written_paths(paths, as_json)
    return summary


def cmd_summary(args: argparse.Namespace) -> int:
    settings = _settings(args)
    summary = _summary(settings, args.report, args.json)
    return 0 if summary.verification.passed else VERIFICATION_FAILED_EXIT


def cmd_batch(args: argparse.Namespace) -> int:
    settings = _settings(args)
    outcome = _batch(settings, read_records(args.sales), args.json)
    return 0 if outcome.metrics.passed else VERIFICATION_FAILED_EXIT


def cmd_run(args: argparse.Namespace) -> int:
    settings = _settings(args)
    summary = _summary(settings, args.report, args.json)
    outcome = _batch(settings, summary_table(summary), args.json)
    passed = summary.verification.passed and outcome.metrics.passed
    return 0 if passed else VERIFICATION_FAILED_EXIT


def cmd_update_registry(args: argparse.Namespace) -> int:
    settings = _settings(args)
    suppliers = load_registry(settings.registry_file)
    update = run_registry_update(
        suppliers,
        raw_grid=read_grid(args.raw) if args.raw else None,
        momo_grid=read_grid(args.momo) if args.momo else None,
    )
    paths = write_files([registry_file(update.suppliers)], settings.output_dir)
    _emit(format_registry_report(update), registry_report_json(update), args.json)
    _written_paths(paths, args.json)
    return 0


def cmd_search(args: argparse.Namespace) -> int:
    settings = _settings(args)
    profile = search_supplier(args.query, load_registry(settings.registry_file), load_ledger(settings.ledger_file))
    _emit(format_supplier_profile(profile, args.query), supplier_profile_json(profile), args.json)
    return 0 if profile is not None else 1


def cmd_overview(args: argparse.Namespace) -> int:
    settings = _settings(args)
    overview = ledger_overview(load_ledger(settings.ledger_file), latest=args.latest)
    _emit(format_ledger_overview(overview), ledger_overview_json(overview), args.json)
    return 0


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--registry", type=str, help="Supplier registry CSV/XLSX (default: $REGISTRY_FILE)")
    common.add_argument("--ledger", type=str, help="Existing ledger CSV/XLSX (default: $LEDGER_FILE)")
    common.add_argument("--out", "-o", type=str, help="Output directory (default: $OUTPUT_DIR)")
    common.add_argument("--org", type=str, help="Organization name used in references and file names")
    common.add_argument("--json", action="store_true", help="Output results as JSON instead of formatted text")
    common.add_argument("--verbose", "-v", action="store_true", help="Enable verbose (DEBUG-level) logging")
    common.add_argument(
        "--log-json",
        action="store_true",
        help="Output logs as JSON lines (for production/log aggregation)",
    )

    parser = argparse.ArgumentParser(
        prog="supplier-payouts",
        description=(
            "Supplier Payment Batch Generator\n"
            "Reconciles monthly sales against the supplier registry and "
            "produces BANK and MOMO payment batches."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s summary report.xlsx\n"
            "  %(prog)s batch summary.xlsx --threshold 500\n"
            "  %(prog)s run report.xlsx --out output/\n"
            "  %(prog)s update-registry --raw report.xlsx --momo momo-form.csv\n"
            "  %(prog)s search 'acme'\n"
        ),
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    summary = subparsers.add_parser("summary", parents=[common], help="Build the monthly summary from a raw report")
    summary.add_argument("report", help="Raw POS sales report (.xlsx or .csv)")
    summary.set_defaults(handler=cmd_summary)

    batch = subparsers.add_parser("batch", parents=[common], help="Generate payment batches from a summary")
    batch.add_argument("sales", help="Summary sheet with COMPANY NAME, SUM of COST, COMMENT, MONTH, YEAR")
    batch.add_argument("--threshold", "-t", type=str, help="BANK/MOMO threshold (default: $PAYMENT_THRESHOLD or 400)")
    batch.set_defaults(handler=cmd_batch)

    run = subparsers.add_parser("run", parents=[common], help="Summary and batches from a raw report in one pass")
    run.add_argument("report", help="Raw POS sales report (.xlsx or .csv)")
    run.add_argument("--threshold", "-t", type=str, help="BANK/MOMO threshold (default: $PAYMENT_THRESHOLD or 400)")
    run.set_defaults(handler=cmd_run)

    update = subparsers.add_parser(
        "update-registry",
        parents=[common],
        help="Fill missing registry details from a raw report and/or MOMO update sheet",
    )
    update.add_argument("--raw", type=str, help="Raw POS report carrying BANK NAME and BANK ACCOUNT/MOBILE")
    update.add_argument("--momo", type=str, help="MOMO details update sheet")
    update.set_defaults(handler=cmd_update_registry)

    search = subparsers.add_parser("search", parents=[common], help="Find a supplier and its payment history")
    search.add_argument("query", help="Full or partial company name")
    search.set_defaults(handler=cmd_search)

    overview = subparsers.add_parser("overview", parents=[common], help="Ledger totals per mode and period")
    overview.add_argument("--latest", type=int, default=30, help="Number of latest payments to list")
    overview.set_defaults(handler=cmd_overview)

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """CLI entry point for the Supplier Payment Batch Generator."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        json_format=args.log_json,
    )

    if args.command == "update-registry" and not (args.raw or args.momo):
        parser.error("Provide --raw PATH, --momo PATH, or both")

    try:
        logger.info("cli_mode | mode=%s", args.command)
        code = args.handler(args)
    except FileNotFoundError as exc:
        logger.error("cli_error | type=FileNotFoundError | error=%s", exc)
        print(f"\nError: {exc}")
        raise SystemExit(1) from exc
    except ValueError as exc:
        logger.error("cli_error | type=%s | error=%s", type(exc).__name__, exc)
        print(f"\nError: {exc}")
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        print("\nInterrupted.")
        raise SystemExit(130)
    except Exception as exc:
        logger.error(
            "cli_error | type=%s | error=%s",
            type(exc).__name__,
            exc,
            exc_info=True,
        )
        print(f"\nUnexpected error: {exc}")
        print("Run with --verbose for full traceback.")
        raise SystemExit(1) from exc

    if code == VERIFICATION_FAILED_EXIT and not args.json:
        print("\nVerification check FAILED. Files were written; review them before paying.")
    if code:
        raise SystemExit(code)


if __name__ == "__main__":
    main()
