"""
sheets.py - Spreadsheet I/O boundary.

Everything the pipeline reads or writes passes through here:
    read_records(path) -> Table(columns, rows)   labelled rows (CSV/XLSX)
    read_grid(path)    -> list[list[str]]        raw cells, no header (report layouts)
    write_csv / write_xlsx / to_csv_text         fixed column order out

All cells are read as text; numeric interpretation is the normalizer's
job. Only the first worksheet of a workbook is used.
"""

from __future__ import annotations

import io
import os
import re
from pathlib import Path
from typing import Any, Iterable, Mapping, NamedTuple, Sequence

import pandas as pd

from logging_config import get_logger
from normalize import clean

logger = get_logger(__name__)

EXCEL_SUFFIXES = {".xlsx", ".xlsm", ".xls"}
MAX_SHEET_NAME = 31
INVALID_SHEET_CHARS = re.compile(r"[\[\]:*?/\\]")


class Table(NamedTuple):
    columns: list[str]
    rows: list[dict[str, str]]


def _resolve(path: str | os.PathLike[str] | None) -> Path:
    if path is None:
        raise ValueError("path cannot be None")
    text = str(path).strip()
    if not text:
        raise ValueError("path cannot be empty")
    resolved = Path(text)
    if not resolved.exists():
        raise FileNotFoundError(f"File not found: {resolved}")
    return resolved


def _is_excel(path: Path) -> bool:
    return path.suffix.lower() in EXCEL_SUFFIXES


def _read_csv_frame(path: Path) -> pd.DataFrame:
    options: dict[str, Any] = {"dtype": str, "keep_default_na": False}
    try:
        return pd.read_csv(path, encoding="utf-8-sig", **options)
    except UnicodeDecodeError:
        logger.warning(
            "csv_encoding_warning | path=%s | reason='utf-8 decode failed' | fallback=latin-1",
            path,
        )
        return pd.read_csv(path, encoding="latin-1", **options)
    except pd.errors.EmptyDataError:
        return pd.DataFrame()


def read_records(path: str | os.PathLike[str]) -> Table:
    """Read a labelled sheet into trimmed text rows keyed by trimmed header."""
    resolved = _resolve(path)
    try:
        if _is_excel(resolved):
            frame = pd.read_excel(resolved, sheet_name=0, dtype=str, keep_default_na=False)
        else:
            frame = _read_csv_frame(resolved)
    except (FileNotFoundError, ValueError):
        raise
    except Exception as exc:
        raise ValueError(f"Failed to read '{resolved}': {exc}") from exc

    columns = [clean(column) for column in frame.columns]
    rows = [
        {column: clean(value) for column, value in zip(columns, values)}
        for values in frame.itertuples(index=False, name=None)
    ]
    logger.info("sheet_loaded | path=%s | rows=%s | columns=%s", resolved, len(rows), columns)
    return Table(columns=columns, rows=rows)


def read_optional_records(path: str | os.PathLike[str]) -> Table:
    """Like read_records, but a missing file is an empty table."""
    if not Path(str(path)).exists():
        logger.info("sheet_missing | path=%s | fallback=empty", path)
        return Table(columns=[], rows=[])
    return read_records(path)


def _read_csv_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError:
        logger.warning(
            "csv_encoding_warning | path=%s | reason='utf-8 decode failed' | fallback=latin-1",
            path,
        )
        return path.read_text(encoding="latin-1")


def _read_csv_grid(path: Path) -> pd.DataFrame:
    text = _read_csv_text(path)
    lines = text.splitlines()
    if not lines:
        return pd.DataFrame()
    # Report layouts are ragged (title row, blank rows); size the frame to the widest line.
    width = max(line.count(",") for line in lines) + 1
    return pd.read_csv(
        io.StringIO(text),
        header=None,
        names=range(width),
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=False,
    )


def read_grid(path: str | os.PathLike[str]) -> list[list[str]]:
    """Read the first sheet as a grid of trimmed cell text, header included."""
    resolved = _resolve(path)
    try:
        if _is_excel(resolved):
            frame = pd.read_excel(resolved, sheet_name=0, header=None, dtype=str, keep_default_na=False)
        else:
            frame = _read_csv_grid(resolved)
    except (FileNotFoundError, ValueError):
        raise
    except Exception as exc:
        raise ValueError(f"Failed to read '{resolved}': {exc}") from exc

    grid = [[clean(value) for value in values] for values in frame.itertuples(index=False, name=None)]
    logger.info("grid_loaded | path=%s | rows=%s", resolved, len(grid))
    return grid


def _frame(columns: Sequence[str], rows: Iterable[Mapping[str, str]]) -> pd.DataFrame:
    return pd.DataFrame([{column: row.get(column, "") for column in columns} for row in rows], columns=list(columns))


def to_csv_text(columns: Sequence[str], rows: Iterable[Mapping[str, str]]) -> str:
    return _frame(columns, rows).to_csv(index=False)


def write_csv(path: str | os.PathLike[str], columns: Sequence[str], rows: Iterable[Mapping[str, str]]) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    _frame(columns, rows).to_csv(target, index=False, encoding="utf-8")
    return target


def safe_sheet_name(name: str) -> str:
    return INVALID_SHEET_CHARS.sub(" ", name).strip()[:MAX_SHEET_NAME] or "Sheet1"


def write_xlsx(
    path: str | os.PathLike[str],
    columns: Sequence[str],
    rows: Iterable[Mapping[str, str]],
    sheet_name: str,
) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    _frame(columns, rows).to_excel(target, index=False, sheet_name=safe_sheet_name(sheet_name), engine="openpyxl")
    return target
