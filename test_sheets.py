"""
test_sheets.py - Sheet reader checks

Focus:
1) ragged report CSVs keep every line, blank lines included
2) a non-utf-8 report falls back to latin-1 and says so in the log

Usage: python -m pytest test_sheets.py
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import pytest

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from sheets import read_grid


def test_ragged_report_keeps_title_and_blank_lines(tmp_path: Path):
    report = tmp_path / "report.csv"
    report.write_text(
        'MILCO SALES MAY 2025\n\nPRODUCTS,COST,COMPANY NAME\nMilk,"1,200",Acme Traders\n',
        encoding="utf-8",
    )

    grid = read_grid(report)

    assert len(grid) == 4
    assert grid[0][0] == "MILCO SALES MAY 2025"
    assert all(cell == "" for cell in grid[0][1:])
    assert all(cell == "" for cell in grid[1])
    assert grid[2][:3] == ["PRODUCTS", "COST", "COMPANY NAME"]
    assert grid[3][:3] == ["Milk", "1,200", "Acme Traders"]


def test_empty_report_is_an_empty_grid(tmp_path: Path):
    report = tmp_path / "empty.csv"
    report.write_text("", encoding="utf-8")
    assert read_grid(report) == []


def test_latin1_report_logs_encoding_fallback(tmp_path: Path, caplog: pytest.LogCaptureFixture):
    report = tmp_path / "report.csv"
    report.write_bytes("SALES MAY 2025\nCOMPANY NAME,COST\nCaf\xe9 Maseru,10\n".encode("latin-1"))

    with caplog.at_level(logging.WARNING, logger="sheets"):
        grid = read_grid(report)

    assert grid[2][:2] == ["Café Maseru", "10"]
    assert any("csv_encoding_warning" in record.getMessage() for record in caplog.records)


if __name__ == "__main__":
    raise SystemExit(pytest.main([__file__]))
