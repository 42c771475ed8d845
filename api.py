"""
api.py - FastAPI HTTP layer for the supplier payment batch generator.

Endpoints:
  - GET  /health
  - POST /summary            raw report upload -> summary rows + verification
  - POST /process            summary upload -> batches, ledger, verification
  - POST /registry/update    raw report and/or MOMO sheet -> updated registry
  - GET  /suppliers/search   supplier details and payment history
  - GET  /ledger/overview    ledger totals

Uploads are spooled to a temporary directory and read with the same
loaders as the CLI. Nothing is written to the output directory; each
response carries the generated files as CSV text for download.

Only one pass runs at a time. A request arriving while another pass is in
flight is answered with 409 rather than queued.
"""

from __future__ import annotations

import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

import uvicorn
from fastapi import FastAPI, File, Form, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from config import Settings, load_settings
from export import batch_files, files_as_text, registry_file, summary_files
from ledger import ledger_overview
from logging_config import get_logger, setup_logging
from main import (
    load_ledger,
    load_ledger_rows,
    load_registry,
    run_batch_pass,
    run_registry_update,
    run_summary_pass,
)
from registry import search_supplier
from report import (
    batch_report_json,
    ledger_overview_json,
    registry_report_json,
    summary_report_json,
    supplier_profile_json,
)
from sheets import read_grid, read_records

logger = get_logger("payouts-api")

app = FastAPI(
    title="Supplier Payment Batch API",
    version="1.0.0",
)

# Allows the local operator page to call the API from file:// or another port.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

_pass_lock = threading.Lock()


@contextmanager
def _exclusive_pass(name: str) -> Iterator[None]:
    """Hold the pass lock, or answer 409 when another pass is running."""
    if not _pass_lock.acquire(blocking=False):
        logger.warning("api_pass_rejected | pass=%s | reason='another pass in flight'", name)
        raise HTTPException(status_code=409, detail="Another pass is already running. Try again shortly.")
    try:
        yield
    finally:
        _pass_lock.release()


async def _save_upload(upload: UploadFile, destination: Path) -> None:
    """Save an UploadFile to disk."""
    try:
        with destination.open("wb") as out_file:
            while True:
                chunk = await upload.read(1024 * 1024)
                if not chunk:
                    break
                out_file.write(chunk)
    finally:
        await upload.close()


async def _spool(upload: UploadFile, directory: Path, fallback: str) -> Path:
    if not upload.filename:
        raise HTTPException(status_code=400, detail=f"{fallback} file is required.")
    path = directory / (Path(upload.filename).name or fallback)
    await _save_upload(upload, path)
    return path


def _settings(threshold: Optional[str] = None) -> Settings:
    settings = load_settings()
    if threshold is None or not threshold.strip():
        return settings
    try:
        return Settings(**{**settings.model_dump(), "threshold": threshold})
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid threshold: {threshold}") from exc


def _server_error(endpoint: str, exc: Exception) -> HTTPException:
    logger.error(
        "api_%s_error | error_type=%s | error=%s",
        endpoint,
        type(exc).__name__,
        exc,
        exc_info=True,
    )
    return HTTPException(status_code=500, detail=f"Unexpected server error during {endpoint}.")


@app.get("/health")
def health() -> dict[str, str]:
    """Service health check."""
    return {"status": "ok"}


@app.post("/summary")
async def summary_endpoint(report: UploadFile = File(...)) -> dict[str, Any]:
    """Fold a raw POS report into the monthly per-company summary."""
    settings = _settings()
    with _exclusive_pass("summary"), tempfile.TemporaryDirectory(prefix="payouts-summary-") as tmp_dir:
        try:
            path = await _spool(report, Path(tmp_dir), "report.xlsx")
            summary = run_summary_pass(read_grid(path))
        except HTTPException:
            raise
        except (FileNotFoundError, ValueError) as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except Exception as exc:
            raise _server_error("summary", exc) from exc

    files = files_as_text(summary_files(summary, settings.organization))
    return summary_report_json(summary, files=files)


@app.post("/process")
async def process_endpoint(
    sales: UploadFile = File(...),
    threshold: Optional[str] = Form(default=None),
) -> dict[str, Any]:
    """Reconcile a summary against the registry and produce payment batches."""
    settings = _settings(threshold)
    with _exclusive_pass("process"), tempfile.TemporaryDirectory(prefix="payouts-process-") as tmp_dir:
        try:
            path = await _spool(sales, Path(tmp_dir), "summary.csv")
            outcome = run_batch_pass(
                read_records(path),
                read_records(settings.registry_file).rows,
                load_ledger_rows(settings.ledger_file),
                threshold=settings.threshold,
                organization=settings.organization,
            )
        except HTTPException:
            raise
        except (FileNotFoundError, ValueError) as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except Exception as exc:
            raise _server_error("process", exc) from exc

    return batch_report_json(outcome, files=files_as_text(batch_files(outcome)))


@app.post("/registry/update")
async def registry_update_endpoint(
    raw: Optional[UploadFile] = File(default=None),
    momo: Optional[UploadFile] = File(default=None),
) -> dict[str, Any]:
    """Fill missing registry details from a raw report and/or MOMO update sheet."""
    uploads = [upload for upload in (raw, momo) if upload is not None and upload.filename]
    if not uploads:
        raise HTTPException(status_code=400, detail="Upload a raw sales report, a MOMO update sheet, or both.")

    settings = _settings()
    with _exclusive_pass("registry"), tempfile.TemporaryDirectory(prefix="payouts-registry-") as tmp_dir:
        tmp_path = Path(tmp_dir)
        try:
            raw_grid = None
            momo_grid = None
            if raw is not None and raw.filename:
                raw_dir = tmp_path / "raw"
                raw_dir.mkdir()
                raw_grid = read_grid(await _spool(raw, raw_dir, "report.xlsx"))
            if momo is not None and momo.filename:
                momo_dir = tmp_path / "momo"
                momo_dir.mkdir()
                momo_grid = read_grid(await _spool(momo, momo_dir, "momo.csv"))
            update = run_registry_update(load_registry(settings.registry_file), raw_grid, momo_grid)
        except HTTPException:
            raise
        except (FileNotFoundError, ValueError) as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except Exception as exc:
            raise _server_error("registry_update", exc) from exc

    return registry_report_json(update, files=files_as_text([registry_file(update.suppliers)]))


@app.get("/suppliers/search")
def supplier_search_endpoint(q: str = Query(..., min_length=1)) -> dict[str, Any]:
    """Supplier details and payment history for a full or partial name."""
    settings = _settings()
    try:
        profile = search_supplier(q, load_registry(settings.registry_file), load_ledger(settings.ledger_file))
    except (FileNotFoundError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        raise _server_error("supplier_search", exc) from exc

    if profile is None:
        raise HTTPException(status_code=404, detail=f"No supplier matches '{q}'.")
    return supplier_profile_json(profile)


@app.get("/ledger/overview")
def ledger_overview_endpoint(latest: int = Query(default=30, ge=0, le=500)) -> dict[str, Any]:
    """Totals per mode and per period over the whole ledger."""
    settings = _settings()
    try:
        overview = ledger_overview(load_ledger(settings.ledger_file), latest=latest)
    except (FileNotFoundError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        raise _server_error("ledger_overview", exc) from exc
    return ledger_overview_json(overview)


if __name__ == "__main__":
    setup_logging()
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run("api:app", host="0.0.0.0", port=port, reload=False)
