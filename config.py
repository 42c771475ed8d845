"""
config.py - Runtime settings from the environment.

Values come from environment variables, optionally seeded from a local
.env file. Settings are read fresh by every CLI invocation and API
request so that a changed registry or ledger path is picked up without a
restart.
"""

from __future__ import annotations

import os
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from classify import DEFAULT_THRESHOLD, to_threshold
from reconcile import DEFAULT_ORGANIZATION

try:
    load_dotenv()
except UnicodeDecodeError:
    # Fallback for legacy Windows-encoded .env files.
    load_dotenv(encoding="cp1252")


class Settings(BaseModel):
    """Paths and parameters for one pass."""

    model_config = ConfigDict(frozen=True)

    registry_file: Path = Field(default=Path("data/banking-details.csv"))
    ledger_file: Path = Field(default=Path("data/transactions.csv"))
    output_dir: Path = Field(default=Path("output"))
    threshold: Decimal = DEFAULT_THRESHOLD
    organization: str = DEFAULT_ORGANIZATION

    @field_validator("threshold", mode="before")
    @classmethod
    def _coerce_threshold(cls, value: object) -> Decimal:
        return to_threshold(value)  # type: ignore[arg-type]

    @field_validator("organization", mode="before")
    @classmethod
    def _organization_default(cls, value: object) -> str:
        text = str(value or "").strip()
        return text or DEFAULT_ORGANIZATION


def load_settings() -> Settings:
    """Build Settings from REGISTRY_FILE, LEDGER_FILE, OUTPUT_DIR, PAYMENT_THRESHOLD, ORGANIZATION_NAME."""
    return Settings(
        registry_file=os.getenv("REGISTRY_FILE", "data/banking-details.csv"),
        ledger_file=os.getenv("LEDGER_FILE", "data/transactions.csv"),
        output_dir=os.getenv("OUTPUT_DIR", "output"),
        threshold=os.getenv("PAYMENT_THRESHOLD"),
        organization=os.getenv("ORGANIZATION_NAME", DEFAULT_ORGANIZATION),
    )
