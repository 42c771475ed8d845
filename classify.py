"""
classify.py - Payment channel selection.

One rule: amounts at or above the threshold go out by bank transfer,
everything below by mobile money. The bound is inclusive, so an amount
exactly equal to the threshold is a BANK payment.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Union

from models import PaymentMode

DEFAULT_THRESHOLD = Decimal("400")


def to_threshold(value: Union[str, int, float, Decimal, None]) -> Decimal:
    """Coerce an operator-supplied threshold; None means the default."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return DEFAULT_THRESHOLD
    try:
        threshold = Decimal(str(value).strip())
    except ArithmeticError as exc:
        raise ValueError(f"Invalid payment threshold: {value!r}") from exc
    if not threshold.is_finite():
        raise ValueError(f"Invalid payment threshold: {value!r}")
    return threshold


def classify_amount(amount: Decimal, threshold: Decimal = DEFAULT_THRESHOLD) -> PaymentMode:
    """BANK when amount >= threshold, else MOMO."""
    return PaymentMode.BANK if amount >= threshold else PaymentMode.MOMO
