"""Division helpers: every ratio is defined as zero on a zero denominator."""

from __future__ import annotations

from decimal import Decimal
from typing import Union

from recon_engine.domain.models import ZERO

HUNDRED = Decimal("100")

Number = Union[Decimal, int]


def safe_div(numerator: Number, denominator: Number) -> Decimal:
    if not denominator:
        return ZERO
    return Decimal(numerator) / Decimal(denominator)


def pct(numerator: Number, denominator: Number) -> Decimal:
    """numerator / denominator * 100, or 0 when the denominator is 0."""
    if not denominator:
        return ZERO
    return Decimal(numerator) / Decimal(denominator) * HUNDRED


__all__ = ["HUNDRED", "safe_div", "pct"]
