"""Money helpers.

Internal storage unit: a Decimal amount in the currency's major unit
(e.g. 1500.00 NGN). Paystack expects minor units (kobo / cents),
NowPayments expects major units.

Conversion chain
----------------
Major × 100 → Minor
Minor ÷ 100 → Major
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

MINOR_UNITS_PER_MAJOR: int = 100

_CENT = Decimal("0.01")

Number = Union[Decimal, float, int, str]


def to_decimal(value: Number) -> Decimal:
    """Coerce a number to Decimal without binary float artefacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round2(value: Number) -> Decimal:
    """Round half-up to two decimal places."""
    return to_decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Number) -> int:
    """Convert a major-unit amount to minor units. 1 NGN = 100 kobo."""
    return int(round2(amount) * MINOR_UNITS_PER_MAJOR)


def from_minor_units(minor: int) -> Decimal:
    """Convert minor units back to a major-unit Decimal."""
    return round2(Decimal(minor) / MINOR_UNITS_PER_MAJOR)
