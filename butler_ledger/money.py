"""Decimal money helpers.

Amounts are parsed through ``str`` so that a float such as ``0.1`` becomes
``Decimal("0.1")`` rather than its binary expansion, then quantized to cents.
Ledger storage uses integer minor units.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Union

from .exceptions import InvalidAmountError

CENT = Decimal("0.01")
MINOR_UNITS_PER_UNIT = 100

AmountLike = Union[Decimal, int, float, str]


def to_amount(value: Any) -> Decimal:
    """Parse a caller-supplied amount into a cent-quantized Decimal.

    Raises:
        InvalidAmountError: value is missing, not numeric, or not finite
    """
    if value is None or isinstance(value, bool):
        raise InvalidAmountError(value)
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidAmountError(value) from None
    if not amount.is_finite():
        raise InvalidAmountError(value)
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_positive_amount(value: Any) -> Decimal:
    """Parse an amount that must be strictly greater than zero."""
    amount = to_amount(value)
    if amount <= 0:
        raise InvalidAmountError(value)
    return amount


def to_minor(amount: Decimal) -> int:
    """Convert a cent-quantized amount to integer minor units."""
    return int(amount.quantize(CENT, rounding=ROUND_HALF_UP) * MINOR_UNITS_PER_UNIT)


def from_minor(minor: int) -> Decimal:
    """Convert integer minor units back to a Decimal amount."""
    return (Decimal(minor) / MINOR_UNITS_PER_UNIT).quantize(CENT)


def to_display(amount: Decimal) -> float:
    """JSON-friendly rendering, rounded to two decimals."""
    return float(amount.quantize(CENT, rounding=ROUND_HALF_UP))


def format_amount(amount: Decimal, currency: str) -> str:
    return f"{amount.quantize(CENT, rounding=ROUND_HALF_UP)} {currency}"
