"""
Values -- Decimal-only money helpers.

Responsibility:
    Provides the single sanctioned conversion and rounding path for monetary
    amounts.  Every engine and service routes amounts through ``to_decimal``
    at its public boundary and through ``quantize_money`` whenever an amount
    is rounded to currency precision.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Decimal-only arithmetic: floats are converted through ``str()`` so that
      ``999.995`` becomes ``Decimal("999.995")`` rather than its binary
      approximation.
    - Rounding is always ROUND_HALF_UP to the currency's minor unit.

Failure modes:
    - ValueError on values that cannot be read as a finite number.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

MONEY_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP
ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """
    Convert an amount from the public boundary into a Decimal.

    Accepts Decimal, int, str and float.  Floats go through ``str()``.

    Raises:
        ValueError: If the value is None, boolean, NaN/infinite or unparseable.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or value is None:
        raise ValueError(f"Not a monetary amount: {value!r}")
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation as exc:
            raise ValueError(f"Not a monetary amount: {value!r}") from exc
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        raise ValueError(f"Not a monetary amount: {value!r}")

    if not result.is_finite():
        raise ValueError(f"Monetary amount must be finite: {value!r}")
    return result


def quantize_money(value: Decimal, places: int = MONEY_PLACES) -> Decimal:
    """
    Round a monetary value to ``places`` decimal places (ROUND_HALF_UP).

    This is the ONLY rounding function used for money in the ledger engines.
    """
    exponent = Decimal(1).scaleb(-places)
    return value.quantize(exponent, rounding=DEFAULT_ROUNDING)


def sum_amounts(amounts) -> Decimal:
    """Exact Decimal sum; an empty iterable sums to zero."""
    total = ZERO
    for amount in amounts:
        total += amount
    return total
