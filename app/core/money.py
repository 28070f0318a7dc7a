"""Currency-safe arithmetic.

All amounts are ``Decimal``. Rounding is round-half-up to cents and is applied
once, to the final value of each derived amount.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if value is None:
        return ZERO
    # str() keeps floats like 0.1 from dragging binary error into the ledger
    return Decimal(str(value))


def round_money(value: Number) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(amount: Number, rate: Number) -> Decimal:
    """``amount * rate / 100``, unrounded."""
    return to_decimal(amount) * to_decimal(rate) / HUNDRED


def sum_money(values: Iterable[Number]) -> Decimal:
    total = ZERO
    for value in values:
        total += to_decimal(value)
    return total


def to_minor_units(amount: Number) -> int:
    """Integer cents for a processor API."""
    return int((round_money(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))
