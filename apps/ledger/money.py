"""
Money conversions.

Amounts are Decimal at the edges (model fields, API schemas) and integer
cents inside the payment allocator, so sums never pick up float error.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

Number = Union[Decimal, int, float, str]

CENT = Decimal('0.01')


def to_cents(amount: Number) -> int:
    """Convert a dollar amount to integer cents, rounding half up."""
    if isinstance(amount, float):
        # repr gives the shortest string that round-trips, so 10.01 stays 10.01
        amount = repr(amount)
    value = Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)
    return int(value * 100)


def to_dollars(cents: int) -> Decimal:
    """Convert integer cents back to a two-place Decimal."""
    return (Decimal(cents) / 100).quantize(CENT)


def sum_money(amounts: Iterable[Number]) -> Decimal:
    """Sum dollar amounts exactly."""
    return to_dollars(sum(to_cents(a) for a in amounts))
