"""Exact decimal money helpers used throughout the ledger."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

MoneyLike = Union[Decimal, int, str, float]


def to_money(value: MoneyLike) -> Decimal:
    """Convert a value to a Decimal rounded to whole cents.

    Floats go through their string form so binary noise never reaches the
    ledger (``to_money(0.1)`` is ``Decimal("0.10")``).
    """
    if isinstance(value, bool):
        raise TypeError("Booleans are not money")
    if isinstance(value, float):
        value = repr(value)
    if isinstance(value, str):
        value = value.strip().replace(",", "")
    try:
        amount = Decimal(value)
        if not amount.is_finite():
            raise ValueError(f"Invalid money amount: {value!r}")
        # Raises InvalidOperation past the context precision
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"Invalid money amount: {value!r}") from e


def money_sum(amounts: Iterable[Decimal]) -> Decimal:
    """Sum amounts exactly; an empty iterable sums to zero."""
    total = ZERO
    for amount in amounts:
        total += amount
    return total


def parse_amount(text: str) -> Decimal:
    """Parse user-entered text such as ``"¥1,200.50"``."""
    cleaned = text.strip().lstrip("¥$£€")
    return to_money(cleaned)
