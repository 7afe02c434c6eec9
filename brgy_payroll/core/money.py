"""Decimal helpers shared by the payroll calculators."""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal:
    """Coerce DB/JSON/user values to Decimal without passing through binary float."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(str(value))


def to_currency(value: Any) -> Decimal:
    """Round to centavos. Only call this at the presentation boundary."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def dsum(values: Iterable[Any]) -> Decimal:
    total = ZERO
    for v in values:
        total += to_decimal(v)
    return total


def peso(value: Any) -> str:
    return f"₱{to_currency(value):,.2f}"
