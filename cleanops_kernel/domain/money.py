"""
Money helpers -- Decimal-only monetary arithmetic.

Every amount in the engine (work order totals, paid amounts, transaction
and collection amounts, payroll wages and balances) passes through
``to_money`` at the boundary.  No floats anywhere past that point.

    to_money("120.5")   -> Decimal("120.50")
    to_money(200)       -> Decimal("200.00")
    to_money(19.99)     -> Decimal("19.99")   (float converted via str)
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0.00")


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given decimal places.

    This is the only rounding function used for amounts; all other code
    delegates here so precision is identical everywhere.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places > 0 else "1"
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def to_money(value: Any, decimal_places: int = MONEY_DECIMAL_PLACES) -> Decimal:
    """
    Convert a caller-supplied amount to a rounded Decimal.

    ``None`` and empty strings become zero.  Booleans are rejected.

    Raises:
        ValueError: If the value is not numeric.
    """
    if value is None or value == "":
        return round_money(Decimal(0), decimal_places)
    if isinstance(value, bool):
        raise ValueError(f"Not a monetary amount: {value!r}")
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Not a monetary amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Not a monetary amount: {value!r}")
    return round_money(amount, decimal_places)


def money_str(value: Decimal) -> str:
    """Serialize an amount for storage (fixed two-place string)."""
    return str(round_money(value))


def sum_money(values) -> Decimal:
    """Sum an iterable of Decimal amounts, starting from ZERO."""
    total = ZERO
    for v in values:
        total += v
    return round_money(total)
