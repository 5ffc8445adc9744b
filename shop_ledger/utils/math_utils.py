# shop_ledger/utils/math_utils.py
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Union

Number = Union[int, float, str, Decimal]

ZERO = Decimal('0')
CENT = Decimal('0.01')


def to_decimal(value: Number) -> Decimal:
    """Convert a numeric value to Decimal without float artefacts.

    Args:
        value: int, float, numeric string or Decimal

    Returns:
        Decimal value

    Raises:
        ValueError if the value is not numeric
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Not a numeric value: {value!r}")
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, TypeError):
        raise ValueError(f"Not a numeric value: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Not a finite value: {value!r}")
    return result


def round_money(value: Number) -> Decimal:
    """Round a monetary value to cents, half away from zero."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_half_away(value: Number) -> int:
    """Round to the nearest integer, ties away from zero (2.5 -> 3, -2.5 -> -3)."""
    # ROUND_HALF_UP in decimal rounds ties away from zero
    return int(to_decimal(value).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def sum_decimal(values: Iterable[Number]) -> Decimal:
    """Sum values as Decimal, skipping None."""
    total = ZERO
    for value in values:
        if value is not None:
            total += to_decimal(value)
    return total


def percent_change(current: Number, baseline: Number) -> int:
    """Calculate the period-over-period change as a whole percentage.

    A zero baseline reports 0 rather than an infinite change.

    Args:
        current: Current period value
        baseline: Previous period value

    Returns:
        Rounded percentage change
    """
    baseline = to_decimal(baseline)
    if baseline == 0:
        return 0

    change = (to_decimal(current) - baseline) / baseline * 100
    return round_half_away(change)


def margin_percent(selling_price: Number, cost_price: Number) -> Decimal:
    """Calculate profit margin as a percentage of the selling price.

    Args:
        selling_price: Unit selling price
        cost_price: Unit cost price

    Returns:
        Margin percentage rounded to 2 places; 0 for a zero selling price
    """
    selling_price = to_decimal(selling_price)
    if selling_price == 0:
        return ZERO.quantize(CENT)

    margin = (selling_price - to_decimal(cost_price)) / selling_price * 100
    return margin.quantize(CENT, rounding=ROUND_HALF_UP)
