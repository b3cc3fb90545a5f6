"""
Ledgerbook - Decimal Helpers

Exact conversions between stored rational amounts (numerator over
denominator) and Decimal values. All rounding is banker's rounding
(ROUND_HALF_EVEN).
"""

from decimal import Decimal, ROUND_HALF_EVEN, localcontext
from typing import Tuple, Union

ZERO = Decimal("0")

# Enough significant digits for 64-bit numerators over any realistic denominator
DIVISION_PRECISION = 38


def rational_to_decimal(value_num: int, value_denom: int) -> Decimal:
    """
    Convert a stored rational amount into a Decimal.

    A zero denominator is treated as 1, so the amount equals the numerator.
    The division is exact whenever the result is representable in
    DIVISION_PRECISION digits; otherwise it is rounded half-to-even.
    """
    denom = value_denom or 1
    with localcontext() as ctx:
        ctx.prec = DIVISION_PRECISION
        ctx.rounding = ROUND_HALF_EVEN
        return Decimal(int(value_num)) / Decimal(int(denom))


def quantize_amount(amount: Decimal, precision: int = 2) -> Decimal:
    """Round an amount to `precision` decimal places for display."""
    exponent = Decimal(1).scaleb(-precision)
    return amount.quantize(exponent, rounding=ROUND_HALF_EVEN)


def scu_for_precision(precision: int) -> int:
    """Smallest commodity unit for a display precision (2 -> 100)."""
    if precision < 0:
        raise ValueError(f"Precision must be non-negative, got {precision}")
    return 10 ** precision


def decimal_to_rational(
    amount: Union[Decimal, int, str],
    value_denom: int = 100,
) -> Tuple[int, int]:
    """
    Convert an amount into a (numerator, denominator) pair.

    The numerator is rounded half-to-even to the given denominator.
    """
    if value_denom <= 0:
        raise ValueError(f"Denominator must be positive, got {value_denom}")
    scaled = (Decimal(amount) * value_denom).quantize(Decimal(1), rounding=ROUND_HALF_EVEN)
    return int(scaled), value_denom
