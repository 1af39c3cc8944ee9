"""Decimal-safe money helpers.

Every operation rounds its result to cents, so line totals and cart totals
built from them always reconcile. Unparseable operands count as zero and
nothing here raises: arithmetic runs in a wide local decimal context, and a
result that still cannot be represented (overflow) comes back as 0.00.
"""

import functools
import logging
from decimal import Decimal, DecimalException, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Iterable, Union

logger = logging.getLogger(__name__)

Number = Union[int, float, str, Decimal, None]

CENT = Decimal("0.01")
SCALE = Decimal(100)
ZERO = Decimal("0.00")

# Significant digits for intermediate results; far above any storable amount
PRECISION = 60


def _never_raises(func):
    @functools.wraps(func)
    def wrapper(*args):
        with localcontext() as ctx:
            ctx.prec = PRECISION
            ctx.rounding = ROUND_HALF_UP
            try:
                return func(*args)
            except DecimalException as e:
                logger.warning("Money %s overflowed for %r: %s", func.__name__, args, e)
                return ZERO
    return wrapper


def _parse(value: Number) -> Decimal:
    if value is None or isinstance(value, bool):
        return Decimal(0)
    try:
        # str() first so floats keep their shortest repr (0.1 -> "0.1")
        num = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        return Decimal(0)
    if not num.is_finite():
        return Decimal(0)
    return num


def _round(value: Decimal) -> Decimal:
    cents = (value * SCALE).to_integral_value(rounding=ROUND_HALF_UP)
    return (cents / SCALE).quantize(CENT)


@_never_raises
def round_money(value: Number) -> Decimal:
    """Round to cents, half away from zero, by scaling to whole cents first."""
    return _round(_parse(value))


def to_money(value: Number) -> Decimal:
    return round_money(value)


@_never_raises
def add(*values: Number) -> Decimal:
    total = Decimal(0)
    for v in values:
        total += _parse(v)
    return _round(total)


@_never_raises
def subtract(minuend: Number, subtrahend: Number) -> Decimal:
    return _round(_parse(minuend) - _parse(subtrahend))


@_never_raises
def multiply(multiplicand: Number, multiplier: Number) -> Decimal:
    return _round(_parse(multiplicand) * _parse(multiplier))


@_never_raises
def divide(dividend: Number, divisor: Number) -> Decimal:
    d = _parse(divisor)
    if d == 0:
        return ZERO
    return _round(_parse(dividend) / d)


@_never_raises
def percentage_of(value: Number, percentage: Number) -> Decimal:
    return _round(_parse(value) * _parse(percentage) / SCALE)


def line_total(quantity: int, unit_price: Number) -> Decimal:
    return multiply(quantity, unit_price)


def sum_money(values: Iterable[Number]) -> Decimal:
    """Fold add() over values in order; an empty sequence sums to 0.00."""
    total = ZERO
    for v in values:
        total = add(total, v)
    return total


def parse_amount(value: Number):
    """Exact Decimal for a finite, non-negative amount, else None. No rounding."""
    if value is None or isinstance(value, bool):
        return None
    try:
        num = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not num.is_finite() or num < 0:
        return None
    return num


def is_valid_amount(value: Number) -> bool:
    return parse_amount(value) is not None
