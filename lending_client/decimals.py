"""Exact decimal arithmetic for amounts, ratios and prices.

Every money computation in the client goes through this module. Operations
run inside a dedicated high-precision context so that intermediate results
are never rounded; rounding to protocol precision happens once, explicitly,
via :func:`round_dec` or :func:`floor_dec`.

Floats are accepted only as input (converted through ``str``) and produced
only by :func:`to_display_float` at the display boundary.
"""
from __future__ import annotations

from decimal import (
    ROUND_DOWN,
    ROUND_HALF_UP,
    ROUND_UP,
    Context,
    Decimal,
    InvalidOperation,
)
from typing import Union

from .errors import DecimalArithmeticError

DecimalLike = Union[Decimal, int, str, float]

# Radix Decimal has 18 fractional digits.
PROTOCOL_DECIMAL_PLACES = 18

ZERO = Decimal("0")
ONE = Decimal("1")

# prec=60 keeps 18 fractional digits exact for values up to 10^42.
_CONTEXT = Context(prec=60, rounding=ROUND_HALF_UP)


def to_decimal(value: DecimalLike) -> Decimal:
    """Convert ``value`` to a finite :class:`Decimal`.

    Floats go through ``str`` so ``0.1`` becomes ``Decimal("0.1")`` rather
    than its binary expansion.
    """
    if isinstance(value, bool):
        raise DecimalArithmeticError(f"Not a decimal amount: {value!r}")
    try:
        if isinstance(value, Decimal):
            result = value
        elif isinstance(value, float):
            result = Decimal(repr(value))
        else:
            result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise DecimalArithmeticError(f"Not a decimal amount: {value!r}") from e

    if not result.is_finite():
        raise DecimalArithmeticError(f"Non-finite decimal: {value!r}")
    return result


def add(a: DecimalLike, b: DecimalLike) -> Decimal:
    return _CONTEXT.add(to_decimal(a), to_decimal(b))


def sub(a: DecimalLike, b: DecimalLike) -> Decimal:
    return _CONTEXT.subtract(to_decimal(a), to_decimal(b))


def mul(a: DecimalLike, b: DecimalLike) -> Decimal:
    return _CONTEXT.multiply(to_decimal(a), to_decimal(b))


def div(a: DecimalLike, b: DecimalLike) -> Decimal:
    """Divide ``a`` by a strictly positive ``b``.

    Raises:
        DecimalArithmeticError: if ``b`` is zero or negative.
    """
    divisor = to_decimal(b)
    if divisor <= ZERO:
        raise DecimalArithmeticError(f"Division by non-positive divisor {divisor}")
    return _CONTEXT.divide(to_decimal(a), divisor)


def compare(a: DecimalLike, b: DecimalLike) -> int:
    """Return -1, 0 or 1 as ``a`` is less than, equal to or greater than ``b``."""
    return int(_CONTEXT.compare(to_decimal(a), to_decimal(b)))


def total(values) -> Decimal:
    """Exact sum of an iterable of decimals (``ZERO`` when empty)."""
    result = ZERO
    for v in values:
        result = add(result, v)
    return result


def _quantum(places: int) -> Decimal:
    return Decimal(1).scaleb(-places)


def _quantize(value: DecimalLike, places: int, rounding: str) -> Decimal:
    d = to_decimal(value)
    try:
        return d.quantize(_quantum(places), rounding=rounding, context=_CONTEXT)
    except InvalidOperation as e:
        # Coefficient would need more than the context precision.
        raise DecimalArithmeticError(f"Cannot round {d} to {places} places") from e


def round_dec(value: DecimalLike, places: int = PROTOCOL_DECIMAL_PLACES) -> Decimal:
    """Round half-up to ``places`` fractional digits.

    Raises:
        DecimalArithmeticError: if the result does not fit the working precision.
    """
    return _quantize(value, places, ROUND_HALF_UP)


def floor_dec(value: DecimalLike, places: int = PROTOCOL_DECIMAL_PLACES) -> Decimal:
    """Truncate towards zero to ``places`` fractional digits."""
    return _quantize(value, places, ROUND_DOWN)


def ceil_dec(value: DecimalLike, places: int = PROTOCOL_DECIMAL_PLACES) -> Decimal:
    """Round away from zero to ``places`` fractional digits."""
    return _quantize(value, places, ROUND_UP)


def format_decimal(value: DecimalLike) -> str:
    """Canonical plain-notation string, as used inside manifests.

    Trailing fractional zeros are dropped; exponents are never emitted.
        Decimal("1.500") → "1.5"
        Decimal("1E+3")  → "1000"
    """
    d = to_decimal(value)
    if d == ZERO:
        return "0"
    text = format(d, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def to_display_float(value: DecimalLike) -> float:
    """Lossy conversion for display only."""
    return float(to_decimal(value))
