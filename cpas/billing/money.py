"""
Currency and percentage normalization.

Every monetary value the engine stores, displays or compares passes through
round_currency, and every rate or percent-complete figure through
round_percentage. Keeping rounding in one place stops the on-screen numbers
and the stored snapshot from drifting apart.
"""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional, Union

Number = Union[int, float, Decimal, str]

CENT = Decimal("0.01")
BASIS_POINT = Decimal("0.0001")

# One cent. Used for every equality check against currency values.
CURRENCY_TOLERANCE = Decimal("0.01")

ZERO = Decimal("0.00")

_CURRENCY_NOISE = re.compile(r"[$,\s]")


def to_decimal(value: Optional[Number]) -> Decimal:
    """Coerce a numeric value to Decimal.

    Floats are converted through their repr so that 0.1 becomes Decimal('0.1')
    rather than its binary expansion. None is treated as zero.

    Args:
        value: int, float, Decimal, numeric string or None

    Returns:
        Decimal value

    Raises:
        TypeError: If the value is not a supported numeric type
        ValueError: If the value is not a finite number
    """
    if value is None:
        return Decimal(0)
    if isinstance(value, bool):
        raise TypeError("Boolean is not a monetary value")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(repr(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"Not a number: {value!r}")
    else:
        raise TypeError(f"Unsupported numeric type: {type(value).__name__}")

    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def round_currency(value: Optional[Number]) -> Decimal:
    """Round a value to the nearest cent (half-up)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_percentage(value: Optional[Number]) -> Decimal:
    """Round a fraction to four decimal places (basis-point precision)."""
    return to_decimal(value).quantize(BASIS_POINT, rounding=ROUND_HALF_UP)


def parse_currency_input(text: Any) -> Decimal:
    """Parse user-entered currency text.

    Currency symbols, thousands separators and whitespace are stripped.
    Accounting-style negatives like "(1,250.00)" are accepted. Anything that
    cannot be parsed yields zero; this function never raises.

    Args:
        text: Raw user input

    Returns:
        Amount rounded to cents, or zero
    """
    if text is None:
        return ZERO
    if isinstance(text, (int, float, Decimal)) and not isinstance(text, bool):
        try:
            return round_currency(text)
        except (TypeError, ValueError, InvalidOperation):
            return ZERO

    cleaned = _CURRENCY_NOISE.sub("", str(text))
    negative = False
    if cleaned.startswith("(") and cleaned.endswith(")"):
        negative = True
        cleaned = cleaned[1:-1]

    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return ZERO
    if not amount.is_finite():
        return ZERO

    if negative:
        amount = -amount
    try:
        return round_currency(amount)
    except InvalidOperation:
        return ZERO


def parse_percentage_input(text: Any) -> Decimal:
    """Parse a percentage such as "10" or "10%" into a fraction (0.1000).

    Returns zero for anything unparseable; never raises.
    """
    if text is None:
        return Decimal("0.0000")

    cleaned = str(text).replace("%", "").strip()
    try:
        parsed = Decimal(cleaned)
    except InvalidOperation:
        return Decimal("0.0000")
    if not parsed.is_finite():
        return Decimal("0.0000")

    try:
        return round_percentage(parsed / 100)
    except InvalidOperation:
        return Decimal("0.0000")


def format_currency(value: Optional[Number]) -> str:
    """Format a value as US dollars, e.g. "$1,234.56" or "-$50.00"."""
    amount = round_currency(value)
    if amount < 0:
        return f"-${-amount:,.2f}"
    return f"${amount:,.2f}"


def format_percent(value: Optional[Number], decimals: int = 2) -> str:
    """Format a fraction as a percentage string, e.g. 0.125 -> "12.50%"."""
    scaled = to_decimal(value) * 100
    quantum = Decimal(1).scaleb(-decimals)
    return f"{scaled.quantize(quantum, rounding=ROUND_HALF_UP)}%"
