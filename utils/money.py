"""Integer currency parsing for loosely typed amounts (JSON, form input)."""

import math
import re
from decimal import ROUND_FLOOR, Decimal, InvalidOperation, localcontext

_NUMERIC_STRING = re.compile(r"^-?\d+(\.\d+)?$")

_HALF = Decimal("0.5")


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves toward positive infinity."""
    return math.floor(value + 0.5)


def _round_decimal_string(text: str) -> int | None:
    """Exact half-up rounding of a decimal literal of any length."""
    try:
        with localcontext() as ctx:
            # Enough precision that no digit of the literal is lost
            ctx.prec = len(text) + 2
            value = (Decimal(text) + _HALF).to_integral_value(rounding=ROUND_FLOOR)
            return int(value)
    except (InvalidOperation, ValueError, OverflowError):
        return None


def parse_amount(value: object) -> int | None:
    """
    Parse a money amount from a number or numeric string.

    Returns None for None, booleans, empty strings, non-finite numbers and
    anything that isn't a plain decimal literal. Fractions are rounded
    half-up. Numeric strings are parsed exactly, whatever their length.

    Examples:
        parse_amount(500) -> 500
        parse_amount(" 199.5 ") -> 200
        parse_amount("12abc") -> None
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, int):
        return value

    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return round_half_up(value)

    if isinstance(value, str):
        text = value.strip()
        if not text or not _NUMERIC_STRING.match(text):
            return None
        return _round_decimal_string(text)

    return None


def parse_positive_amount(value: object) -> int | None:
    """Like parse_amount, but non-positive amounts also yield None."""
    amount = parse_amount(value)
    if amount is None or amount <= 0:
        return None
    return amount
