"""Exact money helpers for minor-unit (cents) strings.

Amounts travel as integer-valued strings so no value ever passes through a
binary float. Conversions from dollars go through ``Decimal``.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation


def parse_cents(amount_cents: str) -> int:
    """Parse an integer-valued cents string (``"-2500"``) into an ``int``."""

    if isinstance(amount_cents, bool) or not isinstance(amount_cents, str):
        raise ValueError("Invalid cents string")
    s = amount_cents.strip()
    body = s[1:] if s.startswith("-") else s
    if not (body.isascii() and body.isdigit()):
        raise ValueError("Invalid cents string")
    return int(s)


def format_cents(amount_cents: str) -> str:
    """Format a cents string as ``$X.XX`` using integer division only.

    ``"2550"`` becomes ``"$25.50"``. Negative amounts keep the sign after the
    currency symbol (``"-2500"`` becomes ``"$-25.00"``), which is the form
    the categorization prompt has always used.
    """

    cents = parse_cents(amount_cents)
    dollars, rem = divmod(abs(cents), 100)
    sign = "-" if cents < 0 else ""
    return f"${sign}{dollars}.{rem:02d}"


def to_cents_string(amount: int | float | str | Decimal) -> str:
    """Convert a dollar amount to an absolute cents string, rounding half-up.

    The sign is dropped: direction is carried separately by the provider
    payload. ``1.235`` becomes ``"124"`` and ``-1.23`` becomes ``"123"``.
    """

    if isinstance(amount, bool):
        raise ValueError("Invalid amount")
    try:
        # str() first so floats keep their shortest repr rather than binary noise
        dec = Decimal(str(amount).strip())
    except InvalidOperation as e:
        raise ValueError("Invalid amount") from e
    if not dec.is_finite():
        raise ValueError("Invalid amount")
    cents = (abs(dec) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return str(int(cents))


def from_cents_string(cents: str) -> Decimal:
    """Return the dollar value of a cents string as an exact ``Decimal``."""
    return Decimal(parse_cents(cents)) / 100


def add_cents(a: str, b: str) -> str:
    return str(parse_cents(a) + parse_cents(b))


def subtract_cents(a: str, b: str) -> str:
    return str(parse_cents(a) - parse_cents(b))


__all__ = [
    "add_cents",
    "format_cents",
    "from_cents_string",
    "parse_cents",
    "subtract_cents",
    "to_cents_string",
]
