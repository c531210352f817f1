from __future__ import annotations

from decimal import Decimal

import pytest

from categorizer.money import (
    add_cents,
    format_cents,
    from_cents_string,
    parse_cents,
    subtract_cents,
    to_cents_string,
)


@pytest.mark.parametrize(
    ("cents", "expected"),
    [
        ("2550", "$25.50"),
        ("5", "$0.05"),
        ("0", "$0.00"),
        ("-2500", "$-25.00"),
        ("-1", "$-0.01"),
        ("123456789012345678", "$1234567890123456.78"),
    ],
)
def test_format_cents(cents: str, expected: str) -> None:
    assert format_cents(cents) == expected


@pytest.mark.parametrize("bad", ["", "12.50", "abc", "--5", "1e3", "١٢"])
def test_parse_cents_rejects_non_integer_strings(bad: str) -> None:
    with pytest.raises(ValueError, match="Invalid cents string"):
        parse_cents(bad)


def test_to_cents_string_rounds_half_up_and_drops_sign() -> None:
    assert to_cents_string(25.5) == "2550"
    assert to_cents_string("1.235") == "124"
    assert to_cents_string(-1.23) == "123"
    assert to_cents_string(Decimal("0.005")) == "1"
    assert to_cents_string(7) == "700"


@pytest.mark.parametrize("bad", ["abc", "nan", "inf", True])
def test_to_cents_string_rejects_invalid(bad) -> None:
    with pytest.raises(ValueError, match="Invalid amount"):
        to_cents_string(bad)


def test_from_cents_string_is_exact() -> None:
    assert from_cents_string("2550") == Decimal("25.50")
    assert from_cents_string("-1") == Decimal("-0.01")


def test_cents_arithmetic() -> None:
    assert add_cents("1050", "-50") == "1000"
    assert subtract_cents("0", "2500") == "-2500"
