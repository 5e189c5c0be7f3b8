import math

import pytest

from money import format_amount, normalize_amount, parse_amount


@pytest.mark.parametrize(
    "text, expected",
    [
        ("R$ 2.500,00", 2500.0),
        ("R$ 625,00", 625.0),
        ("R$ 1,5", 1.5),
        ("437,50", 437.5),
        ("R$ 0,00", 0.0),
        ("", 0.0),
        ("abc", 0.0),
        ("R$ ,", 0.0),
        (None, 0.0),
    ],
)
def test_parse_amount(text, expected):
    assert parse_amount(text) == expected


def test_parse_amount_numbers_and_non_finite():
    assert parse_amount(12.5) == 12.5
    assert parse_amount(3) == 3.0
    assert parse_amount(math.nan) == 0.0
    assert parse_amount(math.inf) == 0.0


def test_format_amount_two_decimals_and_thousands():
    assert format_amount(0) == "R$ 0,00"
    assert format_amount(500) == "R$ 500,00"
    assert format_amount(2500) == "R$ 2.500,00"
    assert format_amount(437.5) == "R$ 437,50"
    assert format_amount(1234567.891) == "R$ 1.234.567,89"
    assert format_amount(10, symbol="US$") == "US$ 10,00"


@pytest.mark.parametrize("value", [0, 0.01, 1.5, 99.99, 437.5, 625, 2500, 123456.78])
def test_parse_of_format_is_identity_at_the_cent(value):
    assert parse_amount(format_amount(value)) == round(value, 2)


def test_normalize_amount():
    assert normalize_amount("625") == "R$ 625,00"
    assert normalize_amount("junk") == "R$ 0,00"
