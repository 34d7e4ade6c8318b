from decimal import Decimal

import pytest

from shift_ocr_pipeline.core.utils import hours_fmt, money_fmt, quantize_money, to_decimal


@pytest.mark.parametrize("value,expected", [
    ("$30", Decimal("30.00")),
    ("$1,234.5", Decimal("1234.50")),
    ("99.005", Decimal("99.01")),
    (30, Decimal("30.00")),
    (53.5, Decimal("53.50")),
    (Decimal("1.155"), Decimal("1.16")),
])
def test_to_decimal(value, expected):
    assert to_decimal(value) == expected


@pytest.mark.parametrize("value", [
    None, True, "", "n/a", "1.2.3", [30],
    float("nan"), float("inf"), float("-inf"), Decimal("NaN"), Decimal("Infinity"),
    1e30, Decimal("1E+40"),
])
def test_to_decimal_rejects(value):
    assert to_decimal(value) is None


def test_quantize_money_rounds_half_up():
    assert quantize_money(Decimal("0.125")) == Decimal("0.13")
    assert quantize_money(Decimal("2")) == Decimal("2.00")


def test_formatters():
    assert money_fmt(Decimal("1234.5")) == "$1,234.50"
    assert money_fmt(None) == ""
    assert hours_fmt(Decimal("1.15")) == "1.15h"
