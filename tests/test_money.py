"""Tests for decimal money helpers."""
from decimal import Decimal

import pytest

from butler_ledger.exceptions import InvalidAmountError
from butler_ledger.money import (
    format_amount,
    from_minor,
    to_amount,
    to_display,
    to_minor,
    to_positive_amount,
)


class TestToAmount:
    def test_float_is_parsed_through_str(self):
        assert to_amount(0.1) == Decimal("0.10")
        assert to_amount(0.1) + to_amount(0.2) == Decimal("0.30")

    def test_quantizes_half_up_to_cents(self):
        assert to_amount("0.005") == Decimal("0.01")
        assert to_amount("1.115") == Decimal("1.12")
        assert to_amount("2.004") == Decimal("2.00")

    def test_accepts_int_str_and_decimal(self):
        assert to_amount(5) == Decimal("5.00")
        assert to_amount(" 7.5 ") == Decimal("7.50")
        assert to_amount(Decimal("3")) == Decimal("3.00")

    @pytest.mark.parametrize("value", [None, True, "abc", "", "NaN", "Infinity", [1]])
    def test_rejects_non_numeric(self, value):
        with pytest.raises(InvalidAmountError):
            to_amount(value)

    def test_negative_is_parsed(self):
        assert to_amount("-1") == Decimal("-1.00")


class TestPositiveAmount:
    @pytest.mark.parametrize("value", [0, "0.00", -5, "0.004"])
    def test_rejects_non_positive(self, value):
        with pytest.raises(InvalidAmountError) as exc_info:
            to_positive_amount(value)
        assert exc_info.value.error_code == "INVALID_AMOUNT"
        assert exc_info.value.http_status == 400

    def test_returns_quantized(self):
        assert to_positive_amount("10") == Decimal("10.00")


def test_minor_units_conversion():
    assert to_minor(Decimal("1.23")) == 123
    assert to_minor(Decimal("0.10")) == 10
    assert from_minor(123) == Decimal("1.23")
    assert from_minor(0) == Decimal("0.00")


def test_display_and_format():
    assert to_display(Decimal("9.00")) == 9.0
    assert to_display(Decimal("5.99")) == 5.99
    assert format_amount(Decimal("9"), "USDC") == "9.00 USDC"
    assert format_amount(Decimal("0.5"), "USDK") == "0.50 USDK"
