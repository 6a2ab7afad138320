"""Tests for input validators and Decimal helpers."""

from decimal import Decimal

import pytest

from cafe_ledger.utils.validators import (
    quantize_money,
    quantize_quantity,
    to_decimal,
    validate_non_negative_quantity,
    validate_positive_quantity,
    validate_required_string,
    validate_return_percentage,
)


class TestToDecimal:
    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")

    def test_string_with_whitespace(self):
        assert to_decimal(" 2.5 ") == Decimal("2.5")

    @pytest.mark.parametrize("value", [None, True, "abc", "nan", "inf", float("nan")])
    def test_rejects_non_numbers(self, value):
        assert to_decimal(value) is None


def test_quantize_half_up():
    assert quantize_money(Decimal("0.125")) == Decimal("0.13")
    assert quantize_quantity(Decimal("1.0005")) == Decimal("1.001")


class TestQuantityValidators:
    def test_positive_accepts_fraction(self):
        assert validate_positive_quantity("0.250") == (True, "")

    @pytest.mark.parametrize("value", [0, "-1", None, "x"])
    def test_positive_rejects(self, value):
        is_valid, msg = validate_positive_quantity(value)
        assert not is_valid
        assert msg.startswith("Quantity:")

    def test_positive_rejects_too_large(self):
        is_valid, msg = validate_positive_quantity("10000000")
        assert not is_valid

    def test_non_negative_accepts_zero(self):
        assert validate_non_negative_quantity(0) == (True, "")

    def test_non_negative_rejects_negative(self):
        is_valid, msg = validate_non_negative_quantity(Decimal("-0.001"), "New quantity")
        assert not is_valid
        assert "New quantity" in msg


class TestPercentageValidator:
    @pytest.mark.parametrize("value", [0, 20, "55.5", 100])
    def test_in_range(self, value):
        assert validate_return_percentage(value)[0]

    @pytest.mark.parametrize("value", [-1, "100.01", 150, None])
    def test_out_of_range(self, value):
        assert not validate_return_percentage(value)[0]


def test_required_string():
    assert validate_required_string("alice")[0]
    assert not validate_required_string("   ")[0]
    assert not validate_required_string(None)[0]
