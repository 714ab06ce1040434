"""Tests for discount amounts, display strings and success messages."""

from decimal import Decimal

import pytest

from pricing.discounts.calculator import (
    amount_off,
    format_display,
    format_number,
    success_message,
    summarize,
)
from pricing.discounts.records import DiscountCode

from conftest import discount_row


def make(code="TEST", **overrides):
    return DiscountCode.from_row(discount_row(code, **overrides))


class TestPercentage:
    @pytest.mark.parametrize("subtotal,value,expected", [
        ("100", 30, "30"),
        ("0", 50, "0"),
        ("49.99", 15, "7.4985"),
        ("80", 100, "80"),
        ("80", 0, "0"),
    ])
    def test_uncapped(self, subtotal, value, expected):
        d = make(discount_value=value)
        assert amount_off(d, Decimal(subtotal)) == Decimal(expected)

    def test_cap_applies_when_exceeded(self):
        d = make(discount_value=20, maximum_discount=50)
        assert amount_off(d, Decimal("1000")) == Decimal("50")

    def test_cap_ignored_when_not_reached(self):
        d = make(discount_value=20, maximum_discount=50)
        assert amount_off(d, Decimal("100")) == Decimal("20")


class TestFixed:
    def test_value_below_subtotal(self):
        d = make(discount_type="fixed", discount_value=20)
        assert amount_off(d, Decimal("150")) == Decimal("20")

    def test_clamped_to_subtotal(self):
        d = make(discount_type="fixed", discount_value=20)
        assert amount_off(d, Decimal("12.50")) == Decimal("12.50")

    def test_zero_subtotal(self):
        d = make(discount_type="fixed_amount", discount_value=20)
        assert amount_off(d, Decimal("0")) == Decimal("0")

    def test_cap_is_ignored_for_fixed(self):
        d = make(discount_type="fixed", discount_value=40, maximum_discount=10)
        assert d.maximum_discount is None
        assert amount_off(d, Decimal("100")) == Decimal("40")

    @pytest.mark.parametrize("subtotal", ["0", "0.01", "5", "19.99", "20", "500"])
    def test_never_negative_never_above_subtotal(self, subtotal):
        d = make(discount_type="fixed", discount_value=20)
        result = amount_off(d, Decimal(subtotal))
        assert Decimal("0") <= result <= Decimal(subtotal)
        assert result == min(Decimal("20"), Decimal(subtotal))


class TestDisplay:
    def test_percentage(self):
        assert format_display(make(discount_value=15)) == "15% off"

    def test_fixed(self):
        assert format_display(make(discount_type="fixed", discount_value=20)) == "$20 off"

    def test_fixed_fractional(self):
        assert format_display(make(discount_type="fixed", discount_value="7.50")) == "$7.5 off"

    def test_first_purchase_label(self):
        d = make("WELCOME30", discount_value=30, first_purchase_only=True)
        assert format_display(d) == "30% off - Welcome discount!"

    def test_format_number(self):
        assert format_number(Decimal("30.00")) == "30"
        assert format_number(Decimal("100")) == "100"
        assert format_number(Decimal("12.50")) == "12.5"


class TestMessages:
    def test_plain_success(self):
        assert success_message(make(discount_value=10), Decimal("100")) == "Discount applied successfully"

    def test_capped_success(self):
        d = make(discount_value=20, maximum_discount=50)
        assert success_message(d, Decimal("1000")) == (
            "Discount applied successfully (20% off, capped at $50)"
        )


def test_welcome_scenario_summary():
    d = make("WELCOME30", discount_value=30, first_purchase_only=True)
    summary = summarize(d, Decimal("100"), is_first_order=True)
    assert summary.amount_off == Decimal("30")
    assert summary.display == "30% off - Welcome discount!"
    assert summary.is_first_order is True
    assert summary.is_auto_apply is False
