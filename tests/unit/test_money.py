"""
Unit tests for money helpers.

Tests cover:
- Half-up rounding to the currency quantum
- Percentage arithmetic without intermediate rounding
- Coercion of database aggregates
"""

from decimal import Decimal

import pytest

from mlm_rewards.utils.money import percentage_of, round_currency, to_decimal


class TestRoundCurrency:
    """Test rounding to the currency quantum."""

    def test_half_rounds_up(self):
        """0.005 rounds to 0.01 (not banker's rounding)."""
        assert round_currency(Decimal("0.005")) == Decimal("0.01")
        assert round_currency(Decimal("2.345")) == Decimal("2.35")

    def test_below_half_rounds_down(self):
        """0.0049 rounds to 0.00."""
        assert round_currency(Decimal("0.0049")) == Decimal("0.00")

    def test_custom_quantum(self):
        """Whole-unit quantum."""
        assert round_currency(Decimal("10.5"), Decimal("1")) == Decimal("11")

    def test_already_rounded_unchanged(self):
        """Values on the quantum are unchanged."""
        assert round_currency(Decimal("100.00")) == Decimal("100.00")


class TestPercentageOf:
    """Test percentage arithmetic."""

    @pytest.mark.parametrize(
        "base,percentage,expected",
        [
            ("1000", "10", "100"),
            ("1000", "5", "50"),
            ("333.33", "3.3333", "11.11088889"),
            ("0", "50", "0"),
            ("100", "0", "0"),
        ],
    )
    def test_percentage(self, base, percentage, expected):
        """Result is base * percentage / 100, unrounded."""
        result = percentage_of(Decimal(base), Decimal(percentage))
        assert result == Decimal(expected)

    def test_rounded_once(self):
        """Rounding the unrounded product gives the expected payout."""
        raw = percentage_of(Decimal("99.99"), Decimal("7.5"))
        assert raw == Decimal("7.49925")
        assert round_currency(raw) == Decimal("7.50")


class TestToDecimal:
    """Test aggregate coercion."""

    def test_none_is_zero(self):
        assert to_decimal(None) == Decimal("0")

    def test_float_via_string(self):
        """Floats go through str to avoid binary artefacts."""
        assert to_decimal(0.1) == Decimal("0.1")

    def test_decimal_passthrough(self):
        value = Decimal("12.34")
        assert to_decimal(value) is value

    def test_int(self):
        assert to_decimal(7) == Decimal("7")
