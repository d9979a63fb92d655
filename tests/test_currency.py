"""Tests for currency display formatting."""

import pytest

from fintrack.models.finance import Currency
from fintrack.store import format_currency


class TestVndFormatting:
    """VND uses dot grouping and a VND suffix."""

    @pytest.mark.parametrize("amount,expected", [
        (150000, "150.000 VND"),
        (0, "0 VND"),
        (999, "999 VND"),
        (1234567.5, "1.234.567,5 VND"),
        (1000.125, "1.000,125 VND"),
        (-25000, "-25.000 VND"),
    ])
    def test_format(self, amount, expected):
        """Test VND output."""
        assert format_currency(amount, Currency.VND) == expected

    def test_accepts_string_code(self):
        """Test that the currency may be given as its code."""
        assert format_currency(150000, "VND") == "150.000 VND"


class TestUsdFormatting:
    """USD uses comma grouping, two decimals and a leading $."""

    @pytest.mark.parametrize("amount,expected", [
        (1234.56, "$1,234.56"),
        (0, "$0.00"),
        (1000000, "$1,000,000.00"),
        (-5, "-$5.00"),
    ])
    def test_format(self, amount, expected):
        """Test USD output."""
        assert format_currency(amount, Currency.USD) == expected

    def test_unknown_currency_rejected(self):
        """Test that only known currencies format."""
        with pytest.raises(ValueError):
            format_currency(1, "EUR")
