#!/usr/bin/env python3
"""
Unit tests for amount parsing and formatting.

Amounts arrive as locale-formatted rupee strings and are kept as integer
paise from then on.
"""

from decimal import Decimal

import pytest

from settlements.core.currency import (
    format_paise,
    group_indian,
    paise_to_rupees_str,
    parse_amount,
    rupees_to_paise,
)


class TestParseAmount:
    """Test parsing of locale-formatted amounts."""

    @pytest.mark.currency
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("1,23,456.78", Decimal("123456.78")),
            ("12,000", Decimal("12000")),
            ("500", Decimal("500")),
            ("₹1,23,456.78", Decimal("123456.78")),
            ("INR 12,000.50", Decimal("12000.50")),
            ("Rs. 500", Decimal("500")),
            ("  2,500.5 ", Decimal("2500.5")),
            ("Rs..75", Decimal("0.75")),
            ("1,000.", Decimal("1000")),
        ],
    )
    def test_valid_amounts(self, text, expected):
        """Symbols and grouping are removed before parsing."""
        assert parse_amount(text) == expected

    @pytest.mark.currency
    @pytest.mark.parametrize("text", ["", "   ", "abc", "Rs.", ",,", None, "1.2.3"])
    def test_garbage_returns_none(self, text):
        """Text without a usable number yields None."""
        assert parse_amount(text) is None

    @pytest.mark.currency
    def test_leading_period_is_a_decimal_point(self):
        """Only the period of an abbreviation such as "Rs." is discarded."""
        assert parse_amount(".5") == Decimal("0.5")
        assert parse_amount("Rs. .5") == Decimal("0.5")
        assert parse_amount("Rs.") is None

    @pytest.mark.currency
    def test_non_string_input(self):
        """Numbers are accepted as well as strings."""
        assert parse_amount(1500) == Decimal("1500")


class TestPaiseConversion:
    """Test rupee to paise conversion and back."""

    @pytest.mark.currency
    def test_rupees_to_paise(self):
        """Rupees convert to paise with half-up rounding."""
        assert rupees_to_paise(Decimal("123456.78")) == 12345678
        assert rupees_to_paise(500) == 50000
        assert rupees_to_paise("12.345") == 1235

    @pytest.mark.currency
    def test_paise_to_rupees_str(self):
        """Paise render as a two-decimal rupee string."""
        assert paise_to_rupees_str(12345678) == "123456.78"
        assert paise_to_rupees_str(5) == "0.05"


class TestIndianFormatting:
    """Lakh/crore grouping for display."""

    @pytest.mark.currency
    @pytest.mark.parametrize(
        "digits,expected",
        [("1", "1"), ("999", "999"), ("1000", "1,000"), ("123456", "1,23,456"), ("12345678", "1,23,45,678")],
    )
    def test_group_indian(self, digits, expected):
        """Digits group as thousands, then in pairs."""
        assert group_indian(digits) == expected

    @pytest.mark.currency
    def test_format_paise(self):
        """Display amounts carry the rupee sign and Indian grouping."""
        assert format_paise(12345678) == "₹1,23,456.78"
        assert format_paise(0) == "₹0.00"
