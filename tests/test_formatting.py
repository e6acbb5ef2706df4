"""
Tests for formatting.py: currency strings, parsing back, dates and
percentage labels.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from quote_core.formatting import (
    currency_digits, format_currency, format_date, format_percent_value,
    parse_currency
)
from quote_core.models import Currency


class TestFormatCurrency:

    def test_usd(self):
        assert format_currency(Decimal("49.45"), "USD") == "$49.45"

    def test_grouping(self):
        assert format_currency(Decimal("1234567.891"), Currency.USD) == "$1,234,567.89"

    def test_eur_and_gbp_symbols(self):
        assert format_currency(Decimal("1234.5"), "EUR") == "€1,234.50"
        assert format_currency(Decimal("10"), "GBP") == "£10.00"

    def test_ils_symbol(self):
        assert format_currency(Decimal("12"), Currency.ILS).startswith("₪")

    def test_cny_formats(self):
        assert format_currency(Decimal("12"), Currency.CNY).endswith("12.00")

    def test_jpy_has_no_fraction_digits(self):
        assert currency_digits("JPY") == 0
        assert format_currency(Decimal("1234.5"), "JPY") == "¥1,235"

    def test_rounds_half_up(self):
        assert format_currency(Decimal("0.125"), "USD") == "$0.13"

    def test_negative(self):
        assert format_currency(Decimal("-16.5"), "USD") == "-$16.50"

    def test_negative_zero_prints_as_zero(self):
        assert format_currency(Decimal("-0.001"), "USD") == "$0.00"

    def test_lowercase_code(self):
        assert format_currency(1, "usd") == "$1.00"

    def test_unsupported_currency(self):
        with pytest.raises(ValueError):
            format_currency(1, "XYZ")


class TestParseCurrency:

    @pytest.mark.parametrize("amount", ["0.00", "49.45", "1234567.89", "-16.50"])
    def test_recovers_amount(self, amount):
        text = format_currency(Decimal(amount), "USD")
        assert parse_currency(text, "USD") == Decimal(amount)

    def test_jpy(self):
        assert parse_currency(format_currency(Decimal("98765"), "JPY"), "JPY") == Decimal("98765")

    def test_garbage(self):
        with pytest.raises(ValueError):
            parse_currency("lots", "USD")


class TestFormatDate:

    def test_long_form(self):
        assert format_date(date(2024, 3, 5)) == "March 5, 2024"

    def test_accepts_datetime(self):
        assert format_date(datetime(2024, 12, 31, 23, 59)) == "December 31, 2024"


class TestFormatPercentValue:

    @pytest.mark.parametrize("value, expected", [
        (10, "10"),
        (Decimal("12.50"), "12.5"),
        (Decimal("100"), "100"),
        ("0", "0"),
        (None, "0"),
    ])
    def test_labels(self, value, expected):
        assert format_percent_value(value) == expected
