"""
Currency and date formatting for quotations.
Uses Babel with a single fixed locale so output is identical for identical input.
"""

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Union

from babel.dates import format_date as babel_format_date
from babel.numbers import (
    format_currency as babel_format_currency,
    get_currency_precision,
    get_currency_symbol,
    parse_decimal,
    NumberFormatError,
)

from quote_core.calculations import to_decimal
from quote_core.models import Currency


LOCALE = "en_US"
DATE_PATTERN = "MMMM d, y"

SUPPORTED_CURRENCIES = tuple(c.value for c in Currency)


def _currency_code(currency: Union[Currency, str]) -> str:
    code = currency.value if isinstance(currency, Currency) else str(currency or "").upper()
    if code not in SUPPORTED_CURRENCIES:
        raise ValueError(f"Unsupported currency: {currency}")
    return code


def currency_digits(currency: Union[Currency, str]) -> int:
    """Fraction digits for the currency (0 for JPY, 2 for the others)."""
    return get_currency_precision(_currency_code(currency))


def format_currency(amount: Any, currency: Union[Currency, str] = Currency.USD) -> str:
    """
    Format an amount with symbol, grouping and currency fraction digits.

    Rounds half-up to the currency precision before formatting,
    e.g. format_currency(Decimal('49.45'), 'USD') == '$49.45'.
    """
    code = _currency_code(currency)
    quantum = Decimal(1).scaleb(-get_currency_precision(code))
    value = to_decimal(amount).quantize(quantum, rounding=ROUND_HALF_UP)
    if value == 0:
        value = abs(value)  # never print "-$0.00"
    return babel_format_currency(value, code, locale=LOCALE)


def parse_currency(text: str, currency: Union[Currency, str] = Currency.USD) -> Decimal:
    """Recover the amount from a string produced by format_currency."""
    code = _currency_code(currency)
    symbol = get_currency_symbol(code, locale=LOCALE)
    cleaned = (text or "").strip()
    negative = cleaned.startswith("-")
    cleaned = cleaned.lstrip("-").replace(symbol, "").replace("\xa0", "").strip()
    try:
        value = parse_decimal(cleaned, locale=LOCALE)
    except NumberFormatError as exc:
        raise ValueError(f"Not a {code} amount: {text!r}") from exc
    return -value if negative else value


def format_date(value: Union[date, datetime]) -> str:
    """Long-form date, e.g. 'March 5, 2024'."""
    if isinstance(value, datetime):
        value = value.date()
    return babel_format_date(value, format=DATE_PATTERN, locale=LOCALE)


def format_percent_value(value: Any) -> str:
    """Percentage number for labels: 10 -> '10', 12.50 -> '12.5'."""
    number = to_decimal(value).normalize()
    return format(number, "f")
