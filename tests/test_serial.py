"""
Tests for serial.py: quote number composition, client name cleaning and
uniqueness against active and archived quotations.
"""

import random
from datetime import date

from quote_core.serial import (
    QUOTE_NUMBER_PATTERN, clean_client_name, display_quote_number,
    generate_quote_number, is_quote_number_unique, pdf_file_name,
    random_suffix, validate_quote_number_format
)
from quote_core.services import QuotationService


DAY = date(2024, 3, 5)


class FixedChoices:
    """Random source that replays a fixed sequence of characters."""

    def __init__(self, chars):
        self.chars = list(chars)

    def choice(self, seq):
        return self.chars.pop(0)


class TestCleanClientName:

    def test_strips_parenthesized_email(self):
        assert clean_client_name("Acme (acme@x.com)") == "ACME"

    def test_uppercases_and_drops_symbols(self):
        assert clean_client_name("O'Brien & Sons Ltd.") == "OBRIENSONSLTD"

    def test_empty(self):
        assert clean_client_name("") == ""
        assert clean_client_name(None) == ""

    def test_only_symbols(self):
        assert clean_client_name("---") == ""


class TestGenerateQuoteNumber:

    def test_empty_name_has_no_name_segment(self):
        number = generate_quote_number("", today=DAY, rng=random.Random(1))
        assert number.startswith("MT050324-")
        assert len(number) == len("MT050324-XXXX")
        assert "--" not in number

    def test_name_segment(self):
        number = generate_quote_number("Acme (acme@x.com)", today=DAY, rng=FixedChoices("7K2Q"))
        assert number == "MT050324-ACME-7K2Q"

    def test_matches_pattern(self):
        rng = random.Random(42)
        for name in ["Acme", "", "Zeta 9 (z@z.io)", "שלום", "a-b_c"]:
            number = generate_quote_number(name, today=DAY, rng=rng)
            assert QUOTE_NUMBER_PATTERN.match(number), number
            assert validate_quote_number_format(number)

    def test_seeded_rng_is_reproducible(self):
        first = generate_quote_number("Acme", today=DAY, rng=random.Random(7))
        second = generate_quote_number("Acme", today=DAY, rng=random.Random(7))
        assert first == second

    def test_duplicate_gets_fresh_number_without_copy_marker(self):
        number = generate_quote_number("Acme", today=DAY, rng=FixedChoices("AB12"), is_duplicate=True)
        assert number == "MT050324-ACME-AB12"
        assert "COPY" not in number

    def test_single_attempt_returns_collision(self):
        existing = {"MT050324-ACME-AAAA"}
        number = generate_quote_number("Acme", existing, today=DAY, rng=FixedChoices("AAAABBBB"))
        assert number == "MT050324-ACME-AAAA"

    def test_retries_on_collision(self):
        existing = {"MT050324-ACME-AAAA"}
        number = generate_quote_number("Acme", existing, today=DAY,
                                       rng=FixedChoices("AAAABBBB"), max_attempts=3)
        assert number == "MT050324-ACME-BBBB"

    def test_suffix_alphabet(self):
        suffix = random_suffix(random.Random(3))
        assert len(suffix) == 4
        assert all(c.isdigit() or c.isupper() for c in suffix)


class TestFormatHelpers:

    def test_rejects_impossible_date(self):
        assert not validate_quote_number_format("MT310224-ACME-7K2Q")

    def test_rejects_lowercase_suffix(self):
        assert not validate_quote_number_format("MT050324-ACME-7k2q")

    def test_display_strips_legacy_prefix(self):
        assert display_quote_number("QTMT050324") == "MT050324"
        assert display_quote_number("qtMT050324-7K2Q") == "MT050324-7K2Q"
        assert display_quote_number("MT050324-7K2Q") == "MT050324-7K2Q"

    def test_pdf_file_name(self):
        assert pdf_file_name("QTMT050324-ACME-7K2Q") == "MT050324-ACME-7K2Q.pdf"


class TestUniqueness:

    def test_archived_numbers_stay_taken(self, db, make_quotation):
        saved = QuotationService.create_quotation(make_quotation(), today=DAY, rng=random.Random(5))
        assert not is_quote_number_unique(saved.quote_number)

        QuotationService.archive_quotation(saved.id, archived_by="tester")
        assert not is_quote_number_unique(saved.quote_number)
        assert saved.quote_number in QuotationService.all_quote_numbers()

    def test_unused_number_is_unique(self, db):
        assert is_quote_number_unique("MT050324-NOBODY-0000")
