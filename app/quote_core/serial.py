"""
Quote number generation for quotations.
Implements MT{DDMMYY}-{CLIENT}-{XXXX} with a random base-36 suffix.
"""

import re
import secrets
import string
from datetime import date, datetime
from typing import Iterable, Optional, Union

from quote_core.database import get_db_session
from quote_core.logging_config import get_logger
from quote_core.models import ArchivedQuotation, Quotation


logger = get_logger(__name__)

PREFIX = "MT"
SUFFIX_LENGTH = 4
SUFFIX_ALPHABET = string.digits + string.ascii_uppercase

QUOTE_NUMBER_PATTERN = re.compile(r"^MT\d{6}(-[A-Z0-9]+)?-[A-Z0-9]{4}$")
_PAREN_SUFFIX = re.compile(r"\s*\(.*?\)\s*$")
_NON_ALNUM = re.compile(r"[^A-Z0-9]")
_QT_PREFIX = re.compile(r"^QT", re.IGNORECASE)


def date_stamp(today: Union[date, datetime]) -> str:
    """DDMMYY stamp for the given date."""
    return today.strftime("%d%m%y")


def clean_client_name(client_name: Optional[str]) -> str:
    """
    Normalize a client name for use inside a quote number.

    "Acme (acme@x.com)" becomes "ACME"; anything outside A-Z and 0-9 is dropped.
    """
    name = (client_name or "").strip()
    # Strip any trailing parenthesized suffixes, e.g. an appended email
    while True:
        stripped = _PAREN_SUFFIX.sub("", name)
        if stripped == name:
            break
        name = stripped
    return _NON_ALNUM.sub("", name.upper())


def random_suffix(rng=None, length: int = SUFFIX_LENGTH) -> str:
    """Random base-36 token drawn from the injected random source."""
    rng = rng or secrets.SystemRandom()
    return "".join(rng.choice(SUFFIX_ALPHABET) for _ in range(length))


def generate_quote_number(client_name: Optional[str],
                          existing_numbers: Iterable[str] = (),
                          is_duplicate: bool = False,
                          today: Optional[Union[date, datetime]] = None,
                          rng=None,
                          max_attempts: int = 1) -> str:
    """
    Generate a new quote number.

    Args:
        client_name: Client display name, possibly with a "(email)" suffix
        existing_numbers: Numbers already issued (active and archived)
        is_duplicate: True when numbering a duplicated quotation; the number is
            generated exactly like a new one
        today: Date for the DDMMYY stamp (defaults to the current date)
        rng: Random source with a choice() method, injectable for tests
        max_attempts: Draws to try against existing_numbers; 1 means no retry

    Returns:
        Quote number string such as "MT050324-ACME-7K2Q" or "MT050324-7K2Q"
    """
    today = today or date.today()
    existing = set(existing_numbers or ())
    head = PREFIX + date_stamp(today)
    name = clean_client_name(client_name)
    if name:
        head = f"{head}-{name}"

    candidate = ""
    for attempt in range(max(1, max_attempts)):
        candidate = f"{head}-{random_suffix(rng)}"
        if candidate not in existing:
            if is_duplicate:
                logger.debug(f"Fresh quote number for duplicate: {candidate}")
            return candidate
        logger.debug(f"Quote number collision on attempt {attempt + 1}: {candidate}")

    logger.warning(f"Quote number {candidate} collides with an existing number")
    return candidate


def validate_quote_number_format(quote_number: str) -> bool:
    """True if the number matches MT{DDMMYY}[-NAME]-{XXXX} with a real date."""
    if not quote_number or not QUOTE_NUMBER_PATTERN.match(quote_number):
        return False
    try:
        datetime.strptime(quote_number[2:8], "%d%m%y")
    except ValueError:
        return False
    return True


def is_quote_number_unique(quote_number: str, session=None) -> bool:
    """
    Check a quote number against active and archived quotations.

    Archiving never frees a number, so both tables are consulted.
    """
    own_session = session is None
    if own_session:
        session = get_db_session()
    try:
        active = session.query(Quotation.id).filter(Quotation.quote_number == quote_number).first()
        if active is not None:
            return False
        archived = (
            session.query(ArchivedQuotation.id)
            .filter(ArchivedQuotation.quote_number == quote_number)
            .first()
        )
        return archived is None
    finally:
        if own_session:
            session.close()


def display_quote_number(quote_number: str) -> str:
    """Quote number as printed: any leading "QT" removed."""
    return _QT_PREFIX.sub("", quote_number or "")


def pdf_file_name(quote_number: str) -> str:
    return f"{display_quote_number(quote_number)}.pdf"
