"""
Input validation for quotations.
Limits mirror the quotation form: client details, 1-100 line items, and
percentages within [0, 100].
"""

import math
import re
from decimal import Decimal
from typing import Any, List

from quote_core.domain import LineItem, Quotation
from quote_core.exceptions import QuotationValidationError
from quote_core.models import Currency, DiscountType


EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

MAX_ITEMS = 100
MAX_SKU = 50
MAX_DESCRIPTION = 500
MAX_LEAD_TIME = 100
MAX_MOQ = 999999
MAX_UNIT_PRICE = Decimal('999999999')
MAX_ITEM_NOTES = 500
MAX_CLIENT_NAME = 200
MAX_CLIENT_EMAIL = 255
MAX_ADDRESS = 500
MAX_NOTES = 2000


def is_valid_email(address: str) -> bool:
    address = (address or "").strip()
    return bool(address) and len(address) <= MAX_CLIENT_EMAIL and bool(EMAIL_PATTERN.match(address))


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, Decimal):
        return value.is_finite()
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return math.isfinite(value)
    return False


def _check_percent(errors: List[str], label: str, value: Any):
    if not _is_number(value):
        errors.append(f"{label} must be a number")
    elif not Decimal('0') <= Decimal(str(value)) <= Decimal('100'):
        errors.append(f"{label} must be between 0 and 100")


def validate_line_item(item: LineItem, index: int) -> List[str]:
    """Return the error messages for one line item (1-based index in messages)."""
    errors: List[str] = []
    label = f"Item {index}"

    description = (item.description or "").strip()
    if not description:
        errors.append(f"{label}: description is required")
    elif len(description) > MAX_DESCRIPTION:
        errors.append(f"{label}: description must be at most {MAX_DESCRIPTION} characters")

    if item.sku and len(item.sku) > MAX_SKU:
        errors.append(f"{label}: SKU must be at most {MAX_SKU} characters")
    if item.lead_time and len(str(item.lead_time)) > MAX_LEAD_TIME:
        errors.append(f"{label}: lead time must be at most {MAX_LEAD_TIME} characters")
    if item.notes and len(item.notes) > MAX_ITEM_NOTES:
        errors.append(f"{label}: notes must be at most {MAX_ITEM_NOTES} characters")

    if isinstance(item.moq, bool) or not isinstance(item.moq, int):
        errors.append(f"{label}: MOQ must be a whole number")
    elif not 1 <= item.moq <= MAX_MOQ:
        errors.append(f"{label}: MOQ must be between 1 and {MAX_MOQ}")

    if not _is_number(item.unit_price):
        errors.append(f"{label}: unit price must be a number")
    elif not Decimal('0') <= Decimal(str(item.unit_price)) <= MAX_UNIT_PRICE:
        errors.append(f"{label}: unit price must be between 0 and {MAX_UNIT_PRICE}")

    _check_percent(errors, f"{label}: discount", item.discount_percent)
    return errors


def collect_errors(quotation: Quotation) -> List[str]:
    errors: List[str] = []

    client_name = (quotation.client_name or "").strip()
    if not client_name:
        errors.append("Client name is required")
    elif len(client_name) > MAX_CLIENT_NAME:
        errors.append(f"Client name must be at most {MAX_CLIENT_NAME} characters")

    if not is_valid_email(quotation.client_email):
        errors.append("Valid client email is required")

    if quotation.client_address and len(quotation.client_address) > MAX_ADDRESS:
        errors.append(f"Address must be at most {MAX_ADDRESS} characters")

    if quotation.notes and len(quotation.notes) > MAX_NOTES:
        errors.append(f"Notes must be at most {MAX_NOTES} characters")

    if not isinstance(quotation.currency, Currency):
        errors.append(f"Unsupported currency: {quotation.currency}")
    if not isinstance(quotation.discount_type, DiscountType):
        errors.append(f"Unsupported discount type: {quotation.discount_type}")

    _check_percent(errors, "Tax rate", quotation.tax_rate)

    if not _is_number(quotation.discount_value):
        errors.append("Discount must be a number")
    elif Decimal(str(quotation.discount_value)) < 0:
        errors.append("Discount cannot be negative")

    items = quotation.items or []
    if not items:
        errors.append("At least one item is required")
    elif len(items) > MAX_ITEMS:
        errors.append(f"Maximum {MAX_ITEMS} items allowed")
    for index, item in enumerate(items, start=1):
        errors.extend(validate_line_item(item, index))

    if quotation.valid_until is None:
        errors.append("Valid until date is required")

    return errors


def validate_quotation(quotation: Quotation) -> Quotation:
    """
    Validate a quotation before pricing or rendering.

    Raises:
        QuotationValidationError: with every problem found
    """
    errors = collect_errors(quotation)
    if errors:
        raise QuotationValidationError(errors)
    return quotation
