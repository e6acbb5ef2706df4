"""
Exception types raised by the quotation core.
"""

from typing import Iterable, List, Optional


GENERATION_FAILED_MESSAGE = "Failed to generate PDF. Please try again."


class QuoteVaultError(Exception):
    """Base class for all quotation core errors."""


class QuotationValidationError(QuoteVaultError):
    """A quotation failed validation before pricing or rendering."""

    def __init__(self, errors: Iterable[str]):
        self.errors: List[str] = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid quotation")


class QuotationNotFoundError(QuoteVaultError):
    def __init__(self, quotation_id):
        self.quotation_id = quotation_id
        super().__init__(f"Quotation not found: {quotation_id}")


class DocumentGenerationError(QuoteVaultError):
    """Rendering failed; carries the quotation id for a user-visible message."""

    def __init__(self, quotation_id, message: Optional[str] = None):
        self.quotation_id = quotation_id
        self.user_message = GENERATION_FAILED_MESSAGE
        super().__init__(message or f"PDF generation failed for quotation {quotation_id}")


class DeliveryError(QuoteVaultError):
    """A delivery adapter is misconfigured."""
