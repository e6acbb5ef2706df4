"""
In-memory quotation records used by the pricing engine and the PDF renderer.
These are plain dataclasses; the ORM rows in quote_core.models persist them.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from quote_core.models import Currency, DiscountType, QuotationStatus


@dataclass
class LineItem:
    description: str
    moq: int = 1
    unit_price: Decimal = Decimal('0')
    discount_percent: Decimal = Decimal('0')
    sku: Optional[str] = None
    lead_time: Optional[str] = None
    notes: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass
class Quotation:
    client_name: str
    client_email: str
    items: List[LineItem]
    valid_until: datetime
    quote_number: str = ""
    client_address: Optional[str] = None
    tax_rate: Decimal = Decimal('0')
    discount_type: DiscountType = DiscountType.PERCENTAGE
    discount_value: Decimal = Decimal('0')
    notes: Optional[str] = None
    currency: Currency = Currency.USD
    status: QuotationStatus = QuotationStatus.DRAFT
    created_at: datetime = field(default_factory=datetime.now)
    reminder_sent_at: Optional[datetime] = None
    id: Optional[str] = None
    restored_from_id: Optional[str] = None

    # Set on unsaved duplicates; the permanent number is assigned at first save
    is_draft_duplicate: bool = False

    def copy(self, **changes) -> "Quotation":
        """Shallow-copy the record with fresh item objects."""
        changes.setdefault("items", [replace(item) for item in self.items])
        return replace(self, **changes)


@dataclass
class ArchivedQuotation(Quotation):
    original_id: Optional[str] = None
    archived_at: Optional[datetime] = None
    archived_by: Optional[str] = None


def new_line_item() -> LineItem:
    """Blank line item for the editor."""
    return LineItem(description="", moq=1, unit_price=Decimal('0'), discount_percent=Decimal('0'))
