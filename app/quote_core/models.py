"""
Data models for the Quote Vault system.
Active quotations with ordered line items, archived copies, company settings
and the unsubscribe list.
"""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, Enum, JSON
)
from sqlalchemy.types import DECIMAL as SQLDecimal
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import declarative_base, relationship


Base = declarative_base()


def new_uuid() -> str:
    return str(uuid.uuid4())


# Enums
class DiscountType(enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class Currency(enum.Enum):
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    ILS = "ILS"
    JPY = "JPY"
    CNY = "CNY"


class QuotationStatus(enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    DECLINED = "declined"


# Models
class Quotation(Base):
    __tablename__ = "quotations"

    id = Column(String(36), primary_key=True, default=new_uuid)
    quote_number = Column(String(80), unique=True, nullable=False)

    # Client
    client_name = Column(String(200), nullable=False)
    client_email = Column(String(255), nullable=False)
    client_address = Column(Text)

    # Pricing parameters (amounts are always derived, never stored)
    tax_rate = Column(SQLDecimal(7, 4), default=Decimal('0'), nullable=False)
    discount_type = Column(Enum(DiscountType), default=DiscountType.PERCENTAGE, nullable=False)
    discount_value = Column(SQLDecimal(14, 4), default=Decimal('0'), nullable=False)
    currency = Column(Enum(Currency), default=Currency.USD, nullable=False)

    status = Column(Enum(QuotationStatus), default=QuotationStatus.DRAFT, nullable=False)
    notes = Column(Text)

    created_at = Column(DateTime, default=datetime.now, nullable=False)
    valid_until = Column(DateTime, nullable=False)
    reminder_sent_at = Column(DateTime)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Back-reference to the archived row this quotation was restored from
    restored_from_id = Column(String(36))

    items = relationship(
        "QuoteItem",
        back_populates="quotation",
        order_by="QuoteItem.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )


class QuoteItem(Base):
    __tablename__ = "quote_items"

    row_id = Column(Integer, primary_key=True)
    quotation_id = Column(String(36), ForeignKey("quotations.id"), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    item_id = Column(String(64), nullable=False, default=new_uuid)
    sku = Column(String(50))
    description = Column(Text, nullable=False)
    lead_time = Column(String(100))
    moq = Column(Integer, default=1, nullable=False)
    unit_price = Column(SQLDecimal(14, 4), nullable=False, default=Decimal('0'))
    discount_percent = Column(SQLDecimal(7, 4), nullable=False, default=Decimal('0'))
    notes = Column(Text)

    quotation = relationship("Quotation", back_populates="items")


class ArchivedQuotation(Base):
    """A quotation moved out of the active set; items kept as a JSON snapshot."""
    __tablename__ = "archived_quotations"

    id = Column(String(36), primary_key=True, default=new_uuid)
    original_id = Column(String(36), nullable=False)
    quote_number = Column(String(80), unique=True, nullable=False)

    client_name = Column(String(200), nullable=False)
    client_email = Column(String(255), nullable=False)
    client_address = Column(Text)
    items = Column(JSON, nullable=False, default=list)

    tax_rate = Column(SQLDecimal(7, 4), default=Decimal('0'), nullable=False)
    discount_type = Column(Enum(DiscountType), default=DiscountType.PERCENTAGE, nullable=False)
    discount_value = Column(SQLDecimal(14, 4), default=Decimal('0'), nullable=False)
    currency = Column(Enum(Currency), default=Currency.USD, nullable=False)
    status = Column(Enum(QuotationStatus), default=QuotationStatus.DRAFT, nullable=False)
    notes = Column(Text)

    created_at = Column(DateTime, nullable=False)
    valid_until = Column(DateTime, nullable=False)
    reminder_sent_at = Column(DateTime)

    archived_at = Column(DateTime, default=datetime.now, nullable=False)
    archived_by = Column(String(100), nullable=False)


class CompanySettings(Base):
    __tablename__ = "company_settings"

    id = Column(Integer, primary_key=True)
    # Blank columns fall back to the environment configuration
    company_name = Column(String(200))
    address = Column(Text)
    website = Column(String(200))
    primary_logo_path = Column(String(500))
    secondary_logo_path = Column(String(500))
    default_currency = Column(Enum(Currency), default=Currency.USD)
    default_tax_rate = Column(SQLDecimal(7, 4), default=Decimal('0'))
    default_validity_days = Column(Integer, default=30)

    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


class UnsubscribedEmail(Base):
    """Client address that asked not to receive quotation emails; stored lower-cased."""
    __tablename__ = "unsubscribed_emails"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=False)
    unsubscribed_at = Column(DateTime, default=datetime.now, nullable=False)
