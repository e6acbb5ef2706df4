"""
Shared fixtures: app/ on sys.path, a throwaway data directory and an
in-memory SQLite database per test.
"""

import os
import sys
import tempfile
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "app"))

# Must be set before quote_core.paths is imported
os.environ.setdefault("QUOTE_VAULT_DATA_DIR", tempfile.mkdtemp(prefix="quote_vault_test_"))

from quote_core import database  # noqa: E402
from quote_core.domain import LineItem, Quotation  # noqa: E402
from quote_core.models import Base, Currency, DiscountType  # noqa: E402


@pytest.fixture
def db():
    """Fresh in-memory database bound to the service layer."""
    engine = database.init_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_quotation():
    """Factory for a valid quotation; keyword arguments override fields."""
    def _make(**overrides):
        fields = dict(
            client_name="Acme Industries",
            client_email="buyer@acme.example",
            client_address="12 Harbor Road\nHaifa",
            items=[
                LineItem(sku="BRK-100", description="Bracket, stainless", lead_time="4",
                         moq=10, unit_price=Decimal("5.00"), discount_percent=Decimal("10")),
            ],
            valid_until=datetime(2024, 4, 4),
            created_at=datetime(2024, 3, 5, 9, 30),
            quote_number="MT050324-ACME-7K2Q",
            tax_rate=Decimal("15"),
            discount_type=DiscountType.FIXED,
            discount_value=Decimal("2"),
            currency=Currency.USD,
        )
        fields.update(overrides)
        return Quotation(**fields)
    return _make


@pytest.fixture
def recent():
    """Datetime helper: recent(days) is `days` days before now."""
    def _recent(days):
        return datetime.now() - timedelta(days=days)
    return _recent
