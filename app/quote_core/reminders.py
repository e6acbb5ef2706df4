"""
Follow-up reminder eligibility.
A quotation is due for follow-up when it was created between one and six weeks
ago, has not been accepted, and no reminder went out in the last week.
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from quote_core.domain import Quotation
from quote_core.models import QuotationStatus


FOLLOW_UP_MIN_AGE = timedelta(days=7)
FOLLOW_UP_MAX_AGE = timedelta(days=42)
REMINDER_COOLDOWN = timedelta(days=7)


def days_since_creation(quotation: Quotation, now: Optional[datetime] = None) -> int:
    """Whole days elapsed since the quotation was created."""
    now = now or datetime.now()
    return (now - quotation.created_at).days


def is_follow_up_due(quotation: Quotation, now: Optional[datetime] = None) -> bool:
    now = now or datetime.now()
    if not now - FOLLOW_UP_MAX_AGE <= quotation.created_at <= now - FOLLOW_UP_MIN_AGE:
        return False
    if quotation.status == QuotationStatus.ACCEPTED:
        return False
    return quotation.reminder_sent_at is None or quotation.reminder_sent_at <= now - REMINDER_COOLDOWN


def find_follow_up_candidates(quotations: Iterable[Quotation],
                              now: Optional[datetime] = None) -> List[Quotation]:
    """Quotations that should get a follow-up, oldest first."""
    now = now or datetime.now()
    due = [q for q in quotations if is_follow_up_due(q, now)]
    return sorted(due, key=lambda q: q.created_at)
