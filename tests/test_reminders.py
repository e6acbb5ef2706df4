"""
Tests for reminders.py: the follow-up window, status exclusion and the
one-week cooldown between reminders.
"""

from datetime import datetime, timedelta

import pytest

from quote_core.models import QuotationStatus
from quote_core.reminders import days_since_creation, find_follow_up_candidates, is_follow_up_due


NOW = datetime(2024, 6, 1, 12, 0)


def days_ago(days):
    return NOW - timedelta(days=days)


class TestFollowUpWindow:

    @pytest.mark.parametrize("age, due", [
        (3, False),
        (7, True),
        (20, True),
        (42, True),
        (43, False),
    ])
    def test_age(self, make_quotation, age, due):
        q = make_quotation(created_at=days_ago(age), status=QuotationStatus.SENT)
        assert is_follow_up_due(q, NOW) is due

    def test_accepted_never_due(self, make_quotation):
        q = make_quotation(created_at=days_ago(10), status=QuotationStatus.ACCEPTED)
        assert not is_follow_up_due(q, NOW)

    @pytest.mark.parametrize("status", [QuotationStatus.DRAFT, QuotationStatus.DECLINED])
    def test_other_statuses_due(self, make_quotation, status):
        assert is_follow_up_due(make_quotation(created_at=days_ago(10), status=status), NOW)


class TestCooldown:

    def test_recent_reminder_blocks(self, make_quotation):
        q = make_quotation(created_at=days_ago(20), reminder_sent_at=days_ago(3))
        assert not is_follow_up_due(q, NOW)

    def test_reminder_a_week_ago_allows(self, make_quotation):
        q = make_quotation(created_at=days_ago(20), reminder_sent_at=days_ago(7))
        assert is_follow_up_due(q, NOW)


class TestCandidates:

    def test_oldest_first(self, make_quotation):
        quotes = [
            make_quotation(quote_number="B", created_at=days_ago(10)),
            make_quotation(quote_number="too-new", created_at=days_ago(2)),
            make_quotation(quote_number="A", created_at=days_ago(30)),
            make_quotation(quote_number="done", created_at=days_ago(15),
                           status=QuotationStatus.ACCEPTED),
        ]
        assert [q.quote_number for q in find_follow_up_candidates(quotes, NOW)] == ["A", "B"]

    def test_days_since_creation(self, make_quotation):
        assert days_since_creation(make_quotation(created_at=days_ago(12)), NOW) == 12

    def test_defaults_to_current_time(self, make_quotation, recent):
        assert is_follow_up_due(make_quotation(created_at=recent(14)))
