"""
Tests for delivery.py: local save, mail client hand-off, the Brevo adapter
(HTTP mocked), fallback chaining and email composition.
"""

import base64
from unittest.mock import MagicMock, patch

import pytest
import requests

from quote_core.config import CompanyProfile
from quote_core.delivery import (
    MAX_PDF_BYTES, DeliveryAdapter, DeliveryResult, FallbackDelivery,
    FileDownloadDelivery, MailClientDelivery, TransactionalEmailDelivery,
    UNSUBSCRIBED_MESSAGE, build_mailto_url, build_quotation_email,
    email_attachment_name, send_quotation_email, unsubscribe_link
)
from quote_core.exceptions import DeliveryError
from quote_core.pdf_generator import GeneratedPdf
from quote_core.services import UnsubscribeService


PDF = b"%PDF-1.4 fake"


class RecordingAdapter(DeliveryAdapter):

    def __init__(self, result):
        self.result = result
        self.calls = []

    def deliver(self, pdf_bytes, file_name, recipient_email=None, subject=None, body=None):
        self.calls.append((pdf_bytes, file_name, recipient_email, subject, body))
        return self.result


def brevo():
    return TransactionalEmailDelivery("key-123", "quotes@noga-mt.com", "Noga Quotes",
                                      api_url="https://api.test/v3/smtp/email")


def response(status, text="ok"):
    resp = MagicMock()
    resp.status_code = status
    resp.text = text
    return resp


# ==================== File download ====================

class TestFileDownload:

    def test_writes_file(self, tmp_path):
        result = FileDownloadDelivery(tmp_path / "out").deliver(PDF, "MT050324-7K2Q.pdf")
        assert result.success
        assert not result.fallback_used
        assert (tmp_path / "out" / "MT050324-7K2Q.pdf").read_bytes() == PDF

    def test_file_name_cannot_escape_directory(self, tmp_path):
        result = FileDownloadDelivery(tmp_path).deliver(PDF, "../../evil.pdf")
        assert result.location == str(tmp_path / "evil.pdf")

    def test_unwritable_target_reports_failure(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        result = FileDownloadDelivery(blocker / "sub").deliver(PDF, "x.pdf")
        assert not result.success
        assert result.error


# ==================== Mail client ====================

class TestMailClient:

    def test_opens_mailto_and_saves(self, tmp_path):
        opened = []
        adapter = MailClientDelivery(tmp_path, open_url=lambda url: opened.append(url) or True)
        result = adapter.deliver(PDF, "q.pdf", "buyer@acme.example", "Quotation 1", "Hello")

        assert result.success
        assert result.fallback_used
        assert (tmp_path / "q.pdf").exists()
        assert opened[0].startswith("mailto:buyer%40acme.example?subject=Quotation%201")

    def test_mail_client_unavailable(self, tmp_path):
        result = MailClientDelivery(tmp_path, open_url=lambda url: False).deliver(PDF, "q.pdf")
        assert not result.success
        assert result.fallback_used
        assert result.location == str(tmp_path / "q.pdf")

    def test_mailto_encoding(self):
        url = build_mailto_url("a@b.co", "A & B", "line1\nline2")
        assert url == "mailto:a%40b.co?subject=A%20%26%20B&body=line1%0Aline2"


# ==================== Brevo ====================

class TestTransactionalEmail:

    def test_requires_api_key(self):
        with pytest.raises(DeliveryError):
            TransactionalEmailDelivery("", "quotes@noga-mt.com")

    def test_requires_valid_sender(self):
        with pytest.raises(DeliveryError):
            TransactionalEmailDelivery("key", "not-an-address")

    @patch("quote_core.delivery.requests.post")
    def test_sends_payload(self, mock_post):
        mock_post.return_value = response(201)
        result = brevo().deliver(PDF, "Quotation_MT1.pdf", "buyer@acme.example", "Subj", "<p>Hi</p>")

        assert result.success
        assert not result.fallback_used
        args, kwargs = mock_post.call_args
        assert args[0] == "https://api.test/v3/smtp/email"
        assert kwargs["headers"]["api-key"] == "key-123"
        payload = kwargs["json"]
        assert payload["to"] == [{"email": "buyer@acme.example"}]
        assert payload["subject"] == "Subj"
        assert payload["htmlContent"] == "<p>Hi</p>"
        attachment = payload["attachment"][0]
        assert attachment["name"] == "Quotation_MT1.pdf"
        assert base64.b64decode(attachment["content"]) == PDF

    @patch("quote_core.delivery.requests.post")
    def test_invalid_recipient_not_sent(self, mock_post):
        result = brevo().deliver(PDF, "q.pdf", "nobody")
        assert not result.success
        assert result.error == "Invalid email address"
        mock_post.assert_not_called()

    @patch("quote_core.delivery.requests.post")
    def test_oversized_pdf_not_sent(self, mock_post):
        result = brevo().deliver(b"x" * (MAX_PDF_BYTES + 1), "q.pdf", "buyer@acme.example")
        assert not result.success
        assert "10MB" in result.error
        mock_post.assert_not_called()

    @patch("quote_core.delivery.requests.post")
    def test_api_error(self, mock_post):
        mock_post.return_value = response(401, "unauthorized")
        result = brevo().deliver(PDF, "q.pdf", "buyer@acme.example")
        assert not result.success
        assert "401" in result.error

    @patch("quote_core.delivery.requests.post")
    def test_network_error(self, mock_post):
        mock_post.side_effect = requests.ConnectionError("down")
        result = brevo().deliver(PDF, "q.pdf", "buyer@acme.example")
        assert not result.success
        assert result.error.startswith("Network error")


# ==================== Fallback ====================

class TestFallback:

    def test_primary_success_skips_fallback(self):
        primary = RecordingAdapter(DeliveryResult(success=True))
        fallback = RecordingAdapter(DeliveryResult(success=True))
        result = FallbackDelivery(primary, fallback).deliver(PDF, "q.pdf", "a@b.co")
        assert result.success and not result.fallback_used
        assert not fallback.calls

    def test_fallback_marks_result(self):
        primary = RecordingAdapter(DeliveryResult(success=False, error="api down"))
        fallback = RecordingAdapter(DeliveryResult(success=True, location="/tmp/q.pdf"))
        result = FallbackDelivery(primary, fallback).deliver(PDF, "q.pdf", "a@b.co", "S", "B")
        assert result.success
        assert result.fallback_used
        assert fallback.calls == [(PDF, "q.pdf", "a@b.co", "S", "B")]

    def test_both_fail(self):
        primary = RecordingAdapter(DeliveryResult(success=False, error="api down"))
        fallback = RecordingAdapter(DeliveryResult(success=False, error="no client"))
        result = FallbackDelivery(primary, fallback).deliver(PDF, "q.pdf")
        assert not result.success
        assert result.error == "api down; fallback: no client"


# ==================== Email composition ====================

class TestQuotationEmail:

    def test_subject(self, make_quotation):
        subject, _ = build_quotation_email(make_quotation(), "$49.45",
                                           company=CompanyProfile(name="Noga"))
        assert subject == "Quotation MT050324-ACME-7K2Q from Noga"

    def test_reminder_subject_and_body(self, make_quotation):
        subject, body = build_quotation_email(make_quotation(), "$49.45", is_reminder=True)
        assert subject.startswith("Reminder: Quotation MT050324-ACME-7K2Q")
        assert "friendly reminder" in body

    def test_values_escaped(self, make_quotation):
        q = make_quotation(client_name='<script>alert("x")</script>')
        _, body = build_quotation_email(q, "$1 & up")
        assert "<script>" not in body
        assert "&lt;script&gt;" in body
        assert "$1 &amp; up" in body
        assert "April 4, 2024" in body

    def test_attachment_name(self):
        assert email_attachment_name("QTMT050324-7K2Q") == "Quotation_MT050324-7K2Q.pdf"

    def test_send_uses_client_address(self, db, make_quotation):
        adapter = RecordingAdapter(DeliveryResult(success=True))
        pdf = GeneratedPdf(content=PDF, file_name="MT050324-ACME-7K2Q.pdf")
        result = send_quotation_email(make_quotation(), pdf, adapter, "$49.45")

        assert result.success
        pdf_bytes, file_name, recipient, subject, body = adapter.calls[0]
        assert pdf_bytes == PDF
        assert file_name == "Quotation_MT050324-ACME-7K2Q.pdf"
        assert recipient == "buyer@acme.example"
        assert "$49.45" in body
        assert "Unsubscribe" in body

    def test_unsubscribe_link_in_body(self, make_quotation):
        _, body = build_quotation_email(
            make_quotation(), "$49.45",
            unsubscribe_url="https://quotes.example/unsubscribe?email=buyer%40acme.example&src=q")
        assert ('href="https://quotes.example/unsubscribe?email=buyer%40acme.example&amp;src=q"'
                in body)
        assert "from future quotation emails" in body

    def test_unsubscribe_link_from_template(self):
        link = unsubscribe_link("buyer@acme.example", "https://quotes.example/u?email={email}")
        assert link == "https://quotes.example/u?email=buyer%40acme.example"

    def test_unsubscribe_link_defaults_to_reply(self):
        link = unsubscribe_link("buyer@acme.example", reply_to="quotes@noga-mt.com")
        assert link.startswith("mailto:quotes%40noga-mt.com?subject=Unsubscribe%20buyer%40acme.example")


# ==================== Unsubscribed recipients ====================

class TestUnsubscribedRecipients:

    def test_unsubscribed_address_not_sent(self, db, make_quotation):
        UnsubscribeService.unsubscribe("BUYER@acme.example")
        adapter = RecordingAdapter(DeliveryResult(success=True))
        pdf = GeneratedPdf(content=PDF, file_name="MT050324-ACME-7K2Q.pdf")

        result = send_quotation_email(make_quotation(), pdf, adapter, "$49.45", is_reminder=True)

        assert not result.success
        assert result.error == UNSUBSCRIBED_MESSAGE
        assert adapter.calls == []

    def test_custom_check(self, make_quotation):
        adapter = RecordingAdapter(DeliveryResult(success=True))
        pdf = GeneratedPdf(content=PDF, file_name="q.pdf")
        checked = []

        def never(address):
            checked.append(address)
            return False

        assert send_quotation_email(make_quotation(), pdf, adapter, "$49.45",
                                    is_unsubscribed=never).success
        assert checked == ["buyer@acme.example"]
        assert len(adapter.calls) == 1


# ==================== Confirmed sends ====================

class TestConfirmedSend:

    def test_api_send_is_confirmed(self):
        assert DeliveryResult(success=True).confirmed

    def test_mail_client_hand_off_is_not_confirmed(self, tmp_path):
        adapter = MailClientDelivery(tmp_path, open_url=lambda url: True)
        result = adapter.deliver(PDF, "q.pdf", "buyer@acme.example", "Subject", "Body")
        assert result.success
        assert not result.confirmed

    def test_fallback_after_api_failure_is_not_confirmed(self, tmp_path):
        primary = RecordingAdapter(DeliveryResult(success=False, error="api down"))
        fallback = MailClientDelivery(tmp_path, open_url=lambda url: True)
        result = FallbackDelivery(primary, fallback).deliver(PDF, "q.pdf", "buyer@acme.example")
        assert result.success
        assert not result.confirmed

    def test_failure_is_not_confirmed(self):
        assert not DeliveryResult(success=False, error="boom").confirmed
