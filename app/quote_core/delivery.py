"""
Delivery of rendered quotation PDFs.
Adapters save the file locally, hand it to the desktop mail client, or send it
through the Brevo transactional email API.
"""

import base64
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Optional, Tuple, Union
from urllib.parse import quote

import requests

from quote_core.config import CompanyProfile
from quote_core.domain import Quotation
from quote_core.exceptions import DeliveryError
from quote_core.formatting import format_date
from quote_core.logging_config import get_logger, log_business_operation
from quote_core.pdf_generator import GeneratedPdf, escape_html, sanitize_text
from quote_core.serial import display_quote_number
from quote_core.services import UnsubscribeService
from quote_core.validation import is_valid_email


logger = get_logger(__name__)

MAX_PDF_BYTES = 10 * 1024 * 1024
REMINDER_PREFIX = "Reminder: "
UNSUBSCRIBED_MESSAGE = "This email has unsubscribed from communications."


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    fallback_used: bool = False
    error: Optional[str] = None
    location: Optional[str] = None

    @property
    def confirmed(self) -> bool:
        """True only when the message itself went out; a mail-client hand-off is not a send."""
        return self.success and not self.fallback_used


class DeliveryAdapter(ABC):
    """Sends rendered bytes somewhere and reports how it went."""

    @abstractmethod
    def deliver(self, pdf_bytes: bytes, file_name: str,
                recipient_email: Optional[str] = None,
                subject: Optional[str] = None,
                body: Optional[str] = None) -> DeliveryResult:
        raise NotImplementedError


def _save(target_dir: Path, pdf_bytes: bytes, file_name: str) -> Path:
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / Path(file_name).name
    path.write_bytes(pdf_bytes)
    return path


class FileDownloadDelivery(DeliveryAdapter):
    """Writes the PDF into a directory."""

    def __init__(self, target_dir: Union[str, Path]):
        self.target_dir = Path(target_dir)

    def deliver(self, pdf_bytes, file_name, recipient_email=None, subject=None, body=None):
        try:
            path = _save(self.target_dir, pdf_bytes, file_name)
        except OSError as e:
            logger.error(f"Error saving {file_name}: {e}")
            return DeliveryResult(success=False, error=str(e))

        logger.info(f"Saved quotation PDF to {path}")
        return DeliveryResult(success=True, location=str(path))


def _open_with_desktop(url: str) -> bool:
    from PySide6.QtCore import QUrl
    from PySide6.QtGui import QDesktopServices

    return QDesktopServices.openUrl(QUrl(url))


def build_mailto_url(recipient: str, subject: str = "", body: str = "") -> str:
    return f"mailto:{quote(recipient or '')}?subject={quote(subject or '')}&body={quote(body or '')}"


class MailClientDelivery(DeliveryAdapter):
    """
    Saves the PDF and opens a pre-filled message in the default mail client.

    mailto links cannot carry attachments, so the user attaches the saved file
    by hand; results always report fallback_used.
    """

    def __init__(self, target_dir: Union[str, Path],
                 open_url: Optional[Callable[[str], bool]] = None):
        self.target_dir = Path(target_dir)
        self.open_url = open_url or _open_with_desktop

    def deliver(self, pdf_bytes, file_name, recipient_email=None, subject=None, body=None):
        try:
            path = _save(self.target_dir, pdf_bytes, file_name)
        except OSError as e:
            logger.error(f"Error saving {file_name}: {e}")
            return DeliveryResult(success=False, fallback_used=True, error=str(e))

        text = body or ""
        text = f"{text}\n\nAttachment: {path}" if text else f"Please attach: {path}"
        url = build_mailto_url(recipient_email or "", subject or "", text)
        if not self.open_url(url):
            return DeliveryResult(success=False, fallback_used=True,
                                  error="Could not open the mail client", location=str(path))
        return DeliveryResult(success=True, fallback_used=True, location=str(path))


class TransactionalEmailDelivery(DeliveryAdapter):
    """Sends the PDF as an attachment through the Brevo SMTP API."""

    def __init__(self, api_key: str, sender_email: str, sender_name: str = "",
                 api_url: str = "https://api.brevo.com/v3/smtp/email", timeout: int = 30):
        if not api_key:
            raise DeliveryError("Email API key is not configured")
        if not is_valid_email(sender_email):
            raise DeliveryError(f"Invalid sender address: {sender_email!r}")
        self.api_key = api_key
        self.sender_email = sender_email
        self.sender_name = sender_name
        self.api_url = api_url
        self.timeout = timeout

    def deliver(self, pdf_bytes, file_name, recipient_email=None, subject=None, body=None):
        if not recipient_email or not is_valid_email(recipient_email):
            return DeliveryResult(success=False, error="Invalid email address")
        if not pdf_bytes or len(pdf_bytes) > MAX_PDF_BYTES:
            return DeliveryResult(success=False, error="Invalid or too large PDF (max 10MB)")

        headers = {
            "api-key": self.api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        payload = {
            "sender": {"email": self.sender_email, "name": self.sender_name or self.sender_email},
            "to": [{"email": recipient_email}],
            "subject": subject or file_name,
            "htmlContent": body or "<p></p>",
            "attachment": [{
                "name": Path(file_name).name,
                "content": base64.b64encode(pdf_bytes).decode("ascii"),
            }],
        }

        try:
            resp = requests.post(self.api_url, headers=headers, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Network error sending email to {recipient_email}: {e}")
            return DeliveryResult(success=False, error=f"Network error: {e}")

        if not 200 <= resp.status_code < 300:
            logger.error(f"Email API error {resp.status_code}: {resp.text}")
            return DeliveryResult(success=False, error=f"Email API error {resp.status_code}: {resp.text}")

        log_business_operation("email_sent", f"{file_name} to {recipient_email}")
        return DeliveryResult(success=True, location=recipient_email)


class FallbackDelivery(DeliveryAdapter):
    """Tries the primary adapter, then the fallback."""

    def __init__(self, primary: DeliveryAdapter, fallback: DeliveryAdapter):
        self.primary = primary
        self.fallback = fallback

    def deliver(self, pdf_bytes, file_name, recipient_email=None, subject=None, body=None):
        result = self.primary.deliver(pdf_bytes, file_name, recipient_email, subject, body)
        if result.success:
            return result

        logger.warning(f"Primary delivery failed ({result.error}); trying fallback")
        second = self.fallback.deliver(pdf_bytes, file_name, recipient_email, subject, body)
        if second.success:
            return replace(second, fallback_used=True)
        return replace(second, fallback_used=True,
                       error=f"{result.error}; fallback: {second.error}")


def unsubscribe_link(recipient: str, url_template: Optional[str] = None,
                     reply_to: Optional[str] = None) -> str:
    """
    Link placed at the foot of every quotation email.

    With a template, {email} is replaced by the quoted recipient address.
    Otherwise the link opens a reply to reply_to asking to be unsubscribed.
    """
    if url_template:
        return url_template.replace("{email}", quote(recipient or "", safe=""))
    return build_mailto_url(reply_to or "", f"Unsubscribe {recipient or ''}".strip(),
                            "Please stop sending quotation emails to this address.")


def build_quotation_email(quotation: Quotation, total_text: str, is_reminder: bool = False,
                          company: Optional[CompanyProfile] = None,
                          unsubscribe_url: Optional[str] = None) -> Tuple[str, str]:
    """
    Compose subject and HTML body for a quotation email.

    Every user-supplied value is HTML-escaped; the subject is plain text.
    """
    company = company or CompanyProfile()
    unsubscribe = unsubscribe_url or unsubscribe_link(quotation.client_email)
    number = display_quote_number(sanitize_text(quotation.quote_number))
    company_name = sanitize_text(company.name)

    subject = f"Quotation {number} from {company_name}"
    if is_reminder:
        subject = REMINDER_PREFIX + subject

    number_html = escape_html(number)
    if is_reminder:
        intro = (f"<p>This is a friendly reminder regarding our quotation <strong>{number_html}</strong>. "
                 f"Please find the updated document attached for your review.</p>")
    else:
        intro = f"<p>Please find attached our quotation <strong>{number_html}</strong> for your review.</p>"

    website = escape_html(company.website)
    html_body = f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #0891b2;">{REMINDER_PREFIX if is_reminder else ''}Quotation {number_html}</h2>
  <p>Dear {escape_html(quotation.client_name)},</p>
  {intro}
  <table style="margin: 20px 0; border-collapse: collapse;">
    <tr>
      <td style="padding: 8px 16px 8px 0; color: #666;">Total:</td>
      <td style="padding: 8px 0; font-weight: bold;">{escape_html(total_text)}</td>
    </tr>
    <tr>
      <td style="padding: 8px 16px 8px 0; color: #666;">Valid Until:</td>
      <td style="padding: 8px 0;">{escape_html(format_date(quotation.valid_until))}</td>
    </tr>
  </table>
  <p>If you have any questions, please don't hesitate to contact us.</p>
  <p style="margin-top: 30px;">Best regards,<br><strong>{escape_html(company_name)}</strong></p>
  <hr style="margin-top: 30px; border: none; border-top: 1px solid #eee;" />
  <p style="font-size: 12px; color: #999;">
    {escape_html(company.address)}<br>
    <a href="https://{website}" style="color: #0891b2;">{website}</a>
  </p>
  <p style="font-size: 11px; color: #bbb; margin-top: 20px;">
    <a href="{escape_html(unsubscribe)}" style="color: #bbb;">Unsubscribe</a> from future quotation emails.
  </p>
</div>
""".strip()
    return subject, html_body


def email_attachment_name(quote_number: str) -> str:
    return f"Quotation_{display_quote_number(quote_number)}.pdf"


def send_quotation_email(quotation: Quotation, pdf: GeneratedPdf, adapter: DeliveryAdapter,
                         total_text: str, is_reminder: bool = False,
                         company: Optional[CompanyProfile] = None,
                         unsubscribe_url: Optional[str] = None,
                         is_unsubscribed: Optional[Callable[[str], bool]] = None) -> DeliveryResult:
    """
    Email a rendered quotation to its client through the given adapter.

    Addresses on the unsubscribe list are refused before the adapter is
    touched. is_unsubscribed defaults to the stored list.
    """
    is_unsubscribed = is_unsubscribed or UnsubscribeService.is_unsubscribed
    if is_unsubscribed(quotation.client_email):
        logger.info(f"Not sending {quotation.quote_number}: {quotation.client_email} has unsubscribed")
        return DeliveryResult(success=False, error=UNSUBSCRIBED_MESSAGE)

    subject, html_body = build_quotation_email(quotation, total_text, is_reminder, company,
                                               unsubscribe_url)
    result = adapter.deliver(pdf.content, email_attachment_name(quotation.quote_number),
                             recipient_email=quotation.client_email,
                             subject=subject, body=html_body)
    if result.success:
        kind = "reminder" if is_reminder else "quotation"
        log_business_operation(f"{kind}_sent" if result.confirmed else f"{kind}_prepared",
                               f"{quotation.quote_number} to {quotation.client_email}")
    return result
