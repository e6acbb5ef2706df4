"""
Business services for the Quote Vault system.
Handles quotation persistence, status changes, duplication and archiving,
plus company settings and the unsubscribe list. Services return plain
domain records, never live ORM rows.
"""

from dataclasses import replace
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Set, Union

from sqlalchemy import desc
from sqlalchemy.orm import selectinload

from quote_core import domain
from quote_core.database import get_db_session
from quote_core.exceptions import QuotationNotFoundError, QuoteVaultError
from quote_core.logging_config import get_logger, log_business_operation
from quote_core.models import (
    ArchivedQuotation, CompanySettings, Currency, Quotation,
    QuotationStatus, QuoteItem, UnsubscribedEmail, new_uuid
)
from quote_core.serial import (
    generate_quote_number, is_quote_number_unique, validate_quote_number_format
)
from quote_core.validation import validate_quotation


logger = get_logger(__name__)

NUMBER_ATTEMPTS = 5

# Allowed moves when status changes are checked; any status may go back to draft
STATUS_TRANSITIONS = {
    QuotationStatus.DRAFT: {QuotationStatus.SENT},
    QuotationStatus.SENT: {QuotationStatus.ACCEPTED, QuotationStatus.DECLINED},
    QuotationStatus.ACCEPTED: set(),
    QuotationStatus.DECLINED: set(),
}


def can_transition(current: QuotationStatus, new: QuotationStatus) -> bool:
    if new == current or new == QuotationStatus.DRAFT:
        return True
    return new in STATUS_TRANSITIONS[current]


def _status(value: Union[QuotationStatus, str]) -> QuotationStatus:
    if isinstance(value, QuotationStatus):
        return value
    return QuotationStatus(str(value).lower())


# Conversions between ORM rows and domain records

def _item_to_domain(row: QuoteItem) -> domain.LineItem:
    return domain.LineItem(
        id=row.item_id,
        sku=row.sku,
        description=row.description,
        lead_time=row.lead_time,
        moq=row.moq,
        unit_price=Decimal(row.unit_price),
        discount_percent=Decimal(row.discount_percent),
        notes=row.notes,
    )


def _item_to_row(item: domain.LineItem) -> QuoteItem:
    return QuoteItem(
        item_id=item.id or new_uuid(),
        sku=item.sku or None,
        description=item.description,
        lead_time=item.lead_time or None,
        moq=item.moq,
        unit_price=Decimal(str(item.unit_price)),
        discount_percent=Decimal(str(item.discount_percent)),
        notes=item.notes or None,
    )


def _item_to_json(item: domain.LineItem) -> dict:
    return {
        "id": item.id,
        "sku": item.sku,
        "description": item.description,
        "lead_time": item.lead_time,
        "moq": item.moq,
        "unit_price": str(item.unit_price),
        "discount_percent": str(item.discount_percent),
        "notes": item.notes,
    }


def _item_from_json(data: dict) -> domain.LineItem:
    return domain.LineItem(
        id=data.get("id") or new_uuid(),
        sku=data.get("sku"),
        description=data.get("description", ""),
        lead_time=data.get("lead_time"),
        moq=int(data.get("moq", 1)),
        unit_price=Decimal(data.get("unit_price", "0")),
        discount_percent=Decimal(data.get("discount_percent", "0")),
        notes=data.get("notes"),
    )


def _to_domain(row: Quotation) -> domain.Quotation:
    return domain.Quotation(
        id=row.id,
        quote_number=row.quote_number,
        client_name=row.client_name,
        client_email=row.client_email,
        client_address=row.client_address,
        items=[_item_to_domain(item) for item in row.items],
        tax_rate=Decimal(row.tax_rate),
        discount_type=row.discount_type,
        discount_value=Decimal(row.discount_value),
        currency=row.currency,
        status=row.status,
        notes=row.notes,
        created_at=row.created_at,
        valid_until=row.valid_until,
        reminder_sent_at=row.reminder_sent_at,
        restored_from_id=row.restored_from_id,
    )


def _archived_to_domain(row: ArchivedQuotation) -> domain.ArchivedQuotation:
    return domain.ArchivedQuotation(
        id=row.id,
        original_id=row.original_id,
        quote_number=row.quote_number,
        client_name=row.client_name,
        client_email=row.client_email,
        client_address=row.client_address,
        items=[_item_from_json(item) for item in row.items or []],
        tax_rate=Decimal(row.tax_rate),
        discount_type=row.discount_type,
        discount_value=Decimal(row.discount_value),
        currency=row.currency,
        status=row.status,
        notes=row.notes,
        created_at=row.created_at,
        valid_until=row.valid_until,
        reminder_sent_at=row.reminder_sent_at,
        archived_at=row.archived_at,
        archived_by=row.archived_by,
    )


def _apply_fields(row: Quotation, data: domain.Quotation):
    """Copy the editable fields of a domain record onto a row; items are replaced in order."""
    row.client_name = data.client_name.strip()
    row.client_email = data.client_email.strip()
    row.client_address = data.client_address or None
    row.tax_rate = Decimal(str(data.tax_rate))
    row.discount_type = data.discount_type
    row.discount_value = Decimal(str(data.discount_value))
    row.currency = data.currency
    row.notes = data.notes or None
    row.valid_until = data.valid_until
    row.items = [_item_to_row(item) for item in data.items]
    row.updated_at = datetime.now()


class QuotationService:
    """Service for quotation operations."""

    @staticmethod
    def all_quote_numbers(session=None) -> Set[str]:
        """Every number ever issued: active and archived."""
        own_session = session is None
        if own_session:
            session = get_db_session()
        try:
            active = {n for (n,) in session.query(Quotation.quote_number)}
            archived = {n for (n,) in session.query(ArchivedQuotation.quote_number)}
            return active | archived
        finally:
            if own_session:
                session.close()

    @staticmethod
    def _allocate_number(session, client_name: str, is_duplicate: bool = False,
                         today=None, rng=None) -> str:
        existing = QuotationService.all_quote_numbers(session)
        number = generate_quote_number(client_name, existing, is_duplicate=is_duplicate,
                                       today=today, rng=rng, max_attempts=NUMBER_ATTEMPTS)
        if number in existing:
            raise QuoteVaultError(f"Could not allocate a unique quote number for {client_name!r}")
        return number

    @staticmethod
    def _load_row(session, quotation_id: str) -> Quotation:
        row = (
            session.query(Quotation)
            .options(selectinload(Quotation.items))
            .filter(Quotation.id == quotation_id)
            .first()
        )
        if row is None:
            raise QuotationNotFoundError(quotation_id)
        return row

    @staticmethod
    def _insert(session, data: domain.Quotation, quote_number: str) -> Quotation:
        row = Quotation(
            id=new_uuid(),
            quote_number=quote_number,
            status=QuotationStatus.DRAFT,
            created_at=data.created_at or datetime.now(),
            reminder_sent_at=None,
            restored_from_id=data.restored_from_id,
        )
        _apply_fields(row, data)
        session.add(row)
        session.commit()
        return QuotationService._load_row(session, row.id)

    @staticmethod
    def create_quotation(data: domain.Quotation, today=None, rng=None) -> domain.Quotation:
        """
        Create a new draft quotation with a freshly generated number.

        Raises:
            QuotationValidationError: invalid client details or items
        """
        validate_quotation(data)
        session = get_db_session()
        try:
            number = QuotationService._allocate_number(session, data.client_name,
                                                       today=today, rng=rng)
            row = QuotationService._insert(session, data, number)
            log_business_operation("quotation_created", f"{number} for {row.client_name}")
            return _to_domain(row)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @staticmethod
    def get_quotation_by_id(quotation_id: str) -> domain.Quotation:
        """Get quotation by ID with its items in order."""
        session = get_db_session()
        try:
            return _to_domain(QuotationService._load_row(session, quotation_id))
        finally:
            session.close()

    @staticmethod
    def list_quotations(status: Optional[Union[QuotationStatus, str]] = None) -> List[domain.Quotation]:
        """Active quotations, newest first."""
        session = get_db_session()
        try:
            query = session.query(Quotation).options(selectinload(Quotation.items))
            if status:
                query = query.filter(Quotation.status == _status(status))
            return [_to_domain(row) for row in query.order_by(desc(Quotation.created_at)).all()]
        finally:
            session.close()

    @staticmethod
    def update_quotation(quotation_id: Optional[str], data: domain.Quotation,
                         today=None, rng=None) -> domain.Quotation:
        """
        Replace the editable fields of a quotation.

        A draft duplicate has never been stored; it is saved as a new row with
        its permanent number instead.
        """
        if data.is_draft_duplicate:
            return QuotationService.save_quotation(data, today=today, rng=rng)

        validate_quotation(data)
        session = get_db_session()
        try:
            row = QuotationService._load_row(session, quotation_id)
            _apply_fields(row, data)
            session.commit()
            log_business_operation("quotation_updated", row.quote_number)
            return _to_domain(QuotationService._load_row(session, quotation_id))
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @staticmethod
    def save_quotation(data: domain.Quotation, today=None, rng=None) -> domain.Quotation:
        """
        Persist an in-memory quotation.

        Stored quotations are updated. New ones (including draft duplicates)
        keep their provisional number when it is well formed and still
        unused, otherwise a fresh one is drawn.
        """
        if data.id and not data.is_draft_duplicate:
            return QuotationService.update_quotation(data.id, data)

        validate_quotation(data)
        session = get_db_session()
        try:
            number = data.quote_number
            if not (validate_quote_number_format(number)
                    and is_quote_number_unique(number, session)):
                number = QuotationService._allocate_number(
                    session, data.client_name, is_duplicate=data.is_draft_duplicate,
                    today=today, rng=rng)
            row = QuotationService._insert(session, data, number)
            log_business_operation("quotation_saved", number)
            return _to_domain(row)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @staticmethod
    def update_quotation_status(quotation_id: str, status: Union[QuotationStatus, str],
                                strict: bool = False) -> domain.Quotation:
        """
        Update quotation status.

        Any change is accepted unless strict is set, in which case only
        draft -> sent -> accepted/declined and a return to draft are allowed.
        """
        new_status = _status(status)
        session = get_db_session()
        try:
            row = QuotationService._load_row(session, quotation_id)
            if strict and not can_transition(row.status, new_status):
                raise ValueError(
                    f"Cannot change status from {row.status.value} to {new_status.value}")

            old_status = row.status
            row.status = new_status
            row.updated_at = datetime.now()
            session.commit()
            log_business_operation("status_changed",
                                   f"{row.quote_number}: {old_status.value} -> {new_status.value}")
            return _to_domain(row)
        finally:
            session.close()

    @staticmethod
    def mark_reminder_sent(quotation_id: str, when: Optional[datetime] = None) -> domain.Quotation:
        session = get_db_session()
        try:
            row = QuotationService._load_row(session, quotation_id)
            row.reminder_sent_at = when or datetime.now()
            session.commit()
            return _to_domain(row)
        finally:
            session.close()

    @staticmethod
    def record_email_sent(quotation_id: str, is_reminder: bool) -> domain.Quotation:
        """
        Book a confirmed send: stamp the reminder time, or move a draft to sent.

        Only call this once the message has actually gone out.
        """
        if is_reminder:
            return QuotationService.mark_reminder_sent(quotation_id)
        quotation = QuotationService.get_quotation_by_id(quotation_id)
        if quotation.status == QuotationStatus.DRAFT:
            return QuotationService.update_quotation_status(quotation_id, QuotationStatus.SENT)
        return quotation

    @staticmethod
    def duplicate_quotation(quotation_id: str, today=None, rng=None,
                            validity_days: int = 30) -> domain.Quotation:
        """
        Build an unsaved copy of a quotation.

        The copy gets a fresh independent number, new item ids and draft
        status, and is flagged is_draft_duplicate until saved.
        """
        source = QuotationService.get_quotation_by_id(quotation_id)
        session = get_db_session()
        try:
            number = QuotationService._allocate_number(session, source.client_name,
                                                       is_duplicate=True, today=today, rng=rng)
        finally:
            session.close()

        now = datetime.now()
        return source.copy(
            id=None,
            quote_number=number,
            items=[replace(item, id=new_uuid()) for item in source.items],
            status=QuotationStatus.DRAFT,
            created_at=now,
            valid_until=now + timedelta(days=validity_days),
            reminder_sent_at=None,
            restored_from_id=None,
            is_draft_duplicate=True,
        )

    @staticmethod
    def archive_quotation(quotation_id: str, archived_by: str) -> domain.ArchivedQuotation:
        """Move a quotation to the archive in one transaction."""
        session = get_db_session()
        try:
            row = QuotationService._load_row(session, quotation_id)
            record = _to_domain(row)
            archived = ArchivedQuotation(
                id=new_uuid(),
                original_id=row.id,
                quote_number=row.quote_number,
                client_name=row.client_name,
                client_email=row.client_email,
                client_address=row.client_address,
                items=[_item_to_json(item) for item in record.items],
                tax_rate=row.tax_rate,
                discount_type=row.discount_type,
                discount_value=row.discount_value,
                currency=row.currency,
                status=row.status,
                notes=row.notes,
                created_at=row.created_at,
                valid_until=row.valid_until,
                reminder_sent_at=row.reminder_sent_at,
                archived_at=datetime.now(),
                archived_by=archived_by,
            )
            session.add(archived)
            session.delete(row)
            session.commit()
            log_business_operation("quotation_archived", archived.quote_number, user_id=archived_by)
            return _archived_to_domain(archived)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @staticmethod
    def list_archived_quotations() -> List[domain.ArchivedQuotation]:
        """Archived quotations, most recently archived first."""
        session = get_db_session()
        try:
            rows = session.query(ArchivedQuotation).order_by(desc(ArchivedQuotation.archived_at)).all()
            return [_archived_to_domain(row) for row in rows]
        finally:
            session.close()

    @staticmethod
    def restore_quotation(archived_id: str) -> domain.Quotation:
        """
        Bring an archived quotation back into the active set.

        The active row gets a new id; the archived id is kept as
        restored_from_id. The quote number is unchanged.
        """
        session = get_db_session()
        try:
            archived = session.query(ArchivedQuotation).filter(ArchivedQuotation.id == archived_id).first()
            if archived is None:
                raise QuotationNotFoundError(archived_id)

            record = _archived_to_domain(archived)
            row = Quotation(
                id=new_uuid(),
                quote_number=archived.quote_number,
                status=archived.status,
                created_at=archived.created_at,
                reminder_sent_at=archived.reminder_sent_at,
                restored_from_id=archived.id,
            )
            _apply_fields(row, record)
            session.delete(archived)
            # Free the unique number on the archive side before the insert
            session.flush()
            session.add(row)
            session.commit()
            log_business_operation("quotation_restored", row.quote_number)
            return _to_domain(QuotationService._load_row(session, row.id))
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @staticmethod
    def permanently_delete_archived(archived_id: str, is_admin: bool = False) -> bool:
        """Delete an archived quotation for good; admin only."""
        if not is_admin:
            raise PermissionError("Only administrators can permanently delete quotations")

        session = get_db_session()
        try:
            archived = session.query(ArchivedQuotation).filter(ArchivedQuotation.id == archived_id).first()
            if archived is None:
                return False
            number = archived.quote_number
            session.delete(archived)
            session.commit()
            log_business_operation("archived_quotation_deleted", number)
            return True
        finally:
            session.close()


class CompanyService:
    """Service for company settings."""

    @staticmethod
    def get_company_settings() -> CompanySettings:
        """Get company settings, creating default if none exist."""
        session = get_db_session()
        try:
            settings = session.query(CompanySettings).first()
            if not settings:
                settings = CompanySettings(default_currency=Currency.USD)
                session.add(settings)
                session.commit()
                session.refresh(settings)
            return settings
        finally:
            session.close()

    @staticmethod
    def update_company_settings(**kwargs) -> CompanySettings:
        """Update company settings."""
        session = get_db_session()
        try:
            settings = session.query(CompanySettings).first()
            if not settings:
                settings = CompanySettings()
                session.add(settings)

            for key, value in kwargs.items():
                if hasattr(settings, key):
                    setattr(settings, key, value)

            session.commit()
            session.refresh(settings)
            return settings
        finally:
            session.close()


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class UnsubscribeService:
    """Addresses that asked to stop receiving quotation emails."""

    @staticmethod
    def unsubscribe(email: str) -> bool:
        """
        Add an address to the unsubscribe list.

        Addresses are stored lower-cased; unsubscribing twice keeps one row
        and refreshes its timestamp.

        Raises:
            ValueError: the address is blank
        """
        address = _normalize_email(email)
        if not address:
            raise ValueError("Email address is required")

        session = get_db_session()
        try:
            row = session.query(UnsubscribedEmail).filter(UnsubscribedEmail.email == address).first()
            if row is None:
                session.add(UnsubscribedEmail(email=address, unsubscribed_at=datetime.now()))
            else:
                row.unsubscribed_at = datetime.now()
            session.commit()
            log_business_operation("email_unsubscribed", address)
            return True
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @staticmethod
    def is_unsubscribed(email: str) -> bool:
        address = _normalize_email(email)
        if not address:
            return False
        session = get_db_session()
        try:
            row = session.query(UnsubscribedEmail.id).filter(UnsubscribedEmail.email == address).first()
            return row is not None
        finally:
            session.close()

    @staticmethod
    def resubscribe(email: str) -> bool:
        """Remove an address from the list; False if it was not on it."""
        session = get_db_session()
        try:
            deleted = (
                session.query(UnsubscribedEmail)
                .filter(UnsubscribedEmail.email == _normalize_email(email))
                .delete()
            )
            session.commit()
            if deleted:
                log_business_operation("email_resubscribed", _normalize_email(email))
            return bool(deleted)
        finally:
            session.close()
