"""
Main window for the Quote Vault desktop app.
Quotation list with PDF, email, duplicate, status and archive actions, plus
the archive and follow-up views.
"""

import getpass
from datetime import datetime
from typing import List, Optional

from PySide6.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QTabWidget, QLabel,
    QTableWidgetItem, QMessageBox, QStackedWidget, QInputDialog
)
from PySide6.QtCore import QTimer
from PySide6.QtGui import QColor

from quote_core import domain
from quote_core.calculations import total
from quote_core.catalog_cache import CatalogCache
from quote_core.config import AppConfig
from quote_core.delivery import (
    DeliveryAdapter, FallbackDelivery, FileDownloadDelivery, MailClientDelivery,
    TransactionalEmailDelivery, send_quotation_email, unsubscribe_link
)
from quote_core.exceptions import DocumentGenerationError, QuoteVaultError
from quote_core.formatting import format_currency, format_date
from quote_core.logging_config import get_logger, log_error
from quote_core.models import Currency, QuotationStatus
from quote_core.paths import app_paths
from quote_core.pdf_generator import generate_quotation_pdf
from quote_core.reminders import days_since_creation, find_follow_up_candidates
from quote_core.services import QuotationService, UnsubscribeService
from quote_gui.quotation_form import QuotationForm
from quote_gui.widgets import EditableTable, ModernButton, StyledComboBox


logger = get_logger(__name__)

STATUS_COLORS = {
    QuotationStatus.DRAFT: "#666666",
    QuotationStatus.SENT: "#0891b2",
    QuotationStatus.ACCEPTED: "#16a34a",
    QuotationStatus.DECLINED: "#dc2626",
}


def build_email_adapter(config: AppConfig) -> DeliveryAdapter:
    """Brevo when configured, with the desktop mail client as fallback."""
    mail_client = MailClientDelivery(app_paths.exports_dir)
    if not config.email_enabled:
        return mail_client
    api = TransactionalEmailDelivery(
        api_key=config.brevo_api_key,
        sender_email=config.sender_email,
        sender_name=config.sender_name,
        api_url=config.brevo_api_url,
    )
    return FallbackDelivery(api, mail_client)


class MainWindow(QMainWindow):
    """Main application window."""

    def __init__(self, config: AppConfig, catalog: Optional[CatalogCache] = None):
        super().__init__()
        self.config = config
        self.catalog = catalog
        self.quotations: List[domain.Quotation] = []
        self.archived: List[domain.ArchivedQuotation] = []
        self.follow_ups: List[domain.Quotation] = []
        self.email_adapter = build_email_adapter(config)
        self.download = FileDownloadDelivery(app_paths.exports_dir)

        self.setWindowTitle(f"{config.company.name} - Quote Vault")
        self.setMinimumSize(1200, 800)

        self.setup_ui()
        QTimer.singleShot(100, self.load_initial_data)

    def setup_ui(self):
        self.tab_widget = QTabWidget()
        self.setCentralWidget(self.tab_widget)

        self.setup_quotations_page()
        self.setup_archive_page()
        self.setup_follow_up_page()
        self.tab_widget.currentChanged.connect(self.on_tab_changed)

    def setup_quotations_page(self):
        self.quotations_stack = QStackedWidget()

        # Page 0: list
        list_widget = QWidget()
        list_layout = QVBoxLayout(list_widget)
        list_layout.setContentsMargins(20, 20, 20, 20)

        header_layout = QHBoxLayout()
        title_label = QLabel("Quotations")
        title_label.setStyleSheet("font-size: 24px; font-weight: bold; color: #0891b2;")
        header_layout.addWidget(title_label)
        header_layout.addStretch()

        self.status_filter = StyledComboBox()
        self.status_filter.addItem("All Statuses", None)
        for status in QuotationStatus:
            self.status_filter.addItem(status.value.title(), status)
        self.status_filter.currentIndexChanged.connect(self.refresh_quotations_table)
        header_layout.addWidget(self.status_filter)

        new_btn = ModernButton("New Quotation", "primary")
        new_btn.clicked.connect(self.create_new_quotation)
        header_layout.addWidget(new_btn)
        list_layout.addLayout(header_layout)

        self.quotations_table = EditableTable([
            "Quote #", "Client", "Email", "Total", "Status", "Created", "Valid Until"
        ])
        self.quotations_table.doubleClicked.connect(self.edit_selected_quotation)
        list_layout.addWidget(self.quotations_table)

        actions_layout = QHBoxLayout()
        for label, handler in (
            ("Edit", self.edit_selected_quotation),
            ("Duplicate", self.duplicate_selected_quotation),
            ("Download PDF", self.download_selected_pdf),
            ("Email", self.email_selected_quotation),
            ("Unsubscribe Client", self.unsubscribe_selected_client),
            ("Archive", self.archive_selected_quotation),
        ):
            btn = ModernButton(label, "secondary", "small")
            btn.clicked.connect(handler)
            actions_layout.addWidget(btn)
        actions_layout.addStretch()

        self.status_combo = StyledComboBox()
        for status in QuotationStatus:
            self.status_combo.addItem(status.value.title(), status)
        actions_layout.addWidget(self.status_combo)
        status_btn = ModernButton("Set Status", "secondary", "small")
        status_btn.clicked.connect(self.set_selected_status)
        actions_layout.addWidget(status_btn)
        list_layout.addLayout(actions_layout)

        self.quotations_stack.addWidget(list_widget)

        # Page 1: form
        default_currency = Currency(self.config.default_currency) \
            if self.config.default_currency in Currency.__members__ else Currency.USD
        self.quotation_form = QuotationForm(self.catalog, self.config.default_validity_days,
                                            default_currency)
        self.quotation_form.back_requested.connect(self.show_quotation_list)
        self.quotation_form.saved.connect(lambda _: self.refresh_quotations_table())
        self.quotations_stack.addWidget(self.quotation_form)

        self.tab_widget.addTab(self.quotations_stack, "Quotations")

    def setup_archive_page(self):
        archive_widget = QWidget()
        layout = QVBoxLayout(archive_widget)
        layout.setContentsMargins(20, 20, 20, 20)

        self.archive_table = EditableTable([
            "Quote #", "Client", "Total", "Status", "Archived", "Archived By"
        ])
        layout.addWidget(self.archive_table)

        actions_layout = QHBoxLayout()
        restore_btn = ModernButton("Restore", "primary", "small")
        restore_btn.clicked.connect(self.restore_selected_archived)
        actions_layout.addWidget(restore_btn)
        delete_btn = ModernButton("Delete Permanently", "danger", "small")
        delete_btn.clicked.connect(self.delete_selected_archived)
        delete_btn.setEnabled(self.config.admin_mode)
        actions_layout.addWidget(delete_btn)
        actions_layout.addStretch()
        layout.addLayout(actions_layout)

        self.tab_widget.addTab(archive_widget, "Archive")

    def setup_follow_up_page(self):
        follow_widget = QWidget()
        layout = QVBoxLayout(follow_widget)
        layout.setContentsMargins(20, 20, 20, 20)

        layout.addWidget(QLabel("Quotations created 1-6 weeks ago that have not been accepted."))
        self.follow_up_table = EditableTable(["Quote #", "Client", "Status", "Days Since Created",
                                              "Last Reminder"])
        layout.addWidget(self.follow_up_table)

        remind_btn = ModernButton("Send Reminder", "primary", "small")
        remind_btn.clicked.connect(self.send_selected_reminder)
        layout.addWidget(remind_btn)

        self.tab_widget.addTab(follow_widget, "Follow-ups")

    # Data loading

    def load_initial_data(self):
        self.refresh_quotations_table()

    def on_tab_changed(self, index):
        if index == 0:
            self.refresh_quotations_table()
        elif index == 1:
            self.refresh_archive_table()
        elif index == 2:
            self.refresh_follow_up_table()

    def _total_text(self, quotation: domain.Quotation) -> str:
        amount = total(quotation.items, quotation.tax_rate,
                       quotation.discount_type, quotation.discount_value)
        return format_currency(amount, quotation.currency)

    def refresh_quotations_table(self):
        try:
            self.quotations = QuotationService.list_quotations(self.status_filter.currentData())
        except Exception as e:
            logger.error(f"Error refreshing quotations table: {e}", exc_info=True)
            QMessageBox.critical(self, "Error", f"Failed to load quotations:\n{str(e)}")
            return

        self.quotations_table.setRowCount(len(self.quotations))
        for row, quotation in enumerate(self.quotations):
            self.quotations_table.setItem(row, 0, QTableWidgetItem(quotation.quote_number))
            self.quotations_table.setItem(row, 1, QTableWidgetItem(quotation.client_name))
            self.quotations_table.setItem(row, 2, QTableWidgetItem(quotation.client_email))
            self.quotations_table.setItem(row, 3, QTableWidgetItem(self._total_text(quotation)))

            status_item = QTableWidgetItem(quotation.status.value.title())
            status_item.setForeground(QColor(STATUS_COLORS[quotation.status]))
            self.quotations_table.setItem(row, 4, status_item)

            self.quotations_table.setItem(row, 5, QTableWidgetItem(format_date(quotation.created_at)))
            self.quotations_table.setItem(row, 6, QTableWidgetItem(format_date(quotation.valid_until)))

    def refresh_archive_table(self):
        try:
            self.archived = QuotationService.list_archived_quotations()
        except Exception as e:
            logger.error(f"Error refreshing archive table: {e}", exc_info=True)
            QMessageBox.critical(self, "Error", f"Failed to load archive:\n{str(e)}")
            return

        self.archive_table.setRowCount(len(self.archived))
        for row, quotation in enumerate(self.archived):
            self.archive_table.setItem(row, 0, QTableWidgetItem(quotation.quote_number))
            self.archive_table.setItem(row, 1, QTableWidgetItem(quotation.client_name))
            self.archive_table.setItem(row, 2, QTableWidgetItem(self._total_text(quotation)))
            self.archive_table.setItem(row, 3, QTableWidgetItem(quotation.status.value.title()))
            self.archive_table.setItem(row, 4, QTableWidgetItem(format_date(quotation.archived_at)))
            self.archive_table.setItem(row, 5, QTableWidgetItem(quotation.archived_by or ""))

    def refresh_follow_up_table(self):
        try:
            self.follow_ups = find_follow_up_candidates(QuotationService.list_quotations())
        except Exception as e:
            logger.error(f"Error loading follow-ups: {e}", exc_info=True)
            QMessageBox.critical(self, "Error", f"Failed to load follow-ups:\n{str(e)}")
            return

        now = datetime.now()
        self.follow_up_table.setRowCount(len(self.follow_ups))
        for row, quotation in enumerate(self.follow_ups):
            self.follow_up_table.setItem(row, 0, QTableWidgetItem(quotation.quote_number))
            self.follow_up_table.setItem(row, 1, QTableWidgetItem(quotation.client_name))
            self.follow_up_table.setItem(row, 2, QTableWidgetItem(quotation.status.value.title()))
            self.follow_up_table.setItem(row, 3, QTableWidgetItem(str(days_since_creation(quotation, now))))
            last = format_date(quotation.reminder_sent_at) if quotation.reminder_sent_at else "Never"
            self.follow_up_table.setItem(row, 4, QTableWidgetItem(last))

    # Selection helpers

    def _selected(self, table, records):
        row = table.currentRow()
        if row < 0 or row >= len(records):
            QMessageBox.information(self, "No Selection", "Select a quotation first.")
            return None
        return records[row]

    def show_quotation_list(self):
        self.quotations_stack.setCurrentIndex(0)
        self.refresh_quotations_table()

    # Quotation actions

    def create_new_quotation(self):
        self.quotation_form.new_quotation()
        self.quotations_stack.setCurrentIndex(1)

    def edit_selected_quotation(self):
        quotation = self._selected(self.quotations_table, self.quotations)
        if quotation:
            self.quotation_form.load_quotation(quotation)
            self.quotations_stack.setCurrentIndex(1)

    def duplicate_selected_quotation(self):
        quotation = self._selected(self.quotations_table, self.quotations)
        if not quotation:
            return
        try:
            copy = QuotationService.duplicate_quotation(
                quotation.id, validity_days=self.config.default_validity_days)
        except QuoteVaultError as e:
            QMessageBox.critical(self, "Error", f"Failed to duplicate quotation:\n{str(e)}")
            return
        self.quotation_form.load_quotation(copy)
        self.quotations_stack.setCurrentIndex(1)

    def _render(self, quotation: domain.Quotation):
        try:
            return generate_quotation_pdf(quotation, self.config)
        except DocumentGenerationError as e:
            QMessageBox.critical(self, "Error", e.user_message)
        except QuoteVaultError as e:
            QMessageBox.warning(self, "Cannot Generate PDF", str(e))
        return None

    def download_selected_pdf(self):
        quotation = self._selected(self.quotations_table, self.quotations)
        if not quotation:
            return
        pdf = self._render(quotation)
        if pdf is None:
            return
        result = self.download.deliver(pdf.content, pdf.file_name)
        if result.success:
            QMessageBox.information(self, "PDF Saved", f"Quotation saved to:\n{result.location}")
        else:
            QMessageBox.critical(self, "Error", f"Failed to save PDF:\n{result.error}")

    def _email(self, quotation: domain.Quotation, is_reminder: bool) -> bool:
        pdf = self._render(quotation)
        if pdf is None:
            return False
        unsubscribe = unsubscribe_link(quotation.client_email, self.config.unsubscribe_url,
                                       self.config.sender_email)
        result = send_quotation_email(quotation, pdf, self.email_adapter,
                                      self._total_text(quotation), is_reminder,
                                      self.config.company, unsubscribe_url=unsubscribe)
        if not result.success:
            QMessageBox.critical(self, "Email Failed", result.error or "Unknown error")
            return False

        if result.confirmed:
            QMessageBox.information(self, "Email Sent", f"Quotation sent to {quotation.client_email}.")
        else:
            # The mail client only opened; book the send once the user says it went out
            reply = QMessageBox.question(
                self, "Email Prepared",
                f"Your mail client was opened. Attach the saved PDF:\n{result.location}\n\n"
                f"Click Yes once the email has been sent.")
            if reply != QMessageBox.Yes:
                return False

        try:
            QuotationService.record_email_sent(quotation.id, is_reminder)
        except QuoteVaultError as e:
            log_error(e, context=f"record send of {quotation.quote_number}")
            QMessageBox.warning(self, "Email", f"The email went out but could not be recorded:\n{e}")
        return True

    def unsubscribe_selected_client(self):
        quotation = self._selected(self.quotations_table, self.quotations)
        if not quotation:
            return
        reply = QMessageBox.question(
            self, "Unsubscribe",
            f"Stop sending quotation emails to {quotation.client_email}?")
        if reply != QMessageBox.Yes:
            return
        try:
            UnsubscribeService.unsubscribe(quotation.client_email)
        except ValueError as e:
            QMessageBox.warning(self, "Unsubscribe", str(e))
            return
        QMessageBox.information(self, "Unsubscribe",
                                f"{quotation.client_email} will no longer receive quotation emails.")

    def email_selected_quotation(self):
        quotation = self._selected(self.quotations_table, self.quotations)
        if quotation and self._email(quotation, is_reminder=False):
            self.refresh_quotations_table()

    def send_selected_reminder(self):
        quotation = self._selected(self.follow_up_table, self.follow_ups)
        if quotation and self._email(quotation, is_reminder=True):
            self.refresh_follow_up_table()

    def set_selected_status(self):
        quotation = self._selected(self.quotations_table, self.quotations)
        if not quotation:
            return
        try:
            QuotationService.update_quotation_status(quotation.id, self.status_combo.currentData())
        except (ValueError, QuoteVaultError) as e:
            QMessageBox.warning(self, "Status", str(e))
            return
        self.refresh_quotations_table()

    def archive_selected_quotation(self):
        quotation = self._selected(self.quotations_table, self.quotations)
        if not quotation:
            return
        reply = QMessageBox.question(self, "Archive Quotation",
                                     f"Move {quotation.quote_number} to the archive?")
        if reply != QMessageBox.Yes:
            return
        try:
            QuotationService.archive_quotation(quotation.id, archived_by=getpass.getuser())
        except Exception as e:
            log_error(e, context=f"archive {quotation.quote_number}", user_id=getpass.getuser())
            QMessageBox.critical(self, "Error", f"Failed to archive quotation:\n{str(e)}")
            return
        self.refresh_quotations_table()

    # Archive actions

    def restore_selected_archived(self):
        archived = self._selected(self.archive_table, self.archived)
        if not archived:
            return
        try:
            QuotationService.restore_quotation(archived.id)
        except Exception as e:
            log_error(e, context=f"restore {archived.quote_number}")
            QMessageBox.critical(self, "Error", f"Failed to restore quotation:\n{str(e)}")
            return
        self.refresh_archive_table()

    def delete_selected_archived(self):
        archived = self._selected(self.archive_table, self.archived)
        if not archived:
            return
        text, ok = QInputDialog.getText(
            self, "Delete Permanently",
            f"Type {archived.quote_number} to delete it permanently:")
        if not ok or text.strip() != archived.quote_number:
            return
        try:
            QuotationService.permanently_delete_archived(archived.id, is_admin=self.config.admin_mode)
        except PermissionError as e:
            QMessageBox.warning(self, "Not Allowed", str(e))
            return
        self.refresh_archive_table()
