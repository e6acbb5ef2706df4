"""
Quotation editor.
Client details, pricing options and an ordered line item table with live totals.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from PySide6.QtWidgets import (
    QWidget, QVBoxLayout, QHBoxLayout, QGroupBox, QFormLayout, QLabel,
    QLineEdit, QTextEdit, QSpinBox, QDateEdit, QMessageBox, QHeaderView
)
from PySide6.QtCore import Qt, Signal, QDate

from quote_core import domain
from quote_core.calculations import calc_quotation_totals, line_total
from quote_core.catalog_cache import CatalogCache
from quote_core.exceptions import QuotationValidationError
from quote_core.formatting import format_currency
from quote_core.logging_config import get_logger
from quote_core.models import Currency, DiscountType, QuotationStatus
from quote_core.services import QuotationService
from quote_gui.widgets import (
    DecimalSpinBox, EditableTable, ModernButton, PriceLineEdit, StyledComboBox
)


logger = get_logger(__name__)

COLUMNS = ["SKU", "Description", "LT (wks)", "MOQ", "Unit Price", "Disc %", "Notes", "Total"]
SKU_COL, DESC_COL, LT_COL, MOQ_COL, PRICE_COL, DISC_COL, NOTES_COL, TOTAL_COL = range(len(COLUMNS))


class LineItemsTable(EditableTable):
    """Editable line items; every cell is a widget so values stay typed."""

    items_changed = Signal()

    def __init__(self, catalog: Optional[CatalogCache] = None):
        super().__init__(COLUMNS)
        self.catalog = catalog
        self.currency = Currency.USD
        self._item_ids = []
        self.horizontalHeader().setSectionResizeMode(DESC_COL, QHeaderView.Stretch)

    def add_item(self, item: Optional[domain.LineItem] = None):
        item = item or domain.new_line_item()
        row = self.rowCount()
        self.insertRow(row)
        self._item_ids.append(item.id)

        sku_edit = QLineEdit(item.sku or "")
        sku_edit.editingFinished.connect(lambda: self.fill_from_catalog(sku_edit))
        self.setCellWidget(row, SKU_COL, sku_edit)

        desc_edit = QLineEdit(item.description or "")
        self.setCellWidget(row, DESC_COL, desc_edit)

        self.setCellWidget(row, LT_COL, QLineEdit(item.lead_time or ""))

        moq_spin = QSpinBox()
        moq_spin.setRange(1, 999999)
        moq_spin.setValue(item.moq or 1)
        moq_spin.valueChanged.connect(self.refresh_totals)
        self.setCellWidget(row, MOQ_COL, moq_spin)

        price_edit = PriceLineEdit(item.unit_price)
        price_edit.price_changed.connect(self.refresh_totals)
        self.setCellWidget(row, PRICE_COL, price_edit)

        disc_spin = DecimalSpinBox(decimals=2, minimum=0, maximum=100)
        disc_spin.set_decimal_value(item.discount_percent)
        disc_spin.valueChanged.connect(self.refresh_totals)
        self.setCellWidget(row, DISC_COL, disc_spin)

        self.setCellWidget(row, NOTES_COL, QLineEdit(item.notes or ""))

        total_label = QLabel()
        total_label.setAlignment(Qt.AlignRight | Qt.AlignVCenter)
        self.setCellWidget(row, TOTAL_COL, total_label)

        self.refresh_totals()

    def remove_selected(self):
        row = self.currentRow()
        if row < 0:
            return
        self.removeRow(row)
        del self._item_ids[row]
        self.refresh_totals()

    def fill_from_catalog(self, sku_edit: QLineEdit):
        """Fill an empty row from the catalog entry matching its SKU."""
        if self.catalog is None or not sku_edit.text().strip():
            return
        row = self.indexAt(sku_edit.pos()).row()
        if row < 0:
            return
        try:
            entry = self.catalog.get().get(sku_edit.text().strip().upper())
        except Exception as e:
            logger.warning(f"Catalog unavailable: {e}")
            return
        if not entry:
            return

        desc_edit = self.cellWidget(row, DESC_COL)
        if not desc_edit.text().strip():
            desc_edit.setText(str(entry.get("description", "")))
        if entry.get("lead_time") and not self.cellWidget(row, LT_COL).text().strip():
            self.cellWidget(row, LT_COL).setText(str(entry["lead_time"]))
        price_edit = self.cellWidget(row, PRICE_COL)
        if entry.get("unit_price") is not None and price_edit.get_decimal_value() == 0:
            price_edit.set_decimal_value(Decimal(str(entry["unit_price"])))
        self.refresh_totals()

    def set_items(self, items):
        self.setRowCount(0)
        self._item_ids = []
        for item in items:
            self.add_item(item)

    def get_items(self):
        items = []
        for row in range(self.rowCount()):
            items.append(domain.LineItem(
                id=self._item_ids[row],
                sku=self.cellWidget(row, SKU_COL).text().strip() or None,
                description=self.cellWidget(row, DESC_COL).text().strip(),
                lead_time=self.cellWidget(row, LT_COL).text().strip() or None,
                moq=self.cellWidget(row, MOQ_COL).value(),
                unit_price=self.cellWidget(row, PRICE_COL).get_decimal_value(),
                discount_percent=self.cellWidget(row, DISC_COL).get_decimal_value(),
                notes=self.cellWidget(row, NOTES_COL).text().strip() or None,
            ))
        return items

    def refresh_totals(self):
        for row, item in enumerate(self.get_items()):
            label = self.cellWidget(row, TOTAL_COL)
            if label is not None:
                label.setText(format_currency(line_total(item), self.currency))
        self.items_changed.emit()


class QuotationForm(QWidget):
    """Create or edit one quotation."""

    back_requested = Signal()
    saved = Signal(object)

    def __init__(self, catalog: Optional[CatalogCache] = None, validity_days: int = 30,
                 default_currency: Currency = Currency.USD):
        super().__init__()
        self.validity_days = validity_days
        self.default_currency = default_currency
        self.current: Optional[domain.Quotation] = None
        self.setup_ui(catalog)
        self.new_quotation()

    def setup_ui(self, catalog):
        layout = QVBoxLayout(self)

        header_layout = QHBoxLayout()
        self.title_label = QLabel("New Quotation")
        self.title_label.setStyleSheet("font-size: 20px; font-weight: bold; color: #0891b2;")
        header_layout.addWidget(self.title_label)
        header_layout.addStretch()
        back_btn = ModernButton("Back to List", "secondary", "small")
        back_btn.clicked.connect(self.back_requested.emit)
        header_layout.addWidget(back_btn)
        layout.addLayout(header_layout)

        client_group = QGroupBox("Client")
        client_layout = QFormLayout(client_group)
        self.client_name_edit = QLineEdit()
        self.client_email_edit = QLineEdit()
        self.client_address_edit = QTextEdit()
        self.client_address_edit.setMaximumHeight(70)
        client_layout.addRow("Name:", self.client_name_edit)
        client_layout.addRow("Email:", self.client_email_edit)
        client_layout.addRow("Address:", self.client_address_edit)
        layout.addWidget(client_group)

        pricing_group = QGroupBox("Pricing")
        pricing_layout = QFormLayout(pricing_group)

        self.currency_combo = StyledComboBox()
        for currency in Currency:
            self.currency_combo.addItem(currency.value, currency)
        self.currency_combo.currentIndexChanged.connect(self.on_currency_changed)
        pricing_layout.addRow("Currency:", self.currency_combo)

        self.valid_until_edit = QDateEdit()
        self.valid_until_edit.setCalendarPopup(True)
        pricing_layout.addRow("Valid Until:", self.valid_until_edit)

        self.tax_spin = DecimalSpinBox(decimals=2, minimum=0, maximum=100)
        self.tax_spin.setSuffix(" %")
        self.tax_spin.valueChanged.connect(self.update_totals)
        pricing_layout.addRow("Tax Rate:", self.tax_spin)

        discount_layout = QHBoxLayout()
        self.discount_type_combo = StyledComboBox()
        self.discount_type_combo.addItem("Percentage", DiscountType.PERCENTAGE)
        self.discount_type_combo.addItem("Fixed amount", DiscountType.FIXED)
        self.discount_type_combo.currentIndexChanged.connect(self.update_totals)
        self.discount_spin = DecimalSpinBox(decimals=2, minimum=0, maximum=999999999)
        self.discount_spin.valueChanged.connect(self.update_totals)
        discount_layout.addWidget(self.discount_type_combo)
        discount_layout.addWidget(self.discount_spin)
        pricing_layout.addRow("Discount:", discount_layout)
        layout.addWidget(pricing_group)

        items_group = QGroupBox("Line Items")
        items_layout = QVBoxLayout(items_group)
        self.items_table = LineItemsTable(catalog)
        self.items_table.items_changed.connect(self.update_totals)
        items_layout.addWidget(self.items_table)

        item_buttons = QHBoxLayout()
        add_btn = ModernButton("Add Item", "primary", "small")
        add_btn.clicked.connect(lambda: self.items_table.add_item())
        remove_btn = ModernButton("Remove Item", "danger", "small")
        remove_btn.clicked.connect(self.items_table.remove_selected)
        item_buttons.addWidget(add_btn)
        item_buttons.addWidget(remove_btn)
        item_buttons.addStretch()
        items_layout.addLayout(item_buttons)
        layout.addWidget(items_group)

        self.notes_edit = QTextEdit()
        self.notes_edit.setMaximumHeight(80)
        self.notes_edit.setPlaceholderText("Notes printed at the bottom of the quotation")
        layout.addWidget(self.notes_edit)

        footer_layout = QHBoxLayout()
        self.totals_label = QLabel()
        self.totals_label.setTextFormat(Qt.RichText)
        footer_layout.addWidget(self.totals_label)
        footer_layout.addStretch()
        save_btn = ModernButton("Save Quotation", "primary")
        save_btn.clicked.connect(self.save_quotation)
        footer_layout.addWidget(save_btn)
        layout.addLayout(footer_layout)

    def new_quotation(self):
        self.current = None
        self.title_label.setText("New Quotation")
        self.client_name_edit.clear()
        self.client_email_edit.clear()
        self.client_address_edit.clear()
        self.notes_edit.clear()
        self.currency_combo.select_data(self.default_currency)
        self.discount_type_combo.select_data(DiscountType.PERCENTAGE)
        self.discount_spin.setValue(0)
        self.tax_spin.setValue(0)
        valid_until = datetime.now() + timedelta(days=self.validity_days)
        self.valid_until_edit.setDate(QDate(valid_until.year, valid_until.month, valid_until.day))
        self.items_table.set_items([domain.new_line_item()])

    def load_quotation(self, quotation: domain.Quotation):
        """Fill the form from a stored quotation or an unsaved duplicate."""
        self.current = quotation
        suffix = " (unsaved copy)" if quotation.is_draft_duplicate else ""
        self.title_label.setText(f"Quotation {quotation.quote_number}{suffix}")
        self.client_name_edit.setText(quotation.client_name)
        self.client_email_edit.setText(quotation.client_email)
        self.client_address_edit.setPlainText(quotation.client_address or "")
        self.notes_edit.setPlainText(quotation.notes or "")
        self.currency_combo.select_data(quotation.currency)
        self.discount_type_combo.select_data(quotation.discount_type)
        self.discount_spin.set_decimal_value(quotation.discount_value)
        self.tax_spin.set_decimal_value(quotation.tax_rate)
        valid = quotation.valid_until
        self.valid_until_edit.setDate(QDate(valid.year, valid.month, valid.day))
        self.items_table.set_items(quotation.items)
        self.update_totals()

    def on_currency_changed(self):
        self.items_table.currency = self.currency_combo.currentData()
        self.items_table.refresh_totals()

    def collect_quotation(self) -> domain.Quotation:
        date = self.valid_until_edit.date()
        fields = dict(
            client_name=self.client_name_edit.text().strip(),
            client_email=self.client_email_edit.text().strip(),
            client_address=self.client_address_edit.toPlainText().strip() or None,
            items=self.items_table.get_items(),
            valid_until=datetime(date.year(), date.month(), date.day()),
            tax_rate=self.tax_spin.get_decimal_value(),
            discount_type=self.discount_type_combo.currentData(),
            discount_value=self.discount_spin.get_decimal_value(),
            notes=self.notes_edit.toPlainText().strip() or None,
            currency=self.currency_combo.currentData(),
        )
        if self.current is None:
            return domain.Quotation(status=QuotationStatus.DRAFT, **fields)
        return self.current.copy(**fields)

    def update_totals(self):
        currency = self.currency_combo.currentData() or Currency.USD
        totals = calc_quotation_totals(
            self.items_table.get_items(),
            self.tax_spin.get_decimal_value(),
            self.discount_type_combo.currentData(),
            self.discount_spin.get_decimal_value(),
        )
        self.totals_label.setText(
            f"Subtotal: {format_currency(totals.subtotal, currency)} &nbsp; "
            f"Discount: -{format_currency(totals.discount, currency)} &nbsp; "
            f"Tax: {format_currency(totals.tax, currency)} &nbsp; "
            f"<b>Total: {format_currency(totals.total, currency)}</b>"
        )

    def save_quotation(self):
        data = self.collect_quotation()
        try:
            if data.id is None and not data.is_draft_duplicate:
                saved = QuotationService.create_quotation(data)
            else:
                saved = QuotationService.save_quotation(data)
        except QuotationValidationError as e:
            QMessageBox.warning(self, "Validation Error", "\n".join(e.errors))
            return
        except Exception as e:
            logger.error(f"Error saving quotation: {e}", exc_info=True)
            QMessageBox.critical(self, "Error", f"Failed to save quotation:\n{str(e)}")
            return

        self.load_quotation(saved)
        QMessageBox.information(self, "Success", f"Quotation {saved.quote_number} saved.")
        self.saved.emit(saved)
