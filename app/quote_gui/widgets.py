"""
Custom widgets for the Quote Vault desktop app.
Reusable UI components with consistent sizing.
"""

from decimal import Decimal
from typing import List

from PySide6.QtWidgets import (
    QPushButton, QTableWidget, QAbstractItemView, QDoubleSpinBox, QComboBox, QLineEdit
)
from PySide6.QtCore import Signal

from quote_core.calculations import evaluate_price_expression


class ModernButton(QPushButton):
    """Button with size variants."""

    def __init__(self, text: str, style: str = "default", size: str = "normal"):
        super().__init__(text)
        self.setProperty("variant", style)

        if size == "large":
            self.setMinimumHeight(50)
        elif size == "small":
            self.setMinimumHeight(28)
        else:
            self.setMinimumHeight(40)


class EditableTable(QTableWidget):
    """Table widget with row selection and a stretched last column."""

    def __init__(self, columns: List[str]):
        super().__init__()
        self.setColumnCount(len(columns))
        self.setHorizontalHeaderLabels(columns)

        self.setAlternatingRowColors(True)
        self.setSelectionBehavior(QAbstractItemView.SelectRows)
        self.setSelectionMode(QAbstractItemView.SingleSelection)
        self.setSortingEnabled(False)

        header = self.horizontalHeader()
        header.setDefaultSectionSize(120)
        header.setStretchLastSection(True)


class DecimalSpinBox(QDoubleSpinBox):
    """Decimal spin box with proper decimal handling."""

    def __init__(self, decimals: int = 2, minimum: float = 0.0, maximum: float = 999999.99):
        super().__init__()
        self.setDecimals(decimals)
        self.setMinimum(minimum)
        self.setMaximum(maximum)
        self.setSingleStep(0.01 if decimals > 0 else 1)

    def get_decimal_value(self) -> Decimal:
        """Get value as Decimal for precise calculations."""
        return Decimal(str(self.value()))

    def set_decimal_value(self, value: Decimal):
        self.setValue(float(value))


class PriceLineEdit(QLineEdit):
    """
    Unit price input that accepts arithmetic such as "12.5*1.17".

    The expression is evaluated when editing finishes and replaced by the
    rounded result; invalid input is flagged and left for the user to fix.
    """

    price_changed = Signal()

    def __init__(self, value: Decimal = Decimal('0')):
        super().__init__()
        self._value = Decimal('0')
        self.set_decimal_value(value)
        self.editingFinished.connect(self._evaluate)

    def _evaluate(self):
        try:
            value = evaluate_price_expression(self.text())
        except ValueError:
            self.setToolTip("Enter a number or a simple expression like 12.5*1.17")
            self.setStyleSheet("border: 1px solid #dc2626;")
            return
        self.setStyleSheet("")
        self.setToolTip("")
        self.set_decimal_value(value)
        self.price_changed.emit()

    def get_decimal_value(self) -> Decimal:
        return self._value

    def set_decimal_value(self, value: Decimal):
        self._value = Decimal(str(value))
        self.setText(f"{self._value:.2f}")


class StyledComboBox(QComboBox):
    """Combo box that selects entries by their data value."""

    def select_data(self, data):
        index = self.findData(data)
        if index >= 0:
            self.setCurrentIndex(index)
