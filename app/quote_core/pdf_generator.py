"""
PDF generation for quotations.
Draws the quotation directly on a reportlab canvas (A4, millimetres) with a
variable-length item table that breaks across pages without splitting rows.
"""

import asyncio
import html
import io
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

from babel.numbers import get_currency_symbol
from reportlab.lib.colors import HexColor, white
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from quote_core.calculations import calc_quotation_totals, line_total
from quote_core.config import AppConfig, CompanyProfile
from quote_core.domain import Quotation
from quote_core.exceptions import DocumentGenerationError, QuotationValidationError
from quote_core.formatting import LOCALE, format_currency, format_date, format_percent_value
from quote_core.logging_config import get_logger, log_performance
from quote_core.models import Currency, DiscountType
from quote_core.serial import display_quote_number, pdf_file_name
from quote_core.validation import validate_quotation


logger = get_logger(__name__)

# Page geometry (mm)
PAGE_WIDTH = A4[0] / mm
PAGE_HEIGHT = A4[1] / mm
MARGIN = 15
CONTENT_WIDTH = PAGE_WIDTH - MARGIN * 2

LOGO_HEIGHT = 14
LOGO_PAD = 1
HEADER_BAND = 22

DESC_WIDTH = 53
LINE_HEIGHT = 4
MIN_ROW_HEIGHT = 8
FOOTER_RESERVE = 40
TOTALS_RESERVE = 30
NOTES_LINE_HEIGHT = 3.5

COLUMN_X = {
    'num': MARGIN,
    'sku': MARGIN + 8,
    'desc': MARGIN + 30,
    'lt': MARGIN + 85,
    'moq': MARGIN + 100,
    'price': MARGIN + 118 + 14,
    'disc': MARGIN + 148,
    'total': PAGE_WIDTH - MARGIN,
}

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
FONT_ITALIC = "Helvetica-Oblique"
# The built-in Type1 fonts only carry WinAnsi glyphs
FONT_ENCODING = "cp1252"

CYAN = HexColor("#0891b2")
BLACK = HexColor("#1a1a1a")
GRAY = HexColor("#666666")
LIGHT_GRAY = HexColor("#d1d5db")
ROW_RULE = HexColor("#e5e5e5")
RED = HexColor("#dc2626")

EMPTY_CELL = "—"

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")


def sanitize_text(value) -> str:
    """Strip control characters (newline and tab survive) from user text."""
    if value is None:
        return ""
    return _CONTROL_CHARS.sub("", str(value))


def escape_html(value) -> str:
    """Escape & < > " ' for inclusion in an HTML email body."""
    return html.escape(sanitize_text(value), quote=True)


def pdf_currency(amount, currency: Union[Currency, str]) -> str:
    """
    format_currency for drawing with the built-in fonts.

    A symbol the fonts cannot encode is replaced by the ISO code,
    e.g. '₪49.45' becomes 'ILS 49.45'; '$49.45' is unchanged.
    """
    text = format_currency(amount, currency)
    try:
        text.encode(FONT_ENCODING)
    except UnicodeEncodeError:
        code = currency.value if isinstance(currency, Currency) else str(currency).upper()
        text = text.replace(get_currency_symbol(code, locale=LOCALE), f"{code} ")
    return text


@dataclass(frozen=True)
class GeneratedPdf:
    content: bytes
    file_name: str


@dataclass(frozen=True)
class RowPlacement:
    index: int
    page: int
    top: float
    height: float


@dataclass
class LayoutTrace:
    """Where each block landed; pages are 0-based, y is mm from the top."""

    rows: List[RowPlacement] = field(default_factory=list)
    totals_page: int = 0
    notes_page: Optional[int] = None
    note_lines: List[Tuple[int, float]] = field(default_factory=list)
    footer_page: int = 0
    footer_y: float = 0.0
    page_count: int = 1


class DocumentRenderer(ABC):
    """Turns a quotation into a finished document."""

    @abstractmethod
    def render(self, quotation: Quotation) -> GeneratedPdf:
        raise NotImplementedError


class _Page:
    """Per-render drawing state: canvas, vertical cursor and page index."""

    def __init__(self, pdf: canvas.Canvas):
        self.pdf = pdf
        self.y = float(MARGIN)
        self.index = 0

    def new_page(self):
        self.pdf.showPage()
        self.index += 1
        self.y = float(MARGIN)

    def text(self, x, y, value, font=FONT, size=8, color=BLACK, align="left"):
        self.pdf.setFont(font, size)
        self.pdf.setFillColor(color)
        rl_y = (PAGE_HEIGHT - y) * mm
        if align == "right":
            self.pdf.drawRightString(x * mm, rl_y, value)
        elif align == "center":
            self.pdf.drawCentredString(x * mm, rl_y, value)
        else:
            self.pdf.drawString(x * mm, rl_y, value)

    def lines(self, x, y, values, font=FONT, size=8, color=BLACK, leading=LINE_HEIGHT):
        for offset, value in enumerate(values):
            self.text(x, y + offset * leading, value, font, size, color)

    def rule(self, x1, x2, y, color, width):
        self.pdf.setStrokeColor(color)
        self.pdf.setLineWidth(width)
        self.pdf.line(x1 * mm, (PAGE_HEIGHT - y) * mm, x2 * mm, (PAGE_HEIGHT - y) * mm)


def _wrap(text: str, font: str, size: float, width_mm: float) -> List[str]:
    lines = simpleSplit(text, font, size, width_mm * mm)
    return lines or [""]


class ReportLabQuotationRenderer(DocumentRenderer):
    """
    Quotation layout drawn with reportlab canvas primitives.

    The renderer holds only configuration; every render builds its own buffer,
    canvas and cursor, so one instance can serve concurrent renders.
    """

    def __init__(self, company: Optional[CompanyProfile] = None,
                 primary_logo: Optional[Union[str, Path]] = None,
                 secondary_logo: Optional[Union[str, Path]] = None):
        self.company = company or CompanyProfile()
        self.primary_logo = primary_logo
        self.secondary_logo = secondary_logo

    @classmethod
    def from_config(cls, config: AppConfig) -> "ReportLabQuotationRenderer":
        return cls(company=config.company,
                   primary_logo=config.primary_logo,
                   secondary_logo=config.secondary_logo)

    def render(self, quotation: Quotation) -> GeneratedPdf:
        pdf, _ = self.render_with_trace(quotation)
        return pdf

    def render_with_trace(self, quotation: Quotation) -> Tuple[GeneratedPdf, LayoutTrace]:
        trace = LayoutTrace()
        buffer = io.BytesIO()
        try:
            pdf = canvas.Canvas(buffer, pagesize=A4, invariant=True)
            display_number = display_quote_number(sanitize_text(quotation.quote_number))
            pdf.setTitle(f"Quotation {display_number}")
            pdf.setAuthor(sanitize_text(self.company.name))

            page = _Page(pdf)
            self._draw_logos(page)
            self._draw_title(page, display_number)
            self._draw_meta(page, quotation)
            self._draw_bill_to(page, quotation)
            self._draw_items(page, quotation, trace)
            self._draw_totals(page, quotation, trace)
            self._draw_notes(page, quotation, trace)
            self._draw_footer(page, trace)
            trace.page_count = page.index + 1

            pdf.save()
            content = buffer.getvalue()
        finally:
            buffer.close()

        return GeneratedPdf(content=content, file_name=pdf_file_name(quotation.quote_number)), trace

    # Header

    def _draw_logos(self, page: _Page):
        logos = ((self.primary_logo, "left"), (self.secondary_logo, "right"))
        for path, side in logos:
            if not path:
                continue
            try:
                reader = ImageReader(str(path))
                width_px, height_px = reader.getSize()
                width = (width_px / height_px) * LOGO_HEIGHT
                x = MARGIN if side == "left" else PAGE_WIDTH - MARGIN - width
                bottom = PAGE_HEIGHT - page.y - LOGO_HEIGHT

                page.pdf.setFillColor(white)
                page.pdf.rect((x - LOGO_PAD) * mm, (bottom - LOGO_PAD) * mm,
                              (width + LOGO_PAD * 2) * mm, (LOGO_HEIGHT + LOGO_PAD * 2) * mm,
                              fill=1, stroke=0)
                page.pdf.drawImage(reader, x * mm, bottom * mm, width=width * mm,
                                   height=LOGO_HEIGHT * mm, mask='auto')
            except Exception as e:
                logger.warning(f"Could not load logo image {path}: {e}")
        page.y += HEADER_BAND

    def _draw_title(self, page: _Page, display_number: str):
        title = "QUOTATION  "
        size = 18
        title_width = stringWidth(title, FONT_BOLD, size) / mm
        number_width = stringWidth(display_number, FONT_BOLD, size) / mm
        x = (PAGE_WIDTH - (title_width + number_width)) / 2

        page.text(x, page.y, title, FONT_BOLD, size, CYAN)
        page.text(x + title_width, page.y, display_number, FONT_BOLD, size, BLACK)
        page.y += 10

    def _draw_meta(self, page: _Page, quotation: Quotation):
        right = PAGE_WIDTH - MARGIN
        page.text(right, page.y, f"Created: {format_date(quotation.created_at)}",
                  FONT, 9, GRAY, "right")
        page.y += 4
        page.text(right, page.y, f"Valid Until: {format_date(quotation.valid_until)}",
                  FONT, 9, GRAY, "right")
        page.y += 6

        page.rule(MARGIN, right, page.y, LIGHT_GRAY, 0.3)
        page.y += 8

    def _draw_bill_to(self, page: _Page, quotation: Quotation):
        page.text(MARGIN, page.y, "BILL TO", FONT, 8, GRAY)
        page.y += 5
        page.text(MARGIN, page.y, sanitize_text(quotation.client_name), FONT_BOLD, 10, BLACK)
        page.y += 4.5
        page.text(MARGIN, page.y, sanitize_text(quotation.client_email), FONT, 9, GRAY)
        page.y += 4.5

        if quotation.client_address:
            for line in sanitize_text(quotation.client_address).split("\n"):
                if page.y + LINE_HEIGHT > PAGE_HEIGHT - FOOTER_RESERVE:
                    page.new_page()
                page.text(MARGIN, page.y, line, FONT, 9, GRAY)
                page.y += 4

        page.y += 6

    # Table

    def _draw_items(self, page: _Page, quotation: Quotation, trace: LayoutTrace):
        currency = quotation.currency
        col = COLUMN_X

        header = [
            ('#', col['num'], "left"),
            ('SKU', col['sku'], "left"),
            ('Description', col['desc'], "left"),
            ('LT (wks)', col['lt'], "center"),
            ('MOQ', col['moq'], "center"),
            (f"Unit Price ({currency.value})", col['price'], "right"),
            ('Disc %', col['disc'], "center"),
            ('Total', col['total'], "right"),
        ]
        for label, x, align in header:
            page.text(x, page.y, label, FONT_BOLD, 8, GRAY, align)
        page.y += 2
        page.rule(MARGIN, PAGE_WIDTH - MARGIN, page.y, LIGHT_GRAY, 0.5)
        page.y += 5

        for index, item in enumerate(quotation.items):
            description = sanitize_text(item.description) or EMPTY_CELL
            desc_lines = _wrap(description, FONT, 8, DESC_WIDTH)
            notes = sanitize_text(item.notes)
            note_lines = _wrap(f"Note: {notes}", FONT_ITALIC, 7, DESC_WIDTH) if notes else []

            row_height = max(
                (len(desc_lines) + len(note_lines)) * LINE_HEIGHT + (LINE_HEIGHT if note_lines else 0),
                MIN_ROW_HEIGHT,
            )
            if page.y + row_height > PAGE_HEIGHT - FOOTER_RESERVE:
                page.new_page()

            row_y = page.y
            trace.rows.append(RowPlacement(index=index, page=page.index, top=row_y, height=row_height))

            page.text(col['num'], row_y, str(index + 1), FONT, 8, GRAY)
            page.text(col['sku'], row_y, sanitize_text(item.sku) or EMPTY_CELL, FONT, 8, GRAY)
            page.lines(col['desc'], row_y, desc_lines, FONT, 8, BLACK)
            if note_lines:
                note_y = row_y + len(desc_lines) * LINE_HEIGHT + 2
                page.lines(col['desc'], note_y, note_lines, FONT_ITALIC, 7, GRAY)

            discount = item.discount_percent
            page.text(col['lt'], row_y, sanitize_text(item.lead_time) or EMPTY_CELL,
                      FONT, 8, GRAY, "center")
            page.text(col['moq'], row_y, str(item.moq or 1), FONT, 8, GRAY, "center")
            page.text(col['price'], row_y, pdf_currency(item.unit_price, currency),
                      FONT, 8, GRAY, "right")
            page.text(col['disc'], row_y,
                      f"{format_percent_value(discount)}%" if discount else EMPTY_CELL,
                      FONT, 8, GRAY, "center")
            page.text(col['total'], row_y, pdf_currency(line_total(item), currency),
                      FONT_BOLD, 8, BLACK, "right")

            page.y += row_height + 3
            page.rule(MARGIN, PAGE_WIDTH - MARGIN, page.y, ROW_RULE, 0.2)
            page.y += 5

        page.y += 6

    # Totals, notes, footer

    def _draw_totals(self, page: _Page, quotation: Quotation, trace: LayoutTrace):
        totals = calc_quotation_totals(quotation.items, quotation.tax_rate,
                                       quotation.discount_type, quotation.discount_value)
        currency = quotation.currency

        if page.y + TOTALS_RESERVE > PAGE_HEIGHT - TOTALS_RESERVE:
            page.new_page()
        trace.totals_page = page.index

        label_x = PAGE_WIDTH - MARGIN - 60
        value_x = PAGE_WIDTH - MARGIN

        page.text(label_x, page.y, "Subtotal", FONT, 9, GRAY)
        page.text(value_x, page.y, pdf_currency(totals.subtotal, currency), FONT, 9, BLACK, "right")
        page.y += 5

        if totals.discount > 0:
            if quotation.discount_type == DiscountType.PERCENTAGE:
                label = f"Discount ({format_percent_value(quotation.discount_value)}%)"
            else:
                label = "Discount"
            page.text(label_x, page.y, label, FONT, 9, GRAY)
            page.text(value_x, page.y, f"-{pdf_currency(totals.discount, currency)}",
                      FONT, 9, RED, "right")
            page.y += 5

        if quotation.tax_rate and quotation.tax_rate > 0:
            page.text(label_x, page.y, f"Tax ({format_percent_value(quotation.tax_rate)}%)",
                      FONT, 9, GRAY)
            page.text(value_x, page.y, pdf_currency(totals.tax, currency), FONT, 9, BLACK, "right")
            page.y += 5

        page.rule(label_x, value_x, page.y, LIGHT_GRAY, 0.5)
        page.y += 5

        page.text(label_x, page.y, "Total", FONT_BOLD, 11, BLACK)
        page.text(value_x, page.y, pdf_currency(totals.total, currency), FONT_BOLD, 11, CYAN, "right")
        page.y += 10

    def _draw_notes(self, page: _Page, quotation: Quotation, trace: LayoutTrace):
        notes = sanitize_text(quotation.notes)
        if not notes.strip():
            return

        if page.y + 20 > PAGE_HEIGHT - TOTALS_RESERVE:
            page.new_page()
        trace.notes_page = page.index

        page.rule(MARGIN, PAGE_WIDTH - MARGIN, page.y, ROW_RULE, 0.2)
        page.y += 5
        page.text(MARGIN, page.y, "NOTES", FONT, 8, GRAY)
        page.y += 4

        for line in _wrap(notes, FONT, 8, CONTENT_WIDTH):
            if page.y + NOTES_LINE_HEIGHT > PAGE_HEIGHT - TOTALS_RESERVE:
                page.new_page()
            trace.note_lines.append((page.index, page.y))
            page.text(MARGIN, page.y, line, FONT, 8, GRAY)
            page.y += NOTES_LINE_HEIGHT
        page.y += 5

    def _draw_footer(self, page: _Page, trace: LayoutTrace):
        footer_y = max(page.y + 10, PAGE_HEIGHT - 25)
        if footer_y > PAGE_HEIGHT - 10:
            page.new_page()
        footer_y = min(footer_y, PAGE_HEIGHT - 15)
        trace.footer_page = page.index
        trace.footer_y = footer_y

        center = PAGE_WIDTH / 2
        page.rule(MARGIN, PAGE_WIDTH - MARGIN, footer_y - 3, ROW_RULE, 0.2)
        page.text(center, footer_y, sanitize_text(self.company.name), FONT_BOLD, 8, BLACK, "center")
        page.text(center, footer_y + 4, sanitize_text(self.company.address), FONT, 7, GRAY, "center")
        page.text(center, footer_y + 8, sanitize_text(self.company.website), FONT, 7, CYAN, "center")


def generate_quotation_pdf(quotation: Quotation, settings: Optional[AppConfig] = None,
                           renderer: Optional[DocumentRenderer] = None) -> GeneratedPdf:
    """
    Validate and render a quotation.

    Args:
        quotation: The quotation to render
        settings: Application config supplying company details and logos
        renderer: Renderer override; built from settings when omitted

    Raises:
        QuotationValidationError: the quotation is incomplete or out of range
        DocumentGenerationError: rendering failed for any other reason
    """
    validate_quotation(quotation)

    if renderer is None:
        renderer = (ReportLabQuotationRenderer.from_config(settings) if settings
                    else ReportLabQuotationRenderer())
    started = time.perf_counter()
    try:
        result = renderer.render(quotation)
    except (QuotationValidationError, DocumentGenerationError):
        raise
    except Exception as exc:
        logger.error(f"Error generating PDF for quotation {quotation.id}: {exc}", exc_info=True)
        raise DocumentGenerationError(quotation.id, str(exc)) from exc

    log_performance("generate_quotation_pdf", (time.perf_counter() - started) * 1000,
                    f"{result.file_name}, {len(result.content)} bytes")
    return result


async def generate_quotation_pdf_async(quotation: Quotation, settings: Optional[AppConfig] = None,
                                       renderer: Optional[DocumentRenderer] = None) -> GeneratedPdf:
    """Render in a worker thread so an event loop is not blocked."""
    return await asyncio.to_thread(generate_quotation_pdf, quotation, settings, renderer)
