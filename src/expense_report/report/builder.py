# report/builder.py
import io
import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import IntEnum
from typing import Iterable, List, Optional, Sequence

from reportlab.lib import colors, pagesizes
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from expense_report.config import settings
from expense_report.core.errors import BuilderStateError, PreconditionError, RasterizationError
from expense_report.core.schema import BankDetails, LineItem, ReporterProfile
from expense_report.layout.geometry import fit_to_box
from expense_report.processing.image import encode_jpeg
from expense_report.processing.rasterizer import Frame

logger = logging.getLogger(__name__)

BRAND_COLOR = colors.HexColor("#283460")
TEXT_COLOR = colors.HexColor("#646464")
GRID_COLOR = colors.HexColor("#C8C8C8")

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"

TABLE_COLUMNS = ("Date", "Expense type", "Amount ({currency})")
# Left edge of each column in mm; the amount column is right-aligned on the margin.
COLUMN_X_MM = (14.0, 54.0, 154.0)

TOTAL_OFFSET_MM = 12.0
BANK_BLOCK_MM = 30.0


class BuilderState(IntEnum):
    HEADER = 1
    TABLE = 2
    APPENDIX = 3
    FINALIZED = 4


def format_amount(value) -> str:
    """Two decimals, rounded half-up. Only used at render time."""
    return str(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def format_date(value: date) -> str:
    return value.strftime(settings.report.date_format)


def report_filename(title: str, generated_on: date, extension: str = "pdf") -> str:
    # Localized dates contain '/', which no filesystem accepts in a name.
    stamp = format_date(generated_on).replace("/", "-")
    return f"{title.replace(' ', '_')}_{stamp}.{extension}"


class DocumentBuilder:
    """
    Writes the report onto a reportlab canvas, strictly forward:
    header, then table, then any number of appendix sections, then finalize().
    `cursor_mm` is the distance from the top of the current page to the
    lowest thing drawn on it.
    """

    def __init__(self, title: str, generated_on: date, page_size: Optional[str] = None):
        self.title = title
        self.generated_on = generated_on
        self.state = BuilderState.HEADER
        self.cursor_mm = 0.0

        size_name = (page_size or settings.report.page_size).upper()
        self.page_width, self.page_height = getattr(pagesizes, size_name)
        self.margin_mm = settings.report.margin_mm

        self._buffer = io.BytesIO()
        self._canvas = canvas.Canvas(self._buffer, pagesize=(self.page_width, self.page_height))
        self._canvas.setTitle(title)

    # -- geometry helpers --

    @property
    def page_width_mm(self) -> float:
        return self.page_width / mm

    @property
    def page_height_mm(self) -> float:
        return self.page_height / mm

    @property
    def page_count(self) -> int:
        return self._canvas.getPageNumber()

    def _y(self, top_mm: float) -> float:
        return self.page_height - top_mm * mm

    def _text(self, x_mm: float, top_mm: float, text: str, size: float,
              color=TEXT_COLOR, bold: bool = False, align_right: bool = False):
        c = self._canvas
        c.setFont(FONT_BOLD if bold else FONT, size)
        c.setFillColor(color)
        if align_right:
            c.drawRightString(x_mm * mm, self._y(top_mm), text)
        else:
            c.drawString(x_mm * mm, self._y(top_mm), text)

    def _new_page(self):
        self._canvas.showPage()
        self.cursor_mm = self.margin_mm

    def _ensure_space(self, height_mm: float) -> bool:
        """Opens a continuation page when height_mm does not fit. Returns True if it did."""
        if self.cursor_mm + height_mm > self.page_height_mm - self.margin_mm:
            self._new_page()
            return True
        return False

    def _expect(self, *states: BuilderState):
        if self.state not in states:
            expected = ", ".join(s.name for s in states)
            raise BuilderStateError(f"Builder is in state {self.state.name}, expected {expected}")

    # -- sections --

    def write_header(self, profile: ReporterProfile, recipient_email: str):
        self._expect(BuilderState.HEADER)
        m = self.margin_mm

        self._text(m, 22, self.title, 22, color=BRAND_COLOR)
        self._text(m, 30, f"Generated on: {format_date(self.generated_on)}", 11)

        self._text(m, 45, profile.full_name, 11)
        self._text(m, 51, f"RPPS: {profile.registration_number}", 10)
        self._text(m, 57, f"Email: {profile.email}", 10)

        right = self.page_width_mm - 65
        self._text(right, 45, "For the attention of:", 10, bold=True)
        self._text(right, 51, recipient_email, 10, color=BRAND_COLOR)

        self.cursor_mm = 68.0
        self.state = BuilderState.TABLE

    def _fit(self, text: str, width_mm: float, font: str, size: float) -> str:
        if stringWidth(text, font, size) <= width_mm * mm:
            return text
        while text and stringWidth(text + "...", font, size) > width_mm * mm:
            text = text[:-1]
        return text + "..."

    def _draw_row(self, cells: Sequence[str], header: bool = False):
        c = self._canvas
        row_h = settings.report.row_height_mm
        left = self.margin_mm
        right = self.page_width_mm - self.margin_mm
        bottom = self._y(self.cursor_mm + row_h)

        if header:
            c.setFillColor(BRAND_COLOR)
            c.rect(left * mm, bottom, (right - left) * mm, row_h * mm, stroke=0, fill=1)
        c.setStrokeColor(GRID_COLOR)
        c.rect(left * mm, bottom, (right - left) * mm, row_h * mm, stroke=1, fill=0)
        for x in COLUMN_X_MM[1:]:
            c.line(x * mm, bottom, x * mm, bottom + row_h * mm)

        color = colors.white if header else TEXT_COLOR
        font = FONT_BOLD if header else FONT
        baseline = self.cursor_mm + row_h - 2.5
        date_cell, category_cell, amount_cell = cells
        self._text(COLUMN_X_MM[0] + 2, baseline, date_cell, 10, color=color, bold=header)
        category_width = COLUMN_X_MM[2] - COLUMN_X_MM[1] - 4
        self._text(COLUMN_X_MM[1] + 2, baseline, self._fit(category_cell, category_width, font, 10),
                   10, color=color, bold=header)
        self._text(right - 2, baseline, amount_cell, 10, color=color, bold=header, align_right=True)

        self.cursor_mm += row_h

    def write_table(self, line_items: List[LineItem], bank: BankDetails):
        """Expense rows in their given order, the total once after the last row, then the bank block."""
        self._expect(BuilderState.TABLE)
        if not line_items:
            raise PreconditionError("Cannot write an expense table without line items.")

        currency = settings.report.currency_symbol
        header = tuple(col.format(currency=currency) for col in TABLE_COLUMNS)
        row_h = settings.report.row_height_mm

        self._draw_row(header, header=True)
        for item in line_items:
            if self._ensure_space(row_h):
                self._draw_row(header, header=True)
            self._draw_row((format_date(item.occurred_on), item.category, format_amount(item.amount)))
        logger.debug("Table: %d rows over %d page(s)", len(line_items), self.page_count)

        total = sum((item.amount for item in line_items), Decimal("0"))
        self._ensure_space(TOTAL_OFFSET_MM)
        self.cursor_mm += TOTAL_OFFSET_MM
        self._text(self.margin_mm, self.cursor_mm, f"Total to reimburse: {format_amount(total)} {currency}",
                   14, color=colors.black, bold=True)

        self._ensure_space(BANK_BLOCK_MM)
        self._text(self.margin_mm, self.cursor_mm + 15, "Bank details for the reimbursement", 12, color=BRAND_COLOR)
        self._text(self.margin_mm, self.cursor_mm + 23, f"IBAN: {bank.iban}", 10)
        self._text(self.margin_mm, self.cursor_mm + 28, f"BIC: {bank.bic}", 10)
        self.cursor_mm += BANK_BLOCK_MM

        self.state = BuilderState.APPENDIX

    def begin_section(self, heading: str):
        self._expect(BuilderState.APPENDIX)
        self._new_page()
        self._text(self.margin_mm, 22, heading, 22, color=BRAND_COLOR)
        self.cursor_mm = 30.0

    def add_text_block(self, lines: Iterable[str]):
        self._expect(BuilderState.APPENDIX)
        for line in lines:
            self._ensure_space(8)
            self.cursor_mm += 8
            self._text(self.margin_mm, self.cursor_mm, line, 12)

    def add_frame(self, frame: Frame, label: str):
        """One page per frame: caption on top, bitmap scaled into the remaining box."""
        self._expect(BuilderState.APPENDIX)
        report = settings.report
        box_width = self.page_width_mm - 2 * self.margin_mm
        box_height = self.page_height_mm - report.frame_top_mm - self.margin_mm
        try:
            draw_width, draw_height = fit_to_box(frame.width, frame.height, box_width, box_height)
            encoded = encode_jpeg(frame.image, report.jpeg_quality)
        except (ValueError, OSError) as e:
            logger.error("Could not place %s: %s", frame.caption(label), e)
            raise RasterizationError(f"Could not place {frame.source_name} in the report") from e

        self._new_page()
        self._text(self.margin_mm, report.caption_top_mm, frame.caption(label), 12)
        reader = ImageReader(io.BytesIO(encoded))
        self._canvas.drawImage(reader, self.margin_mm * mm, self._y(report.frame_top_mm + draw_height),
                               width=draw_width * mm, height=draw_height * mm)
        self.cursor_mm = report.frame_top_mm + draw_height

    def finalize(self) -> bytes:
        self._expect(BuilderState.APPENDIX)
        pages = self.page_count
        self._canvas.save()
        self.state = BuilderState.FINALIZED
        logger.info("Finalized '%s' with %d page(s)", self.title, pages)
        return self._buffer.getvalue()
