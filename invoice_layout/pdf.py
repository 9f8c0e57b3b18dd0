"""Draw a populated off-screen surface onto an A4 PDF page."""

from __future__ import annotations

from pathlib import Path
from typing import List, Sequence, Tuple

from fpdf import FPDF  # type: ignore

from .errors import CaptureError, RenderError
from .fonts import FontManager
from .formatting import fmt_money, fmt_qty, round_rect, wrap_text
from .layout import fit_density
from .log import get_logger
from .pdf_constants import (
    ADDR_LINE_H,
    BILL_TO_ADDR_BASELINE,
    BILL_TO_LABEL_BASELINE,
    BILL_TO_NAME_BASELINE,
    CELL_PAD,
    COLOR_BOX,
    COLOR_BRAND,
    COLOR_INK,
    COLOR_ITEM,
    COLOR_LABEL,
    COLOR_MUTED,
    COLOR_ROW_RULE,
    COLOR_SEQUENCE,
    COLOR_TEXT_ALT,
    COLOR_WHITE,
    COLUMN_FRACTIONS,
    CONDITIONS_LINE_H,
    CONDITIONS_W,
    DATE_TO_BOX_GAP,
    FONT_SIZE_ADDRESS,
    FONT_SIZE_BILL_TO_LABEL,
    FONT_SIZE_CAPTION,
    FONT_SIZE_CONDITIONS,
    FONT_SIZE_DATE,
    FONT_SIZE_FOOTER,
    FONT_SIZE_GRAND_TOTAL,
    FONT_SIZE_ISSUER,
    FONT_SIZE_NUMBER,
    FONT_SIZE_PARTY,
    FONT_SIZE_PHONE,
    FONT_SIZE_SEQUENCE,
    FONT_SIZE_TABLE_HEAD,
    FONT_SIZE_TERMS,
    FONT_SIZE_TOTAL_LABEL,
    FOOTER_H,
    GRAND_BOX_H,
    GRAND_BOX_PAD_X,
    GRAND_BOX_RADIUS,
    HEADER_H,
    HEADER_RULE_W,
    HEADER_TO_PARTIES_GAP,
    ISSUER_NAME_BASELINE,
    ISSUER_PHONE_BASELINE,
    LOGO_RADIUS,
    LOGO_SIZE,
    LOGO_TO_NAME_GAP,
    NUMBER_BOX_H,
    NUMBER_BOX_RADIUS,
    NUMBER_BOX_W,
    PARTIES_BOTTOM_GAP,
    ROW_BASELINE_RATIO,
    ROW_RULE_W,
    TABLE_HEAD_H,
    TABLE_HEAD_RULE_W,
    TERMS_BASELINE,
    TOTALS_H,
    TOTALS_RULE_W,
    TOTALS_TOP_GAP,
)
from .rendering import ItemTable, RenderedDocument
from .styles import MM_PER_INCH, StyleProfile
from .surface import OffscreenSurface

PT_PER_MM = 72.0 / MM_PER_INCH
ADDRESS_MAX_W = 420

logger = get_logger(__name__)

Color = Tuple[int, int, int]


class PdfPage:
    """One fixed-size page laid out in CSS pixels.

    Coordinates are snapped to the device-pixel grid given by the style's
    scale factor before being converted to PDF points.
    """

    def __init__(self, style: StyleProfile, rendered: RenderedDocument) -> None:
        self.style = style
        self.rendered = rendered

        width_pt = style.page_width_mm * PT_PER_MM
        height_pt = style.page_height_mm * PT_PER_MM
        self.pdf = FPDF(unit="pt", format=(width_pt, height_pt))
        self.pdf.set_auto_page_break(False)
        self.pdf.set_margins(0, 0, 0)
        self.pdf.add_page()
        self.pdf.set_title(f"{rendered.header.title.title()} {rendered.number}")
        self.pdf.set_creator(rendered.header.issuer_name)

        self.fonts = FontManager(self.pdf)
        self.k = width_pt / style.page_width_px
        inset = style.margin_px + style.padding_px
        self.left = float(inset)
        self.top = float(inset)
        self.right = float(style.page_width_px - inset)
        self.bottom = float(style.page_height_px - inset)
        self.density = rendered.density
        self.drawn_rows = 0

    def pt(self, px: float) -> float:
        scale = self.style.scale
        return round(px * scale) / scale * self.k

    def width_px(self, text: str, size: float, bold: bool = False) -> float:
        return self.fonts.text_width(text, size, bold=bold) / self.k

    def text(self, x: float, baseline: float, text: str, size: float, color: Color, bold: bool = False) -> None:
        if text:
            self.fonts.draw_text(self.pt(x), self.pt(baseline), text, size, color, bold=bold)

    def text_right(self, right: float, baseline: float, text: str, size: float, color: Color, bold: bool = False) -> None:
        self.text(right - self.width_px(text, size, bold), baseline, text, size, color, bold)

    def text_center(self, center: float, baseline: float, text: str, size: float, color: Color, bold: bool = False) -> None:
        self.text(center - self.width_px(text, size, bold) / 2.0, baseline, text, size, color, bold)

    def fit(self, text: str, max_width: float, size: float, bold: bool = False) -> str:
        lines = wrap_text(self.fonts, text, max_width * self.k, size, bold=bold)
        if len(lines) <= 1:
            return lines[0] if lines else ""
        clipped = lines[0]
        while clipped and self.width_px(clipped + "...", size, bold) > max_width:
            clipped = clipped[:-1]
        return clipped.rstrip() + "..."

    def rule(self, x1: float, x2: float, y: float, width: float, color: Color) -> None:
        self.pdf.set_draw_color(*color)
        self.pdf.set_line_width(width * self.k)
        self.pdf.line(self.pt(x1), self.pt(y), self.pt(x2), self.pt(y))

    def box(self, x: float, y: float, width: float, height: float, radius: float, color: Color) -> None:
        self.pdf.set_fill_color(*color)
        round_rect(self.pdf, self.pt(x), self.pt(y), width * self.k, height * self.k, radius * self.k, fill=True)

    def draw_header(self) -> float:
        header = self.rendered.header
        x, y = self.left, self.top

        self.box(x, y, LOGO_SIZE, LOGO_SIZE, LOGO_RADIUS, COLOR_BRAND)
        self.text_center(x + LOGO_SIZE / 2.0, y + 26, header.issuer_name[:1].upper(), 16, COLOR_WHITE, bold=True)
        name_x = x + LOGO_SIZE + LOGO_TO_NAME_GAP
        self.text(name_x, y + ISSUER_NAME_BASELINE, header.issuer_name.upper(), FONT_SIZE_ISSUER, COLOR_INK, bold=True)
        self.text(name_x, y + ISSUER_PHONE_BASELINE, f"Phone: {header.issuer_phone}", FONT_SIZE_PHONE, COLOR_TEXT_ALT)

        box_x = self.right - NUMBER_BOX_W
        center = box_x + NUMBER_BOX_W / 2.0
        self.box(box_x, y, NUMBER_BOX_W, NUMBER_BOX_H, NUMBER_BOX_RADIUS, COLOR_BOX)
        self.text_center(center, y + 14, f"{header.title} #", FONT_SIZE_CAPTION, COLOR_LABEL, bold=True)
        self.text_center(center, y + 30, header.number.upper(), FONT_SIZE_NUMBER, COLOR_INK, bold=True)

        date_right = box_x - DATE_TO_BOX_GAP
        self.text_right(date_right, y + 14, "DATE ISSUED", FONT_SIZE_CAPTION, COLOR_LABEL, bold=True)
        self.text_right(date_right, y + 30, header.issue_date, FONT_SIZE_DATE, COLOR_INK, bold=True)

        rule_y = y + HEADER_H
        self.rule(self.left, self.right, rule_y, HEADER_RULE_W, COLOR_INK)
        return rule_y + HEADER_TO_PARTIES_GAP

    def draw_parties(self, top: float) -> float:
        parties = self.rendered.parties
        self.text(self.left, top + BILL_TO_LABEL_BASELINE, "BILL TO", FONT_SIZE_BILL_TO_LABEL, COLOR_INK, bold=True)
        name = self.fit(parties.bill_to_name.upper(), ADDRESS_MAX_W, FONT_SIZE_PARTY, bold=True)
        self.text(self.left, top + BILL_TO_NAME_BASELINE, name, FONT_SIZE_PARTY, COLOR_INK, bold=True)

        y = top + BILL_TO_ADDR_BASELINE
        for line in parties.bill_to_address:
            for wrapped in wrap_text(self.fonts, line, ADDRESS_MAX_W * self.k, FONT_SIZE_ADDRESS):
                self.text(self.left, y, wrapped, FONT_SIZE_ADDRESS, COLOR_TEXT_ALT)
                y += ADDR_LINE_H

        if parties.terms:
            self.text_right(self.right, top + TERMS_BASELINE, parties.terms.upper(), FONT_SIZE_TERMS, COLOR_MUTED, bold=True)
        return y + PARTIES_BOTTOM_GAP + parties.spacing_px

    def _column_edges(self, x: float, width: float) -> List[float]:
        edges = [x]
        for fraction in COLUMN_FRACTIONS:
            edges.append(edges[-1] + width * fraction)
        return edges

    def draw_table(self, table: ItemTable, x: float, width: float, top: float) -> float:
        density = self.density
        symbol = self.rendered.currency_symbol
        size = density.font_size_pt
        row_h = float(density.row_height_px)
        edges = self._column_edges(x, width)
        name_w = edges[2] - edges[1] - 2 * CELL_PAD

        head_y = top + 14
        self.text(edges[0], head_y, "#", FONT_SIZE_TABLE_HEAD, COLOR_LABEL, bold=True)
        self.text(edges[1], head_y, "ITEM DESCRIPTION", FONT_SIZE_TABLE_HEAD, COLOR_LABEL, bold=True)
        self.text_center((edges[2] + edges[3]) / 2.0, head_y, "QTY", FONT_SIZE_TABLE_HEAD, COLOR_LABEL, bold=True)
        self.text_right(edges[4] - CELL_PAD, head_y, "PRICE", FONT_SIZE_TABLE_HEAD, COLOR_LABEL, bold=True)
        self.text_right(edges[5], head_y, "TOTAL", FONT_SIZE_TABLE_HEAD, COLOR_LABEL, bold=True)
        y = top + TABLE_HEAD_H
        self.rule(x, x + width, y, TABLE_HEAD_RULE_W, COLOR_INK)

        if table.placeholder:
            self.text_center(x + width / 2.0, y + row_h * ROW_BASELINE_RATIO, table.placeholder.upper(), size, COLOR_LABEL)
            y += row_h

        for row in table.rows:
            baseline = y + row_h * ROW_BASELINE_RATIO
            self.text(edges[0], baseline, str(row.sequence), FONT_SIZE_SEQUENCE, COLOR_SEQUENCE)
            self.text(edges[1], baseline, self.fit(row.name.upper(), name_w, size, bold=True), size, COLOR_ITEM, bold=True)
            self.text_center((edges[2] + edges[3]) / 2.0, baseline, fmt_qty(row.quantity), size, COLOR_MUTED, bold=True)
            self.text_right(edges[4] - CELL_PAD, baseline, fmt_money(row.unit_price, symbol), size, COLOR_LABEL)
            self.text_right(edges[5], baseline, fmt_money(row.total, symbol), size, COLOR_INK, bold=True)
            y += row_h
            self.drawn_rows += 1
            self.rule(x, x + width, y, ROW_RULE_W, COLOR_ROW_RULE)
        return y

    def draw_tables(self, top: float) -> float:
        tables: Sequence[ItemTable] = self.rendered.tables
        content_w = self.right - self.left
        if len(tables) == 1:
            return self.draw_table(tables[0], self.left, content_w, top)

        column_w = (content_w - self.style.column_gap_px) / 2.0
        end = top
        for index, table in enumerate(tables):
            x = self.left + index * (column_w + self.style.column_gap_px)
            end = max(end, self.draw_table(table, x, column_w, top))
        return end

    def draw_totals(self, items_end: float) -> float:
        totals = self.rendered.totals
        top = max(items_end + TOTALS_TOP_GAP, self.bottom - FOOTER_H - TOTALS_H)
        self.rule(self.left, self.right, top, TOTALS_RULE_W, COLOR_INK)

        y = top + TOTALS_TOP_GAP + 8
        self.text(self.left, y, "Conditions of Sale:", FONT_SIZE_CONDITIONS, COLOR_ITEM, bold=True)
        for line in wrap_text(self.fonts, totals.conditions.upper(), CONDITIONS_W * self.k, FONT_SIZE_CONDITIONS, bold=True):
            y += CONDITIONS_LINE_H
            self.text(self.left, y, line, FONT_SIZE_CONDITIONS, COLOR_LABEL, bold=True)

        amount = fmt_money(totals.grand_total, self.rendered.currency_symbol)
        self.text_right(self.right, top + 24, totals.label.upper(), FONT_SIZE_TOTAL_LABEL, COLOR_LABEL, bold=True)
        box_w = self.width_px(amount, FONT_SIZE_GRAND_TOTAL, bold=True) + 2 * GRAND_BOX_PAD_X
        box_y = top + 34
        self.box(self.right - box_w, box_y, box_w, GRAND_BOX_H, GRAND_BOX_RADIUS, COLOR_INK)
        self.text(self.right - box_w + GRAND_BOX_PAD_X, box_y + 36, amount, FONT_SIZE_GRAND_TOTAL, COLOR_WHITE, bold=True)
        return top + TOTALS_H

    def draw_footer(self, top: float) -> None:
        footer = self.rendered.footer
        y = max(top, self.bottom - FOOTER_H)
        self.rule(self.left, self.right, y + 8, ROW_RULE_W, COLOR_ROW_RULE)
        self.text(self.left, y + 22, footer.tagline, FONT_SIZE_FOOTER, COLOR_LABEL, bold=True)
        self.text_right(self.right, y + 22, footer.reorder_line, FONT_SIZE_FOOTER, COLOR_MUTED)

    @property
    def rows_bottom(self) -> float:
        return self.bottom - FOOTER_H - TOTALS_H - TOTALS_TOP_GAP

    def fit_rows(self, body_top: float) -> None:
        """Tighten row density until every table row fits above the totals."""
        tables = self.rendered.tables
        rows = max(len(table.rows) + (1 if table.placeholder else 0) for table in tables)
        available = self.rows_bottom - body_top - TABLE_HEAD_H
        fitted = fit_density(self.density, rows, available)
        if fitted is None:
            raise CaptureError(
                f"Document {self.rendered.number}: {rows} rows per column do not fit on one page "
                "even at the smallest row height."
            )
        if fitted is not self.density:
            logger.info(
                "Document %s: rows tightened to %dpx at %gpt to fit the page",
                self.rendered.number,
                fitted.row_height_px,
                fitted.font_size_pt,
            )
        self.density = fitted

    def draw(self) -> FPDF:
        body_top = self.draw_parties(self.draw_header())
        self.fit_rows(body_top)
        items_end = self.draw_tables(body_top)
        self.draw_footer(self.draw_totals(items_end))
        return self.pdf


class PdfRasterizer:
    """Draws a populated off-screen surface as a vector PDF page.

    No bitmap is produced: the style's ``scale`` only snaps coordinates to
    that device-pixel grid (see :meth:`PdfPage.pt`). The page is spooled
    into the surface directory and read back by :meth:`assemble`.
    """

    PAGE_NAME = "page.pdf"

    def rasterize(self, surface: OffscreenSurface) -> Path:
        if surface.document is None:
            raise RenderError("Off-screen surface was not populated.")
        if surface.released:
            raise RenderError(f"Off-screen surface {surface.path} is no longer available.")
        target = surface.path / self.PAGE_NAME
        PdfPage(surface.style, surface.document).draw().output(str(target))
        return target

    def assemble(self, page: Path) -> bytes:
        blob = page.read_bytes()
        if not blob.startswith(b"%PDF"):
            raise CaptureError(f"{page.name} is not a PDF document.")
        return blob
