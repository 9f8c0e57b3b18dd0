"""HTML serialization of rendered documents and the off-screen export surface."""

from __future__ import annotations

import shutil
import tempfile
from contextlib import contextmanager
from html import escape
from pathlib import Path
from typing import Iterator, List, Optional

from .errors import RenderError, TeardownError
from .formatting import fmt_money, fmt_qty
from .log import get_logger
from .rendering import ItemTable, RenderedDocument
from .styles import StyleProfile

logger = get_logger(__name__)

AUTO_PRINT_SCRIPT = "<script>window.addEventListener('load', function () { window.print(); });</script>"


def _table_markup(table: ItemTable, rendered: RenderedDocument) -> str:
    density = rendered.density
    symbol = rendered.currency_symbol
    cell_style = f"padding: {density.row_padding_px}px 4px;"
    lines: List[str] = [
        f'<table class="items" style="font-size: {density.font_size_pt:g}pt;"'
        f' data-start="{table.start_number}">',
        "<colgroup><col style=\"width: 8%\"><col style=\"width: 44%\">"
        "<col style=\"width: 12%\"><col style=\"width: 18%\"><col style=\"width: 18%\"></colgroup>",
        "<thead><tr>"
        '<th style="text-align: left">#</th>'
        '<th style="text-align: left">Item Description</th>'
        '<th style="text-align: center">Qty</th>'
        '<th style="text-align: right">Price</th>'
        '<th style="text-align: right">Total</th>'
        "</tr></thead>",
        "<tbody>",
    ]
    if table.placeholder:
        lines.append(f'<tr class="placeholder"><td colspan="5">{escape(table.placeholder)}</td></tr>')
    for row in table.rows:
        lines.append(
            f'<tr style="height: {density.row_height_px}px;">'
            f'<td style="{cell_style}">{row.sequence}</td>'
            f'<td style="{cell_style} font-weight: 700; text-transform: uppercase;">{escape(row.name)}</td>'
            f'<td style="{cell_style} text-align: center;">{escape(fmt_qty(row.quantity))}</td>'
            f'<td style="{cell_style} text-align: right;">{escape(fmt_money(row.unit_price, symbol))}</td>'
            f'<td style="{cell_style} text-align: right; font-weight: 700;">'
            f"{escape(fmt_money(row.total, symbol))}</td>"
            "</tr>"
        )
    lines.append("</tbody></table>")
    return "\n".join(lines)


def _items_markup(rendered: RenderedDocument) -> str:
    tables = [_table_markup(table, rendered) for table in rendered.tables]
    if len(tables) == 1:
        return tables[0]
    cells = "\n".join(f'<div class="column">\n{table}\n</div>' for table in tables)
    return f'<div class="columns">\n{cells}\n</div>'


def build_markup(rendered: RenderedDocument, style: StyleProfile) -> str:
    header = rendered.header
    parties = rendered.parties
    totals = rendered.totals
    footer = rendered.footer
    title = f"{header.title.title()} {header.number}"
    address = "<br>".join(escape(line) for line in parties.bill_to_address)
    grand_total = fmt_money(totals.grand_total, rendered.currency_symbol)
    script = AUTO_PRINT_SCRIPT if style.auto_print else ""

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <title>{escape(title)}</title>
  <style>
{style.css()}
  </style>
</head>
<body>
<div class="document" id="document-content" data-layout="{rendered.layout.value}" data-style="{escape(style.name)}">
<header class="header">
  <h1>{escape(header.issuer_name)}</h1>
  <p>Phone: {escape(header.issuer_phone)}</p>
  <p class="title">{escape(header.title)}</p>
  <p>Date Issued: {escape(header.issue_date)}</p>
  <p>No. {escape(header.number)}</p>
</header>
<section class="parties" style="margin-bottom: {parties.spacing_px}px;">
  <div class="bill-to">
    <h2>BILL TO</h2>
    <p class="party-name">{escape(parties.bill_to_name)}</p>
    <p class="party-address">{address}</p>
  </div>
  <div class="terms">{escape(parties.terms)}</div>
</section>
<section class="item-tables">
{_items_markup(rendered)}
</section>
<section class="totals">
  <div class="conditions"><strong>Conditions of Sale:</strong> {escape(totals.conditions)}</div>
  <p>{escape(totals.label)}</p>
  <div class="grand-total">{escape(grand_total)}</div>
</section>
<footer class="footer">
  <span>{escape(footer.tagline)}</span>
  <span>{escape(footer.reorder_line)}</span>
</footer>
</div>
{script}
</body>
</html>
"""


class OffscreenSurface:
    """Hidden staging area a file export renders into.

    Populating fixes the document laid out at the style's page geometry.
    The surface owns a private temporary directory the rasterizer spools its
    page into; nothing else may write to it.
    """

    def __init__(self, path: Path, style: StyleProfile) -> None:
        self.path = path
        self.style = style
        self.hidden = True
        self.document: Optional[RenderedDocument] = None

    @property
    def width_px(self) -> int:
        return self.style.page_width_px

    @property
    def height_px(self) -> int:
        return self.style.page_height_px

    @property
    def released(self) -> bool:
        return not self.path.exists()

    def populate(self, rendered: Optional[RenderedDocument]) -> None:
        if rendered is None:
            raise RenderError("No rendered document to place on the off-screen surface.")
        if self.released:
            raise RenderError(f"Off-screen surface {self.path} is no longer available.")
        self.document = rendered

    def release(self) -> None:
        self.document = None
        try:
            shutil.rmtree(self.path)
        except FileNotFoundError:
            return
        except OSError as exc:
            raise TeardownError(f"Could not remove off-screen surface {self.path}") from exc


@contextmanager
def offscreen_surface(style: StyleProfile, prefix: str = "capture-") -> Iterator[OffscreenSurface]:
    """Create a surface and release it on every exit path.

    A failed release is logged and never replaces the exception already
    propagating out of the block.
    """
    surface = OffscreenSurface(Path(tempfile.mkdtemp(prefix=prefix)), style)
    logger.debug("Created off-screen surface %s (%dx%d px)", surface.path, surface.width_px, surface.height_px)
    try:
        yield surface
    finally:
        try:
            surface.release()
        except TeardownError:
            logger.warning("Off-screen surface teardown failed", exc_info=True)
