"""Style profiles for the print and file outputs.

Both outputs go through the same markup and PDF code; only these values
differ between them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

A4_WIDTH_MM = 210.0
A4_HEIGHT_MM = 297.0
REFERENCE_DPI = 96
MM_PER_INCH = 25.4

# 210mm at 96 dpi, rounded to whole pixels.
A4_WIDTH_PX = 794
A4_HEIGHT_PX = 1123

COLUMN_GAP_PX = 24


@dataclass(frozen=True)
class StyleProfile:
    name: str
    page_size: str = "A4"
    page_width_mm: float = A4_WIDTH_MM
    page_height_mm: float = A4_HEIGHT_MM
    margin_mm: float = 0.0
    padding_px: int = 32
    force_color: bool = True
    exact_width_px: Optional[int] = None
    scale: float = 1.0
    column_gap_px: int = COLUMN_GAP_PX
    fixed_table_layout: bool = True
    avoid_row_breaks: bool = True
    auto_print: bool = False

    @property
    def page_width_px(self) -> int:
        if self.exact_width_px is not None:
            return self.exact_width_px
        return mm_to_px(self.page_width_mm)

    @property
    def page_height_px(self) -> int:
        return mm_to_px(self.page_height_mm)

    @property
    def margin_px(self) -> int:
        return mm_to_px(self.margin_mm)

    @property
    def content_width_px(self) -> int:
        return self.page_width_px - 2 * (self.margin_px + self.padding_px)

    @property
    def column_width_px(self) -> float:
        return (self.content_width_px - self.column_gap_px) / 2.0

    def css(self) -> str:
        rules: List[str] = [
            f"@page {{ size: {self.page_size} portrait; margin: {self.margin_mm:g}mm; }}",
            "html, body { margin: 0; padding: 0; background: #ffffff; }",
            ".document {"
            f" box-sizing: border-box; width: {self.page_width_px}px;"
            f" min-height: {self.page_height_px}px; padding: {self.padding_px}px;"
            " margin: 0 auto; font-family: Helvetica, Arial, sans-serif; color: #0f172a; }",
            ".items { width: 100%; border-collapse: collapse;"
            f" table-layout: {'fixed' if self.fixed_table_layout else 'auto'}; }}",
            ".columns { display: table; width: 100%; table-layout: fixed;"
            f" border-spacing: {self.column_gap_px}px 0; margin: 0 -{self.column_gap_px}px; }}",
            f".columns > .column {{ display: table-cell; width: {self.column_width_px:.1f}px;"
            " vertical-align: top; }",
            ".placeholder td { text-align: center; font-style: italic; color: #94a3b8; }",
            ".grand-total { background: #0f172a; color: #ffffff; padding: 12px 32px;"
            " border-radius: 12px; font-size: 26pt; font-weight: 800; }",
        ]
        if self.avoid_row_breaks:
            rules.append("tr, .totals { break-inside: avoid; page-break-inside: avoid; }")
        if self.exact_width_px is not None:
            rules.append(
                f".document {{ max-width: {self.exact_width_px}px; overflow: hidden; }}"
            )
        if self.force_color:
            rules.append(
                "* { -webkit-print-color-adjust: exact; print-color-adjust: exact;"
                " color-adjust: exact; }"
            )
            rules.append("@media print { .no-print { display: none !important; } }")
        return "\n".join(rules)


def mm_to_px(value_mm: float, dpi: int = REFERENCE_DPI) -> int:
    return int(round(value_mm / MM_PER_INCH * dpi))


PRINT_STYLE = StyleProfile(
    name="print",
    margin_mm=0.0,
    padding_px=32,
    force_color=True,
    scale=1.0,
    auto_print=True,
)

FILE_STYLE = StyleProfile(
    name="file",
    margin_mm=10.0,
    padding_px=16,
    force_color=False,
    exact_width_px=A4_WIDTH_PX,
    scale=2.0,
)
