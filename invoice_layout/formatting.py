"""Formatting and drawing utility helpers."""

from __future__ import annotations

import re
from datetime import date
from typing import Any, List, Protocol, Union

from dateutil import parser as dateutil_parser

DEFAULT_CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
}

_SEPARATOR_RUN = re.compile(r"[\s/\\]+")


class TextWidthProvider(Protocol):
    def text_width(self, text: str, size: float, bold: bool = False) -> float:
        ...


class PdfPathCanvas(Protocol):
    k: float
    h: float

    def rect(self, x: float, y: float, w: float, h: float, style: str) -> None:
        ...

    def _out(self, s: str) -> None:
        ...


def currency_symbol(currency: str) -> str:
    code = currency.upper()
    return DEFAULT_CURRENCY_SYMBOLS.get(code, f"{code} ")


def fmt_money(amount: float, symbol: str) -> str:
    if amount < 0:
        return f"-{symbol}{-amount:,.2f}"
    return f"{symbol}{amount:,.2f}"


def fmt_qty(qty: Any) -> str:
    try:
        quantity = float(qty)
        if quantity.is_integer():
            return str(int(quantity))
        return str(quantity)
    except (TypeError, ValueError):
        return str(qty)


def fmt_date(raw: Union[str, date]) -> str:
    """Return a date formatted as 'Mar 14, 2025'; unparseable text is kept."""
    if isinstance(raw, date):
        return raw.strftime("%b %d, %Y")
    raw = raw.strip()
    if not raw:
        return raw
    try:
        dt = dateutil_parser.parse(raw)
        return dt.strftime("%b %d, %Y")
    except (ValueError, OverflowError):
        return raw


def split_lines(text: str) -> List[str]:
    if not text:
        return []
    return [line for line in text.split("\n") if line.strip() != ""]


def normalize_separator(text: str, separator: str = "_") -> str:
    """Collapse whitespace and path separators into single ``separator`` chars."""
    return _SEPARATOR_RUN.sub(separator, text.strip()).strip(separator)


def wrap_text(
    fonts_obj: TextWidthProvider,
    text: str,
    max_width: float,
    font_size: float,
    bold: bool = False,
) -> List[str]:
    def line_width(value: str) -> float:
        return fonts_obj.text_width(value, font_size, bold=bold)

    def wrap_paragraph(paragraph: str) -> List[str]:
        words = paragraph.split()
        if not words:
            return [paragraph]

        lines: List[str] = []
        current = ""
        for word in words:
            candidate = word if not current else f"{current} {word}"
            if line_width(candidate) <= max_width:
                current = candidate
                continue

            if current:
                lines.append(current)
                current = word
                continue

            chunk = ""
            for char in word:
                candidate_chunk = chunk + char
                if chunk and line_width(candidate_chunk) > max_width:
                    lines.append(chunk)
                    chunk = char
                else:
                    chunk = candidate_chunk
            current = chunk

        if current:
            lines.append(current)
        return lines

    result: List[str] = []
    for paragraph in text.split("\n"):
        result.extend(wrap_paragraph(paragraph))
    return result if result else [text]


def round_rect(
    pdf: PdfPathCanvas,
    x: float,
    y: float,
    width: float,
    height: float,
    radius: float,
    fill: bool = True,
) -> None:
    radius = max(0.0, min(radius, width / 2.0, height / 2.0))
    if radius == 0:
        pdf.rect(x, y, width, height, "F" if fill else "D")
        return

    k = pdf.k
    hp = pdf.h
    kappa = 0.5522847498307936  # circle approximation constant

    def arc(x1: float, y1: float, x2: float, y2: float, x3: float, y3: float) -> None:
        pdf._out(
            "%.2f %.2f %.2f %.2f %.2f %.2f c"
            % (x1 * k, (hp - y1) * k, x2 * k, (hp - y2) * k, x3 * k, (hp - y3) * k)
        )

    pdf._out("%.2f %.2f m" % ((x + radius) * k, (hp - y) * k))
    pdf._out("%.2f %.2f l" % ((x + width - radius) * k, (hp - y) * k))
    arc(
        x + width - radius + radius * kappa,
        y,
        x + width,
        y + radius - radius * kappa,
        x + width,
        y + radius,
    )
    pdf._out("%.2f %.2f l" % ((x + width) * k, (hp - (y + height - radius)) * k))
    arc(
        x + width,
        y + height - radius + radius * kappa,
        x + width - radius + radius * kappa,
        y + height,
        x + width - radius,
        y + height,
    )
    pdf._out("%.2f %.2f l" % ((x + radius) * k, (hp - (y + height)) * k))
    arc(
        x + radius - radius * kappa,
        y + height,
        x,
        y + height - radius + radius * kappa,
        x,
        y + height - radius,
    )
    pdf._out("%.2f %.2f l" % (x * k, (hp - (y + radius)) * k))
    arc(x, y + radius - radius * kappa, x + radius - radius * kappa, y, x + radius, y)

    pdf._out("f" if fill else "S")
