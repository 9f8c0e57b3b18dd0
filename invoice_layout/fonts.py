"""Font discovery and text drawing on an fpdf canvas."""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from typing import Optional, Tuple

from fpdf import FPDF  # type: ignore

from .log import get_logger

logger = get_logger(__name__)

FONT_DIRS = (
    os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "fonts"),
    "/usr/share/fonts/truetype/dejavu",
    "/usr/share/fonts/dejavu",
    "/Library/Fonts",
)

FONT_INIT_LOCK = threading.Lock()


@dataclass(frozen=True)
class FontFace:
    style: str
    filename: str
    env_var: str

    def locate(self) -> Optional[str]:
        override = os.getenv(self.env_var)
        if override and os.path.exists(override):
            return override
        for directory in FONT_DIRS:
            path = os.path.join(directory, self.filename)
            if os.path.exists(path):
                return path
        return None


REGULAR_FACE = FontFace("", "DejaVuSans.ttf", "INVOICE_FONT_PATH")
BOLD_FACE = FontFace("B", "DejaVuSans-Bold.ttf", "INVOICE_FONT_BOLD_PATH")


class FontManager:
    """Registers the document font on a canvas and draws text with it.

    Without a Unicode TTF on the system the built-in Helvetica is used and
    text is reduced to Latin-1.
    """

    FAMILY = "DocumentFont"
    CORE_FAMILY = "helvetica"

    def __init__(self, pdf: FPDF) -> None:
        self.pdf = pdf
        regular = REGULAR_FACE.locate()
        if regular is None:
            logger.warning(
                "No Unicode font found; falling back to Helvetica. "
                "Point INVOICE_FONT_PATH at a TTF file for non-Latin text."
            )
            self.family = self.CORE_FAMILY
            self.unicode = False
            self.has_bold = True
            return

        self.family = self.FAMILY
        self.unicode = True
        bold = BOLD_FACE.locate()
        with FONT_INIT_LOCK:
            pdf.add_font(self.FAMILY, REGULAR_FACE.style, regular)
            if bold is not None:
                pdf.add_font(self.FAMILY, BOLD_FACE.style, bold)
        self.has_bold = bold is not None

    def prepare(self, text: str) -> str:
        if self.unicode:
            return text
        return text.encode("latin-1", "replace").decode("latin-1")

    def use(self, size: float, bold: bool = False) -> None:
        self.pdf.set_font(self.family, BOLD_FACE.style if bold and self.has_bold else "", size)

    def text_width(self, text: str, size: float, bold: bool = False) -> float:
        self.use(size, bold)
        return self.pdf.get_string_width(self.prepare(text))

    def draw_text(
        self,
        x: float,
        y: float,
        text: str,
        size: float,
        color: Tuple[int, int, int],
        bold: bool = False,
    ) -> None:
        text = self.prepare(text)
        self.pdf.set_text_color(*color)
        self.use(size, bold)
        self.pdf.text(x, y, text)
        # Faux bold: a second pass nudged right.
        if bold and not self.has_bold:
            self.pdf.text(x + 0.4, y, text)
