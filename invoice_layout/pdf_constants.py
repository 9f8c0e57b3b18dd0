"""Geometry (CSS pixels, top-left origin) and colors of the PDF page."""

from .layout import MIN_ROW_HEIGHT_PX
from .styles import StyleProfile

# Header
LOGO_SIZE = 40
LOGO_RADIUS = 4.0
LOGO_TO_NAME_GAP = 12
ISSUER_NAME_BASELINE = 16
ISSUER_PHONE_BASELINE = 32
NUMBER_BOX_W = 120
NUMBER_BOX_H = 40
NUMBER_BOX_RADIUS = 4.0
DATE_TO_BOX_GAP = 24
HEADER_H = 52
HEADER_RULE_W = 2.0
HEADER_TO_PARTIES_GAP = 16

# Bill-to / terms
BILL_TO_LABEL_BASELINE = 10
BILL_TO_NAME_BASELINE = 28
BILL_TO_ADDR_BASELINE = 42
ADDR_LINE_H = 12
TERMS_BASELINE = 34
PARTIES_BOTTOM_GAP = 16

# Item tables
TABLE_HEAD_H = 22
TABLE_HEAD_RULE_W = 2.0
ROW_RULE_W = 0.5
COLUMN_FRACTIONS = (0.08, 0.44, 0.12, 0.18, 0.18)
CELL_PAD = 4
ROW_BASELINE_RATIO = 0.68

# Totals and footer, measured up from the content bottom
FOOTER_H = 28
TOTALS_H = 96
TOTALS_RULE_W = 4.0
TOTALS_TOP_GAP = 16
CONDITIONS_W = 350
CONDITIONS_LINE_H = 9
GRAND_BOX_H = 52
GRAND_BOX_PAD_X = 32
GRAND_BOX_RADIUS = 12.0

COLOR_INK = (15, 23, 42)            # slate-900
COLOR_ITEM = (30, 41, 59)           # slate-800
COLOR_TEXT_ALT = (71, 85, 105)      # slate-600
COLOR_MUTED = (100, 116, 139)       # slate-500
COLOR_LABEL = (148, 163, 184)       # slate-400
COLOR_SEQUENCE = (203, 213, 225)    # slate-300
COLOR_BOX_BORDER = (226, 232, 240)  # slate-200
COLOR_ROW_RULE = (241, 245, 249)    # slate-100
COLOR_BOX = (248, 250, 252)         # slate-50
COLOR_BRAND = (22, 163, 74)         # green-600
COLOR_WHITE = (255, 255, 255)

FONT_SIZE_ISSUER = 13
FONT_SIZE_PHONE = 9
FONT_SIZE_CAPTION = 6.5
FONT_SIZE_NUMBER = 10
FONT_SIZE_DATE = 9
FONT_SIZE_BILL_TO_LABEL = 8
FONT_SIZE_PARTY = 11
FONT_SIZE_ADDRESS = 8.5
FONT_SIZE_TERMS = 7.5
FONT_SIZE_TABLE_HEAD = 7
FONT_SIZE_SEQUENCE = 6.5
FONT_SIZE_CONDITIONS = 7
FONT_SIZE_TOTAL_LABEL = 8
FONT_SIZE_GRAND_TOTAL = 26
FONT_SIZE_FOOTER = 6.5


def item_capacity(style: StyleProfile, address_lines: int = 2) -> int:
    """Most active items two columns can hold at the smallest row height."""
    inset = style.margin_px + style.padding_px
    rows_top = (
        inset
        + HEADER_H
        + HEADER_TO_PARTIES_GAP
        + BILL_TO_ADDR_BASELINE
        + address_lines * ADDR_LINE_H
        + PARTIES_BOTTOM_GAP
        + TABLE_HEAD_H
    )
    rows_bottom = style.page_height_px - inset - FOOTER_H - TOTALS_H - TOTALS_TOP_GAP
    return 2 * max(0, int((rows_bottom - rows_top) // MIN_ROW_HEIGHT_PX))
