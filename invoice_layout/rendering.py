"""Compose a Document into a renderable block tree."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .config import DEFAULT_RENDER_CONFIG, RenderConfig
from .formatting import currency_symbol, fmt_date
from .layout import (
    Column,
    DensityParameters,
    LayoutProfile,
    partition_columns,
    resolve_density,
    select_layout,
)
from .model import Document, DocumentKind, LineItem

EMPTY_TABLE_PLACEHOLDER = "No items on this document"
GRAND_TOTAL_LABEL = "Grand Total Amount"


@dataclass(frozen=True)
class HeaderBlock:
    issuer_name: str
    issuer_phone: str
    title: str
    number: str
    issue_date: str


@dataclass(frozen=True)
class PartiesBlock:
    bill_to_name: str
    bill_to_address: Tuple[str, ...]
    terms: str
    spacing_px: int


@dataclass(frozen=True)
class ItemRow:
    sequence: int
    name: str
    quantity: float
    unit_price: float
    total: float


@dataclass(frozen=True)
class ItemTable:
    start_number: int
    rows: Tuple[ItemRow, ...]
    placeholder: Optional[str] = None


@dataclass(frozen=True)
class TotalsBlock:
    label: str
    grand_total: float
    conditions: str


@dataclass(frozen=True)
class FooterBlock:
    tagline: str
    reorder_line: str


@dataclass(frozen=True)
class RenderedDocument:
    kind: DocumentKind
    number: str
    party_name: str
    layout: LayoutProfile
    density: DensityParameters
    currency_symbol: str
    header: HeaderBlock
    parties: PartiesBlock
    tables: Tuple[ItemTable, ...]
    totals: TotalsBlock
    footer: FooterBlock

    @property
    def two_columns(self) -> bool:
        return len(self.tables) > 1

    @property
    def rows(self) -> Tuple[ItemRow, ...]:
        return tuple(row for table in self.tables for row in table.rows)


def _item_tables(columns: Sequence[Column]) -> Tuple[ItemTable, ...]:
    tables = []
    sequence = 1
    for column in columns:
        start = sequence
        rows = []
        for item in column.items:
            # Zero quantities are dropped here too, whatever the caller passed.
            if not item.is_active:
                continue
            rows.append(
                ItemRow(
                    sequence=sequence,
                    name=item.name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    total=item.total,
                )
            )
            sequence += 1
        tables.append(ItemTable(start_number=start, rows=tuple(rows)))

    if sequence == 1 and tables:
        tables[0] = ItemTable(start_number=1, rows=(), placeholder=EMPTY_TABLE_PLACEHOLDER)
    return tuple(tables)


def render_document(
    document: Document,
    profile: LayoutProfile,
    density: DensityParameters,
    columns: Sequence[Column],
    config: RenderConfig = DEFAULT_RENDER_CONFIG,
) -> RenderedDocument:
    identity = config.identity
    header = HeaderBlock(
        issuer_name=identity.name,
        issuer_phone=identity.phone,
        title=document.kind.title,
        number=document.number,
        issue_date=fmt_date(document.issue_date),
    )
    parties = PartiesBlock(
        bill_to_name=document.bill_to.name,
        bill_to_address=document.bill_to.address_lines,
        terms=identity.terms_for(document.kind.value),
        spacing_px=density.bill_to_spacing_px,
    )
    totals = TotalsBlock(
        label=GRAND_TOTAL_LABEL,
        grand_total=document.total,
        conditions=identity.conditions,
    )
    footer = FooterBlock(
        tagline=identity.tagline,
        reorder_line=f"For Re-orders: {identity.order_phone}",
    )
    return RenderedDocument(
        kind=document.kind,
        number=document.number,
        party_name=document.bill_to.name,
        layout=profile,
        density=density,
        currency_symbol=currency_symbol(config.currency),
        header=header,
        parties=parties,
        tables=_item_tables(columns),
        totals=totals,
        footer=footer,
    )


class DocumentRenderer:
    """Selects a layout for a document and renders it."""

    def __init__(self, config: RenderConfig = DEFAULT_RENDER_CONFIG) -> None:
        self.config = config

    def plan(
        self,
        document: Document,
        override: Optional[LayoutProfile] = None,
    ) -> Tuple[LayoutProfile, DensityParameters, Tuple[Column[LineItem], ...]]:
        active = document.active_items
        count = len(active)
        profile = select_layout(count, self.config.thresholds, override=override)
        density = resolve_density(profile, count, self.config.adaptive)
        return profile, density, partition_columns(active, density.two_columns)

    def render(self, document: Document, override: Optional[LayoutProfile] = None) -> RenderedDocument:
        profile, density, columns = self.plan(document, override)
        return render_document(document, profile, density, columns, self.config)
