"""Normalized document model consumed by the layout pipeline."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from dateutil import parser as dateutil_parser

from .errors import PayloadError
from .formatting import split_lines


class DocumentKind(Enum):
    INVOICE = "invoice"
    PROPOSAL = "proposal"

    @property
    def title(self) -> str:
        return "INVOICE" if self is DocumentKind.INVOICE else "PRODUCT PROPOSAL"

    @property
    def file_prefix(self) -> str:
        return "Invoice" if self is DocumentKind.INVOICE else "Proposal"


@dataclass(frozen=True)
class LineItem:
    product_id: str
    name: str
    quantity: float
    unit_price: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.quantity) and math.isfinite(self.unit_price)):
            raise ValueError(f"Quantity and unit price of {self.name!r} must be finite")
        if self.quantity < 0:
            raise ValueError(f"Quantity of {self.name!r} cannot be negative")
        if self.unit_price < 0:
            raise ValueError(f"Unit price of {self.name!r} cannot be negative")

    @property
    def total(self) -> float:
        return self.quantity * self.unit_price

    @property
    def is_active(self) -> bool:
        return self.quantity > 0


@dataclass(frozen=True)
class Party:
    name: str
    address: str = ""

    @property
    def address_lines(self) -> Tuple[str, ...]:
        return tuple(line.strip() for line in split_lines(self.address))


@dataclass(frozen=True)
class Document:
    """A finalized invoice or proposal.

    Documents are values: editing one produces a new Document through
    :meth:`superseded_by` and the owning collection swaps it in.
    """

    number: str
    bill_to: Party
    issue_date: Union[date, str]
    items: Tuple[LineItem, ...] = field(default_factory=tuple)
    kind: DocumentKind = DocumentKind.INVOICE

    def __post_init__(self) -> None:
        if not isinstance(self.items, tuple):
            object.__setattr__(self, "items", tuple(self.items))

    @property
    def active_items(self) -> Tuple[LineItem, ...]:
        return tuple(item for item in self.items if item.is_active)

    @property
    def item_count(self) -> int:
        return len(self.active_items)

    @property
    def total(self) -> float:
        return sum((item.total for item in self.active_items), 0.0)

    def superseded_by(self, **changes: Any) -> "Document":
        return replace(self, **changes)


def generate_document_number(rng: Optional[random.Random] = None) -> str:
    source = rng or random
    return str(source.randint(100000, 999999))


def _number(value: Any, field_name: str, index: int) -> float:
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        raise PayloadError(f"items[{index}].{field_name} must be a number.")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise PayloadError(f"items[{index}].{field_name} must be a number.") from None
    if not math.isfinite(number):
        raise PayloadError(f"items[{index}].{field_name} must be finite.")
    if number < 0:
        raise PayloadError(f"items[{index}].{field_name} cannot be negative.")
    return number


def _line_items(raw_items: Iterable[Any]) -> Tuple[LineItem, ...]:
    items = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise PayloadError(f"items[{index}] must be an object.")
        name = str(raw.get("name", "")).strip()
        price = raw.get("unit_price", raw.get("price"))
        items.append(
            LineItem(
                product_id=str(raw.get("product_id", raw.get("id", index))),
                name=name,
                quantity=_number(raw.get("quantity"), "quantity", index),
                unit_price=_number(price, "unit_price", index),
            )
        )
    return tuple(items)


def _party(payload: Dict[str, Any]) -> Party:
    bill_to = payload.get("bill_to")
    if isinstance(bill_to, dict):
        return Party(
            name=str(bill_to.get("name", "")).strip(),
            address=str(bill_to.get("address", "")).strip(),
        )
    if bill_to is not None:
        raise PayloadError("'bill_to' must be an object.")

    # Free-text block: first line is the party name, the rest its address.
    lines = split_lines(str(payload.get("to", "")).strip())
    if not lines:
        return Party(name="")
    return Party(name=lines[0].strip(), address="\n".join(lines[1:]))


def _issue_date(raw: Any) -> Union[date, str]:
    if raw is None or raw == "":
        return date.today()
    text = str(raw).strip()
    try:
        return dateutil_parser.parse(text).date()
    except (ValueError, OverflowError):
        return text


def document_from_payload(payload: Dict[str, Any]) -> Document:
    """Build a Document from JSON-like order data."""
    raw_kind = str(payload.get("kind", DocumentKind.INVOICE.value)).lower()
    try:
        kind = DocumentKind(raw_kind)
    except ValueError:
        raise PayloadError(f"Unknown document kind {raw_kind!r}.") from None

    raw_items = payload.get("items", [])
    if raw_items is None:
        raw_items = []
    if not isinstance(raw_items, list):
        raise PayloadError("'items' must be an array.")

    number = str(payload.get("number", "")).strip() or generate_document_number()
    return Document(
        number=number,
        bill_to=_party(payload),
        issue_date=_issue_date(payload.get("date")),
        items=_line_items(raw_items),
        kind=kind,
    )
