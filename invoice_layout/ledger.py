"""In-memory collection owning finalized documents."""

from __future__ import annotations

import random
from collections import OrderedDict
from datetime import date
from typing import Iterable, Iterator, Optional, Union

from .model import Document, DocumentKind, LineItem, Party, generate_document_number


class DocumentLedger:
    """Documents keyed by number, kept in issue order.

    Edits never mutate a stored Document; :meth:`supersede` swaps in the new
    value at the same position.
    """

    def __init__(self, documents: Iterable[Document] = (), rng: Optional[random.Random] = None) -> None:
        self._documents: "OrderedDict[str, Document]" = OrderedDict()
        self._rng = rng
        for document in documents:
            self.add(document)

    def __len__(self) -> int:
        return len(self._documents)

    def __iter__(self) -> Iterator[Document]:
        return iter(list(self._documents.values()))

    def __contains__(self, number: object) -> bool:
        return number in self._documents

    def get(self, number: str) -> Optional[Document]:
        return self._documents.get(number)

    def add(self, document: Document) -> Document:
        if document.number in self._documents:
            raise ValueError(f"Document number {document.number!r} already exists")
        self._documents[document.number] = document
        return document

    def supersede(self, document: Document) -> Document:
        if document.number not in self._documents:
            raise KeyError(document.number)
        self._documents[document.number] = document
        return document

    def remove(self, number: str) -> Document:
        return self._documents.pop(number)

    def next_number(self) -> str:
        while True:
            number = generate_document_number(self._rng)
            if number not in self._documents:
                return number

    def issue(
        self,
        bill_to: Party,
        items: Iterable[LineItem],
        issue_date: Union[date, str, None] = None,
        kind: DocumentKind = DocumentKind.INVOICE,
    ) -> Document:
        """Finalize an order: zero-quantity lines are dropped before storing."""
        active = tuple(item for item in items if item.is_active)
        if not active:
            raise ValueError("A document needs at least one item with quantity above zero")
        document = Document(
            number=self.next_number(),
            bill_to=bill_to,
            issue_date=issue_date or date.today(),
            items=active,
            kind=kind,
        )
        return self.add(document)
