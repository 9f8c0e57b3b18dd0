import random
import unittest
from datetime import date

from invoice_layout.errors import PayloadError
from invoice_layout.model import (
    Document,
    DocumentKind,
    LineItem,
    Party,
    document_from_payload,
    generate_document_number,
)

from factories import make_document


class LineItemTests(unittest.TestCase):
    def test_total_is_quantity_times_price(self) -> None:
        item = LineItem("p-1", "Kale", quantity=3, unit_price=1.25)

        self.assertEqual(item.total, 3.75)
        self.assertTrue(item.is_active)

    def test_zero_quantity_is_inactive(self) -> None:
        self.assertFalse(LineItem("p-1", "Kale", quantity=0, unit_price=2).is_active)

    def test_negative_values_are_rejected(self) -> None:
        with self.assertRaises(ValueError):
            LineItem("p-1", "Kale", quantity=-1, unit_price=2)
        with self.assertRaises(ValueError):
            LineItem("p-1", "Kale", quantity=1, unit_price=-2)

    def test_non_finite_values_are_rejected(self) -> None:
        with self.assertRaises(ValueError):
            LineItem("p-1", "Kale", quantity=float("nan"), unit_price=2)
        with self.assertRaises(ValueError):
            LineItem("p-1", "Kale", quantity=1, unit_price=float("inf"))


class DocumentTests(unittest.TestCase):
    def test_totals_ignore_zero_quantity_items(self) -> None:
        document = make_document(4, zero_items=3)

        self.assertEqual(len(document.items), 7)
        self.assertEqual(document.item_count, 4)
        self.assertEqual(document.total, 4 * 2 * 1.25)

    def test_items_are_stored_as_tuple(self) -> None:
        document = Document("1", Party("A"), date(2025, 1, 1), items=[LineItem("p", "X", 1, 1)])

        self.assertIsInstance(document.items, tuple)

    def test_superseded_by_leaves_original_untouched(self) -> None:
        original = make_document(2)
        edited = original.superseded_by(bill_to=Party("Corner Deli"))

        self.assertEqual(original.bill_to.name, "Fresh Mart")
        self.assertEqual(edited.bill_to.name, "Corner Deli")
        self.assertEqual(edited.number, original.number)

    def test_address_lines_skip_blank_lines(self) -> None:
        self.assertEqual(
            make_document(1).bill_to.address_lines,
            ("12 Main St", "Queens, NY 11375"),
        )

    def test_kind_titles_and_prefixes(self) -> None:
        self.assertEqual(DocumentKind.INVOICE.title, "INVOICE")
        self.assertEqual(DocumentKind.PROPOSAL.title, "PRODUCT PROPOSAL")
        self.assertEqual(DocumentKind.PROPOSAL.file_prefix, "Proposal")


class PayloadTests(unittest.TestCase):
    def test_bill_to_object(self) -> None:
        document = document_from_payload(
            {
                "number": "123456",
                "kind": "proposal",
                "date": "2026-01-15",
                "bill_to": {"name": "Fresh Mart", "address": "12 Main St"},
                "items": [{"name": "Kale", "quantity": "2", "unit_price": "1.5"}],
            }
        )

        self.assertIs(document.kind, DocumentKind.PROPOSAL)
        self.assertEqual(document.issue_date, date(2026, 1, 15))
        self.assertEqual(document.bill_to, Party("Fresh Mart", "12 Main St"))
        self.assertEqual(document.items[0].total, 3.0)

    def test_free_text_recipient_block(self) -> None:
        document = document_from_payload({"to": "Corner Deli\n\n5 Oak Ave\nBronx", "items": []})

        self.assertEqual(document.bill_to.name, "Corner Deli")
        self.assertEqual(document.bill_to.address_lines, ("5 Oak Ave", "Bronx"))

    def test_missing_number_is_generated(self) -> None:
        document = document_from_payload({"items": []})

        self.assertEqual(len(document.number), 6)
        self.assertTrue(document.number.isdigit())

    def test_unparseable_date_is_kept_as_text(self) -> None:
        self.assertEqual(document_from_payload({"date": "next week-ish"}).issue_date, "next week-ish")

    def test_invalid_values_raise_payload_error(self) -> None:
        bad_payloads = [
            {"kind": "receipt"},
            {"items": {"name": "Kale"}},
            {"items": ["Kale"]},
            {"items": [{"name": "Kale", "quantity": "lots"}]},
            {"items": [{"name": "Kale", "quantity": True}]},
            {"items": [{"name": "Kale", "quantity": 1, "price": -4}]},
            {"bill_to": "Fresh Mart"},
        ]
        for payload in bad_payloads:
            with self.subTest(payload=payload):
                with self.assertRaises(PayloadError):
                    document_from_payload(payload)

    def test_generated_numbers_stay_in_range(self) -> None:
        rng = random.Random(7)
        for _ in range(50):
            self.assertTrue(100000 <= int(generate_document_number(rng)) <= 999999)


if __name__ == "__main__":
    unittest.main()
