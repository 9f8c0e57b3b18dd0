import errno
import json
import unittest

from invoice_layout.layout import LayoutProfile
from invoice_layout.net import is_client_disconnect
from invoice_layout.pdf_constants import item_capacity
from invoice_layout.server import (
    DocumentHandler,
    claim_document,
    parse_layout,
    release_document,
    validate_document_payload,
)
from invoice_layout.styles import FILE_STYLE


class ApiValidationTests(unittest.TestCase):
    def _json_bytes(self, payload: object) -> bytes:
        return json.dumps(payload).encode("utf-8")

    def test_accepts_valid_payload(self) -> None:
        result, error = validate_document_payload(
            self._json_bytes(
                {
                    "number": "551204",
                    "to": "Fresh Mart\n12 Main St",
                    "items": [{"name": "Kale", "quantity": 3, "price": 2.5}],
                }
            ),
            max_items=100,
        )

        self.assertIsNone(error)
        assert result is not None
        document, override = result
        self.assertEqual(document.number, "551204")
        self.assertEqual(document.bill_to.name, "Fresh Mart")
        self.assertEqual(document.total, 7.5)
        self.assertIsNone(override)

    def test_accepts_layout_override(self) -> None:
        result, error = validate_document_payload(
            self._json_bytes({"items": [], "layout": "two-column"}),
            max_items=100,
        )

        self.assertIsNone(error)
        assert result is not None
        self.assertIs(result[1], LayoutProfile.TWO_COLUMN)

    def test_rejects_invalid_utf8(self) -> None:
        _, error = validate_document_payload(b"\xff", max_items=100)

        self.assertIsNotNone(error)
        assert error is not None
        self.assertEqual(error[0], 400)
        self.assertEqual(error[1]["error"], "invalid_encoding")

    def test_rejects_invalid_json(self) -> None:
        _, error = validate_document_payload(b'{"items":', max_items=100)

        self.assertIsNotNone(error)
        assert error is not None
        self.assertEqual(error[0], 400)
        self.assertEqual(error[1]["error"], "invalid_json")

    def test_rejects_non_object_root(self) -> None:
        _, error = validate_document_payload(self._json_bytes(["bad-root"]), max_items=100)

        self.assertIsNotNone(error)
        assert error is not None
        self.assertEqual(error[0], 400)
        self.assertEqual(error[1]["error"], "invalid_payload")

    def test_rejects_non_array_items(self) -> None:
        _, error = validate_document_payload(self._json_bytes({"items": "bad"}), max_items=100)

        self.assertIsNotNone(error)
        assert error is not None
        self.assertEqual(error[0], 400)
        self.assertEqual(error[1]["error"], "invalid_payload")

    def test_rejects_negative_quantity(self) -> None:
        _, error = validate_document_payload(
            self._json_bytes({"items": [{"name": "Kale", "quantity": -1, "price": 1}]}),
            max_items=100,
        )

        assert error is not None
        self.assertEqual(error[1]["error"], "invalid_payload")

    def test_rejects_unknown_layout(self) -> None:
        _, error = validate_document_payload(
            self._json_bytes({"items": [], "layout": "three-column"}),
            max_items=100,
        )

        assert error is not None
        self.assertEqual(error[0], 400)
        self.assertIn("three-column", error[1]["detail"])

    def test_rejects_payload_exceeding_max_items(self) -> None:
        items = [{"name": f"Item {n}", "quantity": 1, "price": 1} for n in range(3)]
        _, error = validate_document_payload(self._json_bytes({"items": items}), max_items=2)

        self.assertIsNotNone(error)
        assert error is not None
        self.assertEqual(error[0], 413)
        self.assertEqual(error[1]["error"], "document_too_large")
        self.assertEqual(error[1]["max_items"], 2)

    def test_item_limit_fits_one_exported_page(self) -> None:
        self.assertEqual(item_capacity(FILE_STYLE), 126)
        self.assertLessEqual(DocumentHandler.MAX_ITEMS, item_capacity(FILE_STYLE))

    def test_zero_quantity_items_do_not_count_toward_limit(self) -> None:
        items = [{"name": "Kale", "quantity": 1, "price": 1}] + [
            {"name": f"Unused {n}", "quantity": 0, "price": 1} for n in range(5)
        ]
        result, error = validate_document_payload(self._json_bytes({"items": items}), max_items=2)

        self.assertIsNone(error)
        self.assertIsNotNone(result)


class LayoutParsingTests(unittest.TestCase):
    def test_auto_means_no_override(self) -> None:
        self.assertIsNone(parse_layout(None))
        self.assertIsNone(parse_layout(""))
        self.assertIsNone(parse_layout("auto"))

    def test_profile_values_are_accepted(self) -> None:
        self.assertIs(parse_layout("adaptive"), LayoutProfile.ADAPTIVE)
        self.assertIs(parse_layout("condensed"), LayoutProfile.CONDENSED_SINGLE)


class ExportClaimTests(unittest.TestCase):
    def test_document_can_only_be_claimed_once(self) -> None:
        self.assertTrue(claim_document("700001"))
        try:
            self.assertFalse(claim_document("700001"))
            self.assertTrue(claim_document("700002"))
            release_document("700002")
        finally:
            release_document("700001")

        self.assertTrue(claim_document("700001"))
        release_document("700001")


class DisconnectDetectionTests(unittest.TestCase):
    def test_connection_errors_count_as_disconnects(self) -> None:
        self.assertTrue(is_client_disconnect(BrokenPipeError()))
        self.assertTrue(is_client_disconnect(ConnectionAbortedError()))
        self.assertTrue(is_client_disconnect(OSError(errno.ECONNRESET, "reset")))

    def test_other_errors_do_not(self) -> None:
        self.assertFalse(is_client_disconnect(OSError(errno.ENOSPC, "disk full")))
        self.assertFalse(is_client_disconnect(ValueError("bad")))


if __name__ == "__main__":
    unittest.main()
