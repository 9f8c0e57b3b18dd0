import shutil
import tempfile
import threading
import unittest
from importlib import util as importlib_util
from pathlib import Path
from unittest.mock import Mock, patch

from invoice_layout.errors import CaptureError, CaptureInProgressError, RenderError, TeardownError
from invoice_layout.layout import LayoutProfile
from invoice_layout.model import DocumentKind, Party
from invoice_layout.rendering import DocumentRenderer

from factories import make_document

FPDF_AVAILABLE = importlib_util.find_spec("fpdf") is not None

if FPDF_AVAILABLE:
    from invoice_layout.export import (
        CaptureState,
        FileCaptureSink,
        PrintSink,
        export_filename,
        render_pdf,
    )
    from invoice_layout.pdf import PdfPage, PdfRasterizer
    from invoice_layout.pdf_constants import item_capacity
    from invoice_layout.styles import FILE_STYLE
    from invoice_layout.surface import OffscreenSurface

    class RecordingRasterizer(PdfRasterizer):
        def __init__(self) -> None:
            self.surfaces = []

        def rasterize(self, surface):
            self.surfaces.append(surface)
            return super().rasterize(surface)

    class FailingRasterizer(RecordingRasterizer):
        def rasterize(self, surface):
            self.surfaces.append(surface)
            raise RuntimeError("raster buffer exhausted")

    class SpoolLosingRasterizer(RecordingRasterizer):
        def rasterize(self, surface):
            page = super().rasterize(surface)
            page.unlink()
            return page

    class BlockingRasterizer(RecordingRasterizer):
        def __init__(self) -> None:
            super().__init__()
            self.entered = threading.Event()
            self.proceed = threading.Event()

        def rasterize(self, surface):
            self.entered.set()
            self.proceed.wait(5)
            return super().rasterize(surface)


@unittest.skipUnless(FPDF_AVAILABLE, "fpdf2 is not installed")
class ExportFilenameTests(unittest.TestCase):
    def test_filename_uses_prefix_party_and_number(self) -> None:
        rendered = DocumentRenderer().render(make_document(2, number="482913"))

        self.assertEqual(export_filename(rendered), "Invoice_Fresh_Mart_482913.pdf")

    def test_filename_collapses_whitespace_and_separators(self) -> None:
        document = make_document(2, number="48 29", kind=DocumentKind.PROPOSAL)
        document = document.superseded_by(bill_to=Party("  Corner \t Deli/Grill "))
        rendered = DocumentRenderer().render(document)

        self.assertEqual(export_filename(rendered), "Proposal_Corner_Deli_Grill_48_29.pdf")


@unittest.skipUnless(FPDF_AVAILABLE, "fpdf2 is not installed")
class PrintSinkTests(unittest.TestCase):
    def test_print_hands_surface_to_launcher(self) -> None:
        launcher = Mock()
        sink = PrintSink(launcher=launcher)

        sink.print_document(DocumentRenderer().render(make_document(3)))

        launcher.assert_called_once()
        path = launcher.call_args[0][0]
        self.addCleanup(sink.close)
        self.assertTrue(path.endswith(".html"))
        self.assertEqual(Path(path).parent, sink.directory)
        with open(path, encoding="utf-8") as handle:
            markup = handle.read()
        self.assertIn("window.print()", markup)
        self.assertIn('data-style="print"', markup)

    def test_missing_document_never_opens_print_flow(self) -> None:
        launcher = Mock()

        with self.assertRaises(RenderError):
            PrintSink(launcher=launcher).print_document(None)

        launcher.assert_not_called()

    def test_surface_write_failure_is_a_render_error(self) -> None:
        launcher = Mock()
        sink = PrintSink(launcher=launcher)
        self.addCleanup(sink.close)
        rendered = DocumentRenderer().render(make_document(3))

        with patch("invoice_layout.export.tempfile.NamedTemporaryFile", side_effect=OSError("disk full")):
            with self.assertRaises(RenderError):
                sink.print_document(rendered)

        launcher.assert_not_called()

    def test_close_removes_print_surfaces(self) -> None:
        sink = PrintSink(launcher=Mock())
        rendered = DocumentRenderer().render(make_document(3))
        sink.print_document(rendered)
        sink.print_document(rendered)
        directory = sink.directory
        assert directory is not None
        self.assertEqual(len(list(directory.iterdir())), 2)

        sink.close()

        self.assertFalse(directory.exists())
        self.assertIsNone(sink.directory)
        sink.close()

    def test_context_manager_closes_sink(self) -> None:
        with PrintSink(launcher=Mock()) as sink:
            sink.print_document(DocumentRenderer().render(make_document(1)))
            directory = sink.directory

        assert directory is not None
        self.assertFalse(directory.exists())


@unittest.skipUnless(FPDF_AVAILABLE, "fpdf2 is not installed")
class FileCaptureSinkTests(unittest.TestCase):
    def setUp(self) -> None:
        self.output_dir = Path(tempfile.mkdtemp(prefix="capture-test-"))
        self.addCleanup(shutil.rmtree, self.output_dir, True)
        self.renderer = DocumentRenderer()

    def test_capture_saves_pdf_and_releases_surface(self) -> None:
        rasterizer = RecordingRasterizer()
        sink = FileCaptureSink(self.output_dir, rasterizer=rasterizer)
        rendered = self.renderer.render(make_document(35))

        result = sink.capture(rendered)

        self.assertEqual(result.filename, "Invoice_Fresh_Mart_482913.pdf")
        self.assertEqual(result.path, self.output_dir / result.filename)
        self.assertTrue(result.path.read_bytes().startswith(b"%PDF"))
        self.assertEqual(result.size, result.path.stat().st_size)
        self.assertIs(sink.state_of(rendered.number), CaptureState.SAVED)
        (surface,) = rasterizer.surfaces
        self.assertTrue(surface.released)
        self.assertEqual([p.name for p in self.output_dir.iterdir()], [result.filename])

    def test_failed_capture_tears_down_and_allows_retry(self) -> None:
        failing = FailingRasterizer()
        sink = FileCaptureSink(self.output_dir, rasterizer=failing)
        rendered = self.renderer.render(make_document(12))

        with self.assertRaises(CaptureError) as caught:
            sink.capture(rendered)

        self.assertIsInstance(caught.exception.__cause__, RuntimeError)
        (surface,) = failing.surfaces
        self.assertTrue(surface.released)
        self.assertFalse(surface.path.exists())
        self.assertIs(sink.state_of(rendered.number), CaptureState.FAILED)
        self.assertEqual(list(self.output_dir.iterdir()), [])

        sink.rasterizer = PdfRasterizer()
        sink.capture(rendered)
        self.assertIs(sink.state_of(rendered.number), CaptureState.SAVED)

    def test_missing_document_is_a_render_error(self) -> None:
        sink = FileCaptureSink(self.output_dir)

        with self.assertRaises(RenderError):
            sink.capture(None)
        with self.assertRaises(RenderError):
            sink.submit(None)

    def test_teardown_failure_does_not_mask_capture_error(self) -> None:
        failing = FailingRasterizer()
        sink = FileCaptureSink(self.output_dir, rasterizer=failing)
        rendered = self.renderer.render(make_document(4))

        with patch.object(OffscreenSurface, "release", side_effect=TeardownError("locked")):
            with self.assertLogs("invoice_layout.surface", level="WARNING"):
                with self.assertRaises(CaptureError):
                    sink.capture(rendered)
        for surface in failing.surfaces:
            shutil.rmtree(surface.path, ignore_errors=True)

    def test_second_export_of_same_document_is_rejected_while_in_flight(self) -> None:
        rasterizer = BlockingRasterizer()
        sink = FileCaptureSink(self.output_dir, rasterizer=rasterizer)
        self.addCleanup(sink.shutdown)
        rendered = self.renderer.render(make_document(8))

        future = sink.submit(rendered)
        try:
            self.assertTrue(rasterizer.entered.wait(5))
            self.assertIs(sink.state_of(rendered.number), CaptureState.CAPTURING)
            with self.assertRaises(CaptureInProgressError):
                sink.submit(rendered)
            with self.assertRaises(CaptureInProgressError):
                sink.capture(rendered)
        finally:
            rasterizer.proceed.set()

        self.assertTrue(future.result(timeout=30).path.exists())
        self.assertIs(sink.state_of(rendered.number), CaptureState.SAVED)

    def test_different_documents_export_independently(self) -> None:
        rasterizer = BlockingRasterizer()
        sink = FileCaptureSink(self.output_dir, rasterizer=rasterizer)
        self.addCleanup(sink.shutdown)

        first = sink.submit(self.renderer.render(make_document(3, number="100001")))
        second = sink.submit(self.renderer.render(make_document(3, number="100002")))
        rasterizer.proceed.set()

        paths = {first.result(timeout=30).path, second.result(timeout=30).path}
        self.assertEqual(len(paths), 2)
        self.assertEqual(len(rasterizer.surfaces), 2)
        self.assertNotEqual(rasterizer.surfaces[0].path, rasterizer.surfaces[1].path)

    def test_unpopulated_surface_is_never_captured(self) -> None:
        sink = FileCaptureSink(self.output_dir)
        rendered = self.renderer.render(make_document(6))

        with patch.object(OffscreenSurface, "populate"):
            with self.assertRaises(RenderError):
                sink.capture(rendered)

        self.assertIs(sink.state_of(rendered.number), CaptureState.FAILED)
        self.assertEqual(list(self.output_dir.iterdir()), [])

    def test_capture_reads_back_the_spooled_page(self) -> None:
        rasterizer = SpoolLosingRasterizer()
        sink = FileCaptureSink(self.output_dir, rasterizer=rasterizer)
        rendered = self.renderer.render(make_document(6))

        with self.assertRaises(CaptureError):
            sink.capture(rendered)

        (surface,) = rasterizer.surfaces
        self.assertTrue(surface.released)
        self.assertEqual(list(self.output_dir.iterdir()), [])

    def test_document_beyond_page_capacity_fails_without_output(self) -> None:
        sink = FileCaptureSink(self.output_dir)
        rendered = self.renderer.render(make_document(item_capacity(FILE_STYLE) + 2))

        with self.assertRaises(CaptureError):
            sink.capture(rendered)

        self.assertIs(sink.state_of(rendered.number), CaptureState.FAILED)
        self.assertEqual(list(self.output_dir.iterdir()), [])

    def test_settled_outcomes_are_bounded(self) -> None:
        sink = FileCaptureSink(self.output_dir, settled_limit=1)

        sink.capture(self.renderer.render(make_document(2, number="100001")))
        sink.capture(self.renderer.render(make_document(2, number="100002")))

        self.assertIs(sink.state_of("100001"), CaptureState.IDLE)
        self.assertIs(sink.state_of("100002"), CaptureState.SAVED)


@unittest.skipUnless(FPDF_AVAILABLE, "fpdf2 is not installed")
class RenderPdfTests(unittest.TestCase):
    def test_each_layout_renders_a_pdf(self) -> None:
        renderer = DocumentRenderer()
        for count in (0, 10, 20, 35, 60):
            with self.subTest(count=count):
                blob = render_pdf(renderer.render(make_document(count, zero_items=2)))
                self.assertTrue(blob.startswith(b"%PDF"))

    def test_long_documents_draw_every_row(self) -> None:
        renderer = DocumentRenderer()
        cases = [
            renderer.render(make_document(83)),
            renderer.render(make_document(90)),
            renderer.render(make_document(120)),
            renderer.render(make_document(40), LayoutProfile.LARGE_SINGLE),
        ]
        for rendered in cases:
            with self.subTest(rows=len(rendered.rows), layout=rendered.layout):
                page = PdfPage(FILE_STYLE, rendered)
                page.draw()

                self.assertEqual(page.drawn_rows, len(rendered.rows))
                self.assertLess(page.density.row_height_px, rendered.density.row_height_px)
                self.assertLessEqual(page.density.font_size_pt, rendered.density.font_size_pt)

    def test_short_documents_keep_their_density(self) -> None:
        rendered = DocumentRenderer().render(make_document(35))
        page = PdfPage(FILE_STYLE, rendered)
        page.draw()

        self.assertEqual(page.density, rendered.density)
        self.assertEqual(page.drawn_rows, 35)

    def test_document_beyond_page_capacity_is_a_capture_error(self) -> None:
        rendered = DocumentRenderer().render(make_document(item_capacity(FILE_STYLE) + 2))

        with self.assertRaises(CaptureError):
            render_pdf(rendered)

    def test_missing_document_is_a_render_error(self) -> None:
        with self.assertRaises(RenderError):
            render_pdf(None)


if __name__ == "__main__":
    unittest.main()
