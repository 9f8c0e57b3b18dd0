"""Output sinks: interactive print and file capture."""

from __future__ import annotations

import atexit
import os
import platform
import shutil
import subprocess
import tempfile
import threading
from collections import OrderedDict
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator, Optional, Union

from .errors import CaptureError, CaptureInProgressError, ExportError, RenderError
from .formatting import normalize_separator
from .log import get_logger
from .pdf import PdfRasterizer
from .rendering import RenderedDocument
from .styles import FILE_STYLE, PRINT_STYLE, StyleProfile
from .surface import build_markup, offscreen_surface

logger = get_logger(__name__)

FILE_EXTENSION = "pdf"
SETTLED_STATES_LIMIT = 256

PrintLauncher = Callable[[str], None]


def launch_print_dialog(path: str) -> None:
    """Hand a print surface to the platform and return without waiting."""
    if hasattr(os, "startfile"):
        os.startfile(path, "print")  # type: ignore[attr-defined]
        return
    runner = "open" if platform.system() == "Darwin" else "xdg-open"
    subprocess.Popen(
        [runner, path],
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
    )


def export_filename(rendered: RenderedDocument, extension: str = FILE_EXTENSION) -> str:
    """``<Prefix>_<party>_<number>.<ext>`` with whitespace collapsed to ``_``."""
    parts = [
        rendered.kind.file_prefix,
        normalize_separator(rendered.party_name),
        normalize_separator(rendered.number),
    ]
    return "_".join(part for part in parts if part) + f".{extension}"


@contextmanager
def capture_errors(rendered: RenderedDocument) -> Iterator[None]:
    """Turn unexpected failures inside the block into CaptureError."""
    try:
        yield
    except ExportError:
        raise
    except Exception as exc:
        raise CaptureError(f"Export of {rendered.number} failed: {exc}") from exc


def render_pdf(
    rendered: Optional[RenderedDocument],
    style: StyleProfile = FILE_STYLE,
    rasterizer: Optional[PdfRasterizer] = None,
) -> bytes:
    """Capture a document to PDF bytes without saving it anywhere."""
    if rendered is None:
        raise RenderError("Nothing to export: no rendered document.")
    rasterizer = rasterizer or PdfRasterizer()
    with offscreen_surface(style) as surface:
        surface.populate(rendered)
        with capture_errors(rendered):
            return rasterizer.assemble(rasterizer.rasterize(surface))


class PrintSink:
    """Builds a standalone print surface and opens the platform print flow.

    Fire-and-forget: whether the user actually prints is not reported.
    Surfaces live in one sink-owned temporary directory that :meth:`close`
    removes, at the latest when the interpreter exits.
    """

    def __init__(self, style: StyleProfile = PRINT_STYLE, launcher: Optional[PrintLauncher] = None) -> None:
        self.style = style
        self.launcher = launcher or launch_print_dialog
        self._directory: Optional[Path] = None
        self._lock = threading.Lock()

    @property
    def directory(self) -> Optional[Path]:
        return self._directory

    def _surface_directory(self) -> Path:
        with self._lock:
            if self._directory is None:
                self._directory = Path(tempfile.mkdtemp(prefix="print-"))
                atexit.register(self.close)
            return self._directory

    def build_surface(self, rendered: Optional[RenderedDocument]) -> str:
        if rendered is None:
            raise RenderError("Nothing to print: no rendered document.")
        markup = build_markup(rendered, self.style)
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                suffix=".html",
                prefix=f"{rendered.kind.file_prefix.lower()}-",
                dir=self._surface_directory(),
                delete=False,
            ) as handle:
                handle.write(markup)
        except OSError as exc:
            raise RenderError(f"Could not build the print surface: {exc}") from exc
        return handle.name

    def print_document(self, rendered: Optional[RenderedDocument]) -> None:
        path = self.build_surface(rendered)
        logger.info("Opening print dialog for %s", path)
        self.launcher(path)

    def close(self) -> None:
        with self._lock:
            directory = self._directory
            self._directory = None
        atexit.unregister(self.close)
        if directory is None:
            return
        try:
            shutil.rmtree(directory)
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("Could not remove print surfaces in %s", directory, exc_info=True)

    def __enter__(self) -> "PrintSink":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class CaptureState(Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    SAVED = "saved"
    FAILED = "failed"


@dataclass(frozen=True)
class CaptureResult:
    path: Path
    filename: str
    size: int


class FileCaptureSink:
    """Renders documents off-screen into downloadable PDF files.

    At most one capture per document number runs at a time; different
    documents never share a surface. Only the latest ``settled_limit``
    finished outcomes are remembered; older ones read back as IDLE.
    """

    def __init__(
        self,
        output_dir: Union[str, Path],
        style: StyleProfile = FILE_STYLE,
        rasterizer: Optional[PdfRasterizer] = None,
        executor: Optional[ThreadPoolExecutor] = None,
        settled_limit: int = SETTLED_STATES_LIMIT,
    ) -> None:
        self.output_dir = Path(output_dir)
        self.style = style
        self.rasterizer = rasterizer or PdfRasterizer()
        self._executor = executor
        self._owns_executor = executor is None
        self.settled_limit = settled_limit
        self._states: "OrderedDict[str, CaptureState]" = OrderedDict()
        self._lock = threading.Lock()

    def state_of(self, number: str) -> CaptureState:
        with self._lock:
            return self._states.get(number, CaptureState.IDLE)

    def _begin(self, number: str) -> None:
        with self._lock:
            if self._states.get(number) is CaptureState.CAPTURING:
                raise CaptureInProgressError(f"Document {number} is already being exported.")
            self._states[number] = CaptureState.CAPTURING

    def _settle(self, number: str, state: CaptureState) -> None:
        with self._lock:
            if state is CaptureState.IDLE:
                self._states.pop(number, None)
                return
            self._states[number] = state
            self._states.move_to_end(number)
            settled = [key for key, value in self._states.items() if value is not CaptureState.CAPTURING]
            for key in settled[: max(0, len(settled) - self.settled_limit)]:
                del self._states[key]

    def _save(self, blob: bytes, filename: str) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        target = self.output_dir / filename
        partial = target.with_name(target.name + ".part")
        try:
            partial.write_bytes(blob)
            os.replace(partial, target)
        except OSError:
            partial.unlink(missing_ok=True)
            raise
        return target

    def _run(self, rendered: RenderedDocument) -> CaptureResult:
        filename = export_filename(rendered)
        with offscreen_surface(self.style) as surface:
            surface.populate(rendered)
            with capture_errors(rendered):
                blob = self.rasterizer.assemble(self.rasterizer.rasterize(surface))
                path = self._save(blob, filename)
        return CaptureResult(path=path, filename=filename, size=len(blob))

    def capture(self, rendered: Optional[RenderedDocument]) -> CaptureResult:
        if rendered is None:
            raise RenderError("Nothing to export: no rendered document.")
        self._begin(rendered.number)
        return self._capture_started(rendered)

    def _capture_started(self, rendered: RenderedDocument) -> CaptureResult:
        logger.info("Exporting %s with %s layout", rendered.number, rendered.layout.value)
        try:
            result = self._run(rendered)
        except ExportError:
            logger.error("Export of %s failed", rendered.number, exc_info=True)
            self._settle(rendered.number, CaptureState.FAILED)
            raise
        except BaseException:
            self._settle(rendered.number, CaptureState.FAILED)
            raise
        self._settle(rendered.number, CaptureState.SAVED)
        logger.info("Saved %s (%d bytes)", result.path, result.size)
        return result

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="capture")
            return self._executor

    def submit(self, rendered: Optional[RenderedDocument]) -> "Future[CaptureResult]":
        """Start a capture in the background.

        The in-progress check happens before returning, so a second submit for
        the same document fails immediately instead of queueing.
        """
        if rendered is None:
            raise RenderError("Nothing to export: no rendered document.")
        self._begin(rendered.number)
        try:
            return self._get_executor().submit(self._capture_started, rendered)
        except RuntimeError:
            self._settle(rendered.number, CaptureState.IDLE)
            raise

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            executor = self._executor
            self._executor = None
        if executor is not None and self._owns_executor:
            executor.shutdown(wait=wait)
