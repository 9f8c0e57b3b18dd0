"""Caller-facing session tying a document to its layout choice and sinks."""

from __future__ import annotations

import threading
from concurrent.futures import Future
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from .config import DEFAULT_RENDER_CONFIG, RenderConfig
from .errors import CaptureInProgressError
from .export import CaptureResult, FileCaptureSink, PrintSink
from .layout import LayoutProfile
from .model import Document
from .rendering import DocumentRenderer, RenderedDocument


class SessionState(Enum):
    READY = "ready"
    EXPORTING = "exporting"


class ExportSession:
    """One document on screen, ready to be printed or exported.

    The session is EXPORTING while a file capture is in flight and returns
    to READY when it settles, successful or not. The document and the layout
    choice survive failed attempts so the user can retry, or fall back to
    :meth:`print_document`.
    """

    def __init__(
        self,
        document: Document,
        config: RenderConfig = DEFAULT_RENDER_CONFIG,
        print_sink: Optional[PrintSink] = None,
        capture_sink: Optional[FileCaptureSink] = None,
        output_dir: Union[str, Path, None] = None,
    ) -> None:
        self.document = document
        self.renderer = DocumentRenderer(config)
        self.print_sink = print_sink or PrintSink()
        self.capture_sink = capture_sink or FileCaptureSink(output_dir or Path.cwd())
        self._override: Optional[LayoutProfile] = None
        self._state = SessionState.READY
        self._lock = threading.Lock()

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def layout_override(self) -> Optional[LayoutProfile]:
        return self._override

    @property
    def layout(self) -> LayoutProfile:
        profile, _, _ = self.renderer.plan(self.document, self._override)
        return profile

    def choose_layout(self, profile: Optional[LayoutProfile]) -> None:
        """Pin a layout profile, or pass ``None`` to go back to automatic."""
        self._override = profile

    def replace_document(self, document: Document) -> None:
        self.document = document

    def render(self) -> RenderedDocument:
        return self.renderer.render(self.document, self._override)

    def print_document(self) -> None:
        self.print_sink.print_document(self.render())

    def _enter_exporting(self) -> None:
        with self._lock:
            if self._state is SessionState.EXPORTING:
                raise CaptureInProgressError(f"Document {self.document.number} is already being exported.")
            self._state = SessionState.EXPORTING

    def _leave_exporting(self, _future: Optional[Future] = None) -> None:
        with self._lock:
            self._state = SessionState.READY

    def export_file(self) -> CaptureResult:
        self._enter_exporting()
        try:
            return self.capture_sink.capture(self.render())
        finally:
            self._leave_exporting()

    def submit_export(self) -> "Future[CaptureResult]":
        self._enter_exporting()
        try:
            future = self.capture_sink.submit(self.render())
        except BaseException:
            self._leave_exporting()
            raise
        future.add_done_callback(self._leave_exporting)
        return future

    def close(self) -> None:
        """Remove print surfaces and stop the background capture worker."""
        self.print_sink.close()
        self.capture_sink.shutdown()
