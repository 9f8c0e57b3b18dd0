"""Adaptive layout and export of invoices and product proposals."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

from .config import DEFAULT_RENDER_CONFIG, RenderConfig
from .errors import CaptureError, CaptureInProgressError, ExportError, PayloadError, RenderError
from .layout import LayoutProfile, partition_columns, resolve_density, select_layout
from .model import Document, DocumentKind, LineItem, Party, document_from_payload
from .rendering import DocumentRenderer, RenderedDocument


def render_document(
    document: Document,
    layout: Optional[LayoutProfile] = None,
    config: RenderConfig = DEFAULT_RENDER_CONFIG,
) -> RenderedDocument:
    return DocumentRenderer(config).render(document, layout)


def export_pdf(
    document: Document,
    output_dir: Union[str, Path],
    layout: Optional[LayoutProfile] = None,
    config: RenderConfig = DEFAULT_RENDER_CONFIG,
) -> Path:
    from .export import FileCaptureSink

    sink = FileCaptureSink(output_dir)
    return sink.capture(render_document(document, layout, config)).path


def print_document(
    document: Document,
    layout: Optional[LayoutProfile] = None,
    config: RenderConfig = DEFAULT_RENDER_CONFIG,
) -> None:
    from .export import PrintSink

    PrintSink().print_document(render_document(document, layout, config))


def run(host: str = "0.0.0.0", port: int = 8080) -> None:
    from .server import run as _run

    _run(host, port)


__all__ = [
    "CaptureError",
    "CaptureInProgressError",
    "Document",
    "DocumentKind",
    "DocumentRenderer",
    "ExportError",
    "LayoutProfile",
    "LineItem",
    "Party",
    "PayloadError",
    "RenderError",
    "RenderedDocument",
    "document_from_payload",
    "export_pdf",
    "partition_columns",
    "print_document",
    "render_document",
    "resolve_density",
    "run",
    "select_layout",
]
