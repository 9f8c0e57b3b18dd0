"""Error types raised by the export sinks and payload parsing."""

from __future__ import annotations


class PayloadError(ValueError):
    """Raised when document data cannot be turned into a Document."""


class ExportError(RuntimeError):
    """Base class for failures of a single export attempt."""


class RenderError(ExportError):
    """The print or off-screen surface is missing; nothing was output."""


class CaptureError(ExportError):
    """Rasterization, file assembly or saving failed during a file export.

    The off-screen surface has already been torn down when this reaches the
    caller. Retrying, or falling back to the print sink, is safe.
    """


class CaptureInProgressError(ExportError):
    """A file export for the same document has not settled yet."""


class TeardownError(ExportError):
    """Releasing an off-screen surface failed. Logged, never surfaced."""
