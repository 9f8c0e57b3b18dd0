"""HTTP server entrypoints for document export."""

from __future__ import annotations

import atexit
import json
import multiprocessing as mp
import threading
from concurrent.futures import ProcessPoolExecutor, TimeoutError as FutureTimeoutError
from concurrent.futures.process import BrokenProcessPool
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, Optional, Set, Tuple

from .config import (
    DEFAULT_RENDER_CONFIG,
    EXPORT_QUEUE_TIMEOUT_MS,
    EXPORT_TIMEOUT_MS,
    LISTEN_BACKLOG,
    MAX_BODY_BYTES as MAX_BODY_BYTES_CONFIG,
    MAX_CONCURRENT_EXPORTS,
    MAX_INFLIGHT_EXPORTS,
    MAX_ITEMS as MAX_ITEMS_CONFIG,
)
from .errors import CaptureError, PayloadError, RenderError
from .layout import LayoutProfile
from .log import get_logger
from .model import Document, document_from_payload
from .net import is_client_disconnect
from .rendering import DocumentRenderer, RenderedDocument
from .pdf_constants import item_capacity
from .styles import FILE_STYLE, PRINT_STYLE
from .surface import build_markup

EXPORT_INFLIGHT_SEMAPHORE = threading.BoundedSemaphore(MAX_INFLIGHT_EXPORTS)
EXPORT_EXECUTOR_LOCK = threading.Lock()
EXPORT_EXECUTOR: Optional[ProcessPoolExecutor] = None
EXPORTING_LOCK = threading.Lock()
EXPORTING_DOCUMENTS: Set[str] = set()
ValidationError = Tuple[int, Dict[str, Any]]

PDF_PATHS = ("/", "/pdf", "/document")
HTML_PATHS = ("/html", "/print")

logger = get_logger(__name__)


class DependencyError(RuntimeError):
    """Raised when a required runtime dependency is missing."""


def load_render_pdf():
    try:
        from .export import render_pdf
    except ModuleNotFoundError as exc:
        if exc.name == "fpdf":
            raise DependencyError(
                "Missing dependency 'fpdf2'. Install the project with 'pip install -e .'."
            ) from exc
        raise
    return render_pdf


def export_rendered(rendered: RenderedDocument) -> bytes:
    return load_render_pdf()(rendered)


def create_export_executor() -> ProcessPoolExecutor:
    return ProcessPoolExecutor(
        max_workers=MAX_CONCURRENT_EXPORTS,
        mp_context=mp.get_context("spawn"),
    )


def get_export_executor() -> ProcessPoolExecutor:
    global EXPORT_EXECUTOR
    with EXPORT_EXECUTOR_LOCK:
        if EXPORT_EXECUTOR is None:
            EXPORT_EXECUTOR = create_export_executor()
        return EXPORT_EXECUTOR


def restart_export_executor(previous: ProcessPoolExecutor) -> ProcessPoolExecutor:
    global EXPORT_EXECUTOR
    with EXPORT_EXECUTOR_LOCK:
        if EXPORT_EXECUTOR is previous:
            try:
                previous.shutdown(wait=False, cancel_futures=True)
            except Exception:
                logger.debug("Shutting down the broken export pool failed", exc_info=True)
            EXPORT_EXECUTOR = create_export_executor()
        if EXPORT_EXECUTOR is None:
            EXPORT_EXECUTOR = create_export_executor()
        return EXPORT_EXECUTOR


def submit_export_job(rendered: RenderedDocument):
    executor = get_export_executor()
    try:
        return executor.submit(export_rendered, rendered)
    except BrokenProcessPool:
        return restart_export_executor(executor).submit(export_rendered, rendered)


def shutdown_export_executor() -> None:
    global EXPORT_EXECUTOR
    with EXPORT_EXECUTOR_LOCK:
        executor = EXPORT_EXECUTOR
        EXPORT_EXECUTOR = None
    if executor is not None:
        try:
            executor.shutdown(wait=False, cancel_futures=True)
        except Exception:
            logger.debug("Export pool shutdown failed", exc_info=True)


atexit.register(shutdown_export_executor)


def claim_document(number: str) -> bool:
    with EXPORTING_LOCK:
        if number in EXPORTING_DOCUMENTS:
            return False
        EXPORTING_DOCUMENTS.add(number)
        return True


def release_document(number: str) -> None:
    with EXPORTING_LOCK:
        EXPORTING_DOCUMENTS.discard(number)


def parse_layout(raw: Any) -> Optional[LayoutProfile]:
    if raw is None or raw == "" or raw == "auto":
        return None
    try:
        return LayoutProfile(str(raw))
    except ValueError:
        choices = ", ".join(profile.value for profile in LayoutProfile)
        raise PayloadError(f"Unknown layout {raw!r}; expected one of: auto, {choices}.") from None


def validate_document_payload(
    body: bytes,
    max_items: int,
) -> Tuple[Optional[Tuple[Document, Optional[LayoutProfile]]], Optional[ValidationError]]:
    try:
        payload = json.loads(body.decode("utf-8"))
    except UnicodeDecodeError:
        return None, (
            400,
            {"error": "invalid_encoding", "detail": "Body must be UTF-8 encoded JSON."},
        )
    except json.JSONDecodeError as exc:
        return None, (
            400,
            {
                "error": "invalid_json",
                "detail": f"{exc.msg} (line {exc.lineno}, column {exc.colno})",
            },
        )

    if not isinstance(payload, dict):
        return None, (
            400,
            {"error": "invalid_payload", "detail": "JSON root must be an object."},
        )

    try:
        document = document_from_payload(payload)
        override = parse_layout(payload.get("layout"))
    except PayloadError as exc:
        return None, (400, {"error": "invalid_payload", "detail": str(exc)})

    if document.item_count > max_items:
        return None, (
            413,
            {
                "error": "document_too_large",
                "detail": f"Document has {document.item_count} items; maximum is {max_items}.",
                "max_items": max_items,
            },
        )

    return (document, override), None


class DocumentHandler(BaseHTTPRequestHandler):
    MAX_BODY_BYTES = MAX_BODY_BYTES_CONFIG
    MAX_ITEMS = min(MAX_ITEMS_CONFIG, item_capacity(FILE_STYLE))
    renderer = DocumentRenderer(DEFAULT_RENDER_CONFIG)

    def _write_response(
        self,
        status: int,
        content_type: str,
        body: bytes,
        headers: Optional[Dict[str, str]] = None,
    ) -> bool:
        try:
            self.send_response(status)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(body)))
            for name, value in (headers or {}).items():
                self.send_header(name, value)
            self.end_headers()
            self.wfile.write(body)
            return True
        except Exception as exc:
            if is_client_disconnect(exc):
                return False
            raise

    def _send_json(self, status: int, payload: Dict[str, Any]) -> bool:
        body = json.dumps(payload).encode("utf-8")
        return self._write_response(status, "application/json", body)

    def _reject(self, status: int, error: str, detail: str, **extra: Any) -> None:
        self._send_json(status, {"error": error, "detail": detail, **extra})

    def _read_body(self) -> Optional[bytes]:
        header = self.headers.get("Content-Length")
        if header is None:
            self._reject(411, "missing_content_length", "Content-Length header is required.")
            return None
        try:
            content_length = int(header)
        except ValueError:
            self._reject(400, "invalid_content_length", "Content-Length must be an integer.")
            return None
        if content_length <= 0:
            self._reject(400, "empty_body", "Request body cannot be empty.")
            return None
        if content_length > self.MAX_BODY_BYTES:
            self._reject(413, "payload_too_large", f"Body exceeds {self.MAX_BODY_BYTES} bytes.")
            return None

        try:
            return self.rfile.read(content_length)
        except Exception as exc:
            if is_client_disconnect(exc):
                return None
            raise

    def _read_document(self) -> Optional[Tuple[Document, Optional[LayoutProfile]]]:
        body = self._read_body()
        if body is None:
            return None
        parsed, rejection = validate_document_payload(body, self.MAX_ITEMS)
        if rejection is not None:
            self._send_json(*rejection)
            return None
        return parsed

    def _send_print_surface(self, rendered: RenderedDocument) -> None:
        markup = build_markup(rendered, PRINT_STYLE)
        self._write_response(200, "text/html; charset=utf-8", markup.encode("utf-8"))

    def _send_pdf(self, rendered: RenderedDocument) -> None:
        if not claim_document(rendered.number):
            self._reject(
                409,
                "export_in_progress",
                f"Document {rendered.number} is already being exported.",
            )
            return
        try:
            self._export_claimed(rendered)
        finally:
            release_document(rendered.number)

    def _export_claimed(self, rendered: RenderedDocument) -> None:
        from .export import export_filename

        if not EXPORT_INFLIGHT_SEMAPHORE.acquire(timeout=EXPORT_QUEUE_TIMEOUT_MS / 1000.0):
            self._reject(
                503,
                "server_busy",
                "Export queue is full; retry shortly.",
                retry_after_ms=EXPORT_QUEUE_TIMEOUT_MS,
                max_concurrent_exports=MAX_CONCURRENT_EXPORTS,
                max_inflight_exports=MAX_INFLIGHT_EXPORTS,
            )
            return

        future = None
        try:
            future = submit_export_job(rendered)
            pdf_bytes = future.result(timeout=EXPORT_TIMEOUT_MS / 1000.0)
        except FutureTimeoutError:
            if future is not None:
                future.cancel()
            self._reject(504, "export_timeout", f"Export exceeded timeout of {EXPORT_TIMEOUT_MS} ms.")
            return
        except BrokenProcessPool:
            restart_export_executor(get_export_executor())
            self._reject(503, "export_pool_restarting", "Export worker pool restarted; retry shortly.")
            return
        except (CaptureError, RenderError) as exc:
            logger.error("Export of %s failed: %s", rendered.number, exc)
            self._reject(500, "export_failed", str(exc), fallback=HTML_PATHS[-1])
            return
        except Exception as exc:
            logger.exception("Unexpected export failure for %s", rendered.number)
            self._reject(500, "export_failed", str(exc))
            return
        finally:
            EXPORT_INFLIGHT_SEMAPHORE.release()

        self._write_response(
            200,
            "application/pdf",
            pdf_bytes,
            headers={"Content-Disposition": f'attachment; filename="{export_filename(rendered)}"'},
        )

    def do_POST(self) -> None:
        if self.path not in PDF_PATHS and self.path not in HTML_PATHS:
            self._reject(404, "not_found", "Unsupported endpoint.")
            return

        parsed = self._read_document()
        if parsed is None:
            return

        document, override = parsed
        rendered = self.renderer.render(document, override)
        if self.path in HTML_PATHS:
            self._send_print_surface(rendered)
        else:
            self._send_pdf(rendered)

    def do_GET(self) -> None:
        if self.path in ("/", "/health", "/healthz", "/ready"):
            self._send_json(200, {"status": "ok"})
            return
        self._reject(404, "not_found", "Unsupported endpoint.")

    def handle_one_request(self) -> None:
        try:
            super().handle_one_request()
        except Exception as exc:
            if is_client_disconnect(exc):
                return
            raise

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)


class DocumentHTTPServer(ThreadingHTTPServer):
    daemon_threads = True
    allow_reuse_address = True
    request_queue_size = LISTEN_BACKLOG


def run(host: str = "0.0.0.0", port: int = 8080) -> None:
    load_render_pdf()
    get_export_executor()
    server = DocumentHTTPServer((host, port), DocumentHandler)
    logger.info("Document export server listening on http://%s:%d", host, port)
    server.serve_forever()
