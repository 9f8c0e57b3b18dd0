"""``python -m invoice_layout`` serves the export API."""

from __future__ import annotations

from .config import env_int, env_str
from .log import get_logger
from .server import DependencyError, run

logger = get_logger("invoice_layout")


def main() -> None:
    host = env_str("INVOICE_HOST", "0.0.0.0")
    port = env_int("INVOICE_PORT", 8080)
    try:
        run(host, port)
    except DependencyError as exc:
        logger.error("Cannot start export server: %s", exc)
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        logger.info("Export server stopped")


if __name__ == "__main__":
    main()
