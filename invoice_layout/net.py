"""Detection of clients that hung up mid-request."""

from __future__ import annotations

import errno

DISCONNECT_ERRNOS = frozenset(
    code
    for code in (
        errno.EPIPE,
        errno.ECONNRESET,
        errno.ECONNABORTED,
        errno.ETIMEDOUT,
        getattr(errno, "WSAECONNRESET", None),
    )
    if code is not None
)


def is_client_disconnect(exc: BaseException) -> bool:
    # ConnectionError covers broken pipes, resets and aborts.
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return True
    return isinstance(exc, OSError) and exc.errno in DISCONNECT_ERRNOS
