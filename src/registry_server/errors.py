"""Global exception handlers — map SDK exceptions to HTTP status codes.

``FormsError`` subclasses carry their own ``kind`` and ``status_code``.
Plain ``ValueError`` raised elsewhere is mapped by keyword, as before
typed errors existed.  Rather than catching these in every route, we
install global handlers so route handlers stay on the happy path.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from registry_forms.errors import FormsError

logger = logging.getLogger(__name__)

# --- Keyword patterns in ValueError messages and their HTTP status codes ---
# Checked in order; first match wins.
_VALUE_ERROR_PATTERNS: list[tuple[str, int]] = [
    ("already exists", 409),
    ("not found", 404),
    ("conflict", 409),
]


# --- Client-safe messages keyed by HTTP status code ---
# Internal details (participant ids, study ids) stay in the server log;
# the client receives only a generic description.
_SAFE_MESSAGES: dict[int, str] = {
    400: "Invalid request",
    403: "Operation not permitted",
    404: "Resource not found",
    409: "Resource was modified concurrently",
    422: "Validation failed",
}

# Error kinds whose message describes the caller's own input and is
# returned verbatim.
_EXPOSED_KINDS = {"validation", "bad_request"}


async def forms_error_handler(request: Request, exc: FormsError) -> JSONResponse:
    """Map a typed SDK error to ``{"kind", "detail"}`` with its own status."""
    status = exc.status_code
    logger.warning("%s [%d] at %s: %s", type(exc).__name__, status, request.url, exc)
    if exc.kind in _EXPOSED_KINDS:
        detail = str(exc)
    else:
        detail = _SAFE_MESSAGES.get(status, "Invalid request")
    return JSONResponse(status_code=status, content={"kind": exc.kind, "detail": detail})


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Map an untyped ``ValueError`` to 404/409/400 by message keyword.

    The raw exception message is logged server-side but never sent to
    the client.
    """
    msg = str(exc)
    status = 400
    for pattern, code in _VALUE_ERROR_PATTERNS:
        if pattern in msg.lower():
            status = code
            break

    logger.warning("ValueError [%d] at %s: %s", status, request.url, msg)
    safe_detail = _SAFE_MESSAGES.get(status, "Invalid request")
    return JSONResponse(status_code=status, content={"detail": safe_detail})


async def key_error_handler(request: Request, exc: KeyError) -> JSONResponse:
    """Map ``KeyError`` (e.g. unknown catalog entry) to 404."""
    logger.warning("KeyError at %s: %s", request.url, exc)
    return JSONResponse(status_code=404, content={"detail": "Resource not found"})


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions — log full traceback, return 500."""
    logger.exception("Unhandled exception at %s", request.url)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )
