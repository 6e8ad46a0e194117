"""API middleware: CORS, request logging, and error handling.

Provides helper functions and middleware classes to configure cross-origin
resource sharing, structured request logging (via structlog), and automatic
conversion of ``StorySwapError`` subclasses into JSON ``ErrorResponse``
bodies.

# ─── MIDDLEWARE EXECUTION ORDER ───────────────────────────────────────
#
# Starlette middleware is a stack (last added, first executed):
#
#   In main.py:
#     app.add_middleware(ErrorHandlingMiddleware)    # added 1st, inner
#     app.add_middleware(RequestLoggingMiddleware)   # added 2nd, outer
#
#   Request flow:
#     Client → RequestLogging → ErrorHandling → route handler
#
# So RequestLoggingMiddleware sees the *final* status code, including the
# one ErrorHandlingMiddleware chose for a StorySwapError.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from storyswap.api.schemas import ErrorResponse
from storyswap.utils.errors import StorySwapError
from storyswap.utils.logging import get_logger, request_context

_logger: structlog.BoundLogger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware to the FastAPI application.

    Parameters
    ----------
    app:
        The FastAPI application instance.
    allowed_origins:
        Explicit list of allowed origins.  Defaults to ``["*"]`` for
        development; set ``CORS_ORIGINS`` in production.
    """
    origins = allowed_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # Browsers reject credentialed requests against a wildcard origin.
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration.

    Each request gets a ``request_id`` (the caller's ``X-Request-ID`` if
    sent) that is bound to every log event emitted while it is handled and
    echoed back in the response header.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        start = time.perf_counter()
        response: Response | None = None

        with request_context(request_id):
            try:
                response = await call_next(request)
                response.headers[REQUEST_ID_HEADER] = request_id
                return response
            finally:
                duration_ms = round((time.perf_counter() - start) * 1000, 2)
                status_code = response.status_code if response else 500
                _logger.info(
                    "http_request",
                    method=request.method,
                    path=str(request.url.path),
                    status=status_code,
                    duration_ms=duration_ms,
                )


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Catch ``StorySwapError`` subclasses and return structured JSON errors.

    The response status comes from the exception class (404, 403, 409,
    422 or 500).  Server-side faults are logged at error level, caller
    errors at warning level.  Stack traces never reach the client.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except StorySwapError as exc:
            log = _logger.error if exc.status_code >= 500 else _logger.warning
            log(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                status=exc.status_code,
                path=str(request.url.path),
            )
            body = ErrorResponse(
                error=type(exc).__name__,
                detail=exc.message,
            )
            return JSONResponse(
                status_code=exc.status_code,
                content=body.model_dump(),
            )
