"""Request context and exception handling for the Butler API."""
from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from butler_ledger.exceptions import ButlerException
from butler_ledger.logging_config import clear_context, generate_request_id, set_request_id

logger = logging.getLogger("butler.api")

REQUEST_ID_HEADER = "X-Request-ID"


def get_request_id(request: Request) -> str:
    """Extract request ID from request state or headers."""
    if hasattr(request.state, "request_id"):
        return request.state.request_id
    return request.headers.get(REQUEST_ID_HEADER, "unknown")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Assigns a request id to every request.

    An incoming ``X-Request-ID`` header is reused; the id is echoed on the
    response and stamped on every log record emitted while handling it.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()
        request.state.request_id = request_id
        set_request_id(request_id)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.debug(
                "%s %s handled in %.1fms",
                request.method, request.url.path, duration_ms,
                extra={"duration_ms": round(duration_ms, 1)},
            )
            clear_context()
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error as a ``{success: false, error, message}`` body."""

    @app.exception_handler(ButlerException)
    async def butler_exception_handler(request: Request, exc: ButlerException) -> JSONResponse:
        request_id = get_request_id(request)
        if exc.http_status >= 500:
            logger.error(
                "Server error: %s - %s", exc.error_code, exc.message,
                extra={"error_code": exc.error_code, "details": exc.details},
            )
        else:
            logger.warning(
                "Client error: %s - %s", exc.error_code, exc.message,
                extra={"error_code": exc.error_code},
            )
        return JSONResponse(
            status_code=exc.http_status,
            content=exc.to_dict(),
            headers={REQUEST_ID_HEADER: request_id},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = [
            {
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
            for error in exc.errors()
        ]
        logger.warning("Validation error: %d field(s) failed", len(errors))
        return JSONResponse(
            status_code=422,
            content={
                "success": False,
                "error": "VALIDATION_ERROR",
                "message": "One or more fields failed validation",
                "details": {"errors": errors},
            },
            headers={REQUEST_ID_HEADER: get_request_id(request)},
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled errors; details are hidden in production."""
        request_id = get_request_id(request)
        logger.error(
            "Unhandled exception: %s: %s", type(exc).__name__, exc,
            extra={"path": request.url.path, "method": request.method},
            exc_info=True,
        )
        if request.app.state.container.settings.is_production:
            message = "An internal error occurred"
        else:
            message = f"{type(exc).__name__}: {exc}"
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "INTERNAL_ERROR", "message": message},
            headers={REQUEST_ID_HEADER: request_id},
        )
