"""Error taxonomy and the JSON boundary handlers.

Security contract:
- Every handler returns {"error": <message>}; no stack traces leave the process
- ``details`` is only included when running in development
- Unexpected exceptions are logged with full traceback server-side
- Authentication (401) and authorization (403) are answered by AuthMiddleware
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ShopgateError(Exception):
    """Base error carrying the HTTP status the boundary handler should use."""

    status_code = 500

    def __init__(self, message: str, *, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details


class ConfigurationError(ShopgateError):
    """A required setting is missing or invalid. Never retried."""


class ShopifyAPIError(ShopgateError):
    """Normalized failure of a call to the Shopify Admin API."""

    def __init__(self, message: str, *, upstream_status: int | None = None, details: Any = None):
        super().__init__(message, details=details)
        self.upstream_status = upstream_status


def _error_body(request: Request, message: str, details: Any = None) -> dict[str, Any]:
    body: dict[str, Any] = {"error": message}
    settings = getattr(request.app.state, "settings", None)
    if details is not None and settings is not None and settings.is_development:
        body["details"] = details
    return body


async def _handle_shopgate_error(request: Request, exc: ShopgateError) -> JSONResponse:
    logger.error(
        "%s on %s %s: %s",
        type(exc).__name__,
        request.method,
        request.url.path,
        exc.message,
    )
    return JSONResponse(
        _error_body(request, exc.message, exc.details),
        status_code=exc.status_code,
    )


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Validation details describe the caller's own payload, always safe to return
    return JSONResponse(
        {"error": "Invalid request body", "details": jsonable_errors(exc)},
        status_code=400,
    )


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        _error_body(request, "An unexpected error occurred", str(exc)),
        status_code=500,
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    """Reduce pydantic error entries to location + message."""
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]


def register_exception_handlers(app: FastAPI) -> None:
    """Install the JSON error boundary on the app."""
    app.add_exception_handler(ShopgateError, _handle_shopgate_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.add_exception_handler(Exception, _handle_unexpected_error)
