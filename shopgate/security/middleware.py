"""Security middleware for FastAPI: auth, CORS, rate limiting.

Middleware ordering (outermost first):
1. CORS -- handles OPTIONS preflight before auth
2. Rate limiting -- reject floods before processing
3. Auth -- verify session token, inject AuthenticatedUser, enforce route roles
"""

from __future__ import annotations

import logging
import re

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from shopgate.config import Settings
from shopgate.security.auth import (
    PUBLIC_ALLOWLIST,
    SESSION_COOKIE,
    SKIP_METHODS,
    AuthenticatedUser,
    check_authorization,
    extract_bearer_token,
    is_webhook_path,
    verify_token,
)

logger = logging.getLogger(__name__)

# Rate limiter (decorate endpoints with @limiter.limit)
limiter = Limiter(key_func=get_remote_address)


def _match_route_template(app: FastAPI, method: str, path: str) -> str | None:
    """Find the route template matching a request path."""
    for route in app.routes:
        if hasattr(route, "methods") and method in route.methods:
            pattern = re.sub(r"\{[^}:]+:path\}", r".+", route.path)
            pattern = re.sub(r"\{[^}]+\}", r"[^/]+", pattern)
            if re.fullmatch(pattern, path):
                return route.path
    return None


def _unauthorized(message: str) -> JSONResponse:
    return JSONResponse(
        {"error": message},
        status_code=401,
        headers={"WWW-Authenticate": "Bearer"},
    )


class AuthMiddleware(BaseHTTPMiddleware):
    """Authenticate and authorize all requests.

    Runs AFTER CORS middleware (so OPTIONS preflights are already handled).
    Runs BEFORE request body parsing (so unauthenticated POST returns 401 not 400).
    """

    async def dispatch(self, request: Request, call_next):
        method = request.method
        path = request.url.path

        if method in SKIP_METHODS:
            return await call_next(request)

        if (method, path) in PUBLIC_ALLOWLIST:
            return await call_next(request)

        # POST only; other methods on webhook paths still need a session
        if method == "POST" and is_webhook_path(path):
            return await call_next(request)

        token = request.cookies.get(SESSION_COOKIE) or extract_bearer_token(
            request.headers.get("authorization")
        )
        if not token:
            return _unauthorized("Unauthorized")

        settings: Settings = request.app.state.settings
        try:
            claims = verify_token(token, settings.session_secret.get_secret_value())
        except ValueError as e:
            logger.debug("Auth failed: %s", e)
            return _unauthorized("Invalid or expired session")

        user = AuthenticatedUser.from_claims(claims)
        request.state.user = user

        path_template = _match_route_template(request.app, method, path)
        if path_template is None:
            # Unknown route -- let FastAPI answer 404/405
            return await call_next(request)

        auth_error = check_authorization(user.role, method, path_template)
        if auth_error:
            return JSONResponse({"error": auth_error}, status_code=403)

        return await call_next(request)


def _rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    retry_after = getattr(exc, "retry_after", 60)
    return JSONResponse(
        {"error": "Rate limit exceeded", "retry_after": retry_after},
        status_code=429,
        headers={"Retry-After": str(retry_after)},
    )


def install_security_middleware(app: FastAPI, settings: Settings) -> None:
    """Install all security middleware on the FastAPI app.

    Call this AFTER all routes are registered but BEFORE the app starts.
    Middleware is added in reverse order (last added = outermost = runs first).
    """
    # 3. Auth middleware (innermost)
    app.add_middleware(AuthMiddleware)

    # 2. Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # 1. CORS middleware (outermost)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
