"""Session tokens and role-based route authorization.

Security contract:
- Sessions are HS256 JWTs signed with SESSION_SECRET (cookie or Bearer header)
- Missing/invalid/expired session -> 401; valid session, wrong role -> 403
- Bulk Shopify operations (listing, linking, connection status) need admin/manager
- Single product/order reads need any authenticated session (lower sensitivity tier)
- Shopify webhook POSTs skip session auth; the handler verifies their HMAC
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

logger = logging.getLogger(__name__)

_ALGORITHM = "HS256"
SESSION_COOKIE = "shopgate_session"

ROLES = ("admin", "manager", "sales", "designer", "manufacturer", "viewer")
PRIVILEGED_ROLES = frozenset({"admin", "manager"})

# Methods handled before auth (CORS preflight)
SKIP_METHODS = {"OPTIONS"}

# Exact (method, path) pairs that need no session
PUBLIC_ALLOWLIST: set[tuple[str, str]] = {
    ("GET", "/api/health"),
}

# Signature-verified by the handler instead of session-authenticated
WEBHOOK_PUBLIC_PREFIXES = ("/webhooks/shopify",)

# Route templates restricted beyond "authenticated". Anything absent here
# only requires a valid session.
ROUTE_ROLES: dict[tuple[str, str], frozenset[str]] = {
    ("GET", "/api/shopify/products"): PRIVILEGED_ROLES,
    ("GET", "/api/shopify/orders"): PRIVILEGED_ROLES,
    ("POST", "/api/shopify/link-orders-to-camp"): PRIVILEGED_ROLES,
    ("GET", "/api/shopify/connection-status"): PRIVILEGED_ROLES,
    ("GET", "/webhooks/status"): PRIVILEGED_ROLES,
}


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity attached to request.state.user. Read-only."""

    id: str
    role: str

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> AuthenticatedUser:
        return cls(id=str(claims.get("sub", "")), role=str(claims.get("role", "viewer")))


@dataclass
class TokenMetadata:
    token: str
    subject: str
    role: str
    expires_at: float


def create_token(
    secret: str,
    role: str = "viewer",
    subject: str = "user",
    expires_in: int = 3600,
) -> TokenMetadata:
    """Issue a session token (login itself lives with the identity provider)."""
    now = datetime.now(timezone.utc)
    expires = now + timedelta(seconds=expires_in)
    payload = {"sub": subject, "role": role, "iat": now, "exp": expires}
    token = jwt.encode(payload, secret, algorithm=_ALGORITHM)
    return TokenMetadata(token=token, subject=subject, role=role, expires_at=expires.timestamp())


def verify_token(token: str, secret: str) -> dict[str, Any]:
    """Decode and validate a session token.

    Raises:
        ValueError: bad signature, malformed token, expired, or missing claims.
    """
    try:
        claims = jwt.decode(token, secret, algorithms=[_ALGORITHM])
    except JWTError as e:
        raise ValueError(str(e)) from e
    if not claims.get("sub") or not claims.get("role"):
        raise ValueError("Token missing required claims")
    return claims


def extract_bearer_token(auth_header: str | None) -> str | None:
    if not auth_header:
        return None
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def is_webhook_path(path: str) -> bool:
    """True for declared webhook prefixes and their sub-paths only."""
    return any(path == p or path.startswith(p + "/") for p in WEBHOOK_PUBLIC_PREFIXES)


def check_authorization(role: str, method: str, path_template: str) -> str | None:
    """Return an error message if ``role`` may not call the route, else None."""
    allowed = ROUTE_ROLES.get((method, path_template))
    if allowed is None or role in allowed:
        return None
    logger.info("Role %s denied %s %s", role, method, path_template)
    return "Forbidden - Insufficient permissions"
