"""Shopify webhook signature verification: constant-time HMAC.

Security contract:
- Signature = base64(HMAC-SHA256(SHOPIFY_API_SECRET, raw body))
- Comparison uses hmac.compare_digest() (constant-time, no timing attacks)
- Missing header -> invalid, no HMAC computed
- Never raises: internal errors (missing credentials, malformed header) are
  logged server-side with full detail and reported as plain "invalid"
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging

from shopgate.config import Settings
from shopgate.shopify.credentials import ShopifyCredentials

logger = logging.getLogger(__name__)

SHOPIFY_HMAC_HEADER = "x-shopify-hmac-sha256"


def compute_shopify_hmac(body: bytes, secret: str) -> str:
    """Base64-encoded HMAC-SHA256 of the raw body."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_shopify(body: bytes, signature_header: str | None, settings: Settings) -> bool:
    """Verify a Shopify webhook HMAC-SHA256 signature.

    Args:
        body: Raw request body bytes
        signature_header: Value of X-Shopify-Hmac-Sha256 header
        settings: Source of the shared API secret

    Returns:
        True only if the signature matches
    """
    if not signature_header:
        return False

    try:
        credentials = ShopifyCredentials.from_settings(settings)
        computed = compute_shopify_hmac(body, credentials.access_token)
        return hmac.compare_digest(
            computed.encode("ascii"),
            signature_header.strip().encode("utf-8"),
        )
    except Exception:
        logger.exception("Shopify webhook verification error")
        return False
