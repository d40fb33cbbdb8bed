"""Shopify Admin REST API client.

Every call either returns parsed JSON or raises a single ShopifyAPIError.
GET responses are served from the ResponseCache while fresh. No retries:
a failed call is surfaced immediately to the endpoint handler.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from shopgate.config import Settings
from shopgate.errors import ShopifyAPIError
from shopgate.shopify.cache import ResponseCache
from shopgate.shopify.credentials import ShopifyCredentials

logger = logging.getLogger(__name__)

SHOPIFY_API_VERSION = "2023-07"


def _format_errors(errors: Any) -> str:
    """Flatten Shopify's ``errors`` field (string, list or field->messages map)."""
    if isinstance(errors, str):
        return errors
    if isinstance(errors, list):
        return "; ".join(str(e) for e in errors)
    if isinstance(errors, dict):
        parts = []
        for field, messages in errors.items():
            if isinstance(messages, list):
                messages = ", ".join(str(m) for m in messages)
            parts.append(f"{field}: {messages}")
        return "; ".join(parts)
    return str(errors)


def _upstream_message(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict) and payload.get("errors"):
        return _format_errors(payload["errors"])
    return None


class ShopifyClient:
    """Authenticated async client for one store, with a shared response cache."""

    def __init__(
        self,
        credentials: ShopifyCredentials,
        cache: ResponseCache,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._credentials = credentials
        self._cache = cache
        self._http = httpx.AsyncClient(timeout=timeout, transport=transport)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        cache: ResponseCache,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> ShopifyClient:
        """Build a client, validating credentials before anything else.

        Raises:
            ConfigurationError: a required credential is missing.
        """
        credentials = ShopifyCredentials.from_settings(settings)
        return cls(
            credentials,
            cache,
            timeout=settings.shopify_timeout_seconds,
            transport=transport,
        )

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @staticmethod
    def base_url(credentials: ShopifyCredentials) -> str:
        return f"https://{credentials.store_url}/admin/api/{SHOPIFY_API_VERSION}"

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        data: Any = None,
        credentials: ShopifyCredentials | None = None,
    ) -> Any:
        """Issue an Admin API call relative to the versioned base path.

        Args:
            endpoint: Path such as '/products.json' (query string included)
            method: HTTP method; only GET is cached
            data: JSON body for mutating calls
            credentials: Per-call override (multi-tenant); defaults to the client's

        Raises:
            ShopifyAPIError: transport failure, non-2xx status or invalid JSON.
        """
        method = method.upper()
        creds = credentials or self._credentials
        # Cache keys carry no store, so overrides bypass the cache
        use_cache = method == "GET" and creds == self._credentials

        if use_cache:
            cached = self._cache.get(endpoint, method)
            if cached is not None:
                return cached

        url = f"{self.base_url(creds)}{endpoint}"
        headers = {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": creds.access_token,
        }

        try:
            response = await self._http.request(method, url, headers=headers, json=data)
            response.raise_for_status()
            payload = response.json() if response.content else None
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            message = _upstream_message(e.response) or str(e) or "Shopify API request failed"
            logger.error("Shopify API error for %s (HTTP %d): %s", endpoint, status, message)
            raise ShopifyAPIError(message, upstream_status=status) from e
        except httpx.HTTPError as e:
            message = str(e) or type(e).__name__
            logger.error("Shopify API transport error for %s: %s", endpoint, message)
            raise ShopifyAPIError(message) from e
        except ValueError as e:
            logger.error("Shopify API returned invalid JSON for %s", endpoint)
            raise ShopifyAPIError("Shopify API returned an invalid response") from e

        if use_cache and payload is not None:
            self._cache.set(endpoint, method, payload)
        return payload

    async def get_products(self) -> Any:
        return await self.request("/products.json")

    async def get_product(self, product_id: str) -> Any:
        return await self.request(f"/products/{quote(str(product_id), safe='')}.json")

    async def get_orders(self, product_id: str | None = None) -> Any:
        endpoint = "/orders.json?status=any"
        if product_id:
            endpoint += f"&product_id={quote(str(product_id), safe='')}"
        return await self.request(endpoint)

    async def get_order(self, order_id: str) -> Any:
        return await self.request(f"/orders/{quote(str(order_id), safe='')}.json")

    async def get_shop(self) -> Any:
        return await self.request("/shop.json")

    async def aclose(self) -> None:
        await self._http.aclose()
