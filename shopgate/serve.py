"""Application factory and entry point for the Shopgate service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request

from shopgate.config import Settings
from shopgate.errors import ConfigurationError, register_exception_handlers
from shopgate.security.middleware import install_security_middleware
from shopgate.shopify.cache import ResponseCache
from shopgate.shopify.client import ShopifyClient
from shopgate.shopify.registrations import InMemoryRegistrationStore, RegistrationStore
from shopgate.shopify.routes import router as shopify_router
from shopgate.webhooks.dispatcher import WebhookEventLog
from shopgate.webhooks.handlers import router as webhook_router

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    registrations: RegistrationStore | None = None,
) -> FastAPI:
    """Build the app. Shopify credentials are validated here, once.

    A missing credential does not stop the service: the ConfigurationError is
    kept and returned as a 500 by every gateway endpoint.
    """
    settings = settings or Settings()
    settings.warn_insecure_defaults()

    cache = ResponseCache(ttl_seconds=settings.shopify_cache_ttl_seconds)
    try:
        shopify: ShopifyClient | None = ShopifyClient.from_settings(settings, cache, transport)
        shopify_error: ConfigurationError | None = None
    except ConfigurationError as e:
        logger.error("Shopify gateway disabled: %s", e)
        shopify, shopify_error = None, e

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if shopify is not None:
            await shopify.aclose()

    app = FastAPI(title="Shopgate", lifespan=lifespan)
    app.state.settings = settings
    app.state.shopify = shopify
    app.state.shopify_error = shopify_error
    app.state.registrations = registrations or InMemoryRegistrationStore()
    app.state.webhook_events = WebhookEventLog()

    @app.get("/api/health")
    async def health(request: Request):
        return {
            "status": "ok",
            "shopify_configured": request.app.state.shopify is not None,
        }

    app.include_router(shopify_router)
    app.include_router(webhook_router)

    register_exception_handlers(app)
    install_security_middleware(app, settings)
    return app


def main() -> None:
    import uvicorn

    settings = Settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(create_app(settings), host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
