"""Shopify proxy API routes.

Role gating is enforced by AuthMiddleware (see security.auth.ROUTE_ROLES):
listing, linking and connection status need admin/manager, single
product/order reads need any session. Upstream and configuration errors
propagate to the JSON boundary handlers in shopgate.errors.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field

from shopgate.errors import ConfigurationError, ShopgateError
from shopgate.security.middleware import limiter
from shopgate.shopify.client import ShopifyClient
from shopgate.shopify.linking import OrderLinker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/shopify", tags=["shopify"])


class LinkOrdersRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    camp_id: str = Field(alias="campId", min_length=1)
    order_ids: list[str] = Field(alias="orderIds")


def get_shopify_client(request: Request) -> ShopifyClient:
    """Resolve the app's gateway, surfacing a deferred configuration error."""
    client: ShopifyClient | None = request.app.state.shopify
    if client is None:
        raise ConfigurationError(str(request.app.state.shopify_error))
    return client


def get_order_linker(
    request: Request, client: ShopifyClient = Depends(get_shopify_client)
) -> OrderLinker:
    return OrderLinker(
        client,
        request.app.state.registrations,
        concurrency=request.app.state.settings.shopify_link_concurrency,
    )


@router.get("/products")
async def list_products(client: ShopifyClient = Depends(get_shopify_client)):
    return await client.get_products()


@router.get("/products/{product_id}")
async def get_product(product_id: str, client: ShopifyClient = Depends(get_shopify_client)):
    return await client.get_product(product_id)


@router.get("/orders")
async def list_orders(
    product_id: str | None = Query(default=None, alias="productId"),
    client: ShopifyClient = Depends(get_shopify_client),
):
    return await client.get_orders(product_id)


@router.get("/orders/{order_id}")
async def get_order(order_id: str, client: ShopifyClient = Depends(get_shopify_client)):
    return await client.get_order(order_id)


@router.post("/link-orders-to-camp")
@limiter.limit("30/minute")
async def link_orders_to_camp(
    request: Request,
    body: LinkOrdersRequest,
    linker: OrderLinker = Depends(get_order_linker),
):
    """Create camp registrations from Shopify orders; partial failure is a 200."""
    results = await linker.link_orders(body.camp_id, body.order_ids)
    return {"results": [r.to_response() for r in results]}


@router.get("/connection-status")
async def connection_status(request: Request):
    """Check that the Admin API is reachable; always answers 200."""
    try:
        client = get_shopify_client(request)
        response = await client.get_shop()
    except ShopgateError as e:
        logger.warning("Shopify connection check failed: %s", e)
        return {"connected": False, "error": str(e)}

    shop = response.get("shop") if isinstance(response, dict) else None
    if not isinstance(shop, dict):
        return {"connected": False, "error": "Unexpected response from Shopify"}

    return {
        "connected": True,
        "shop": shop.get("name"),
        "domain": shop.get("domain"),
        "email": shop.get("email"),
    }
