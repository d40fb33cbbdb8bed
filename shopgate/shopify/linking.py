"""Batch linking of Shopify orders to camp registrations.

Contract:
- One LinkResult per requested order id, in request order
- A failure on one order is recorded on its LinkResult and never aborts the batch
- Parallelism is bounded by ``concurrency`` (default 1: one order at a time,
  which keeps bursts under Shopify's rate limit)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from shopgate.shopify.client import ShopifyClient
from shopgate.shopify.registrations import RegistrationStore, draft_from_order

logger = logging.getLogger(__name__)


class LinkResult(BaseModel):
    """Outcome of linking a single order."""

    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(alias="orderId")
    success: bool
    registration_id: int | None = Field(default=None, alias="registrationId")
    customer_name: str | None = Field(default=None, alias="customerName")
    email: str | None = None
    error: str | None = None

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class OrderLinker:
    """Creates camp registrations from Shopify orders, isolating per-order failures."""

    def __init__(self, client: ShopifyClient, registrations: RegistrationStore, concurrency: int = 1):
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._client = client
        self._registrations = registrations
        self._concurrency = concurrency

    async def link_order(self, camp_id: str, order_id: str) -> LinkResult:
        """Link one order. Never raises."""
        try:
            response = await self._client.get_order(order_id)
            order = response.get("order") if isinstance(response, dict) else None
            if not order:
                return LinkResult(order_id=order_id, success=False, error="Order not found")

            draft = draft_from_order(camp_id, order_id, order)
            registration = await self._registrations.create_registration(draft)
            return LinkResult(
                order_id=order_id,
                success=True,
                registration_id=registration.id,
                customer_name=registration.full_name,
                email=registration.email,
            )
        except Exception as e:
            logger.warning("Linking order %s to camp %s failed: %s", order_id, camp_id, e)
            return LinkResult(order_id=order_id, success=False, error=str(e) or type(e).__name__)

    async def link_orders(self, camp_id: str, order_ids: list[str]) -> list[LinkResult]:
        """Link every order id, returning results in input order."""
        if self._concurrency == 1:
            results = [await self.link_order(camp_id, order_id) for order_id in order_ids]
        else:
            semaphore = asyncio.Semaphore(self._concurrency)

            async def _bounded(order_id: str) -> LinkResult:
                async with semaphore:
                    return await self.link_order(camp_id, order_id)

            results = list(await asyncio.gather(*(_bounded(o) for o in order_ids)))

        succeeded = sum(1 for r in results if r.success)
        logger.info(
            "Linked %d/%d Shopify orders to camp %s", succeeded, len(results), camp_id
        )
        return results
