"""Camp registrations created from Shopify orders."""

from __future__ import annotations

import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Protocol

logger = logging.getLogger(__name__)

_PAYMENT_STATUS = {
    "paid": "paid",
    "partially_paid": "partial",
}


@dataclass
class Registration:
    """A participant registered for a camp, linked to the order that paid for it."""

    id: int
    camp_id: str
    first_name: str
    last_name: str
    email: str | None = None
    phone: str | None = None
    status: str = "registered"  # registered, confirmed, cancelled, attended
    payment_status: str = "pending"  # pending, partial, paid
    payment_amount: float = 0.0
    shopify_order_id: str = ""
    line_items: list[dict[str, Any]] = field(default_factory=list)
    registered_at: float = 0.0

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class RegistrationDraft:
    """Registration fields extracted from an order, before an id is assigned."""

    camp_id: str
    first_name: str
    last_name: str
    email: str | None
    phone: str | None
    payment_status: str
    payment_amount: float
    shopify_order_id: str
    line_items: list[dict[str, Any]]


class RegistrationStore(Protocol):
    """Persistence seam for camp registrations."""

    async def create_registration(self, draft: RegistrationDraft) -> Registration: ...

    async def list_registrations(self, camp_id: str) -> list[Registration]: ...


class InMemoryRegistrationStore:
    """Process-local store with serial ids."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._registrations: dict[int, Registration] = {}

    async def create_registration(self, draft: RegistrationDraft) -> Registration:
        registration = Registration(
            id=next(self._ids),
            camp_id=draft.camp_id,
            first_name=draft.first_name,
            last_name=draft.last_name,
            email=draft.email,
            phone=draft.phone,
            payment_status=draft.payment_status,
            payment_amount=draft.payment_amount,
            shopify_order_id=draft.shopify_order_id,
            line_items=draft.line_items,
            registered_at=time.time(),
        )
        self._registrations[registration.id] = registration
        logger.info(
            "Registration %d created for camp %s from order %s",
            registration.id,
            draft.camp_id,
            draft.shopify_order_id,
        )
        return registration

    async def list_registrations(self, camp_id: str) -> list[Registration]:
        return [r for r in self._registrations.values() if r.camp_id == camp_id]


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def draft_from_order(camp_id: str, order_id: str, order: dict[str, Any]) -> RegistrationDraft:
    """Extract customer and line items from a Shopify order payload.

    Guest checkouts carry no customer record; the billing address and the
    order's own email are used instead.
    """
    customer = order.get("customer") or {}
    billing = order.get("billing_address") or {}

    first_name = customer.get("first_name") or billing.get("first_name") or ""
    last_name = customer.get("last_name") or billing.get("last_name") or ""
    email = customer.get("email") or order.get("email")
    phone = customer.get("phone") or order.get("phone") or billing.get("phone")

    line_items = [
        {
            "product_id": item.get("product_id"),
            "variant_id": item.get("variant_id"),
            "title": item.get("title"),
            "quantity": item.get("quantity", 1),
            "price": item.get("price"),
        }
        for item in order.get("line_items") or []
        if isinstance(item, dict)
    ]

    return RegistrationDraft(
        camp_id=camp_id,
        first_name=first_name,
        last_name=last_name,
        email=email,
        phone=phone,
        payment_status=_PAYMENT_STATUS.get(order.get("financial_status") or "", "pending"),
        payment_amount=_to_float(order.get("total_price")),
        shopify_order_id=str(order.get("id") or order_id),
        line_items=line_items,
    )
