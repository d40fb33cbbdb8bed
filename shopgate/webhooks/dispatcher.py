"""Shopify webhook event parsing and dispatch.

Recognized topics become WebhookEvents, recorded in a bounded in-memory log
that backs GET /webhooks/status. Dispatch never touches the response cache:
cached reads expire on their own TTL.
"""

from __future__ import annotations

import html
import logging
import re
import time
from collections import Counter, deque
from dataclasses import asdict, dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

_MAX_FIELD_LENGTH = 200
_RECENT_EVENTS = 100

# Shopify topic -> summary template
_SHOPIFY_TOPICS: dict[str, str] = {
    "orders/create": "New order {summary}",
    "orders/paid": "Order paid {summary}",
    "orders/updated": "Order updated {summary}",
    "orders/fulfilled": "Order fulfilled {summary}",
    "orders/cancelled": "Order cancelled {summary}",
    "products/create": "Product created {summary}",
    "products/update": "Product updated {summary}",
    "products/delete": "Product deleted {summary}",
    "refunds/create": "Refund created {summary}",
    "customers/create": "Customer created {summary}",
    "app/uninstalled": "App uninstalled from {summary}",
}


@dataclass
class WebhookEvent:
    """Normalized webhook event."""

    topic: str
    webhook_id: str
    resource_id: str
    summary: str
    received_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _sanitize_field(value: Any) -> str:
    """Strip markup, collapse whitespace and truncate a payload value."""
    if value is None:
        return ""
    s = re.sub(r"<[^>]+>", "", str(value))
    s = html.unescape(s)
    s = re.sub(r"\s+", " ", s).strip()
    if len(s) > _MAX_FIELD_LENGTH:
        s = s[:_MAX_FIELD_LENGTH] + "..."
    return s


def _summarize(topic: str, payload: dict[str, Any]) -> str:
    if topic.startswith("orders/"):
        number = _sanitize_field(payload.get("order_number") or payload.get("id"))
        total = _sanitize_field(payload.get("total_price"))
        currency = _sanitize_field(payload.get("currency", "USD"))
        items = payload.get("line_items")
        item_count = len(items) if isinstance(items, list) else 0
        return f"#{number}, {total} {currency}, {item_count} items"

    if topic.startswith("products/"):
        return f"'{_sanitize_field(payload.get('title'))}' (ID: {_sanitize_field(payload.get('id'))})"

    if topic.startswith("customers/"):
        email = _sanitize_field(payload.get("email", ""))
        # Show only the domain
        if "@" in email:
            email = "***@" + email.split("@", 1)[1]
        return email

    if topic == "app/uninstalled":
        return _sanitize_field(payload.get("domain") or payload.get("myshopify_domain"))

    return f"#{_sanitize_field(payload.get('id'))}"


def parse_event(topic: str, webhook_id: str, payload: dict[str, Any]) -> WebhookEvent | None:
    """Parse a verified payload into a WebhookEvent, or None for unknown topics."""
    template = _SHOPIFY_TOPICS.get(topic)
    if template is None:
        logger.info("Unrecognized Shopify webhook topic: %s, skipping", topic)
        return None

    return WebhookEvent(
        topic=topic,
        webhook_id=webhook_id,
        resource_id=_sanitize_field(payload.get("id")),
        summary=template.format(summary=_summarize(topic, payload)),
    )


class WebhookEventLog:
    """Receive counters plus the most recent dispatched events."""

    def __init__(self, maxlen: int = _RECENT_EVENTS):
        self.counts: Counter[str] = Counter()
        self._events: deque[WebhookEvent] = deque(maxlen=maxlen)

    def count(self, status: str) -> None:
        self.counts[status] += 1

    def record(self, event: WebhookEvent) -> None:
        self._events.append(event)

    def recent(self) -> list[dict[str, Any]]:
        return [e.to_dict() for e in reversed(self._events)]

    def snapshot(self) -> dict[str, Any]:
        return {"counts": dict(self.counts), "recent": self.recent()}


def dispatch_event(event: WebhookEvent, event_log: WebhookEventLog) -> None:
    """Record a verified event for operators."""
    event_log.record(event)
    logger.info("Dispatched Shopify webhook %s: %s", event.topic, event.summary)
