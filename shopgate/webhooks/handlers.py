"""Webhook HTTP handlers: FastAPI routes for inbound Shopify webhooks.

Each request:
1. Reads raw body (needed for HMAC verification)
2. Verifies the X-Shopify-Hmac-Sha256 signature
3. Parses the payload and topic
4. Checks idempotency on X-Shopify-Webhook-Id (reject duplicates)
5. Dispatches and returns 202 Accepted

Security contract:
- Never return error details to webhook caller (info disclosure)
- Return 202 even for unrecognized topics (don't leak the topic support map)
- Return 401 only for signature failures
- Log all webhook activity for audit trail
"""

from __future__ import annotations

import asyncio
import json
import logging
import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from shopgate.webhooks.dispatcher import WebhookEventLog, dispatch_event, parse_event
from shopgate.webhooks.idempotency import is_duplicate
from shopgate.webhooks.verification import SHOPIFY_HMAC_HEADER, verify_shopify

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _log_webhook(event_log: WebhookEventLog, topic: str, webhook_id: str, status: str) -> None:
    """Audit log for webhook activity."""
    event_log.count(status)
    logger.info(
        "WEBHOOK_AUDIT topic=%s id=%s status=%s count=%d",
        topic,
        webhook_id,
        status,
        event_log.counts[status],
    )


async def _handle_shopify_webhook(request: Request, topic_override: str | None = None) -> JSONResponse:
    start = time.time()
    settings = request.app.state.settings
    event_log: WebhookEventLog = request.app.state.webhook_events

    body = await request.body()
    headers = {k.lower(): v for k, v in request.headers.items()}
    topic = headers.get("x-shopify-topic") or topic_override or "unknown"
    webhook_id = headers.get("x-shopify-webhook-id", "")

    # 1. Verify signature
    if not verify_shopify(body, headers.get(SHOPIFY_HMAC_HEADER), settings):
        _log_webhook(event_log, topic, webhook_id or "unknown", "signature_failed")
        return JSONResponse({"status": "unauthorized"}, status_code=401)

    # 2. Parse JSON payload
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        _log_webhook(event_log, topic, webhook_id, "invalid_json")
        return JSONResponse({"status": "received"}, status_code=202)
    if not isinstance(payload, dict):
        _log_webhook(event_log, topic, webhook_id, "invalid_json")
        return JSONResponse({"status": "received"}, status_code=202)

    # 3. Normalize
    event = parse_event(topic, webhook_id, payload)
    if event is None:
        _log_webhook(event_log, topic, webhook_id, "skipped")
        return JSONResponse({"status": "received"}, status_code=202)

    # 4. Deduplicate
    if await asyncio.to_thread(is_duplicate, settings.redis_url, "shopify", webhook_id):
        _log_webhook(event_log, topic, webhook_id, "duplicate")
        return JSONResponse({"status": "received"}, status_code=200)

    # 5. Dispatch
    try:
        dispatch_event(event, event_log)
        _log_webhook(event_log, topic, webhook_id, "dispatched")
    except Exception:
        logger.exception("Failed to dispatch Shopify webhook %s", topic)
        _log_webhook(event_log, topic, webhook_id, "dispatch_failed")

    logger.debug("Webhook processed in %.1fms: %s", (time.time() - start) * 1000, topic)
    return JSONResponse({"status": "received"}, status_code=202)


@router.post("/shopify")
async def shopify_webhook(request: Request):
    """Receive Shopify webhooks (signature-verified)."""
    return await _handle_shopify_webhook(request)


@router.post("/shopify/{topic:path}")
async def shopify_webhook_with_topic(request: Request, topic: str):
    """Receive Shopify webhooks addressed by topic subpath."""
    return await _handle_shopify_webhook(request, topic_override=topic)


@router.get("/status")
async def webhook_status(request: Request):
    """Webhook counts and the most recent events (admin/manager)."""
    return request.app.state.webhook_events.snapshot()
