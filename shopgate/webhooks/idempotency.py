"""Webhook idempotency: Redis-based deduplication.

Security contract:
- Tracks X-Shopify-Webhook-Id values in Redis with 24h TTL
- Duplicate webhooks are acknowledged with 200 (Shopify retries on errors)
- Key pattern: webhook:seen:shopify:{webhook_id}
- If Redis is down, falls back to allowing (fail-open for availability)
"""

from __future__ import annotations

import functools
import logging

import redis as redis_lib

logger = logging.getLogger(__name__)

_DEDUP_TTL_SECONDS = 86400  # 24 hours

_KEY_PREFIX = "webhook:seen"


@functools.lru_cache(maxsize=8)
def _get_redis(redis_url: str) -> redis_lib.Redis:
    return redis_lib.from_url(redis_url, decode_responses=True, socket_timeout=2)


def is_duplicate(redis_url: str, provider: str, webhook_id: str) -> bool:
    """Check-and-mark a webhook id atomically (SET NX EX).

    Returns:
        True if this webhook has already been seen (duplicate)
    """
    if not webhook_id:
        return False  # No ID = can't dedup, allow through

    key = f"{_KEY_PREFIX}:{provider}:{webhook_id}"

    try:
        r = _get_redis(redis_url)
        was_set = r.set(key, "1", nx=True, ex=_DEDUP_TTL_SECONDS)
        if not was_set:
            logger.info("Duplicate webhook rejected: %s/%s", provider, webhook_id)
            return True
        return False
    except (redis_lib.RedisError, ValueError):  # ValueError: malformed REDIS_URL
        logger.warning(
            "Redis unavailable for webhook dedup, allowing %s/%s",
            provider,
            webhook_id,
            exc_info=True,
        )
        return False
