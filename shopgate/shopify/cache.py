"""Short-TTL memoization of Shopify read requests.

- Only GET participates; other methods never read or write entries
- An entry is fresh while clock() - timestamp < ttl
- Stale entries are not evicted, only superseded by the next read-through
- Errors are never cached
- Keys are (endpoint, method) verbatim, so query parameter order matters
- Process-local: each server instance has its own population
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60


@dataclass
class CacheEntry:
    data: Any
    timestamp: float


class ResponseCache:
    """Read-through cache for upstream GET responses.

    Concurrent writers race harmlessly (last write wins); no locking.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    @staticmethod
    def make_key(endpoint: str, method: str) -> str:
        return f"{endpoint}:{method.upper()}"

    def get(self, endpoint: str, method: str = "GET") -> Any | None:
        """Return fresh cached data, or None on a miss."""
        if method.upper() != "GET":
            return None
        entry = self._entries.get(self.make_key(endpoint, method))
        if entry is None:
            return None
        age = self._clock() - entry.timestamp
        if age >= self.ttl_seconds:
            logger.debug("Cache stale for %s (age=%.1fs)", endpoint, age)
            return None
        logger.debug("Cache hit for %s (age=%.1fs)", endpoint, age)
        return entry.data

    def set(self, endpoint: str, method: str, data: Any) -> None:
        """Store a successful GET response. Other methods are ignored."""
        if method.upper() != "GET":
            return
        self._entries[self.make_key(endpoint, method)] = CacheEntry(
            data=data, timestamp=self._clock()
        )

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
