"""In-process read-through cache for catalogue queries."""

import json
import time
from collections.abc import Callable, Mapping
from typing import Any

from loguru import logger


def product_list_key(params: Mapping[str, Any]) -> str:
    """Cache key for a product listing, independent of parameter order."""
    return "products:" + json.dumps(dict(params), sort_keys=True, default=str)


def product_key(product_id: str) -> str:
    return f"product:{product_id}"


class TTLCache:
    """Map of key to (value, stored_at) with a fixed TTL.

    Once the map grows past ``max_entries`` expired entries are purged first,
    then the oldest insertions are evicted until the map is back at the limit.
    """

    def __init__(
        self,
        ttl_seconds: float = 180,
        max_entries: int = 50,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self.entries: dict[str, dict[str, Any]] = {}
        self.hits = 0
        self.misses = 0

    def _expired(self, entry: dict[str, Any], now: float) -> bool:
        return now - entry["stored_at"] >= self.ttl_seconds

    def get(self, key: str) -> Any | None:
        entry = self.entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        if self._expired(entry, self._clock()):
            del self.entries[key]
            self.misses += 1
            logger.debug(f"Cache expired for key {key[:40]}")
            return None
        self.hits += 1
        return entry["value"]

    def set(self, key: str, value: Any) -> None:
        # Re-inserting moves the key to the newest position
        self.entries.pop(key, None)
        self.entries[key] = {"value": value, "stored_at": self._clock()}

        if len(self.entries) > self.max_entries:
            self._evict()

    def _evict(self) -> None:
        now = self._clock()
        for key in [k for k, entry in self.entries.items() if self._expired(entry, now)]:
            del self.entries[key]

        while len(self.entries) > self.max_entries:
            oldest_key = next(iter(self.entries))
            del self.entries[oldest_key]
            logger.debug(f"Evicted oldest cache entry {oldest_key[:40]}")

    def clear(self) -> None:
        size = len(self.entries)
        self.entries.clear()
        logger.info(f"Cleared product cache ({size} entries)")

    def __len__(self) -> int:
        return len(self.entries)

    def stats(self) -> dict[str, int]:
        return {"entries": len(self.entries), "hits": self.hits, "misses": self.misses}
