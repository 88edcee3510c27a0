"""Short-TTL cache for expensive prefix listings.

Entries are keyed by scope (for example ``uploads:admin`` or
``processed:owner:alice``) and are never served once expired. A failed
fetch is not cached and leaves any earlier entry untouched.

Concurrent misses on the same key each run their own fetch; there is no
single-flight de-duplication.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from transcodehub.core.metrics import LISTING_CACHE_REQUESTS_TOTAL

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30.0


@dataclass(frozen=True)
class CacheEntry:
    payload: Any
    expires_at: float


class ListingCache:
    """Lock-guarded in-process map of scope key to cached payload."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds cannot be negative")
        self.ttl_seconds = ttl_seconds
        self._clock = clock or time.monotonic
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        """Return the payload for ``key`` if it has not expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                return None
            return entry.payload

    def set(self, key: str, payload: Any) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(payload=payload, expires_at=self._clock() + self.ttl_seconds)

    async def get_or_fetch(self, key: str, fetcher: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached payload, or await ``fetcher`` and cache its result.

        The lock is never held across the fetch.
        """
        cached = self.get(key)
        if cached is not None:
            LISTING_CACHE_REQUESTS_TOTAL.labels(result="hit").inc()
            return cached

        LISTING_CACHE_REQUESTS_TOTAL.labels(result="miss").inc()
        payload = await fetcher()
        self.set(key, payload)
        logger.debug("Listing cached", extra={"cache_key": key, "ttl_seconds": self.ttl_seconds})
        return payload

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
