from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable

DEFAULT_TTL_SECONDS = 600
DEFAULT_MAX_ENTRIES = 10_000


class DeliveryDeduplicator:
    """Remembers recently seen delivery keys (e.g. Slack ``event_id``).

    Process-local and bounded; oldest keys are evicted first.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._seen: OrderedDict[str, float] = OrderedDict()

    def _evict(self, now: float) -> None:
        while self._seen:
            key, seen_at = next(iter(self._seen.items()))
            if now - seen_at < self._ttl and len(self._seen) <= self._max_entries:
                break
            del self._seen[key]

    def first_delivery(self, key: str) -> bool:
        """Record ``key`` and return True unless it was seen within the TTL."""
        now = self._clock()
        self._evict(now)
        if key in self._seen:
            return False
        self._seen[key] = now
        return True
