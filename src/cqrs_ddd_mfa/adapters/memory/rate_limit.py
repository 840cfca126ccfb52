"""In-memory sliding-window rate limiter.

⚠️ WARNING: This is a simple in-memory implementation.
Use the Redis-backed limiter for distributed deployments.
"""

from __future__ import annotations

import time
from collections import defaultdict, deque
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable


class InMemoryRateLimiter:
    """``IRateLimiter`` keeping attempt timestamps per key."""

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        """Initialize the limiter.

        Args:
            clock: Returns the current time in seconds (default time.monotonic).
        """
        self._clock = clock or time.monotonic
        self._hits: dict[str, deque[float]] = defaultdict(deque)

    async def check_limit(self, key: str, max_count: int, window_ms: int) -> bool:
        now = self._clock()
        window_start = now - window_ms / 1000
        hits = self._hits[key]
        while hits and hits[0] <= window_start:
            hits.popleft()
        if len(hits) >= max_count:
            return False
        hits.append(now)
        return True

    def reset(self, key: str | None = None) -> None:
        """Forget recorded attempts for *key* (or all keys)."""
        if key is None:
            self._hits.clear()
        else:
            self._hits.pop(key, None)


__all__: list[str] = ["InMemoryRateLimiter"]
