"""Redis sliding-window rate limiter."""

from __future__ import annotations

import time
import uuid
from typing import TYPE_CHECKING

from .errors import upstream_errors

if TYPE_CHECKING:
    from redis.asyncio import Redis

# KEYS: [key]  ARGV: [now_ms, window_ms, max_count, member]
SLIDING_WINDOW_SCRIPT = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])

redis.call('ZREMRANGEBYSCORE', key, '-inf', now - window)
if redis.call('ZCARD', key) >= limit then
    return 0
end
redis.call('ZADD', key, now, ARGV[4])
redis.call('PEXPIRE', key, window)
return 1
"""


class RedisRateLimiter:
    """
    ``IRateLimiter`` backed by one sorted set per key.

    Each allowed attempt is a member scored by its timestamp. Members older
    than the window are dropped before counting. The check and the insert
    run in one Lua script so concurrent callers cannot both take the last
    slot.
    """

    def __init__(
        self,
        redis_client: Redis,  # type: ignore[type-arg]
        key_prefix: str = "mfa:ratelimit",
    ) -> None:
        self._redis = redis_client
        self._key_prefix = key_prefix

    async def check_limit(self, key: str, max_count: int, window_ms: int) -> bool:
        now_ms = int(time.time() * 1000)
        member = f"{now_ms}-{uuid.uuid4().hex}"
        with upstream_errors("rate limiter check"):
            result = await self._redis.eval(  # type: ignore[no-untyped-call]
                SLIDING_WINDOW_SCRIPT,
                1,
                f"{self._key_prefix}:{key}",
                str(now_ms),
                str(window_ms),
                str(max_count),
                member,
            )
        return int(result) == 1


__all__: list[str] = ["RedisRateLimiter"]
