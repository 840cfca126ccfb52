"""Redis-based per-user lock."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import TYPE_CHECKING

from ...locking import LockAcquisitionError
from .errors import upstream_errors

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from ...locking import ResourceIdentifier

logger = logging.getLogger("cqrs_ddd.mfa.redis.locking")

# KEYS: [lock_key]  ARGV: [token]
RELEASE_SCRIPT = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
end
return 0
"""


class RedisLockStrategy:
    """
    ``ILockStrategy`` using ``SET NX PX`` with a random token.

    Designed for single-instance Redis setups. Waiters poll until the lock
    is free or the timeout passes. Only the holder of the token can release
    the lock; an abandoned lock expires after its TTL.
    """

    def __init__(
        self,
        redis: Redis,  # type: ignore[type-arg]
        prefix: str = "mfa:lock",
        retry_interval: float = 0.05,
    ) -> None:
        """
        Initialize RedisLockStrategy.

        Args:
            redis: An initialized redis.asyncio.Redis client.
            prefix: Key prefix for lock keys.
            retry_interval: Delay between acquisition attempts.
        """
        self._redis = redis
        self._prefix = prefix
        self._retry_interval = retry_interval

    def _lock_key(self, resource: ResourceIdentifier) -> str:
        return f"{self._prefix}:{resource.resource_type}:{resource.resource_id}"

    async def acquire(
        self,
        resource: ResourceIdentifier,
        *,
        timeout: float = 10.0,
        ttl: float = 30.0,
    ) -> str:
        lock_key = self._lock_key(resource)
        token = uuid.uuid4().hex
        ttl_ms = int(ttl * 1000)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            with upstream_errors("lock acquire"):
                acquired = await self._redis.set(lock_key, token, nx=True, px=ttl_ms)
            if acquired:
                return token
            if loop.time() >= deadline:
                raise LockAcquisitionError(
                    resource, timeout, reason="lock held by another request"
                )
            await asyncio.sleep(self._retry_interval)

    async def release(self, resource: ResourceIdentifier, token: str) -> None:
        with upstream_errors("lock release"):
            released = await self._redis.eval(  # type: ignore[no-untyped-call]
                RELEASE_SCRIPT, 1, self._lock_key(resource), token
            )
        if not released:
            logger.warning("Lock %s expired before release", resource)


__all__: list[str] = ["RedisLockStrategy"]
