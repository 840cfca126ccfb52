"""Redis adapters for distributed deployments.

Requires the ``redis`` extra: ``pip install cqrs-ddd-mfa[redis]``.
"""

from .locking import RedisLockStrategy
from .rate_limit import RedisRateLimiter
from .store import RedisChallengeStore, RedisEnrollmentStore

__all__: list[str] = [
    "RedisChallengeStore",
    "RedisEnrollmentStore",
    "RedisLockStrategy",
    "RedisRateLimiter",
]
