"""In-memory adapters for testing and single-process use."""

from .audit import InMemoryAuditSink
from .locking import InMemoryLockStrategy
from .rate_limit import InMemoryRateLimiter
from .store import InMemoryChallengeStore, InMemoryEnrollmentStore

__all__: list[str] = [
    "InMemoryAuditSink",
    "InMemoryChallengeStore",
    "InMemoryEnrollmentStore",
    "InMemoryLockStrategy",
    "InMemoryRateLimiter",
]
