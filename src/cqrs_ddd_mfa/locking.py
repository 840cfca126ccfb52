"""Per-user mutual exclusion for enrollment mutations."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .exceptions import ConflictingUpdateError, UpstreamUnavailableError

if TYPE_CHECKING:
    from .ports import ILockStrategy

logger = logging.getLogger("cqrs_ddd.mfa.locking")

ENROLLMENT_RESOURCE = "MfaEnrollment"


@dataclass(frozen=True)
class ResourceIdentifier:
    """
    Identifies a single lockable resource.

    Examples:
        >>> ResourceIdentifier("MfaEnrollment", "user-123")
    """

    resource_type: str
    resource_id: str

    def __str__(self) -> str:
        return f"{self.resource_type}:{self.resource_id}"


class LockAcquisitionError(ConflictingUpdateError):
    """Failed to acquire the per-user lock within the timeout."""

    def __init__(
        self,
        resource: ResourceIdentifier,
        timeout: float,
        reason: str | None = None,
    ) -> None:
        self.resource = resource
        self.timeout = timeout
        self.reason = reason

        msg = f"Failed to acquire lock on {resource} within {timeout}s"
        if reason:
            msg += f" - {reason}"

        super().__init__(msg)


class UserLock:
    """
    Async context manager holding the enrollment lock of one user.

    Usage:
        ```python
        async with UserLock("user-123", lock_strategy):
            enrollment = await store.get("user-123")
            ...
            await store.compare_and_swap(...)
        ```
    """

    def __init__(
        self,
        user_id: str,
        lock_strategy: ILockStrategy,
        *,
        timeout: float = 10.0,
        ttl: float = 30.0,
    ) -> None:
        """
        Initialize the user lock.

        Args:
            user_id: User whose enrollment is locked.
            lock_strategy: Strategy for acquiring/releasing locks
            timeout: Maximum time to wait for the lock
            ttl: Time-to-live for the lock (auto-expire to prevent orphans)
        """
        self.resource = ResourceIdentifier(ENROLLMENT_RESOURCE, user_id)
        self._lock_strategy = lock_strategy
        self._timeout = timeout
        self._ttl = ttl
        self._token: str | None = None

    async def __aenter__(self) -> UserLock:
        """
        Acquire the lock.

        Raises:
            LockAcquisitionError: If the lock cannot be acquired in time.
            UpstreamUnavailableError: If the lock backend is unreachable.
        """
        start = time.monotonic()
        try:
            self._token = await self._lock_strategy.acquire(
                self.resource, timeout=self._timeout, ttl=self._ttl
            )
        except (LockAcquisitionError, UpstreamUnavailableError):
            raise
        except Exception as exc:  # noqa: BLE001
            # Any other strategy failure is a lost race
            raise LockAcquisitionError(
                self.resource, self._timeout, reason=str(exc)
            ) from exc

        logger.debug(
            "Lock acquired",
            extra={
                "resource_type": self.resource.resource_type,
                "duration_ms": (time.monotonic() - start) * 1000,
            },
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Release the lock."""
        if self._token is None:
            return
        token, self._token = self._token, None
        try:
            await self._lock_strategy.release(self.resource, token)
        except Exception as exc:  # noqa: BLE001
            # The lock auto-expires after its TTL; the operation result stands
            logger.error("Failed to release lock %s: %s", self.resource, exc)


__all__: list[str] = [
    "ENROLLMENT_RESOURCE",
    "ResourceIdentifier",
    "LockAcquisitionError",
    "UserLock",
]
