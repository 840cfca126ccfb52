"""MFA ports (protocols) for external collaborators.

The enrollment subsystem owns no storage, transport or audit persistence.
Everything it needs from the outside world is expressed here. All ports use
@runtime_checkable for isinstance checks.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime

    from .audit import AuditOutcome, MfaEventType
    from .domain import MfaEnrollment, MfaMethod, PendingChallenge
    from .locking import ResourceIdentifier


# ═══════════════════════════════════════════════════════════════
# STORAGE PORTS
# ═══════════════════════════════════════════════════════════════


@runtime_checkable
class IEnrollmentStore(Protocol):
    """Protected storage for ``MfaEnrollment`` records.

    Implementations are expected to encrypt ``secret`` at rest.
    """

    async def get(self, user_id: str) -> MfaEnrollment | None:
        """Get the enrollment for a user.

        Args:
            user_id: User identifier.

        Returns:
            The stored enrollment, or None if the user never started setup.
        """
        ...

    async def put(self, user_id: str, enrollment: MfaEnrollment) -> None:
        """Unconditionally store an enrollment.

        Args:
            user_id: User identifier.
            enrollment: Record to store.
        """
        ...

    async def compare_and_swap(
        self,
        user_id: str,
        expected_version: int,
        enrollment: MfaEnrollment,
    ) -> bool:
        """Store *enrollment* only if the stored version is *expected_version*.

        A missing record has version 0.

        Args:
            user_id: User identifier.
            expected_version: Version the caller read.
            enrollment: Replacement record.

        Returns:
            True if the write committed, False if another writer won.
        """
        ...


@runtime_checkable
class IChallengeStore(Protocol):
    """Storage for pending SMS/email challenges.

    At most one challenge exists per (user, method); ``put`` replaces.
    """

    async def put(self, challenge: PendingChallenge) -> None:
        """Store a challenge, superseding any older one for the same key."""
        ...

    async def get(self, user_id: str, method: MfaMethod) -> PendingChallenge | None:
        """Get the current challenge for (user, method)."""
        ...

    async def delete(self, user_id: str, method: MfaMethod) -> None:
        """Delete the challenge for (user, method) if present."""
        ...

    async def purge_expired(self, now: datetime) -> int:
        """Delete expired challenges.

        Returns:
            Number of challenges deleted.
        """
        ...


# ═══════════════════════════════════════════════════════════════
# SERVICE PORTS
# ═══════════════════════════════════════════════════════════════


@runtime_checkable
class IRateLimiter(Protocol):
    """Sliding-window rate limiter."""

    async def check_limit(self, key: str, max_count: int, window_ms: int) -> bool:
        """Record an attempt for *key* if it fits the budget.

        Args:
            key: Rate limit bucket (e.g. ``backup-codes:user-123``).
            max_count: Attempts allowed within the window.
            window_ms: Rolling window length in milliseconds.

        Returns:
            True if the attempt is allowed (and counted).
        """
        ...


@runtime_checkable
class IAuditSink(Protocol):
    """Destination for MFA audit events.

    Metadata never contains codes or secrets.
    """

    async def record(
        self,
        event_type: MfaEventType,
        user_id: str,
        outcome: AuditOutcome,
        metadata: dict[str, Any],
    ) -> None:
        """Record an audit event."""
        ...


@runtime_checkable
class ICodeDeliveryChannel(Protocol):
    """Out-of-band transport for challenge codes (SMS gateway, email gateway).

    The MFA package does NOT send SMS or email itself; applications
    implement this port.
    """

    async def send(self, destination: str, code: str) -> None:
        """Send *code* to *destination*.

        Raises:
            DeliveryFailedError: On transport error.
        """
        ...


@runtime_checkable
class IAccountDirectory(Protocol):
    """Read access to account contact data owned by the host application."""

    async def get_email(self, user_id: str) -> str | None:
        """Get the registered email address for a user."""
        ...


@runtime_checkable
class IMfaNotifier(Protocol):
    """User-facing security notifications (in-app, push, email).

    Called after state has been committed.
    """

    async def notify(self, user_id: str, kind: str, message: str) -> None:
        """Notify a user about an MFA security event."""
        ...


@runtime_checkable
class ISecretCipher(Protocol):
    """Symmetric cipher used by stores to protect secrets at rest."""

    def encrypt(self, plaintext: str) -> str: ...

    def decrypt(self, ciphertext: str) -> str: ...


# ═══════════════════════════════════════════════════════════════
# LOCKING PORT
# ═══════════════════════════════════════════════════════════════


@runtime_checkable
class ILockStrategy(Protocol):
    """Lock strategy protocol for per-user mutual exclusion.

    Implementations can use Redis (Redlock), database locks (SELECT FOR UPDATE),
    or in-memory queues for testing.
    """

    async def acquire(
        self,
        resource: ResourceIdentifier,
        *,
        timeout: float = 10.0,
        ttl: float = 30.0,
    ) -> str:
        """Acquire a lock for the given resource.

        Args:
            resource: The resource to lock.
            timeout: Maximum time to wait for the lock.
            ttl: Time-to-live for the lock (seconds). Lock auto-expires to prevent
                orphaned locks if the process crashes.

        Returns:
            A unique lock token required for release.

        Raises:
            LockAcquisitionError: If the lock cannot be acquired within the timeout.
        """
        ...

    async def release(self, resource: ResourceIdentifier, token: str) -> None:
        """Release a previously acquired lock.

        Args:
            resource: The resource that was locked.
            token: The token returned by :meth:`acquire`.
        """
        ...


__all__: list[str] = [
    "IEnrollmentStore",
    "IChallengeStore",
    "IRateLimiter",
    "IAuditSink",
    "ICodeDeliveryChannel",
    "IAccountDirectory",
    "IMfaNotifier",
    "ISecretCipher",
    "ILockStrategy",
]
