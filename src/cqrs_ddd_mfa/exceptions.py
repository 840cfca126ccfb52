"""MFA domain exceptions.

Every failure the enrollment subsystem reports to its caller is an
``MfaError`` subclass tagged with an ``MfaErrorKind``. Callers branch on
``error.kind`` (or the class) and use ``error.retryable`` to decide whether
the same request may simply be sent again.
"""

from __future__ import annotations

from enum import Enum


class MfaErrorKind(str, Enum):
    """Error kinds surfaced by the MFA subsystem."""

    ALREADY_ENABLED = "already_enabled"
    MFA_NOT_ENABLED = "mfa_not_enabled"
    MISSING_CONTACT = "missing_contact"
    INVALID_CODE = "invalid_code"
    TOO_MANY_ATTEMPTS = "too_many_attempts"
    RATE_LIMITED = "rate_limited"
    ENTROPY_UNAVAILABLE = "entropy_unavailable"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    CONFLICTING_UPDATE = "conflicting_update"


# ═══════════════════════════════════════════════════════════════
# BASE MFA ERROR
# ═══════════════════════════════════════════════════════════════


class MfaError(Exception):
    """Base class for all MFA errors.

    Attributes:
        kind: Error kind tag.
        retryable: Whether the caller may safely retry the same request.
    """

    kind: MfaErrorKind
    retryable: bool = False
    default_message: str = "MFA operation failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


# ═══════════════════════════════════════════════════════════════
# STATE ERRORS
# ═══════════════════════════════════════════════════════════════


class AlreadyEnabledError(MfaError):
    """Raised when setup or enable is attempted while MFA is enabled."""

    kind = MfaErrorKind.ALREADY_ENABLED
    default_message = "MFA is already enabled"


class MfaNotEnabledError(MfaError):
    """Raised when an operation requires MFA to be enabled."""

    kind = MfaErrorKind.MFA_NOT_ENABLED
    default_message = "MFA is not enabled"


class MissingContactError(MfaError):
    """Raised when SMS/EMAIL setup has no destination to deliver to."""

    kind = MfaErrorKind.MISSING_CONTACT
    default_message = "A contact destination is required for this method"


# ═══════════════════════════════════════════════════════════════
# VERIFICATION ERRORS
# ═══════════════════════════════════════════════════════════════


class InvalidCodeError(MfaError):
    """Raised when a presented code does not verify.

    The message is fixed so that it never reveals why verification failed
    (unknown user, wrong code, expired challenge or foreign secret).
    """

    kind = MfaErrorKind.INVALID_CODE
    default_message = "Invalid verification code"


class TooManyAttemptsError(MfaError):
    """Raised when the verification attempt ceiling has been reached."""

    kind = MfaErrorKind.TOO_MANY_ATTEMPTS
    default_message = "Too many verification attempts"


class RateLimitedError(MfaError):
    """Raised when the rate limiter refuses the operation."""

    kind = MfaErrorKind.RATE_LIMITED
    default_message = "Too many requests. Please try again later."


# ═══════════════════════════════════════════════════════════════
# INFRASTRUCTURE ERRORS
# ═══════════════════════════════════════════════════════════════


class EntropyUnavailableError(MfaError):
    """Raised when the operating system RNG cannot be read."""

    kind = MfaErrorKind.ENTROPY_UNAVAILABLE
    default_message = "Secure random source unavailable"


class UpstreamUnavailableError(MfaError):
    """Raised when a collaborator times out or is unreachable.

    No state was committed; the request is safe to retry.
    """

    kind = MfaErrorKind.UPSTREAM_UNAVAILABLE
    retryable = True
    default_message = "A required service is temporarily unavailable"


class DeliveryFailedError(UpstreamUnavailableError):
    """Raised by a delivery channel when the code could not be sent."""

    default_message = "Verification code could not be delivered"


class ConflictingUpdateError(MfaError):
    """Raised when a concurrent mutation for the same user won the race."""

    kind = MfaErrorKind.CONFLICTING_UPDATE
    retryable = True
    default_message = "The enrollment was modified concurrently"


__all__: list[str] = [
    "MfaErrorKind",
    "MfaError",
    "AlreadyEnabledError",
    "MfaNotEnabledError",
    "MissingContactError",
    "InvalidCodeError",
    "TooManyAttemptsError",
    "RateLimitedError",
    "EntropyUnavailableError",
    "UpstreamUnavailableError",
    "DeliveryFailedError",
    "ConflictingUpdateError",
]
