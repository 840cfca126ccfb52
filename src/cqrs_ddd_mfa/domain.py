"""MFA domain model.

``MfaEnrollment`` is the single persisted record per user. It is immutable:
every transition builds a new, validated copy with a bumped ``version`` that
is then committed through ``IEnrollmentStore.compare_and_swap``.

``PendingChallenge`` is the ephemeral SMS/email challenge. Only the SHA-256
digest of the code is ever kept.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MfaMethod(str, Enum):
    """Second-factor types."""

    TOTP = "TOTP"
    SMS = "SMS"
    EMAIL = "EMAIL"


class EnrollmentState(str, Enum):
    """Enrollment lifecycle states."""

    NOT_CONFIGURED = "NOT_CONFIGURED"
    PENDING_SETUP = "PENDING_SETUP"
    ENABLED = "ENABLED"


# ═══════════════════════════════════════════════════════════════
# PERSISTED STATE
# ═══════════════════════════════════════════════════════════════


class BackupCode(BaseModel):
    """A hashed single-use recovery code."""

    model_config = ConfigDict(frozen=True)

    code_hash: str = Field(repr=False)
    used: bool = False
    used_at: datetime | None = None


class MfaEnrollment(BaseModel):
    """Per-user MFA enrollment record.

    ``secret`` holds the TOTP secret (pending until ``enabled``).
    ``phone_number`` / ``email_address`` hold the SMS/EMAIL contact, pending
    until ``enabled`` and confirmed afterwards.
    ``failed_attempts`` is the per-user TOTP verification counter during setup
    and the login failure counter once enabled.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    method: MfaMethod | None = None
    secret: str | None = Field(default=None, repr=False)
    phone_number: str | None = Field(default=None, repr=False)
    email_address: str | None = Field(default=None, repr=False)
    enabled: bool = False
    backup_codes: tuple[BackupCode, ...] = ()
    failed_attempts: int = 0
    locked_until: datetime | None = None
    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _check_enabled_material(self) -> MfaEnrollment:
        if not self.enabled:
            return self
        if self.method is None:
            raise ValueError("an enabled enrollment requires a method")
        if self.contact is None:
            raise ValueError(
                f"an enabled {self.method.value} enrollment requires its "
                "confirmed secret or contact"
            )
        return self

    @classmethod
    def new(cls, user_id: str) -> MfaEnrollment:
        """Create an unconfigured record (version 0, not yet stored)."""
        return cls(user_id=user_id)

    @property
    def state(self) -> EnrollmentState:
        if self.enabled:
            return EnrollmentState.ENABLED
        if self.method is not None:
            return EnrollmentState.PENDING_SETUP
        return EnrollmentState.NOT_CONFIGURED

    @property
    def backup_codes_remaining(self) -> int:
        return sum(1 for code in self.backup_codes if not code.used)

    @property
    def contact(self) -> str | None:
        """Method-specific material: secret for TOTP, destination otherwise."""
        if self.method is MfaMethod.TOTP:
            return self.secret
        if self.method is MfaMethod.SMS:
            return self.phone_number
        if self.method is MfaMethod.EMAIL:
            return self.email_address
        return None

    def is_locked(self, now: datetime) -> bool:
        return self.locked_until is not None and now < self.locked_until

    def evolve(self, **changes: Any) -> MfaEnrollment:
        """Return a validated copy with *changes* applied and version bumped."""
        data = self.model_dump()
        data["backup_codes"] = self.backup_codes
        data["updated_at"] = utcnow()
        data.update(changes)
        data["version"] = self.version + 1
        return type(self).model_validate(data)

    def reset(self) -> MfaEnrollment:
        """Return the NOT_CONFIGURED successor of this record."""
        return type(self)(
            user_id=self.user_id,
            version=self.version + 1,
            created_at=self.created_at,
            updated_at=utcnow(),
        )


class PendingChallenge(BaseModel):
    """Short-lived SMS/email challenge awaiting verification."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    method: MfaMethod
    code_hash: str = Field(repr=False)
    destination: str = Field(repr=False)
    expires_at: datetime
    attempt_count: int = 0
    created_at: datetime = Field(default_factory=utcnow)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def with_attempt(self) -> PendingChallenge:
        return self.model_copy(update={"attempt_count": self.attempt_count + 1})


# ═══════════════════════════════════════════════════════════════
# OPERATION RESULTS
# ═══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class TotpSetup:
    """TOTP setup data returned when setting up TOTP.

    Attributes:
        secret: Base32-encoded TOTP secret.
        qr_uri: otpauth:// URI for QR code generation.
        manual_key: Human-readable key for manual entry.
        qr_code: SVG data URI of the QR code encoding ``qr_uri``.
    """

    secret: str
    qr_uri: str
    manual_key: str
    qr_code: str


@dataclass(frozen=True)
class ChallengeDispatch:
    """Outcome of issuing an SMS/email challenge.

    Attributes:
        method: Delivery method.
        masked_destination: Destination with all but the tail masked.
        expires_at: When the challenge stops being accepted.
    """

    method: MfaMethod
    masked_destination: str
    expires_at: datetime


@dataclass(frozen=True)
class EnableResult:
    """Outcome of a successful enable.

    ``backup_codes`` are the plaintext recovery codes. They are returned only
    here and cannot be retrieved again.
    """

    method: MfaMethod
    backup_codes: tuple[str, ...]


@dataclass(frozen=True)
class MfaStatus:
    """Read model of a user's enrollment."""

    enabled: bool
    method: MfaMethod | None
    backup_codes_remaining: int
    state: EnrollmentState

    @classmethod
    def of(cls, enrollment: MfaEnrollment) -> MfaStatus:
        return cls(
            enabled=enrollment.enabled,
            method=enrollment.method,
            backup_codes_remaining=enrollment.backup_codes_remaining,
            state=enrollment.state,
        )


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of a login-time MFA verification."""

    success: bool
    method: MfaMethod | None = None
    remaining_attempts: int | None = None
    used_backup_code: bool = False


__all__: list[str] = [
    "utcnow",
    "MfaMethod",
    "EnrollmentState",
    "BackupCode",
    "MfaEnrollment",
    "PendingChallenge",
    "TotpSetup",
    "ChallengeDispatch",
    "EnableResult",
    "MfaStatus",
    "VerificationResult",
]
