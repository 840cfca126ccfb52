"""Audit events for MFA operations.

Event naming follows the pattern: ``mfa.<resource>.<action>``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class MfaEventType(Enum):
    """Types of MFA audit events."""

    # Setup events
    SETUP_TOTP = "mfa.setup.totp"
    CHALLENGE_SENT = "mfa.challenge.sent"

    # Lifecycle events
    ENABLED = "mfa.enabled"
    DISABLED = "mfa.disabled"

    # Backup code events
    BACKUP_CODES_REGENERATED = "mfa.backup_codes.regenerated"
    BACKUP_CODE_USED = "mfa.backup_code.used"

    # Verification events
    VERIFIED = "mfa.verification.success"
    VERIFICATION_FAILED = "mfa.verification.failed"
    LOCKOUT = "mfa.verification.lockout"


class AuditOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class MfaAuditEvent:
    """MFA audit event.

    Attributes:
        event_type: The type of MFA event.
        user_id: The user the event concerns.
        outcome: Success or failure.
        metadata: Event-specific data. Never codes or secrets.
        timestamp: When the event occurred (UTC).
    """

    event_type: MfaEventType
    user_id: str
    outcome: AuditOutcome
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def success(self) -> bool:
        return self.outcome is AuditOutcome.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary for serialization."""
        return {
            "event_type": self.event_type.value,
            "user_id": self.user_id,
            "outcome": self.outcome.value,
            "metadata": self.metadata,
            "timestamp": self.timestamp.isoformat(),
        }


# Metadata keys that must never reach an audit sink
FORBIDDEN_METADATA_KEYS = frozenset({"code", "secret", "backup_codes", "otp"})


def scrub_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    """Drop sensitive keys from audit metadata."""
    return {k: v for k, v in metadata.items() if k not in FORBIDDEN_METADATA_KEYS}


__all__: list[str] = [
    "MfaEventType",
    "AuditOutcome",
    "MfaAuditEvent",
    "FORBIDDEN_METADATA_KEYS",
    "scrub_metadata",
]
