"""MFA enrollment and verification.

Supports:
- TOTP (Google Authenticator, Microsoft Authenticator, Authy, etc.)
- SMS and email one-time codes (via application delivery channels)
- Backup codes (single-use recovery codes)
- Login-time verification with lockout
"""

from .audit import AuditOutcome, MfaAuditEvent, MfaEventType
from .backup_codes import BackupCodeManager
from .config import MfaConfig
from .coordinator import EnrollmentCoordinator
from .crypto import FernetSecretCipher
from .domain import (
    BackupCode,
    ChallengeDispatch,
    EnableResult,
    EnrollmentState,
    MfaEnrollment,
    MfaMethod,
    MfaStatus,
    PendingChallenge,
    TotpSetup,
    VerificationResult,
)
from .exceptions import (
    AlreadyEnabledError,
    ConflictingUpdateError,
    DeliveryFailedError,
    EntropyUnavailableError,
    InvalidCodeError,
    MfaError,
    MfaErrorKind,
    MfaNotEnabledError,
    MissingContactError,
    RateLimitedError,
    TooManyAttemptsError,
    UpstreamUnavailableError,
)
from .generator import SecretGenerator
from .hashing import CodeHasher
from .locking import LockAcquisitionError, ResourceIdentifier, UserLock
from .ports import (
    IAccountDirectory,
    IAuditSink,
    IChallengeStore,
    ICodeDeliveryChannel,
    IEnrollmentStore,
    ILockStrategy,
    IMfaNotifier,
    IRateLimiter,
    ISecretCipher,
)
from .verifier import CodeVerifier

__all__: list[str] = [
    # Coordinator
    "EnrollmentCoordinator",
    "MfaConfig",
    # Domain
    "MfaMethod",
    "EnrollmentState",
    "MfaEnrollment",
    "BackupCode",
    "PendingChallenge",
    "TotpSetup",
    "ChallengeDispatch",
    "EnableResult",
    "MfaStatus",
    "VerificationResult",
    # Components
    "SecretGenerator",
    "CodeVerifier",
    "CodeHasher",
    "BackupCodeManager",
    "FernetSecretCipher",
    "UserLock",
    "ResourceIdentifier",
    # Ports
    "IEnrollmentStore",
    "IChallengeStore",
    "IRateLimiter",
    "IAuditSink",
    "ICodeDeliveryChannel",
    "IAccountDirectory",
    "IMfaNotifier",
    "ILockStrategy",
    "ISecretCipher",
    # Audit
    "MfaEventType",
    "AuditOutcome",
    "MfaAuditEvent",
    # Errors
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
    "LockAcquisitionError",
]
