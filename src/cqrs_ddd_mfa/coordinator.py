"""Enrollment coordinator.

Drives a user's enrollment through NOT_CONFIGURED → PENDING_SETUP → ENABLED
(and back on disable), verifies second factors at login and manages backup
codes.

Every mutation follows the same shape:

1. take the per-user lock (``UserLock``)
2. load the current record and check the state preconditions
3. build the complete successor record in memory
4. commit it with one ``compare_and_swap`` against the version that was read
5. after the commit, record audit events and notify the user

Audit and notification failures after a commit are logged and never undo it.
Every collaborator call is bounded by ``MfaConfig.upstream_timeout``.
"""

from __future__ import annotations

import hmac
import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import TYPE_CHECKING, Any, TypeVar

from .audit import AuditOutcome, MfaEventType, scrub_metadata
from .backup_codes import BackupCodeManager
from .config import MfaConfig
from .domain import (
    ChallengeDispatch,
    EnableResult,
    MfaEnrollment,
    MfaMethod,
    MfaStatus,
    PendingChallenge,
    VerificationResult,
    utcnow,
)
from .exceptions import (
    AlreadyEnabledError,
    ConflictingUpdateError,
    DeliveryFailedError,
    InvalidCodeError,
    MfaError,
    MfaNotEnabledError,
    MissingContactError,
    RateLimitedError,
    TooManyAttemptsError,
)
from .generator import SecretGenerator
from .hashing import CodeHasher, challenge_digest, digests_match
from .locking import UserLock
from .masking import mask_destination
from .observability import MfaMetrics
from .totp import build_totp_setup
from .upstream import bounded
from .verifier import CodeVerifier

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable
    from datetime import datetime

    from .domain import TotpSetup
    from .ports import (
        IAccountDirectory,
        IAuditSink,
        IChallengeStore,
        ICodeDeliveryChannel,
        IEnrollmentStore,
        ILockStrategy,
        IMfaNotifier,
        IRateLimiter,
    )

T = TypeVar("T")

logger = logging.getLogger("cqrs_ddd.mfa.coordinator")

# Compared against when there is nothing to verify, so that a missing record
# costs the same as a wrong code.
_DECOY_DIGEST = "0" * 64


def send_key(user_id: str) -> str:
    return f"mfa-send:{user_id}"


def verify_key(user_id: str) -> str:
    return f"mfa-verify:{user_id}"


class EnrollmentCoordinator:
    """MFA enrollment state machine and login verification.

    Example:
        ```python
        coordinator = EnrollmentCoordinator(
            store=InMemoryEnrollmentStore(),
            challenge_store=InMemoryChallengeStore(),
            rate_limiter=InMemoryRateLimiter(),
            audit_sink=InMemoryAuditSink(),
            lock_strategy=InMemoryLockStrategy(),
            sms_channel=my_sms_gateway,
            email_channel=my_mailer,
        )

        setup = await coordinator.setup_totp("user-123")
        # user scans setup.qr_code and types the current code
        result = await coordinator.enable_mfa("user-123", MfaMethod.TOTP, "123456")
        print(f"Save these codes: {result.backup_codes}")
        ```
    """

    def __init__(
        self,
        *,
        store: IEnrollmentStore,
        challenge_store: IChallengeStore,
        rate_limiter: IRateLimiter,
        audit_sink: IAuditSink,
        lock_strategy: ILockStrategy,
        sms_channel: ICodeDeliveryChannel,
        email_channel: ICodeDeliveryChannel,
        account_directory: IAccountDirectory | None = None,
        notifier: IMfaNotifier | None = None,
        config: MfaConfig | None = None,
        generator: SecretGenerator | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            store: Protected enrollment storage with compare-and-swap.
            challenge_store: Storage for pending SMS/email challenges.
            rate_limiter: Limiter for sends, verifications and regenerations.
            audit_sink: Receives security audit events.
            lock_strategy: Per-user lock backend.
            sms_channel: Delivers SMS challenge codes.
            email_channel: Delivers email challenge codes.
            account_directory: Resolves a user's registered email address.
            notifier: Optional user notifications (enable, disable, lockout).
            config: MFA configuration (defaults to ``MfaConfig()``).
            generator: Secret generator (defaults to one built from config).
            clock: Source of the current UTC time.
        """
        self.config = config or MfaConfig()
        self.store = store
        self.challenge_store = challenge_store
        self.rate_limiter = rate_limiter
        self.audit_sink = audit_sink
        self.lock_strategy = lock_strategy
        self.account_directory = account_directory
        self.notifier = notifier
        self._channels: dict[MfaMethod, ICodeDeliveryChannel] = {
            MfaMethod.SMS: sms_channel,
            MfaMethod.EMAIL: email_channel,
        }
        self._clock = clock or utcnow

        self.generator = generator or SecretGenerator(
            otp_length=self.config.otp_length,
            backup_code_length=self.config.backup_code_length,
        )
        self.verifier = CodeVerifier(
            digits=self.config.totp_digits,
            interval=self.config.totp_interval,
            valid_window=self.config.totp_valid_window,
            max_attempts=self.config.max_verification_attempts,
        )
        self.backup_codes = BackupCodeManager(
            generator=self.generator,
            hasher=CodeHasher(rounds=self.config.backup_code_hash_rounds),
            rate_limiter=rate_limiter,
            count=self.config.backup_code_count,
            regeneration_limit=self.config.regeneration_limit,
            regeneration_window_ms=self.config.regeneration_window_ms,
            upstream_timeout=self.config.upstream_timeout,
        )

    # ═══════════════════════════════════════════════════════════════
    # SETUP
    # ═══════════════════════════════════════════════════════════════

    async def setup(
        self,
        user_id: str,
        method: MfaMethod,
        contact: str | None = None,
    ) -> TotpSetup | ChallengeDispatch:
        """Start setup of *method* for a user.

        Args:
            user_id: User identifier.
            method: Second factor to set up.
            contact: Phone number (SMS) or email address (EMAIL). Ignored
                for TOTP.

        Returns:
            TotpSetup for TOTP, ChallengeDispatch for SMS and EMAIL.
        """
        if method is MfaMethod.TOTP:
            return await self.setup_totp(user_id)
        if method is MfaMethod.SMS:
            return await self.send_sms_code(user_id, contact)
        if method is MfaMethod.EMAIL:
            return await self.send_email_code(user_id, contact)
        raise AssertionError(f"Unhandled MFA method: {method!r}")

    async def setup_totp(
        self, user_id: str, account_name: str | None = None
    ) -> TotpSetup:
        """Generate a TOTP secret and move the user to PENDING_SETUP.

        A previous pending setup is overwritten. The secret only becomes
        active once ``enable_mfa`` verifies a code generated from it.

        Args:
            user_id: User identifier.
            account_name: Label shown in the authenticator app (defaults to
                the user id).

        Raises:
            AlreadyEnabledError: If MFA is already enabled.
        """
        method = MfaMethod.TOTP
        async with self._guard("setup_totp", user_id, method, MfaEventType.SETUP_TOTP):
            async with self._lock(user_id):
                current = await self._load(user_id)
                if current.enabled:
                    raise AlreadyEnabledError()

                secret = self.generator.new_totp_secret()
                await self._commit(
                    current,
                    current.evolve(
                        method=method,
                        secret=secret,
                        phone_number=None,
                        email_address=None,
                        backup_codes=(),
                        failed_attempts=0,
                        locked_until=None,
                    ),
                )

            await self._audit(
                MfaEventType.SETUP_TOTP,
                user_id,
                AuditOutcome.SUCCESS,
                {"method": method.value},
            )
            return build_totp_setup(
                secret,
                account_name=account_name or user_id,
                issuer=self.config.issuer,
                digits=self.config.totp_digits,
                interval=self.config.totp_interval,
            )

    async def send_sms_code(
        self, user_id: str, phone_number: str | None
    ) -> ChallengeDispatch:
        """Send an SMS setup challenge and record the pending phone number.

        Raises:
            MissingContactError: If no phone number is given.
            AlreadyEnabledError: If MFA is already enabled.
            RateLimitedError: If too many codes were sent recently.
            DeliveryFailedError: If the SMS could not be sent.
        """
        method = MfaMethod.SMS
        async with self._guard(
            "send_sms_code", user_id, method, MfaEventType.CHALLENGE_SENT
        ):
            destination = (phone_number or "").strip()
            if not destination:
                raise MissingContactError("A phone number is required for SMS")
            return await self._setup_challenge(user_id, method, destination)

    async def send_email_code(
        self, user_id: str, email: str | None = None
    ) -> ChallengeDispatch:
        """Send an email setup challenge and record the pending address.

        The destination is *email* if given, otherwise the address registered
        for the account in the account directory.

        Raises:
            MissingContactError: If no address is given or registered.
            AlreadyEnabledError: If MFA is already enabled.
            RateLimitedError: If too many codes were sent recently.
            DeliveryFailedError: If the email could not be sent.
        """
        method = MfaMethod.EMAIL
        async with self._guard(
            "send_email_code", user_id, method, MfaEventType.CHALLENGE_SENT
        ):
            destination = (email or "").strip()
            if not destination and self.account_directory is not None:
                registered = await self._call(
                    self.account_directory.get_email(user_id),
                    "account_directory.get_email",
                )
                destination = (registered or "").strip()
            if not destination:
                raise MissingContactError("An email address is required for EMAIL")
            return await self._setup_challenge(user_id, method, destination)

    async def send_login_code(self, user_id: str) -> ChallengeDispatch:
        """Send a login challenge to the confirmed SMS/email contact.

        Raises:
            MfaNotEnabledError: If MFA is not enabled or the enabled method
                has no login challenge (TOTP).
            RateLimitedError: If too many codes were sent recently.
            DeliveryFailedError: If the code could not be sent.
        """
        async with self._guard(
            "send_login_code", user_id, None, MfaEventType.CHALLENGE_SENT
        ):
            async with self._lock(user_id):
                current = await self._load(user_id)
                if not current.enabled:
                    raise MfaNotEnabledError()
                method, contact = current.method, current.contact
                if method is None or method not in self._channels or not contact:
                    raise MfaNotEnabledError(
                        "Login codes are only sent for SMS and EMAIL enrollments"
                    )
                dispatch = await self._dispatch_challenge(user_id, method, contact)

            await self._audit_dispatch(user_id, dispatch, purpose="login")
            return dispatch

    async def _setup_challenge(
        self, user_id: str, method: MfaMethod, destination: str
    ) -> ChallengeDispatch:
        async with self._lock(user_id):
            current = await self._load(user_id)
            if current.enabled:
                raise AlreadyEnabledError()

            successor = current.evolve(
                method=method,
                secret=None,
                phone_number=destination if method is MfaMethod.SMS else None,
                email_address=destination if method is MfaMethod.EMAIL else None,
                backup_codes=(),
                failed_attempts=0,
                locked_until=None,
            )
            dispatch = await self._dispatch_challenge(user_id, method, destination)
            try:
                await self._commit(current, successor)
            except MfaError:
                await self._discard_challenge(user_id, method)
                raise

        await self._audit_dispatch(user_id, dispatch, purpose="setup")
        return dispatch

    async def _dispatch_challenge(
        self, user_id: str, method: MfaMethod, destination: str
    ) -> ChallengeDispatch:
        """Rate-limit, store and deliver a new challenge (caller holds the lock).

        The challenge is stored before delivery and removed again if
        delivery fails.
        """
        await self._check_rate(
            send_key(user_id), self.config.send_limit, self.config.send_window_ms
        )

        code = self.generator.new_otp_challenge()
        now = self._now()
        ttl = timedelta(seconds=self.config.challenge_ttl_seconds)
        challenge = PendingChallenge(
            user_id=user_id,
            method=method,
            code_hash=challenge_digest(code),
            destination=destination,
            created_at=now,
            expires_at=now + ttl,
        )
        await self._call(self.challenge_store.put(challenge), "challenge_store.put")

        try:
            await self._call(
                self._channels[method].send(destination, code), "delivery.send"
            )
        except Exception as exc:
            await self._discard_challenge(user_id, method)
            if isinstance(exc, DeliveryFailedError):
                raise
            raise DeliveryFailedError() from exc

        masked = mask_destination(method, destination)
        logger.info(
            "Sent %s challenge to %s for user %s", method.value, masked, user_id
        )
        return ChallengeDispatch(
            method=method,
            masked_destination=masked,
            expires_at=challenge.expires_at,
        )

    async def _audit_dispatch(
        self, user_id: str, dispatch: ChallengeDispatch, *, purpose: str
    ) -> None:
        await self._audit(
            MfaEventType.CHALLENGE_SENT,
            user_id,
            AuditOutcome.SUCCESS,
            {
                "method": dispatch.method.value,
                "destination": dispatch.masked_destination,
                "purpose": purpose,
            },
        )

    # ═══════════════════════════════════════════════════════════════
    # ENABLE / DISABLE
    # ═══════════════════════════════════════════════════════════════

    async def enable_mfa(
        self,
        user_id: str,
        method: MfaMethod,
        code: str,
        *,
        secret: str | None = None,
        backup_codes: list[str] | None = None,
    ) -> EnableResult:
        """Confirm the pending setup with a code and enable MFA.

        For TOTP the code is checked against the server-side pending secret.
        A *secret* passed by the caller must equal that secret.

        For SMS/EMAIL the code is checked against the pending challenge.

        On success a fresh backup-code set is generated and committed
        together with ``enabled=True``. The plaintext codes are returned
        here and nowhere else.

        Args:
            user_id: User identifier.
            method: Method being confirmed; must match the pending setup.
            code: Code from the authenticator app, SMS or email.
            secret: Optional TOTP secret echoed back by the client.
            backup_codes: Not accepted; backup codes are always generated
                server-side.

        Raises:
            ValueError: If *backup_codes* is given.
            AlreadyEnabledError: If MFA is already enabled.
            InvalidCodeError: If verification fails for any reason.
            TooManyAttemptsError: If the attempt ceiling was reached.
        """
        if backup_codes is not None:
            raise ValueError("Backup codes are generated by the server on enable")

        async with self._guard("enable", user_id, method, MfaEventType.ENABLED):
            async with self._lock(user_id):
                current = await self._load(user_id)
                if current.enabled:
                    raise AlreadyEnabledError()

                now = self._now()
                if method is MfaMethod.TOTP:
                    verified, current = await self._verify_pending_totp(
                        current, code, secret, now
                    )
                elif method in self._channels:
                    verified = await self._verify_pending_challenge(
                        current, method, code, now
                    )
                else:
                    raise AssertionError(f"Unhandled MFA method: {method!r}")

                if not verified:
                    raise InvalidCodeError()

                plaintext, hashed = await self.backup_codes.generate()
                await self._commit(
                    current,
                    current.evolve(
                        enabled=True,
                        backup_codes=hashed,
                        failed_attempts=0,
                        locked_until=None,
                    ),
                )

            if method in self._channels:
                await self._discard_challenge(user_id, method)

            logger.info("MFA enabled for user %s (%s)", user_id, method.value)
            await self._audit(
                MfaEventType.ENABLED,
                user_id,
                AuditOutcome.SUCCESS,
                {"method": method.value, "backup_codes_issued": len(plaintext)},
            )
            await self._notify(
                user_id,
                "mfa_enabled",
                "Two-factor authentication has been enabled on your account.",
            )
            return EnableResult(method=method, backup_codes=tuple(plaintext))

    async def _verify_pending_totp(
        self,
        current: MfaEnrollment,
        code: str,
        secret: str | None,
        now: datetime,
    ) -> tuple[bool, MfaEnrollment]:
        """Check a setup code against the pending TOTP secret.

        The attempt is counted and committed before the result is known.

        Returns:
            ``(verified, record_after_counting)``.
        """
        pending = current.secret
        if current.method is not MfaMethod.TOTP or pending is None:
            digests_match(_DECOY_DIGEST, code)
            raise InvalidCodeError()

        self.verifier.ensure_attempts_remaining(current.failed_attempts)
        counted = current.evolve(failed_attempts=current.failed_attempts + 1)
        await self._commit(current, counted)

        code_ok = self.verifier.verify_totp(pending, code, now)
        secret_ok = secret is None or hmac.compare_digest(
            secret.encode(), pending.encode()
        )
        return code_ok and secret_ok, counted

    async def _verify_pending_challenge(
        self,
        current: MfaEnrollment,
        method: MfaMethod,
        code: str,
        now: datetime,
    ) -> bool:
        """Check a setup code against the pending SMS/email challenge.

        The attempt is counted on the challenge before the result is known.
        An expired challenge is removed.
        """
        challenge = await self._call(
            self.challenge_store.get(current.user_id, method), "challenge_store.get"
        )
        if (
            current.method is not method
            or challenge is None
            or challenge.destination != current.contact
        ):
            digests_match(_DECOY_DIGEST, code)
            raise InvalidCodeError()

        self.verifier.ensure_attempts_remaining(challenge.attempt_count)
        await self._call(
            self.challenge_store.put(challenge.with_attempt()), "challenge_store.put"
        )

        verified = self.verifier.verify_otp_challenge(challenge, code, now)
        if challenge.is_expired(now):
            await self._discard_challenge(current.user_id, method)
        return verified

    async def disable_mfa(self, user_id: str) -> None:
        """Disable MFA and clear the secret, contact and backup codes.

        Raises:
            MfaNotEnabledError: If MFA is not enabled.
        """
        async with self._guard("disable", user_id, None, MfaEventType.DISABLED):
            async with self._lock(user_id):
                current = await self._load(user_id)
                if not current.enabled:
                    raise MfaNotEnabledError()
                await self._commit(current, current.reset())

            for method in self._channels:
                await self._discard_challenge(user_id, method)

            logger.info("MFA disabled for user %s", user_id)
            await self._audit(
                MfaEventType.DISABLED,
                user_id,
                AuditOutcome.SUCCESS,
                {"method": current.method.value if current.method else None},
            )
            await self._notify(
                user_id,
                "mfa_disabled",
                "Two-factor authentication has been disabled on your account.",
            )

    # ═══════════════════════════════════════════════════════════════
    # STATUS
    # ═══════════════════════════════════════════════════════════════

    async def get_mfa_status(self, user_id: str) -> MfaStatus:
        """Get the user's enrollment status. Read-only."""
        with MfaMetrics.operation("get_status"):
            return MfaStatus.of(await self._load(user_id))

    async def is_mfa_enabled(self, user_id: str) -> bool:
        return (await self.get_mfa_status(user_id)).enabled

    # ═══════════════════════════════════════════════════════════════
    # BACKUP CODES
    # ═══════════════════════════════════════════════════════════════

    async def regenerate_backup_codes(self, user_id: str) -> list[str]:
        """Replace the backup-code set; all previous codes stop working.

        Raises:
            MfaNotEnabledError: If MFA is not enabled.
            RateLimitedError: If the regeneration budget is spent.
        """
        async with self._guard(
            "regenerate_backup_codes",
            user_id,
            None,
            MfaEventType.BACKUP_CODES_REGENERATED,
        ):
            async with self._lock(user_id):
                current = await self._load(user_id)
                plaintext, successor = await self.backup_codes.regenerate(current)
                await self._commit(current, successor)

            await self._audit(
                MfaEventType.BACKUP_CODES_REGENERATED,
                user_id,
                AuditOutcome.SUCCESS,
                {"count": len(plaintext)},
            )
            return plaintext

    async def consume_backup_code(self, user_id: str, code: str) -> MfaStatus:
        """Use a backup code. Each code works exactly once.

        Shares the verification budget of :meth:`verify_mfa`. The call is
        refused while locked out and a wrong code counts towards the lockout.

        Raises:
            MfaNotEnabledError: If MFA is not enabled.
            RateLimitedError: If too many verifications were attempted.
            TooManyAttemptsError: While the user is locked out.
            InvalidCodeError: If the code does not match an unused code.
        """
        async with self._guard(
            "consume_backup_code", user_id, None, MfaEventType.BACKUP_CODE_USED
        ):
            async with self._lock(user_id):
                now = self._now()
                current = await self._open_verification(user_id, now)
                matched, successor = await self.backup_codes.consume(
                    current, code, now
                )
                successor, locked = self._count_attempt(
                    current, successor, matched, now
                )
                await self._commit(current, successor)

            if not matched:
                if locked:
                    await self._lock_out(user_id, current.method)
                raise InvalidCodeError()
            await self._after_backup_code_used(successor)
            return MfaStatus.of(successor)

    async def _after_backup_code_used(self, enrollment: MfaEnrollment) -> None:
        remaining = enrollment.backup_codes_remaining
        await self._audit(
            MfaEventType.BACKUP_CODE_USED,
            enrollment.user_id,
            AuditOutcome.SUCCESS,
            {"remaining": remaining},
        )
        await self._notify(
            enrollment.user_id,
            "backup_code_used",
            f"A backup code was used to sign in. {remaining} backup codes remaining.",
        )

    # ═══════════════════════════════════════════════════════════════
    # LOGIN VERIFICATION
    # ═══════════════════════════════════════════════════════════════

    async def verify_mfa(
        self,
        user_id: str,
        code: str,
        *,
        backup_code: bool = False,
    ) -> VerificationResult:
        """Verify a second factor during login.

        Failed verifications are counted per user. Reaching the attempt
        ceiling locks verification for ``lockout_seconds``.

        Args:
            user_id: User identifier.
            code: TOTP code, SMS/email code or backup code.
            backup_code: Treat *code* as a backup code.

        Returns:
            VerificationResult; ``remaining_attempts`` is set on failure.

        Raises:
            MfaNotEnabledError: If MFA is not enabled.
            RateLimitedError: If too many verifications were attempted.
            TooManyAttemptsError: While the user is locked out.
        """
        async with self._guard(
            "verify", user_id, None, MfaEventType.VERIFICATION_FAILED
        ):
            async with self._lock(user_id):
                now = self._now()
                current = await self._open_verification(user_id, now)
                if backup_code:
                    matched, successor = await self.backup_codes.consume(
                        current, code, now
                    )
                else:
                    matched = await self._verify_enabled_factor(current, code, now)
                    successor = current
                successor, locked = self._count_attempt(
                    current, successor, matched, now
                )
                await self._commit(current, successor)

            method = current.method
            method_label = method.value if method else None
            if matched:
                await self._audit(
                    MfaEventType.VERIFIED,
                    user_id,
                    AuditOutcome.SUCCESS,
                    {"method": method_label, "backup_code": backup_code},
                )
                if backup_code:
                    await self._after_backup_code_used(successor)
                return VerificationResult(
                    success=True, method=method, used_backup_code=backup_code
                )

            remaining = (
                0
                if locked
                else self.verifier.remaining_attempts(successor.failed_attempts)
            )
            await self._audit(
                MfaEventType.VERIFICATION_FAILED,
                user_id,
                AuditOutcome.FAILURE,
                {
                    "method": method_label,
                    "backup_code": backup_code,
                    "remaining_attempts": remaining,
                },
            )
            if locked:
                await self._lock_out(user_id, method)
            return VerificationResult(
                success=False, method=method, remaining_attempts=remaining
            )

    async def _open_verification(self, user_id: str, now: datetime) -> MfaEnrollment:
        """Load a record that may be verified against (caller holds the lock).

        Raises:
            MfaNotEnabledError: If MFA is not enabled.
            RateLimitedError: If the verification budget is spent.
            TooManyAttemptsError: While the user is locked out.
        """
        current = await self._load(user_id)
        if not current.enabled:
            raise MfaNotEnabledError()
        await self._check_rate(
            verify_key(user_id),
            self.config.verify_limit,
            self.config.verify_window_ms,
        )
        if current.is_locked(now):
            raise TooManyAttemptsError()
        return current

    def _count_attempt(
        self,
        current: MfaEnrollment,
        successor: MfaEnrollment,
        matched: bool,
        now: datetime,
    ) -> tuple[MfaEnrollment, bool]:
        """Reset the failure counter on a match, otherwise count the failure.

        Returns:
            ``(record_to_commit, locked)``; *locked* is true when this
            failure reached the attempt ceiling.
        """
        if matched:
            return successor.evolve(failed_attempts=0, locked_until=None), False
        attempts = current.failed_attempts + 1
        if attempts >= self.config.max_verification_attempts:
            lockout = timedelta(seconds=self.config.lockout_seconds)
            return current.evolve(failed_attempts=0, locked_until=now + lockout), True
        return current.evolve(failed_attempts=attempts), False

    async def _lock_out(self, user_id: str, method: MfaMethod | None) -> None:
        logger.warning("MFA verification locked for user %s", user_id)
        await self._audit(
            MfaEventType.LOCKOUT,
            user_id,
            AuditOutcome.SUCCESS,
            {
                "method": method.value if method else None,
                "seconds": self.config.lockout_seconds,
            },
        )
        await self._notify(
            user_id,
            "mfa_lockout",
            "Too many failed verification attempts. Two-factor "
            "verification is temporarily locked.",
        )

    async def _verify_enabled_factor(
        self, enrollment: MfaEnrollment, code: str, now: datetime
    ) -> bool:
        method, material = enrollment.method, enrollment.contact or ""
        if method is MfaMethod.TOTP:
            return self.verifier.verify_totp(material, code, now)
        if method is None:
            return False

        challenge = await self._call(
            self.challenge_store.get(enrollment.user_id, method),
            "challenge_store.get",
        )
        if (
            challenge is None
            or challenge.destination != material
            or challenge.attempt_count >= self.verifier.max_attempts
        ):
            digests_match(_DECOY_DIGEST, code)
            return False

        verified = self.verifier.verify_otp_challenge(challenge, code, now)
        if verified or challenge.is_expired(now):
            await self._discard_challenge(enrollment.user_id, method)
        else:
            await self._call(
                self.challenge_store.put(challenge.with_attempt()),
                "challenge_store.put",
            )
        return verified

    # ═══════════════════════════════════════════════════════════════
    # MAINTENANCE
    # ═══════════════════════════════════════════════════════════════

    async def purge_expired_challenges(self, now: datetime | None = None) -> int:
        """Delete expired pending challenges.

        Returns:
            Number of challenges deleted.
        """
        with MfaMetrics.operation("purge_expired_challenges"):
            purged = await self._call(
                self.challenge_store.purge_expired(now or self._now()),
                "challenge_store.purge_expired",
            )
        if purged:
            logger.info("Purged %d expired MFA challenges", purged)
        return purged

    # ═══════════════════════════════════════════════════════════════
    # INTERNALS
    # ═══════════════════════════════════════════════════════════════

    def _now(self) -> datetime:
        return self._clock()

    def _lock(self, user_id: str) -> UserLock:
        return UserLock(
            user_id,
            self.lock_strategy,
            timeout=self.config.lock_timeout,
            ttl=self.config.lock_ttl,
        )

    async def _call(self, awaitable: Awaitable[T], operation: str) -> T:
        return await bounded(
            awaitable, timeout=self.config.upstream_timeout, operation=operation
        )

    async def _load(self, user_id: str) -> MfaEnrollment:
        stored = await self._call(self.store.get(user_id), "enrollment_store.get")
        return stored or MfaEnrollment.new(user_id)

    async def _commit(self, current: MfaEnrollment, successor: MfaEnrollment) -> None:
        stored = await self._call(
            self.store.compare_and_swap(current.user_id, current.version, successor),
            "enrollment_store.compare_and_swap",
        )
        if not stored:
            logger.warning(
                "Concurrent update of MFA enrollment for user %s (version %d)",
                current.user_id,
                current.version,
            )
            raise ConflictingUpdateError()

    async def _check_rate(self, key: str, max_count: int, window_ms: int) -> None:
        allowed = await self._call(
            self.rate_limiter.check_limit(key, max_count, window_ms),
            "rate_limiter.check_limit",
        )
        if not allowed:
            logger.info("Rate limit exceeded for %s", key)
            raise RateLimitedError()

    async def _discard_challenge(self, user_id: str, method: MfaMethod) -> None:
        try:
            await self._call(
                self.challenge_store.delete(user_id, method), "challenge_store.delete"
            )
        except MfaError as exc:
            # The challenge expires on its own
            logger.warning(
                "Could not delete %s challenge for user %s: %s",
                method.value,
                user_id,
                exc,
            )

    async def _audit(
        self,
        event_type: MfaEventType,
        user_id: str,
        outcome: AuditOutcome,
        metadata: dict[str, Any],
    ) -> None:
        try:
            await self._call(
                self.audit_sink.record(
                    event_type, user_id, outcome, scrub_metadata(metadata)
                ),
                "audit_sink.record",
            )
        except Exception:  # noqa: BLE001
            logger.exception(
                "Failed to record audit event %s for user %s",
                event_type.value,
                user_id,
            )
            MfaMetrics.record("audit", result="error")

    async def _notify(self, user_id: str, kind: str, message: str) -> None:
        if self.notifier is None:
            return
        try:
            await self._call(
                self.notifier.notify(user_id, kind, message), "notifier.notify"
            )
        except Exception:  # noqa: BLE001
            logger.exception("Failed to send %s notification to user %s", kind, user_id)
            MfaMetrics.record("notify", result="error")

    @asynccontextmanager
    async def _guard(
        self,
        operation: str,
        user_id: str,
        method: MfaMethod | None,
        event_type: MfaEventType,
    ) -> AsyncIterator[None]:
        """Time the operation and audit any MfaError that escapes it."""
        label = method.value if method else "unknown"
        with MfaMetrics.operation(operation, method=label):
            try:
                yield
            except MfaError as exc:
                metadata: dict[str, Any] = {"error": exc.kind.value}
                if method is not None:
                    metadata["method"] = method.value
                await self._audit(event_type, user_id, AuditOutcome.FAILURE, metadata)
                raise


__all__: list[str] = ["EnrollmentCoordinator", "send_key", "verify_key"]
