"""Code verifier.

Validates TOTP codes (RFC 6238 via pyotp) and SMS/email challenge codes,
and enforces the verification attempt ceiling. The verifier is pure: callers
persist attempt counters.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pyotp

from .exceptions import TooManyAttemptsError
from .hashing import digests_match

if TYPE_CHECKING:
    from datetime import datetime

    from .domain import PendingChallenge


class CodeVerifier:
    """Verifies presented codes and tracks the attempt ceiling.

    Example:
        ```python
        verifier = CodeVerifier(valid_window=1, max_attempts=3)
        verifier.ensure_attempts_remaining(enrollment.failed_attempts)
        ok = verifier.verify_totp(secret, "123456", datetime.now(timezone.utc))
        ```
    """

    def __init__(
        self,
        *,
        digits: int = 6,
        interval: int = 30,
        valid_window: int = 1,
        max_attempts: int = 3,
    ) -> None:
        """Initialize the verifier.

        Args:
            digits: Number of digits in TOTP codes (default 6).
            interval: TOTP time step in seconds (default 30).
            valid_window: Accept codes ±N steps for clock drift (default 1).
            max_attempts: Attempts allowed before TooManyAttempts (default 3).
        """
        self.digits = digits
        self.interval = interval
        self.valid_window = valid_window
        self.max_attempts = max_attempts

    def verify_totp(self, secret: str, code: str, now: datetime) -> bool:
        """Verify a TOTP code at *now* with ±valid_window tolerance."""
        code = code.strip()
        if len(code) != self.digits or not code.isdigit():
            return False
        totp = pyotp.TOTP(secret, digits=self.digits, interval=self.interval)
        return totp.verify(code, for_time=now, valid_window=self.valid_window)

    def verify_otp_challenge(
        self,
        challenge: PendingChallenge,
        code: str,
        now: datetime,
    ) -> bool:
        """Verify a challenge code: digest match and ``now < expires_at``.

        The digest comparison runs even for expired challenges so that
        timing does not reveal expiry.
        """
        code = code.strip()
        matches = digests_match(challenge.code_hash, code)
        return matches and not challenge.is_expired(now)

    def ensure_attempts_remaining(self, attempt_count: int) -> None:
        """Raise TooManyAttemptsError once *attempt_count* hits the ceiling."""
        if attempt_count >= self.max_attempts:
            raise TooManyAttemptsError()

    def remaining_attempts(self, attempt_count: int) -> int:
        return max(self.max_attempts - attempt_count, 0)


__all__: list[str] = ["CodeVerifier"]
