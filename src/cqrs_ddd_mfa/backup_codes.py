"""Backup code manager.

Generates, hashes, consumes and regenerates single-use recovery codes that
users can use when they lose access to their primary MFA device.

The manager never persists anything: it returns the successor
``MfaEnrollment`` and the coordinator commits it under the user's lock.
bcrypt work runs in a worker thread so the event loop is not blocked.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from .domain import BackupCode, MfaEnrollment, utcnow
from .exceptions import MfaNotEnabledError, RateLimitedError
from .generator import normalize_backup_code
from .upstream import bounded

if TYPE_CHECKING:
    from datetime import datetime

    from .generator import SecretGenerator
    from .hashing import CodeHasher
    from .ports import IRateLimiter

logger = logging.getLogger("cqrs_ddd.mfa.backup_codes")


def regeneration_key(user_id: str) -> str:
    return f"backup-codes:{user_id}"


class BackupCodeManager:
    """Backup codes for MFA recovery.

    Example:
        ```python
        manager = BackupCodeManager(
            generator=SecretGenerator(),
            hasher=CodeHasher(),
            rate_limiter=InMemoryRateLimiter(),
        )

        codes, hashed = await manager.generate()
        print(f"Save these codes: {codes}")

        matched, updated = await manager.consume(enrollment, user_code)
        ```
    """

    def __init__(
        self,
        *,
        generator: SecretGenerator,
        hasher: CodeHasher,
        rate_limiter: IRateLimiter,
        count: int = 10,
        regeneration_limit: int = 3,
        regeneration_window_ms: int = 86_400_000,
        upstream_timeout: float = 5.0,
    ) -> None:
        """Initialize the backup code manager.

        Args:
            generator: Source of plaintext codes.
            hasher: bcrypt hasher for stored codes.
            rate_limiter: Limiter consulted before every regeneration.
            count: Number of codes per set (default 10).
            regeneration_limit: Regenerations allowed per window (default 3).
            regeneration_window_ms: Rolling window (default 24 hours).
            upstream_timeout: Timeout for the rate limiter call.
        """
        self.generator = generator
        self.hasher = hasher
        self.rate_limiter = rate_limiter
        self.count = count
        self.regeneration_limit = regeneration_limit
        self.regeneration_window_ms = regeneration_window_ms
        self.upstream_timeout = upstream_timeout

    async def generate(
        self, n: int | None = None
    ) -> tuple[list[str], tuple[BackupCode, ...]]:
        """Generate a fresh code set.

        Args:
            n: Number of codes (defaults to the configured count).

        Returns:
            ``(plaintext_codes, hashed_codes_for_storage)``. The plaintext codes
            are shown to the user once and then discarded.
        """
        plaintext = self.generator.new_backup_code_set(n or self.count)
        hashed = await asyncio.to_thread(self._hash_all, plaintext)
        return plaintext, hashed

    def _hash_all(self, codes: list[str]) -> tuple[BackupCode, ...]:
        return tuple(BackupCode(code_hash=self.hasher.hash(code)) for code in codes)

    async def consume(
        self,
        enrollment: MfaEnrollment,
        presented_code: str,
        now: datetime | None = None,
    ) -> tuple[bool, MfaEnrollment]:
        """Consume a backup code (single-use).

        Every stored hash is checked, so the time taken does not depend on
        which code matched. Used codes never match again.

        Args:
            enrollment: Current enrollment.
            presented_code: Code entered by the user.
            now: Consumption time (defaults to now).

        Returns:
            ``(matched, successor)``; the successor is *enrollment* itself when
            nothing matched.
        """
        index = await asyncio.to_thread(self._find_match, enrollment, presented_code)
        if index is None:
            return False, enrollment

        used_at = now or utcnow()
        codes = list(enrollment.backup_codes)
        codes[index] = codes[index].model_copy(
            update={"used": True, "used_at": used_at}
        )
        return True, enrollment.evolve(backup_codes=tuple(codes))

    def _find_match(
        self, enrollment: MfaEnrollment, presented_code: str
    ) -> int | None:
        normalized = normalize_backup_code(presented_code)
        match: int | None = None
        for i, stored in enumerate(enrollment.backup_codes):
            ok = self.hasher.verify(stored.code_hash, normalized)
            if ok and not stored.used and match is None:
                match = i
        return match

    async def regenerate(
        self, enrollment: MfaEnrollment
    ) -> tuple[list[str], MfaEnrollment]:
        """Replace the whole code set, invalidating all previous codes.

        Raises:
            MfaNotEnabledError: If MFA is not enabled.
            RateLimitedError: If the regeneration budget is spent.
        """
        if not enrollment.enabled:
            raise MfaNotEnabledError()

        allowed = await bounded(
            self.rate_limiter.check_limit(
                regeneration_key(enrollment.user_id),
                self.regeneration_limit,
                self.regeneration_window_ms,
            ),
            timeout=self.upstream_timeout,
            operation="rate_limiter.check_limit",
        )
        if not allowed:
            logger.info(
                "Backup code regeneration rate limited for user %s",
                enrollment.user_id,
            )
            raise RateLimitedError()

        plaintext, hashed = await self.generate()
        return plaintext, enrollment.evolve(backup_codes=hashed)


__all__: list[str] = ["BackupCodeManager", "regeneration_key"]
