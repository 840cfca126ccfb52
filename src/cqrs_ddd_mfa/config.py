"""MFA configuration."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class MfaConfig:
    """Configuration for the MFA enrollment subsystem.

    Attributes:
        issuer: Application name shown in authenticator apps.
        totp_digits: Number of digits in TOTP codes.
        totp_interval: TOTP time step in seconds.
        totp_valid_window: Accept codes ±N steps for clock drift.
        otp_length: Number of digits in SMS/email challenge codes.
        challenge_ttl_seconds: Lifetime of an SMS/email challenge.
        max_verification_attempts: Attempts allowed per challenge (or per
            TOTP setup / login window) before TooManyAttempts.
        backup_code_count: Number of codes in a backup-code set.
        backup_code_length: Characters per backup code (without dash).
        backup_code_hash_rounds: bcrypt cost factor for backup code hashes.
        regeneration_limit: Backup-code regenerations allowed per window.
        regeneration_window_ms: Regeneration rate window in milliseconds.
        send_limit: Challenge deliveries allowed per window.
        send_window_ms: Challenge delivery rate window in milliseconds.
        verify_limit: Login verifications allowed per window.
        verify_window_ms: Login verification rate window in milliseconds.
        lockout_seconds: Login lockout after too many failed verifications.
        upstream_timeout: Timeout in seconds for every collaborator call.
        lock_timeout: Maximum wait for the per-user lock.
        lock_ttl: Per-user lock auto-expiry in seconds.
    """

    issuer: str = "MyApp"
    totp_digits: int = 6
    totp_interval: int = 30
    totp_valid_window: int = 1
    otp_length: int = 6
    challenge_ttl_seconds: int = 300  # 5 minutes
    max_verification_attempts: int = 3
    backup_code_count: int = 10
    backup_code_length: int = 8
    backup_code_hash_rounds: int = 12
    regeneration_limit: int = 3
    regeneration_window_ms: int = 86_400_000  # 24 hours
    send_limit: int = 5
    send_window_ms: int = 900_000  # 15 minutes
    verify_limit: int = 10
    verify_window_ms: int = 900_000
    lockout_seconds: int = 900
    upstream_timeout: float = 5.0
    lock_timeout: float = 10.0
    lock_ttl: float = 30.0

    def __post_init__(self) -> None:
        if not 6 <= self.totp_digits <= 8:
            raise ValueError("totp_digits must be between 6 and 8")
        if self.totp_interval <= 0:
            raise ValueError("totp_interval must be positive")
        if self.totp_valid_window < 0:
            raise ValueError("totp_valid_window must not be negative")
        if not 4 <= self.otp_length <= 10:
            raise ValueError("otp_length must be between 4 and 10")
        if self.challenge_ttl_seconds <= 0:
            raise ValueError("challenge_ttl_seconds must be positive")
        if self.max_verification_attempts < 1:
            raise ValueError("max_verification_attempts must be at least 1")
        if self.backup_code_count < 1:
            raise ValueError("backup_code_count must be at least 1")
        if self.backup_code_length < 4:
            raise ValueError("backup_code_length must be at least 4")
        # bcrypt accepts cost factors 4..31
        if not 4 <= self.backup_code_hash_rounds <= 31:
            raise ValueError("backup_code_hash_rounds must be between 4 and 31")
        for name in ("regeneration_limit", "send_limit", "verify_limit"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1")
        if self.upstream_timeout <= 0 or self.lock_timeout <= 0:
            raise ValueError("timeouts must be positive")


__all__: list[str] = ["MfaConfig"]
