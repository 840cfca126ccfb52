"""Tests for MFA configuration."""

from __future__ import annotations

import dataclasses

import pytest

from cqrs_ddd_mfa.config import MfaConfig


class TestMfaConfig:
    def test_defaults(self) -> None:
        config = MfaConfig()

        assert config.totp_valid_window == 1
        assert config.challenge_ttl_seconds == 300
        assert config.max_verification_attempts == 3
        assert config.backup_code_count == 10
        assert config.regeneration_limit == 3
        assert config.regeneration_window_ms == 86_400_000
        assert config.lockout_seconds == 900

    def test_frozen(self) -> None:
        with pytest.raises(dataclasses.FrozenInstanceError):
            MfaConfig().issuer = "Other"  # type: ignore[misc]

    @pytest.mark.parametrize(
        "overrides",
        [
            {"totp_digits": 5},
            {"totp_interval": 0},
            {"totp_valid_window": -1},
            {"otp_length": 3},
            {"challenge_ttl_seconds": 0},
            {"max_verification_attempts": 0},
            {"backup_code_count": 0},
            {"backup_code_length": 3},
            {"backup_code_hash_rounds": 3},
            {"backup_code_hash_rounds": 32},
            {"regeneration_limit": 0},
            {"send_limit": 0},
            {"verify_limit": 0},
            {"upstream_timeout": 0},
            {"lock_timeout": -1},
        ],
    )
    def test_invalid_values(self, overrides: dict[str, object]) -> None:
        with pytest.raises(ValueError):
            MfaConfig(**overrides)  # type: ignore[arg-type]
