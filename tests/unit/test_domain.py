"""Tests for the MFA domain model."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from cqrs_ddd_mfa.domain import (
    BackupCode,
    EnrollmentState,
    MfaEnrollment,
    MfaMethod,
    MfaStatus,
    PendingChallenge,
)

NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestMfaEnrollment:
    def test_new_is_not_configured(self) -> None:
        enrollment = MfaEnrollment.new("user-123")

        assert enrollment.state is EnrollmentState.NOT_CONFIGURED
        assert enrollment.version == 0
        assert enrollment.backup_codes_remaining == 0
        assert enrollment.contact is None

    def test_pending_state(self) -> None:
        enrollment = MfaEnrollment.new("user-123").evolve(
            method=MfaMethod.SMS, phone_number="+18452428261"
        )

        assert enrollment.state is EnrollmentState.PENDING_SETUP
        assert enrollment.contact == "+18452428261"
        assert enrollment.version == 1

    def test_enabled_requires_method(self) -> None:
        with pytest.raises(ValidationError):
            MfaEnrollment(user_id="user-123", enabled=True)

    @pytest.mark.parametrize("method", list(MfaMethod))
    def test_enabled_requires_material(self, method: MfaMethod) -> None:
        with pytest.raises(ValidationError):
            MfaEnrollment(user_id="user-123", method=method, enabled=True)

    def test_frozen(self) -> None:
        enrollment = MfaEnrollment.new("user-123")
        with pytest.raises(ValidationError):
            enrollment.enabled = True  # type: ignore[misc]

    def test_evolve_validates(self) -> None:
        with pytest.raises(ValidationError):
            MfaEnrollment.new("user-123").evolve(enabled=True)

    def test_backup_codes_remaining_is_computed(self) -> None:
        enrollment = MfaEnrollment(
            user_id="user-123",
            method=MfaMethod.TOTP,
            secret="JBSWY3DPEHPK3PXP",
            enabled=True,
            backup_codes=(
                BackupCode(code_hash="a"),
                BackupCode(code_hash="b", used=True, used_at=NOW),
                BackupCode(code_hash="c"),
            ),
        )
        assert enrollment.backup_codes_remaining == 2

    def test_reset(self) -> None:
        enabled = MfaEnrollment(
            user_id="user-123",
            method=MfaMethod.EMAIL,
            email_address="jane@example.com",
            enabled=True,
            backup_codes=(BackupCode(code_hash="a"),),
            version=4,
        )

        reset = enabled.reset()

        assert reset.state is EnrollmentState.NOT_CONFIGURED
        assert reset.email_address is None
        assert reset.backup_codes == ()
        assert reset.version == 5
        assert reset.created_at == enabled.created_at

    def test_lock(self) -> None:
        enrollment = MfaEnrollment.new("user-123").evolve(
            locked_until=NOW + timedelta(minutes=15)
        )
        assert enrollment.is_locked(NOW)
        assert not enrollment.is_locked(NOW + timedelta(minutes=15))

    def test_secret_not_in_repr(self) -> None:
        enrollment = MfaEnrollment.new("user-123").evolve(
            method=MfaMethod.TOTP, secret="JBSWY3DPEHPK3PXP"
        )
        assert "JBSWY3DPEHPK3PXP" not in repr(enrollment)

    def test_json_round_trip(self) -> None:
        enrollment = MfaEnrollment(
            user_id="user-123",
            method=MfaMethod.TOTP,
            secret="JBSWY3DPEHPK3PXP",
            enabled=True,
            backup_codes=(BackupCode(code_hash="a"),),
            version=2,
        )
        restored = MfaEnrollment.model_validate_json(enrollment.model_dump_json())
        assert restored == enrollment


class TestPendingChallenge:
    def test_expiry_is_exclusive(self) -> None:
        challenge = PendingChallenge(
            user_id="user-123",
            method=MfaMethod.SMS,
            code_hash="x" * 64,
            destination="+18452428261",
            expires_at=NOW,
        )
        assert not challenge.is_expired(NOW - timedelta(seconds=1))
        assert challenge.is_expired(NOW)

    def test_with_attempt(self) -> None:
        challenge = PendingChallenge(
            user_id="user-123",
            method=MfaMethod.EMAIL,
            code_hash="x" * 64,
            destination="jane@example.com",
            expires_at=NOW,
        )
        assert challenge.with_attempt().attempt_count == 1
        assert challenge.attempt_count == 0


class TestMfaStatus:
    def test_of(self) -> None:
        enrollment = MfaEnrollment(
            user_id="user-123",
            method=MfaMethod.SMS,
            phone_number="+18452428261",
            enabled=True,
            backup_codes=(BackupCode(code_hash="a"), BackupCode(code_hash="b")),
        )

        status = MfaStatus.of(enrollment)

        assert status == MfaStatus(
            enabled=True,
            method=MfaMethod.SMS,
            backup_codes_remaining=2,
            state=EnrollmentState.ENABLED,
        )
