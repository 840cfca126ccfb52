"""Tests for MFA exceptions."""

from __future__ import annotations

import pytest

from cqrs_ddd_mfa.exceptions import (
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
from cqrs_ddd_mfa.locking import LockAcquisitionError, ResourceIdentifier

ALL_ERRORS = [
    (AlreadyEnabledError, MfaErrorKind.ALREADY_ENABLED),
    (MfaNotEnabledError, MfaErrorKind.MFA_NOT_ENABLED),
    (MissingContactError, MfaErrorKind.MISSING_CONTACT),
    (InvalidCodeError, MfaErrorKind.INVALID_CODE),
    (TooManyAttemptsError, MfaErrorKind.TOO_MANY_ATTEMPTS),
    (RateLimitedError, MfaErrorKind.RATE_LIMITED),
    (EntropyUnavailableError, MfaErrorKind.ENTROPY_UNAVAILABLE),
    (UpstreamUnavailableError, MfaErrorKind.UPSTREAM_UNAVAILABLE),
    (ConflictingUpdateError, MfaErrorKind.CONFLICTING_UPDATE),
]


class TestMfaErrors:
    @pytest.mark.parametrize(("error_cls", "kind"), ALL_ERRORS)
    def test_kind_and_hierarchy(self, error_cls: type[MfaError], kind: MfaErrorKind):
        error = error_cls()
        assert isinstance(error, MfaError)
        assert error.kind is kind
        assert str(error) == error_cls.default_message

    def test_custom_message(self) -> None:
        assert str(MissingContactError("A phone number is required")) == (
            "A phone number is required"
        )

    def test_retryable(self) -> None:
        retryable = {cls for cls, _ in ALL_ERRORS if cls.retryable}
        assert retryable == {UpstreamUnavailableError, ConflictingUpdateError}

    def test_delivery_failure_is_upstream(self) -> None:
        error = DeliveryFailedError()
        assert isinstance(error, UpstreamUnavailableError)
        assert error.kind is MfaErrorKind.UPSTREAM_UNAVAILABLE
        assert error.retryable

    def test_lock_acquisition_is_conflict(self) -> None:
        error = LockAcquisitionError(
            ResourceIdentifier("MfaEnrollment", "user-123"), 1.5, reason="busy"
        )
        assert error.kind is MfaErrorKind.CONFLICTING_UPDATE
        assert "MfaEnrollment:user-123" in str(error)
        assert "busy" in str(error)

    def test_invalid_code_message_is_fixed(self) -> None:
        assert str(InvalidCodeError()) == "Invalid verification code"
