"""Test configuration and fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pyotp
import pytest
from prometheus_client import CollectorRegistry

from cqrs_ddd_mfa import EnrollmentCoordinator, MfaConfig
from cqrs_ddd_mfa.adapters.memory import (
    InMemoryAuditSink,
    InMemoryChallengeStore,
    InMemoryEnrollmentStore,
    InMemoryLockStrategy,
    InMemoryRateLimiter,
)
from cqrs_ddd_mfa.observability import MfaMetrics


WRONG_CANDIDATES = ("000000", "111111", "222222", "333333")


class RecordingChannel:
    """Delivery channel that records what it was asked to send."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []
        self.fail_with: Exception | None = None

    async def send(self, destination: str, code: str) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append((destination, code))

    @property
    def last_code(self) -> str:
        return self.sent[-1][1]


class StaticDirectory:
    """Account directory backed by a dict."""

    def __init__(self, emails: dict[str, str] | None = None) -> None:
        self.emails = emails or {}

    async def get_email(self, user_id: str) -> str | None:
        return self.emails.get(user_id)


class RecordingNotifier:
    """Notifier that records notifications."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []

    async def notify(self, user_id: str, kind: str, message: str) -> None:
        self.sent.append((user_id, kind, message))

    def kinds(self, user_id: str) -> list[str]:
        return [kind for uid, kind, _ in self.sent if uid == user_id]


class FrozenClock:
    """Settable clock for deterministic expiry and TOTP tests."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests that require external services",
    )


@pytest.fixture(autouse=True)
def metrics_registry() -> CollectorRegistry:
    """Give every test its own Prometheus registry."""
    registry = CollectorRegistry()
    MfaMetrics.bind(registry)
    return registry


@pytest.fixture
def mfa_config() -> MfaConfig:
    # Lowest bcrypt cost keeps the suite fast
    return MfaConfig(issuer="TestApp", backup_code_hash_rounds=4)


@pytest.fixture
def enrollment_store() -> InMemoryEnrollmentStore:
    return InMemoryEnrollmentStore()


@pytest.fixture
def challenge_store() -> InMemoryChallengeStore:
    return InMemoryChallengeStore()


@pytest.fixture
def rate_limiter() -> InMemoryRateLimiter:
    return InMemoryRateLimiter()


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def sms_channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def email_channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def directory() -> StaticDirectory:
    return StaticDirectory({"user-123": "jane@example.com"})


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def coordinator(
    mfa_config: MfaConfig,
    enrollment_store: InMemoryEnrollmentStore,
    challenge_store: InMemoryChallengeStore,
    rate_limiter: InMemoryRateLimiter,
    audit_sink: InMemoryAuditSink,
    sms_channel: RecordingChannel,
    email_channel: RecordingChannel,
    directory: StaticDirectory,
    notifier: RecordingNotifier,
    clock: FrozenClock,
) -> EnrollmentCoordinator:
    """Coordinator wired to in-memory adapters."""
    return EnrollmentCoordinator(
        store=enrollment_store,
        challenge_store=challenge_store,
        rate_limiter=rate_limiter,
        audit_sink=audit_sink,
        lock_strategy=InMemoryLockStrategy(),
        sms_channel=sms_channel,
        email_channel=email_channel,
        account_directory=directory,
        notifier=notifier,
        config=mfa_config,
        clock=clock,
    )


@pytest.fixture
def totp_code(clock: FrozenClock):
    """Return a function computing the TOTP code *steps* away from now."""

    def _code(secret: str, steps: int = 0) -> str:
        return pyotp.TOTP(secret).at(clock.now + timedelta(seconds=30 * steps))

    return _code


@pytest.fixture
def wrong_totp_code(clock: FrozenClock):
    """Return a function producing a code that is invalid within ±1 step."""

    def _code(secret: str) -> str:
        totp = pyotp.TOTP(secret)
        valid = {totp.at(clock.now + timedelta(seconds=30 * i)) for i in (-1, 0, 1)}
        return next(c for c in WRONG_CANDIDATES if c not in valid)

    return _code
