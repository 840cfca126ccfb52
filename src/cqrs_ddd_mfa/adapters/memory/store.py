"""In-memory enrollment and challenge stores for TESTING ONLY.

⚠️ WARNING: Secrets and code digests are stored in plain text in memory.
Do NOT use in production! Use the Redis-backed stores instead.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from ...domain import MfaEnrollment, MfaMethod, PendingChallenge


class InMemoryEnrollmentStore:
    """Dict-backed ``IEnrollmentStore``.

    ``compare_and_swap`` has no await point between the version check and
    the write, so it is atomic within one event loop.
    """

    def __init__(self) -> None:
        self._records: dict[str, MfaEnrollment] = {}

    async def get(self, user_id: str) -> MfaEnrollment | None:
        return self._records.get(user_id)

    async def put(self, user_id: str, enrollment: MfaEnrollment) -> None:
        self._records[user_id] = enrollment

    async def compare_and_swap(
        self,
        user_id: str,
        expected_version: int,
        enrollment: MfaEnrollment,
    ) -> bool:
        current = self._records.get(user_id)
        current_version = current.version if current is not None else 0
        if current_version != expected_version:
            return False
        self._records[user_id] = enrollment
        return True

    def clear(self) -> None:
        """Clear all records. Useful for test cleanup."""
        self._records.clear()


class InMemoryChallengeStore:
    """Dict-backed ``IChallengeStore`` keyed by (user_id, method)."""

    def __init__(self) -> None:
        self._challenges: dict[tuple[str, MfaMethod], PendingChallenge] = {}

    async def put(self, challenge: PendingChallenge) -> None:
        self._challenges[(challenge.user_id, challenge.method)] = challenge

    async def get(self, user_id: str, method: MfaMethod) -> PendingChallenge | None:
        return self._challenges.get((user_id, method))

    async def delete(self, user_id: str, method: MfaMethod) -> None:
        self._challenges.pop((user_id, method), None)

    async def purge_expired(self, now: datetime) -> int:
        expired = [
            key
            for key, challenge in self._challenges.items()
            if challenge.is_expired(now)
        ]
        for key in expired:
            del self._challenges[key]
        return len(expired)

    def count(self) -> int:
        return len(self._challenges)


__all__: list[str] = ["InMemoryEnrollmentStore", "InMemoryChallengeStore"]
