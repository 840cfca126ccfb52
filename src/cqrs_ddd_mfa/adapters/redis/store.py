"""Redis implementations of the enrollment and challenge stores."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from redis.exceptions import WatchError

from ...domain import MfaEnrollment, PendingChallenge
from .errors import upstream_errors

if TYPE_CHECKING:
    from datetime import datetime

    from redis.asyncio import Redis

    from ...domain import MfaMethod
    from ...ports import ISecretCipher

logger = logging.getLogger("cqrs_ddd.mfa.redis")


class RedisEnrollmentStore:
    """
    Redis implementation of ``IEnrollmentStore``.

    Each enrollment is one JSON document. The TOTP secret is encrypted with
    the given ``ISecretCipher`` before it is written.
    ``compare_and_swap`` uses WATCH/MULTI, so a concurrent writer makes the
    transaction fail instead of being overwritten.
    """

    def __init__(
        self,
        redis_client: Redis,  # type: ignore[type-arg]
        *,
        cipher: ISecretCipher,
        key_prefix: str = "mfa:enrollment",
    ) -> None:
        """
        Initialize the store.

        Args:
            redis_client: Async Redis client instance.
            cipher: Encrypts the TOTP secret at rest.
            key_prefix: Prefix for enrollment keys.
        """
        self._redis = redis_client
        self._cipher = cipher
        self._key_prefix = key_prefix

    def _key(self, user_id: str) -> str:
        return f"{self._key_prefix}:{user_id}"

    def _dump(self, enrollment: MfaEnrollment) -> str:
        data = enrollment.model_dump(mode="json")
        if data["secret"] is not None:
            data["secret"] = self._cipher.encrypt(data["secret"])
        return json.dumps(data)

    def _load(self, raw: str | bytes) -> MfaEnrollment:
        data: dict[str, Any] = json.loads(raw)
        if data.get("secret") is not None:
            data["secret"] = self._cipher.decrypt(data["secret"])
        return MfaEnrollment.model_validate(data)

    async def get(self, user_id: str) -> MfaEnrollment | None:
        with upstream_errors("enrollment get"):
            raw = await self._redis.get(self._key(user_id))
        return self._load(raw) if raw else None

    async def put(self, user_id: str, enrollment: MfaEnrollment) -> None:
        with upstream_errors("enrollment put"):
            await self._redis.set(self._key(user_id), self._dump(enrollment))

    async def compare_and_swap(
        self,
        user_id: str,
        expected_version: int,
        enrollment: MfaEnrollment,
    ) -> bool:
        key = self._key(user_id)
        payload = self._dump(enrollment)

        with upstream_errors("enrollment compare_and_swap"):
            async with self._redis.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    current = json.loads(raw)["version"] if raw else 0
                    if current != expected_version:
                        return False
                    pipe.multi()
                    pipe.set(key, payload)
                    await pipe.execute()
                except WatchError:
                    logger.debug("Enrollment %s changed during transaction", key)
                    return False
        return True


class RedisChallengeStore:
    """
    Redis implementation of ``IChallengeStore``.

    Challenges are stored with a key TTL of the challenge lifetime
    (``expires_at - created_at``), so Redis removes expired challenges by
    itself. The TTL does not depend on this host's clock.
    """

    def __init__(
        self,
        redis_client: Redis,  # type: ignore[type-arg]
        key_prefix: str = "mfa:challenge",
    ) -> None:
        self._redis = redis_client
        self._key_prefix = key_prefix

    def _key(self, user_id: str, method: MfaMethod) -> str:
        return f"{self._key_prefix}:{user_id}:{method.value}"

    async def put(self, challenge: PendingChallenge) -> None:
        lifetime = challenge.expires_at - challenge.created_at
        ttl_ms = max(int(lifetime.total_seconds() * 1000), 1)
        with upstream_errors("challenge put"):
            await self._redis.set(
                self._key(challenge.user_id, challenge.method),
                challenge.model_dump_json(),
                px=ttl_ms,
            )

    async def get(self, user_id: str, method: MfaMethod) -> PendingChallenge | None:
        with upstream_errors("challenge get"):
            raw = await self._redis.get(self._key(user_id, method))
        return PendingChallenge.model_validate_json(raw) if raw else None

    async def delete(self, user_id: str, method: MfaMethod) -> None:
        with upstream_errors("challenge delete"):
            await self._redis.delete(self._key(user_id, method))

    async def purge_expired(self, now: datetime) -> int:
        # Key TTLs already expire challenges
        return 0


__all__: list[str] = ["RedisEnrollmentStore", "RedisChallengeStore"]
