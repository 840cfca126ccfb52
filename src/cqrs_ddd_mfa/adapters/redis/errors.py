"""Translation of redis-py failures into MFA errors."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

from redis.exceptions import RedisError

from ...exceptions import UpstreamUnavailableError

if TYPE_CHECKING:
    from collections.abc import Generator

logger = logging.getLogger("cqrs_ddd.mfa.redis")


@contextmanager
def upstream_errors(operation: str) -> Generator[None, None, None]:
    """Re-raise any ``RedisError`` as ``UpstreamUnavailableError``."""
    try:
        yield
    except RedisError as exc:
        logger.warning("Redis %s failed: %s", operation, exc)
        raise UpstreamUnavailableError(f"{operation} unavailable") from exc


__all__: list[str] = ["upstream_errors"]
