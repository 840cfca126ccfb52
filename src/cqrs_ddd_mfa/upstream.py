"""Timeout boundary for collaborator calls."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, TypeVar

from .exceptions import UpstreamUnavailableError

if TYPE_CHECKING:
    from collections.abc import Awaitable

T = TypeVar("T")

logger = logging.getLogger("cqrs_ddd.mfa.upstream")


async def bounded(awaitable: Awaitable[T], *, timeout: float, operation: str) -> T:
    """Await a collaborator call with a timeout.

    Args:
        awaitable: The collaborator call.
        timeout: Seconds to wait before giving up.
        operation: Collaborator operation name, for logs.

    Raises:
        UpstreamUnavailableError: On timeout or connection failure.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.warning("%s timed out after %.1fs", operation, timeout)
        raise UpstreamUnavailableError(f"{operation} timed out") from e
    except (ConnectionError, OSError) as e:
        logger.warning("%s failed: %s", operation, e)
        raise UpstreamUnavailableError(f"{operation} unavailable") from e


__all__: list[str] = ["bounded"]
