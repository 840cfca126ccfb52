"""Single-process FIFO implementation of ILockStrategy."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import uuid4

from ...locking import LockAcquisitionError

if TYPE_CHECKING:
    from ...locking import ResourceIdentifier

logger = logging.getLogger("cqrs_ddd.mfa.locking")


@dataclass
class _FIFOLock:
    """
    FIFO lock that ensures waiters are served in order.

    Prevents starvation by maintaining a strict queue of waiters.
    Queue size is bounded to prevent unbounded memory growth.
    """

    _locked: bool = False
    _waiters: asyncio.Queue[asyncio.Event] = field(default_factory=asyncio.Queue)
    max_queue_size: int = 100

    def try_acquire(self) -> bool:
        if self._locked:
            return False
        self._locked = True
        return True

    async def wait(self, resource: ResourceIdentifier, timeout: float) -> None:
        """Wait in line until the current holder hands the lock over."""
        queue_size = self._waiters.qsize()
        if queue_size >= self.max_queue_size:
            raise LockAcquisitionError(
                resource,
                timeout,
                reason=f"lock queue full ({queue_size}/{self.max_queue_size})",
            )

        event = asyncio.Event()
        await self._waiters.put(event)
        logger.debug("Waiting in queue at position %d", self._waiters.qsize())

        try:
            await asyncio.wait_for(event.wait(), timeout=timeout)
        except asyncio.TimeoutError as err:
            self._abandon(event)
            logger.warning("Lock acquisition timed out after %.1fs", timeout)
            raise LockAcquisitionError(resource, timeout) from err
        except asyncio.CancelledError:
            self._abandon(event)
            logger.debug("Lock waiter cancelled: %s", resource)
            raise

    def _abandon(self, event: asyncio.Event) -> None:
        """Give up a place in the queue."""
        if event.is_set():
            # Handed over as we gave up; pass it on
            self.release()
        else:
            # Leave a set event behind so release() skips this slot
            event.set()

    def release(self) -> None:
        """Hand the lock to the next live waiter or mark it free."""
        while not self._waiters.empty():
            event = self._waiters.get_nowait()
            if event.is_set():
                # Abandoned by a timed-out or cancelled waiter
                continue
            event.set()
            return
        self._locked = False

    @property
    def idle(self) -> bool:
        return not self._locked and self._waiters.empty()


@dataclass
class _LockState:
    """State for a single resource lock."""

    fifo_lock: _FIFOLock
    token: str | None = None


class InMemoryLockStrategy:
    """
    In-memory implementation of ILockStrategy with FIFO queuing.

    Features:
    - FIFO lock ordering (prevents starvation)
    - Useful for testing and single-process applications
    """

    def __init__(self) -> None:
        self._locks: dict[tuple[str, str], _LockState] = {}

    async def acquire(
        self,
        resource: ResourceIdentifier,
        *,
        timeout: float = 10.0,
        ttl: float = 30.0,  # noqa: ARG002
    ) -> str:
        key = (resource.resource_type, resource.resource_id)
        state = self._locks.get(key)
        if state is None:
            state = _LockState(fifo_lock=_FIFOLock())
            self._locks[key] = state

        if not state.fifo_lock.try_acquire():
            await state.fifo_lock.wait(resource, timeout)

        token = str(uuid4())
        state.token = token
        logger.debug("Lock acquired: %s", resource)
        return token

    async def release(self, resource: ResourceIdentifier, token: str) -> None:
        key = (resource.resource_type, resource.resource_id)
        state = self._locks.get(key)
        if state is None or state.token != token:
            logger.warning("Attempted to release invalid or expired lock: %s", key)
            return

        state.token = None
        state.fifo_lock.release()
        if state.fifo_lock.idle:
            # Clean up to prevent memory leaks
            self._locks.pop(key, None)
            logger.debug("Lock cleaned up: %s", key)

    def is_locked(self, resource: ResourceIdentifier) -> bool:
        state = self._locks.get((resource.resource_type, resource.resource_id))
        return state is not None and state.token is not None


__all__: list[str] = ["InMemoryLockStrategy"]
