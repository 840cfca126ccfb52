"""In-memory audit sink for testing and development."""

from __future__ import annotations

from collections import defaultdict
from typing import Any

from ...audit import AuditOutcome, MfaAuditEvent, MfaEventType


class InMemoryAuditSink:
    """In-memory implementation of IAuditSink.

    Note:
        Events are stored in memory and will be lost on restart.
        Not suitable for production use.

    Example:
        ```python
        sink = InMemoryAuditSink()
        coordinator = EnrollmentCoordinator(..., audit_sink=sink)

        events = sink.get_events("user-123")
        ```
    """

    def __init__(self) -> None:
        self._events: list[MfaAuditEvent] = []
        self._by_user: dict[str, list[int]] = defaultdict(list)

    async def record(
        self,
        event_type: MfaEventType,
        user_id: str,
        outcome: AuditOutcome,
        metadata: dict[str, Any],
    ) -> None:
        index = len(self._events)
        self._events.append(
            MfaAuditEvent(
                event_type=event_type,
                user_id=user_id,
                outcome=outcome,
                metadata=dict(metadata),
            )
        )
        self._by_user[user_id].append(index)

    def get_events(
        self,
        user_id: str,
        *,
        event_types: list[MfaEventType] | None = None,
    ) -> list[MfaAuditEvent]:
        """Get audit events for a user, oldest first."""
        events = [self._events[i] for i in self._by_user.get(user_id, [])]
        if event_types:
            events = [e for e in events if e.event_type in event_types]
        return events

    @property
    def events(self) -> list[MfaAuditEvent]:
        return list(self._events)

    def count_by_type(self, event_type: MfaEventType) -> int:
        return sum(1 for e in self._events if e.event_type is event_type)

    def clear(self) -> None:
        """Clear all stored events. Useful for test cleanup."""
        self._events.clear()
        self._by_user.clear()


__all__: list[str] = ["InMemoryAuditSink"]
