"""
Domain events (``inventory_kernel.domain.events``).

Responsibility
--------------
Defines the events the kernel emits on every request state transition and
every successful transfer, and the publisher interface an external
notification component plugs into.  Delivery and formatting are the
subscriber's business.

Events are buffered for the duration of a unit of work and published only
after it commits, so subscribers never observe a rolled-back change.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Protocol
from uuid import UUID


class DomainEventType(str, Enum):
    REQUEST_CREATED = "request_created"
    REQUEST_APPROVED = "request_approved"
    REQUEST_DENIED = "request_denied"
    REQUEST_COMPLETED = "request_completed"
    STOCK_TRANSFERRED = "stock_transferred"


@dataclass(frozen=True)
class DomainEvent:
    """Something that happened, as observed after commit."""

    event_type: DomainEventType
    occurred_at: datetime
    actor_id: UUID
    request_id: UUID | None = None
    item_id: UUID | None = None
    payload: dict[str, Any] = field(default_factory=dict)


EventSink = Callable[[DomainEvent], None]


class EventPublisher(Protocol):
    """Pluggable interface for the notification component."""

    def publish(self, event: DomainEvent) -> None:
        ...


class NullEventPublisher:
    """Publisher that drops every event."""

    def publish(self, event: DomainEvent) -> None:
        return None


class InMemoryEventBus:
    """
    Thread-safe publisher that keeps every event and fans out to
    subscribers.  Used by tests and by in-process notification polling.
    """

    def __init__(self) -> None:
        self._events: list[DomainEvent] = []
        self._subscribers: list[Callable[[DomainEvent], None]] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable[[DomainEvent], None]) -> None:
        with self._lock:
            self._subscribers.append(callback)

    def publish(self, event: DomainEvent) -> None:
        with self._lock:
            self._events.append(event)
            subscribers = list(self._subscribers)
        for callback in subscribers:
            callback(event)

    @property
    def events(self) -> list[DomainEvent]:
        with self._lock:
            return list(self._events)

    def of_type(self, event_type: DomainEventType) -> list[DomainEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
