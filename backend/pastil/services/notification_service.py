# Overview: Notification events emitted to the UI layer and the sink that carries them.

"""
Notification contract

The checkout engine never renders anything. It emits typed events carrying
enough data for a UI to show a "new purchase" banner with a countdown and a
cancel affordance, a cancellation confirmation, or a storage warning.

    SaleCommitted            on full or partial checkout success
    SaleCancelled            on a successful cancellation inside the window
    StorageCapacityWarning   from object-storage usage accounting

Window expiry emits nothing.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import ClassVar, Protocol

from flask import Flask, current_app

from pastil.time_utils import to_utc_z


def _serialize(value):
    if isinstance(value, datetime):
        return to_utc_z(value)
    if isinstance(value, tuple):
        return list(value)
    return value


@dataclass(frozen=True)
class NotificationEvent:
    kind: ClassVar[str] = "event"

    def to_dict(self) -> dict:
        data = {key: _serialize(value) for key, value in asdict(self).items()}
        data["kind"] = self.kind
        return data


@dataclass(frozen=True)
class SaleCommitted(NotificationEvent):
    kind: ClassVar[str] = "sale_committed"

    transaction_id: str
    transaction_number: str
    product_summary: str
    quantity: int
    total_cents: int
    expires_at: datetime
    partial: bool = False


@dataclass(frozen=True)
class SaleCancelled(NotificationEvent):
    kind: ClassVar[str] = "sale_cancelled"

    transaction_id: str
    transaction_number: str
    cancelled_at: datetime
    restored_item_ids: tuple[int, ...] = field(default_factory=tuple)
    failed_item_ids: tuple[int, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class StorageCapacityWarning(NotificationEvent):
    kind: ClassVar[str] = "storage_capacity_warning"

    remaining_estimate_mb: float
    level: str
    message: str


class NotificationSink(Protocol):
    def emit(self, event: NotificationEvent) -> None:
        ...


class InMemoryNotificationSink:
    """
    Bounded queue of events for the UI to drain.

    Oldest events drop first once maxlen is reached. Safe to emit from the
    cancellation window's timer thread.
    """

    def __init__(self, maxlen: int = 50):
        self._events: deque[NotificationEvent] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def emit(self, event: NotificationEvent) -> None:
        with self._lock:
            self._events.append(event)

    def peek(self) -> list[NotificationEvent]:
        with self._lock:
            return list(self._events)

    def drain(self) -> list[NotificationEvent]:
        with self._lock:
            events = list(self._events)
            self._events.clear()
        return events

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


def init_app(app: Flask) -> InMemoryNotificationSink:
    sink = InMemoryNotificationSink(maxlen=app.config.get("NOTIFICATION_QUEUE_SIZE", 50))
    app.extensions["pastil.notifications"] = sink
    return sink


def get_notification_sink() -> InMemoryNotificationSink:
    return current_app.extensions["pastil.notifications"]
