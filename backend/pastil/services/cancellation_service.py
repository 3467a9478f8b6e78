# Overview: Single-slot cancellation window for the most recent checkout; undo within a fixed time.

"""
Cancellation Window

SINGLE SLOT: the window holds at most one PendingCancellation, the most
recently committed transaction. register() replaces the previous entry and
cancels its expiry timer, so a superseded transaction can no longer be
cancelled through cancel() even though its time has not run out. Two
checkouts inside one window therefore leave the first one final.

EXPIRY: each registration schedules one timer on the injected scheduler.
The timer drops the entry silently (no event). It is cancelled when the
entry is superseded, cancelled, or dismissed, so it never fires against a
newer entry. cancel() also checks the injected clock, so an entry whose
time has passed is refused even if its timer has not run yet.

CANCEL: voids EVERY sale row of the transaction, then restores every
inventory item by the storage amount the checkout actually removed. Rows
are voided in one commit; each item is restored in its own commit and a
failed restore is reported per item.

ERRORS (nothing is mutated in either case):
    CancellationExpiredError   window elapsed for this transaction
    CancellationNotFoundError  never registered, superseded, or dismissed
                               (a CancellationExpiredError: no live entry)
"""

from __future__ import annotations

import math
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable

from flask import Flask, current_app

from pastil.time_utils import to_utc_z, utcnow
from . import inventory_service, sales_service
from .concurrency import PersistenceError
from .notification_service import NotificationSink, SaleCancelled, SaleCommitted

if TYPE_CHECKING:
    from .checkout_service import CheckoutResult

DEFAULT_WINDOW_SECONDS = 30

# How many elapsed transaction ids are remembered to tell "expired" from "unknown".
EXPIRED_MEMORY = 32


class CancellationError(Exception):
    """Raised for cancellation operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class CancellationExpiredError(CancellationError):
    """The cancellation window for this transaction has closed."""


class CancellationNotFoundError(CancellationExpiredError):
    """No cancellable transaction with this id (never registered, superseded, or dismissed)."""


class ThreadingScheduler:
    """Runs callbacks after a delay on daemon timer threads."""

    def call_later(self, delay_seconds: float, callback: Callable[[], None]):
        timer = threading.Timer(max(0.0, delay_seconds), callback)
        timer.daemon = True
        timer.start()
        return timer


@dataclass
class PendingCancellation:
    transaction_id: str
    transaction_number: str
    product_summary: str
    quantity: int
    total_cents: int
    registered_at: datetime
    expires_at: datetime
    # item_id -> storage qty actually removed at checkout
    deductions: dict[int, float] = field(default_factory=dict)
    partial: bool = False

    def seconds_remaining(self, now: datetime) -> int:
        return max(0, math.floor((self.expires_at - now).total_seconds()))

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def to_dict(self, now: datetime | None = None) -> dict:
        return {
            "transaction_id": self.transaction_id,
            "transaction_number": self.transaction_number,
            "product_summary": self.product_summary,
            "quantity": self.quantity,
            "total_cents": self.total_cents,
            "registered_at": to_utc_z(self.registered_at),
            "expires_at": to_utc_z(self.expires_at),
            "seconds_remaining": self.seconds_remaining(now or utcnow()),
            "partial": self.partial,
        }


@dataclass
class CancellationResult:
    transaction_id: str
    transaction_number: str
    cancelled_at: datetime
    sales: list
    restored: list[inventory_service.StockChange]
    failed_items: list[dict]

    @property
    def is_partial(self) -> bool:
        return bool(self.failed_items)

    def to_dict(self) -> dict:
        return {
            "transaction_id": self.transaction_id,
            "transaction_number": self.transaction_number,
            "cancelled_at": to_utc_z(self.cancelled_at),
            "sales": [sale.to_dict() for sale in self.sales],
            "restored": [change.to_dict() for change in self.restored],
            "failed_items": self.failed_items,
        }


class CancellationWindow:
    """
    Explicitly owned single-slot register of the latest committed sale.

    sink: where SaleCommitted / SaleCancelled are emitted (None = no events).
    clock: returns "now" as a UTC-naive datetime.
    scheduler: object with call_later(delay_seconds, callback) returning a
    handle with cancel().
    """

    def __init__(
        self,
        sink: NotificationSink | None = None,
        *,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], datetime] = utcnow,
        scheduler=None,
        logger=None,
    ):
        self.sink = sink
        self.window = timedelta(seconds=window_seconds)
        self.clock = clock
        self.scheduler = scheduler or ThreadingScheduler()
        self.logger = logger

        self._lock = threading.RLock()
        self._pending: PendingCancellation | None = None
        self._timer = None
        self._expired: deque[str] = deque(maxlen=EXPIRED_MEMORY)

    # -- registration ---------------------------------------------------------

    def register(self, result: CheckoutResult) -> PendingCancellation:
        """Hold `result` as the cancellable transaction, superseding any previous one."""
        now = self.clock()
        entry = PendingCancellation(
            transaction_id=result.transaction_id,
            transaction_number=result.transaction_number,
            product_summary=result.product_summary,
            quantity=result.quantity,
            total_cents=result.total_cents,
            registered_at=now,
            expires_at=now + self.window,
            deductions=result.applied_deductions(),
            partial=result.is_partial,
        )

        with self._lock:
            superseded = self._pending
            self._clear_slot()
            self._pending = entry
            self._timer = self.scheduler.call_later(
                self.window.total_seconds(),
                lambda: self._expire(entry.transaction_id),
            )

        if superseded is not None:
            self._log("info", "Cancellation window for %s superseded by %s",
                      superseded.transaction_number, entry.transaction_number)

        self._emit(SaleCommitted(
            transaction_id=entry.transaction_id,
            transaction_number=entry.transaction_number,
            product_summary=entry.product_summary,
            quantity=entry.quantity,
            total_cents=entry.total_cents,
            expires_at=entry.expires_at,
            partial=entry.partial,
        ))
        return entry

    def pending(self) -> PendingCancellation | None:
        """The cancellable entry, or None once its time has passed."""
        with self._lock:
            entry = self._pending
        if entry is None or entry.is_expired(self.clock()):
            return None
        return entry

    def dismiss(self, transaction_id: str) -> bool:
        """Drop the entry without cancelling the sale (user closed the banner)."""
        with self._lock:
            if self._pending is None or self._pending.transaction_id != transaction_id:
                return False
            self._clear_slot()
            return True

    # -- cancellation ---------------------------------------------------------

    def cancel(self, transaction_id: str) -> CancellationResult:
        """Void the transaction and restore its stock. Requires an app context."""
        with self._lock:
            entry = self._pending
            if entry is None or entry.transaction_id != transaction_id:
                if transaction_id in self._expired:
                    raise CancellationExpiredError(
                        "Sale cannot be cancelled - time expired",
                        details={"transaction_id": transaction_id},
                    )
                raise CancellationNotFoundError(
                    "No cancellable sale with this transaction id",
                    details={"transaction_id": transaction_id},
                )

            now = self.clock()
            if entry.is_expired(now):
                self._clear_slot()
                self._expired.append(transaction_id)
                raise CancellationExpiredError(
                    "Sale cannot be cancelled - time expired",
                    details={"transaction_id": transaction_id, "expires_at": to_utc_z(entry.expires_at)},
                )

            # Claim the slot so the timer or a second cancel cannot act on it.
            self._clear_slot()

        try:
            sales = sales_service.mark_transaction_cancelled(transaction_id, now)
        except (PersistenceError, sales_service.SaleError):
            self._reinstate(entry)
            raise

        restored = []
        failed_items = []
        for item_id in sorted(entry.deductions):
            try:
                restored.append(inventory_service.restore_stock(item_id, entry.deductions[item_id]))
            except PersistenceError as exc:
                self._log("warning", "Stock restore failed for item %s in %s: %s",
                          item_id, entry.transaction_number, exc)
                failed_items.append({
                    "item_id": item_id,
                    "storage_qty": entry.deductions[item_id],
                    "error": str(exc),
                })

        result = CancellationResult(
            transaction_id=transaction_id,
            transaction_number=entry.transaction_number,
            cancelled_at=now,
            sales=sales,
            restored=restored,
            failed_items=failed_items,
        )

        self._emit(SaleCancelled(
            transaction_id=transaction_id,
            transaction_number=entry.transaction_number,
            cancelled_at=now,
            restored_item_ids=tuple(change.item_id for change in restored),
            failed_item_ids=tuple(item["item_id"] for item in failed_items),
        ))
        self._log("info", "Transaction %s cancelled", entry.transaction_number)
        return result

    # -- internals ------------------------------------------------------------

    def _expire(self, transaction_id: str) -> None:
        with self._lock:
            if self._pending is None or self._pending.transaction_id != transaction_id:
                return
            self._pending = None
            self._timer = None
            self._expired.append(transaction_id)
        self._log("debug", "Cancellation window for %s expired", transaction_id)

    def _clear_slot(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._pending = None

    def _reinstate(self, entry: PendingCancellation) -> None:
        """Put an entry back after a failed void, unless something newer took the slot."""
        with self._lock:
            if self._pending is not None:
                return
            remaining = (entry.expires_at - self.clock()).total_seconds()
            if remaining <= 0:
                self._expired.append(entry.transaction_id)
                return
            self._pending = entry
            self._timer = self.scheduler.call_later(remaining, lambda: self._expire(entry.transaction_id))

    def _emit(self, event) -> None:
        if self.sink is not None:
            self.sink.emit(event)

    def _log(self, level: str, message: str, *args) -> None:
        if self.logger is not None:
            getattr(self.logger, level)(message, *args)


def init_app(app: Flask, sink: NotificationSink | None = None) -> CancellationWindow:
    window = CancellationWindow(
        sink,
        window_seconds=app.config.get("CANCEL_WINDOW_SECONDS", DEFAULT_WINDOW_SECONDS),
        logger=app.logger,
    )
    app.extensions["pastil.cancellation_window"] = window
    return window


def get_cancellation_window() -> CancellationWindow:
    return current_app.extensions["pastil.cancellation_window"]
