"""Rate limiting of progress updates."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional

from common.models.progress import ProgressSnapshot
from controller.core.scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)


class CoalescerState(str, Enum):
    """Deferred delivery state."""
    IDLE = "idle"
    PENDING = "pending"


class ProgressCoalescer:
    """Republish progress snapshots at a bounded rate.

    A snapshot is delivered at once when it is terminal or when at least
    ``interval`` has passed since the previous delivery. Otherwise it is kept
    as the pending snapshot, replacing any older one, and a single deferred
    delivery is scheduled for the rest of the interval. The terminal snapshot
    is delivered once and is the last delivery until ``reset()``.
    """

    def __init__(
        self,
        deliver: Callable[[ProgressSnapshot], None],
        scheduler: Scheduler,
        interval: float = 0.2,
    ):
        self._deliver = deliver
        self._scheduler = scheduler
        self.interval = interval

        self.state = CoalescerState.IDLE
        self.deadline: Optional[float] = None
        self._pending: Optional[ProgressSnapshot] = None
        self._timer: Optional[TimerHandle] = None
        self._last_delivered_at: Optional[float] = None
        self._terminal_delivered = False
        self._closed = False

    @property
    def pending(self) -> Optional[ProgressSnapshot]:
        return self._pending

    def push(self, snapshot: ProgressSnapshot) -> None:
        """Receive a snapshot from the engine."""
        if self._closed or self._terminal_delivered:
            return

        now = self._scheduler.now()
        due = (
            self._last_delivered_at is None
            or now - self._last_delivered_at >= self.interval
        )

        if snapshot.is_terminal or due:
            self._cancel_pending()
            self._emit(snapshot, now)
            return

        self._pending = snapshot
        if self.state == CoalescerState.IDLE:
            remaining = self.interval - (now - self._last_delivered_at)
            self.state = CoalescerState.PENDING
            self.deadline = now + remaining
            self._timer = self._scheduler.call_later(remaining, self._flush)

    def reset(self) -> None:
        """Forget the previous run: drop pending delivery and timing."""
        self._cancel_pending()
        self._last_delivered_at = None
        self._terminal_delivered = False

    def close(self) -> None:
        """Stop delivering; any pending snapshot is dropped."""
        self._cancel_pending()
        self._closed = True

    def _flush(self) -> None:
        self._timer = None
        self.state = CoalescerState.IDLE
        self.deadline = None

        snapshot = self._pending
        self._pending = None
        if snapshot is None or self._closed:
            return
        self._emit(snapshot, self._scheduler.now())

    def _emit(self, snapshot: ProgressSnapshot, now: float) -> None:
        self._last_delivered_at = now
        if snapshot.is_terminal:
            self._terminal_delivered = True
        try:
            self._deliver(snapshot)
        except Exception as e:
            logger.error(f"Progress delivery failed: {e}", exc_info=True)

    def _cancel_pending(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending = None
        self.state = CoalescerState.IDLE
        self.deadline = None
