"""Lifecycle state of the current run."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from common.models.progress import ProgressSnapshot
from common.models.result import RunResult
from common.models.run import RunSnapshot, RunStatus, STARTABLE_STATUSES
from common.utils import generate_run_id

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Test cancelled by user."


class InvalidTransitionError(RuntimeError):
    """Raised on a lifecycle transition that is not allowed."""


class RunStateMachine:
    """Holds the run status, latest progress, result and error.

    Transitions: idle -> running -> completed | cancelled | errored, and
    from any finished state back to running. Terminal transitions only apply
    while running, so a second terminal signal for a run is ignored.
    """

    def __init__(self):
        self.status = RunStatus.IDLE
        self.run_id: Optional[str] = None
        self.started_at: Optional[datetime] = None
        self.progress: Optional[ProgressSnapshot] = None
        self.result: Optional[RunResult] = None
        self.error: Optional[str] = None
        self._listeners: list[Callable[[RunSnapshot], None]] = []

    @property
    def is_running(self) -> bool:
        return self.status == RunStatus.RUNNING

    @property
    def can_start(self) -> bool:
        return self.status in STARTABLE_STATUSES

    def is_current(self, run_id: str) -> bool:
        """Check that ``run_id`` is the run in flight."""
        return self.is_running and self.run_id == run_id

    def subscribe(self, listener: Callable[[RunSnapshot], None]) -> Callable[[], None]:
        """Register a listener called after every change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self) -> RunSnapshot:
        return RunSnapshot(
            status=self.status,
            run_id=self.run_id,
            started_at=self.started_at,
            progress=self.progress,
            result=self.result,
            error=self.error,
        )

    def begin(self) -> str:
        """Enter running with a fresh start time. Returns the new run id."""
        if not self.can_start:
            raise InvalidTransitionError(f"Cannot start a run while {self.status.value}")

        self.status = RunStatus.RUNNING
        self.run_id = generate_run_id()
        self.started_at = datetime.utcnow()
        logger.info(f"Run started: {self.run_id}")
        self._notify()
        return self.run_id

    def set_progress(self, progress: Optional[ProgressSnapshot]) -> None:
        """Replace the progress snapshot. Ignored unless running."""
        if not self.is_running:
            return
        self.progress = progress
        self._notify()

    def complete(self, run_id: str, result: RunResult) -> bool:
        if not self.is_current(run_id):
            logger.info(f"Ignoring result for inactive run: {run_id}")
            return False

        self.status = RunStatus.COMPLETED
        self.result = result
        self.progress = None
        logger.info(f"Run completed: {run_id}")
        self._notify()
        return True

    def fail(self, run_id: str, message: str) -> bool:
        if not self.is_current(run_id):
            logger.info(f"Ignoring failure for inactive run: {run_id}: {message}")
            return False

        self.status = RunStatus.ERRORED
        self.error = message
        self.progress = None
        logger.info(f"Run failed: {run_id}: {message}")
        self._notify()
        return True

    def cancel(self) -> bool:
        """Apply a cancellation acknowledgement to the run in flight."""
        if not self.is_running:
            logger.info("Ignoring cancellation: no run in progress")
            return False

        self.status = RunStatus.CANCELLED
        self.error = CANCELLED_MESSAGE
        self.progress = None
        logger.info(f"Run cancelled: {self.run_id}")
        self._notify()
        return True

    def set_error(self, message: Optional[str]) -> None:
        """Show an error without changing the status."""
        self.error = message
        self._notify()

    def clear_results(self) -> None:
        """Drop progress, result, error and start time together."""
        self.progress = None
        self.started_at = None
        self.result = None
        self.error = None
        self._notify()

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Run state listener error: {e}", exc_info=True)
