"""Run lifecycle models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from common.models.progress import ProgressSnapshot
from common.models.result import RunResult


class RunStatus(str, Enum):
    """Lifecycle states of the current run."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERRORED = "errored"


# A new run may start from any of these
STARTABLE_STATUSES = frozenset({
    RunStatus.IDLE,
    RunStatus.COMPLETED,
    RunStatus.CANCELLED,
    RunStatus.ERRORED,
})


class RunSnapshot(BaseModel):
    """Read model of the run state shown to the UI."""
    status: RunStatus = Field(default=RunStatus.IDLE)
    run_id: Optional[str] = None
    started_at: Optional[datetime] = None
    progress: Optional[ProgressSnapshot] = None
    result: Optional[RunResult] = None
    error: Optional[str] = None
