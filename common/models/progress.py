"""Progress snapshot emitted by the engine while a run is in flight."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ProgressSnapshot(BaseModel):
    """Point-in-time counters for an in-progress run.

    Each snapshot supersedes the previous one; nothing is accumulated.
    """
    completed: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)
    successful: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    current_rps: float = Field(default=0)
    elapsed_secs: float = Field(default=0)
    latest_response_time_ms: float = Field(default=0)

    @property
    def is_terminal(self) -> bool:
        """True for the snapshot reporting the last request of the run."""
        return self.completed == self.total

    @property
    def percent(self) -> float:
        if self.total <= 0:
            return 0.0
        return min(100.0, self.completed * 100.0 / self.total)
