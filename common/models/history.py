"""History entry model."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from common.models.config import TestConfig
from common.models.result import RunResult


class HistoryEntry(BaseModel):
    """A finished run kept in history.

    ``stats`` is always a compacted result: aggregates and time series only,
    no per-request outcomes.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique entry identifier")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    config: TestConfig

    # Summary for list display
    total_time_secs: float = 0
    requests_per_second: float = 0
    avg_response_ms: float = 0
    successful_requests: int = 0
    failed_requests: int = 0

    stats: RunResult

    @classmethod
    def from_result(cls, entry_id: str, result: RunResult, config: TestConfig) -> "HistoryEntry":
        """Build an entry from a run result, dropping per-request detail."""
        return cls(
            id=entry_id,
            config=config,
            total_time_secs=result.total_time_secs,
            requests_per_second=result.requests_per_second,
            avg_response_ms=result.avg_response_time_ms,
            successful_requests=result.successful_requests,
            failed_requests=result.failed_requests,
            stats=result.compacted(),
        )

    @property
    def url(self) -> str:
        return self.config.url

    @property
    def success_rate(self):
        return self.stats.success_rate
