"""Result models returned by the engine for a finished run."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ErrorType(str, Enum):
    """Classification of a failed request."""
    NONE = "None"
    TIMEOUT = "Timeout"
    CONNECTION = "Connection"
    REQUEST = "Request"
    RESPONSE = "Response"
    REDIRECT = "Redirect"
    OTHER = "Other"


class RequestOutcome(BaseModel):
    """Result of a single HTTP request."""
    status: int = 0
    duration_ms: float = 0
    success: bool = False
    error: Optional[str] = None
    error_type: ErrorType = ErrorType.NONE
    timestamp_ms: float = 0


class HistogramBucket(BaseModel):
    min_ms: float
    max_ms: float
    count: int


class LatencyPercentiles(BaseModel):
    p10: float = 0
    p25: float = 0
    p50: float = 0
    p75: float = 0
    p90: float = 0
    p95: float = 0
    p99: float = 0


class StatusCodeCount(BaseModel):
    code: int
    count: int


class ThroughputPoint(BaseModel):
    time_secs: float
    requests_completed: int
    rps: float


class LatencyPoint(BaseModel):
    request_num: int
    latency_ms: float
    timestamp_ms: float


class ConcurrencyPoint(BaseModel):
    time_secs: float
    concurrent_requests: int


class TimelinePoint(BaseModel):
    time_secs: float
    request_index: int


class ErrorLogEntry(BaseModel):
    """Log line for a failed request."""
    timestamp_ms: float
    status: int
    error: str
    error_type: ErrorType = ErrorType.OTHER
    duration_ms: float = 0


class RunResult(BaseModel):
    """Complete statistics for a finished run.

    ``results`` holds one entry per request and can be very large; history
    keeps a compacted copy without it.
    """
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_time_secs: float = 0
    avg_response_time_ms: float = 0
    min_response_time_ms: float = 0
    max_response_time_ms: float = 0
    requests_per_second: float = 0

    histogram: list[HistogramBucket] = Field(default_factory=list)
    percentiles: LatencyPercentiles = Field(default_factory=LatencyPercentiles)
    status_codes: list[StatusCodeCount] = Field(default_factory=list)
    results: list[RequestOutcome] = Field(default_factory=list)
    throughput_over_time: list[ThroughputPoint] = Field(default_factory=list)
    latency_over_time: list[LatencyPoint] = Field(default_factory=list)
    error_logs: list[ErrorLogEntry] = Field(default_factory=list)
    concurrency_over_time: list[ConcurrencyPoint] = Field(default_factory=list)
    request_timeline: list[TimelinePoint] = Field(default_factory=list)

    @property
    def success_rate(self) -> Optional[float]:
        """Percentage of successful requests, None when nothing completed."""
        total = self.successful_requests + self.failed_requests
        if total <= 0:
            return None
        return self.successful_requests * 100.0 / total

    def compacted(self) -> "RunResult":
        """Copy without per-request outcomes; aggregates are kept as-is."""
        return self.model_copy(update={"results": []}, deep=True)
