"""Pytest configuration and shared fixtures."""

import asyncio
import tempfile
import shutil
from pathlib import Path
from typing import Any, Generator, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from common.messaging.events import Event, EventType
from common.messaging.redis_client import RedisClient
from common.models.config import TestConfig
from common.models.result import (
    ErrorLogEntry,
    ErrorType,
    HistogramBucket,
    LatencyPercentiles,
    LatencyPoint,
    RequestOutcome,
    RunResult,
    StatusCodeCount,
    ThroughputPoint,
)
from controller.core.engine import LoadTestEngine
from controller.core.run_state import RunStateMachine
from controller.storage.history import HistoryLedger
from controller.storage.key_value import KeyValueStore


class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed store."""

    def __init__(self, data: Optional[dict] = None):
        self.data: dict[str, Any] = dict(data or {})
        self.saves = 0

    async def load(self, key: str) -> Optional[Any]:
        return self.data.get(key)

    async def save(self, key: str, value: Any) -> None:
        self.saves += 1
        self.data[key] = value


class FailingKeyValueStore(KeyValueStore):
    """Store whose every call fails."""

    async def load(self, key: str) -> Optional[Any]:
        raise OSError("disk unavailable")

    async def save(self, key: str, value: Any) -> None:
        raise OSError("disk unavailable")


class FakeEngine(LoadTestEngine):
    """Engine double driven by the test.

    ``execute_run`` blocks until ``finish()`` or ``fail()`` is called, unless
    ``auto_result`` is set.
    """

    def __init__(self, auto_result: Optional[RunResult] = None, cpus: int = 8):
        super().__init__()
        self.auto_result = auto_result
        self.cpus = cpus
        self.configs: list[TestConfig] = []
        self.futures: list[asyncio.Future] = []
        self.cancel_requests = 0
        self.cancel_error: Optional[Exception] = None
        self.cpu_error: Optional[Exception] = None

    async def execute_run(self, config: TestConfig) -> RunResult:
        self.configs.append(config)
        if self.auto_result is not None:
            return self.auto_result
        future = asyncio.get_running_loop().create_future()
        self.futures.append(future)
        return await future

    async def request_cancel(self) -> None:
        self.cancel_requests += 1
        if self.cancel_error is not None:
            raise self.cancel_error

    async def query_available_parallelism(self) -> int:
        if self.cpu_error is not None:
            raise self.cpu_error
        return self.cpus

    def finish(self, result: RunResult, index: int = -1) -> None:
        self.futures[index].set_result(result)

    def fail(self, error: Exception, index: int = -1) -> None:
        self.futures[index].set_exception(error)

    def emit_progress(self, snapshot) -> None:
        self._emit_progress(snapshot)

    def emit_cancelled(self) -> None:
        self._emit_cancelled()


class ManualTimer:
    def __init__(self, when: float, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler with a clock that only moves when advanced."""

    def __init__(self, start: float = 0.0):
        self.time = start
        self.timers: list[ManualTimer] = []

    def now(self) -> float:
        return self.time

    def call_later(self, delay: float, callback) -> ManualTimer:
        timer = ManualTimer(self.time + max(0.0, delay), callback)
        self.timers.append(timer)
        return timer

    @property
    def active_timers(self) -> list[ManualTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due timers in order."""
        target = self.time + seconds
        while True:
            due = sorted(
                (t for t in self.active_timers if t.when <= target),
                key=lambda t: t.when,
            )
            if not due:
                break
            timer = due[0]
            self.time = timer.when
            timer.fired = True
            timer.callback()
        self.time = target


async def settle(rounds: int = 5) -> None:
    """Let scheduled tasks run up to their next await."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def memory_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def failing_store() -> FailingKeyValueStore:
    return FailingKeyValueStore()


@pytest.fixture
def ledger(memory_store) -> HistoryLedger:
    """History ledger over an in-memory store."""
    return HistoryLedger(memory_store)


@pytest.fixture
def run_state() -> RunStateMachine:
    return RunStateMachine()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def mock_redis_client() -> MagicMock:
    """Create a mock Redis client."""
    mock = MagicMock(spec=RedisClient)
    mock.client_id = "console"
    mock.console_channel = "zoyla:console:console"
    mock.publish = AsyncMock(return_value=1)
    mock.publish_to_engine = AsyncMock(return_value=1)
    mock.connect = AsyncMock()
    mock.disconnect = AsyncMock()
    mock.subscribe = AsyncMock()
    mock.start_listening = AsyncMock()
    return mock


@pytest.fixture
def sample_config() -> TestConfig:
    """Sample test configuration."""
    return TestConfig(
        url="https://api.example.com/items",
        num_requests=10,
        concurrency=5,
    )


def engine_event(event_type: EventType, request_id: Optional[str] = None, **payload: Any) -> Event:
    """An event as the engine worker sends it to the console."""
    return Event(
        type=event_type,
        source="engine",
        target="console",
        request_id=request_id,
        payload=payload,
    )


def make_result(total: int = 10, failed: int = 1) -> RunResult:
    """Build a small but complete run result."""
    outcomes = []
    for i in range(total):
        ok = i >= failed
        outcomes.append(RequestOutcome(
            status=200 if ok else 503,
            duration_ms=10.0 + i,
            success=ok,
            error=None if ok else "Service Unavailable",
            error_type=ErrorType.NONE if ok else ErrorType.RESPONSE,
            timestamp_ms=i * 5.0,
        ))

    return RunResult(
        total_requests=total,
        successful_requests=total - failed,
        failed_requests=failed,
        total_time_secs=0.5,
        avg_response_time_ms=14.5,
        min_response_time_ms=10.0,
        max_response_time_ms=10.0 + total - 1,
        requests_per_second=total / 0.5,
        histogram=[
            HistogramBucket(min_ms=10, max_ms=15, count=total // 2),
            HistogramBucket(min_ms=15, max_ms=20, count=total - total // 2),
        ],
        percentiles=LatencyPercentiles(p10=10, p25=12, p50=14, p75=16, p90=18, p95=19, p99=19),
        status_codes=[
            StatusCodeCount(code=200, count=total - failed),
            StatusCodeCount(code=503, count=failed),
        ],
        results=outcomes,
        throughput_over_time=[
            ThroughputPoint(time_secs=0.25, requests_completed=total // 2, rps=total),
            ThroughputPoint(time_secs=0.5, requests_completed=total, rps=total),
        ],
        latency_over_time=[
            LatencyPoint(request_num=i + 1, latency_ms=o.duration_ms, timestamp_ms=o.timestamp_ms)
            for i, o in enumerate(outcomes)
        ],
        error_logs=[
            ErrorLogEntry(
                timestamp_ms=0,
                status=503,
                error="Service Unavailable",
                error_type=ErrorType.RESPONSE,
                duration_ms=10.0,
            )
            for _ in range(failed)
        ],
    )


@pytest.fixture
def sample_result() -> RunResult:
    """Sample run result with one failed request."""
    return make_result()


@pytest.fixture
def clean_result() -> RunResult:
    """Sample run result without failures."""
    return make_result(failed=0)
