"""Orchestration of load test runs."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Callable, Optional

from common.models.config import ConfigValidationError, TestConfig
from common.models.progress import ProgressSnapshot
from common.models.recommendation import ConcurrencyRecommendation
from common.utils import format_duration
from controller.core import advisor
from controller.core.coalescer import ProgressCoalescer
from controller.core.engine import LoadTestEngine
from controller.core.run_state import InvalidTransitionError, RunStateMachine
from controller.core.scheduler import LoopScheduler, Scheduler
from controller.storage.history import HistoryLedger

logger = logging.getLogger(__name__)

DEFAULT_CPU_COUNT = 4


class RunOrchestrator:
    """Coordinates the engine, run state and history.

    This is the only place where the components meet, and the single
    active run rule is enforced here. The engine event subscription is
    opened once for the orchestrator's lifetime, not per run.
    """

    def __init__(
        self,
        engine: LoadTestEngine,
        state: RunStateMachine,
        ledger: HistoryLedger,
        progress_interval: float = 0.2,
        scheduler: Optional[Scheduler] = None,
        on_error_logs: Optional[Callable[[], None]] = None,
    ):
        self.engine = engine
        self.state = state
        self.ledger = ledger
        self.progress_interval = progress_interval
        self.scheduler = scheduler or LoopScheduler()
        self.on_error_logs = on_error_logs
        self.coalescer: Optional[ProgressCoalescer] = None
        self._unlisten: Optional[Callable[[], None]] = None

    @property
    def can_start(self) -> bool:
        return self.state.can_start

    async def open(self) -> None:
        """Subscribe to engine events."""
        if self._unlisten is not None:
            return

        self.coalescer = ProgressCoalescer(
            deliver=self.state.set_progress,
            scheduler=self.scheduler,
            interval=self.progress_interval,
        )
        self._unlisten = self.engine.listen(self._on_progress, self._on_cancelled)
        logger.info("Subscribed to engine events")

    async def close(self) -> None:
        """Drop the engine subscription and any pending progress delivery."""
        if self.coalescer is not None:
            self.coalescer.close()
        if self._unlisten is not None:
            self._unlisten()
            self._unlisten = None
            logger.info("Unsubscribed from engine events")

    async def __aenter__(self) -> "RunOrchestrator":
        await self.open()
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    def check_config(self, config: TestConfig) -> Optional[str]:
        """Validate a config, showing the message as the current error."""
        try:
            config.validate_target()
        except ConfigValidationError as e:
            message = str(e)
            logger.warning(f"Invalid configuration: {message}")
            self.state.set_error(message)
            return message
        return None

    async def start(self, config: TestConfig) -> bool:
        """Run a load test. Returns False when the run was not started."""
        if not self.state.can_start:
            logger.info("Run already in progress, ignoring start request")
            return False

        if self.check_config(config) is not None:
            return False

        run_id = self.begin_run(config)
        await self.run(run_id, config)
        return True

    def begin_run(self, config: TestConfig) -> str:
        """Claim the run slot and enter running. Returns the run id.

        Does not await, so a caller that checked ``can_start`` in the same
        step cannot lose the slot to another request.
        """
        if not self.state.can_start:
            raise InvalidTransitionError(f"Cannot start a run while {self.state.status.value}")

        self.state.clear_results()
        self.ledger.select(None)
        run_id = self.state.begin()
        if self.coalescer is not None:
            self.coalescer.reset()

        logger.info(
            f"Starting run {run_id}: {config.method.value} {config.url} "
            f"({config.num_requests} requests, concurrency {config.concurrency})"
        )
        return run_id

    async def run(self, run_id: str, config: TestConfig) -> None:
        """Execute a claimed run on the engine and apply its outcome.

        Engine failures end in the errored state and are not raised.
        """
        if self._unlisten is None:
            await self.open()

        try:
            result = await self.engine.execute_run(config)
        except asyncio.CancelledError:
            self.state.fail(run_id, "Run interrupted")
            raise
        except Exception as e:
            error_message = str(e) or e.__class__.__name__
            logger.error(f"Run failed: {run_id}: {error_message}", exc_info=True)
            self.state.fail(run_id, error_message)
            return
        finally:
            if not self.state.is_running:
                self.coalescer.reset()

        if not self.state.complete(run_id, result):
            # A cancellation was acknowledged first
            return

        self.coalescer.reset()
        logger.info(
            f"Run {run_id} finished in {format_duration(result.total_time_secs)}: "
            f"{result.successful_requests} ok, {result.failed_requests} failed"
        )

        await self.ledger.record(result, config)

        if result.error_logs and self.on_error_logs is not None:
            self.on_error_logs()

    async def cancel(self) -> None:
        """Ask the engine to cancel. State changes on the acknowledgement."""
        try:
            await self.engine.request_cancel()
        except Exception as e:
            # The run may already have finished
            logger.debug(f"Cancel request failed: {e}")

    async def resolve_cpu_count(self) -> int:
        cpus = os.cpu_count()
        if cpus:
            return cpus

        try:
            cpus = await self.engine.query_available_parallelism()
        except Exception as e:
            logger.warning(f"Could not query engine parallelism: {e}")
            return DEFAULT_CPU_COUNT

        return cpus if cpus and cpus > 0 else DEFAULT_CPU_COUNT

    async def recommend(self, config: TestConfig) -> ConcurrencyRecommendation:
        """Concurrency recommendation for a config."""
        cpu_cores = await self.resolve_cpu_count()
        return advisor.recommend(
            cpu_cores=cpu_cores,
            use_http2=config.use_http2,
            disable_keep_alive=config.disable_keep_alive,
            target_url=config.url,
            past_success_rate=self.ledger.success_rate_for(config.url),
        )

    async def concurrency_warnings(self, config: TestConfig) -> list[str]:
        recommendation = await self.recommend(config)
        return advisor.warnings_for(config.concurrency, recommendation)

    def _on_progress(self, snapshot: ProgressSnapshot) -> None:
        if not self.state.is_running or self.coalescer is None:
            return
        self.coalescer.push(snapshot)

    def _on_cancelled(self) -> None:
        if self.state.cancel() and self.coalescer is not None:
            self.coalescer.reset()
