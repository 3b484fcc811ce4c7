"""Interface to the external load test engine."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from common.messaging.events import (
    Event,
    EventType,
    create_cpu_query_event,
    create_run_cancel_event,
    create_run_start_event,
)
from common.messaging.redis_client import RedisClient
from common.models.config import TestConfig
from common.models.progress import ProgressSnapshot
from common.models.result import RunResult
from common.utils import generate_id

logger = logging.getLogger(__name__)

ProgressHandler = Callable[[ProgressSnapshot], None]
CancelHandler = Callable[[], None]


class EngineError(Exception):
    """Failure reported by the engine for a run or query."""


class LoadTestEngine(ABC):
    """Narrow interface to the request-dispatch engine.

    Besides the calls below, the engine pushes two kinds of events to
    listeners: progress snapshots and a payload-less cancellation
    acknowledgement.
    """

    def __init__(self):
        self._progress_handlers: list[ProgressHandler] = []
        self._cancel_handlers: list[CancelHandler] = []

    @abstractmethod
    async def execute_run(self, config: TestConfig) -> RunResult:
        """Run a load test to completion."""

    @abstractmethod
    async def request_cancel(self) -> None:
        """Ask the engine to stop the current run. Best effort."""

    @abstractmethod
    async def query_available_parallelism(self) -> int:
        """Number of CPUs available to the engine."""

    def listen(self, on_progress: ProgressHandler, on_cancelled: CancelHandler) -> Callable[[], None]:
        """Register event handlers. Returns a function removing them."""
        self._progress_handlers.append(on_progress)
        self._cancel_handlers.append(on_cancelled)

        def unlisten() -> None:
            if on_progress in self._progress_handlers:
                self._progress_handlers.remove(on_progress)
            if on_cancelled in self._cancel_handlers:
                self._cancel_handlers.remove(on_cancelled)

        return unlisten

    def _emit_progress(self, snapshot: ProgressSnapshot) -> None:
        for handler in list(self._progress_handlers):
            handler(snapshot)

    def _emit_cancelled(self) -> None:
        for handler in list(self._cancel_handlers):
            handler()


class RedisEngine(LoadTestEngine):
    """Engine proxy talking to a remote engine worker over Redis pub/sub.

    Commands are published on the engine channel; the worker answers on this
    client's console channel. Replies carry the request id of the command
    they answer.
    """

    def __init__(
        self,
        redis_client: RedisClient,
        query_timeout: float = 5.0,
        run_timeout: Optional[float] = None,
    ):
        super().__init__()
        self.redis_client = redis_client
        self.query_timeout = query_timeout
        # None or 0 waits for the engine's reply indefinitely
        self.run_timeout = run_timeout or None
        self._pending: dict[str, asyncio.Future] = {}
        self._connected = False

    async def connect(self) -> None:
        """Connect and start receiving engine events."""
        if self._connected:
            return

        await self.redis_client.connect()
        for event_type, handler in self._event_handlers().items():
            self.redis_client.on_event(event_type, handler)
        await self.redis_client.subscribe(self.redis_client.console_channel)
        await self.redis_client.start_listening()
        self._connected = True
        logger.info(f"Engine proxy listening on {self.redis_client.console_channel}")

    async def disconnect(self) -> None:
        """Stop receiving events and fail outstanding requests."""
        self._fail_pending(EngineError("Engine connection closed"))

        if self._connected:
            for event_type, handler in self._event_handlers().items():
                self.redis_client.off_event(event_type, handler)
            await self.redis_client.disconnect()
            self._connected = False

    async def execute_run(self, config: TestConfig) -> RunResult:
        request_id = generate_id("req")
        future = self._register(request_id)
        try:
            event = create_run_start_event(
                self.redis_client.client_id,
                request_id,
                config.to_engine_payload(),
            )
            await self._send(event)
            logger.info(f"Run requested from engine: {request_id} ({config.url})")
            try:
                payload = await asyncio.wait_for(future, timeout=self.run_timeout)
            except asyncio.TimeoutError:
                raise EngineError(f"Engine did not finish the run within {self.run_timeout:g}s")
        finally:
            self._pending.pop(request_id, None)

        return RunResult.model_validate(payload)

    async def request_cancel(self) -> None:
        """Ask the engine to cancel.

        With no engine left to acknowledge, outstanding runs fail at once so
        the controller is free to start again.
        """
        event = create_run_cancel_event(self.redis_client.client_id)
        try:
            await self._send(event)
        except EngineError as e:
            self._fail_pending(e)
            raise
        logger.info("Cancellation requested from engine")

    async def query_available_parallelism(self) -> int:
        request_id = generate_id("req")
        future = self._register(request_id)
        try:
            event = create_cpu_query_event(self.redis_client.client_id, request_id)
            await self._send(event)
            payload = await asyncio.wait_for(future, timeout=self.query_timeout)
        finally:
            self._pending.pop(request_id, None)

        return int(payload)

    async def _send(self, event: Event) -> None:
        receivers = await self.redis_client.publish_to_engine(event)
        if not receivers:
            logger.warning(f"No engine subscribed for {event.type.value}")
            raise EngineError("No load test engine is listening")

    def _fail_pending(self, error: EngineError) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        self._pending.clear()

    def _event_handlers(self) -> dict[EventType, Callable[[Event], None]]:
        return {
            EventType.PROGRESS: self._on_progress,
            EventType.CANCELLED: self._on_cancelled,
            EventType.RUN_COMPLETED: self._on_run_completed,
            EventType.RUN_FAILED: self._on_run_failed,
            EventType.CPU_REPLY: self._on_cpu_reply,
        }

    def _register(self, request_id: str) -> asyncio.Future:
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        return future

    def _resolve(self, event: Event, value=None, error: Optional[Exception] = None) -> None:
        future = self._pending.get(event.request_id or "")
        if future is None or future.done():
            logger.debug(f"No pending request for {event.type.value}: {event.request_id}")
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(value)

    def _on_progress(self, event: Event) -> None:
        self._emit_progress(ProgressSnapshot.model_validate(event.payload))

    def _on_cancelled(self, event: Event) -> None:
        self._emit_cancelled()

    def _on_run_completed(self, event: Event) -> None:
        self._resolve(event, value=event.payload.get("result", {}))

    def _on_run_failed(self, event: Event) -> None:
        message = event.payload.get("error") or "Engine reported an unknown error"
        self._resolve(event, error=EngineError(message))

    def _on_cpu_reply(self, event: Event) -> None:
        self._resolve(event, value=event.payload.get("cpus", 0))
