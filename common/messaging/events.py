"""Event definitions for messaging between the controller and the engine."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Types of events in the system."""

    # Engine event stream
    PROGRESS = "load-test-progress"
    CANCELLED = "load-test-cancelled"

    # Run control
    RUN_START = "run.start"
    RUN_CANCEL = "run.cancel"
    RUN_COMPLETED = "run.completed"
    RUN_FAILED = "run.failed"

    # System queries
    CPU_QUERY = "system.cpus.query"
    CPU_REPLY = "system.cpus.reply"


class Event(BaseModel):
    """Base event structure for all messages."""

    type: EventType = Field(..., description="Event type")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    source: str = Field(..., description="Source identifier (client id or 'engine')")
    target: Optional[str] = Field(
        default=None,
        description="Target identifier (client id, 'engine', or None for broadcast)"
    )
    request_id: Optional[str] = Field(default=None)
    payload: dict[str, Any] = Field(default_factory=dict)

    def to_json(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "type": self.type.value,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source,
            "target": self.target,
            "request_id": self.request_id,
            "payload": self.payload,
        }

    @classmethod
    def from_json(cls, data: dict) -> "Event":
        """Create event from JSON dict."""
        return cls(
            type=EventType(data["type"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            source=data["source"],
            target=data.get("target"),
            request_id=data.get("request_id"),
            payload=data.get("payload", {}),
        )


# Convenience functions for creating common events

def create_run_start_event(client_id: str, request_id: str, config: dict) -> Event:
    """Create a run start command."""
    return Event(
        type=EventType.RUN_START,
        source=client_id,
        target="engine",
        request_id=request_id,
        payload={"config": config},
    )


def create_run_cancel_event(client_id: str) -> Event:
    """Create a run cancel command."""
    return Event(
        type=EventType.RUN_CANCEL,
        source=client_id,
        target="engine",
    )


def create_cpu_query_event(client_id: str, request_id: str) -> Event:
    """Create an available-parallelism query."""
    return Event(
        type=EventType.CPU_QUERY,
        source=client_id,
        target="engine",
        request_id=request_id,
    )

