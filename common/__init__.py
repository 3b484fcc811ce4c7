"""Common utilities and models shared by the controller and engine adapters."""

from common.models.config import TestConfig, HttpMethod
from common.models.progress import ProgressSnapshot
from common.models.result import RunResult
from common.models.run import RunStatus, RunSnapshot
from common.models.history import HistoryEntry

__all__ = [
    "TestConfig",
    "HttpMethod",
    "ProgressSnapshot",
    "RunResult",
    "RunStatus",
    "RunSnapshot",
    "HistoryEntry",
]
