"""Common data models for the load test controller."""

from common.models.config import (
    TestConfig,
    HttpMethod,
    CustomHeader,
    FormField,
    ConfigValidationError,
    validate_target_url,
)
from common.models.progress import ProgressSnapshot
from common.models.result import RunResult, RequestOutcome, ErrorLogEntry, ErrorType
from common.models.run import RunStatus, RunSnapshot
from common.models.history import HistoryEntry
from common.models.recommendation import ConcurrencyRecommendation, ConcurrencyFactors
from common.models.preferences import LayoutSettings, ThemeMode

__all__ = [
    "TestConfig",
    "HttpMethod",
    "CustomHeader",
    "FormField",
    "ConfigValidationError",
    "validate_target_url",
    "ProgressSnapshot",
    "RunResult",
    "RequestOutcome",
    "ErrorLogEntry",
    "ErrorType",
    "RunStatus",
    "RunSnapshot",
    "HistoryEntry",
    "ConcurrencyRecommendation",
    "ConcurrencyFactors",
    "LayoutSettings",
    "ThemeMode",
]
