"""UI preference models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class ThemeMode(str, Enum):
    DARK = "dark"
    LIGHT = "light"


class LayoutSettings(BaseModel):
    """Chart and panel visibility toggles."""
    show_throughput_chart: bool = True
    show_latency_chart: bool = True
    show_histogram: bool = True
    show_percentiles: bool = True
    show_correlation_chart: bool = True
    show_error_logs: bool = True
