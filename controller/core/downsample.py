"""Downsampling of chart series."""

from __future__ import annotations

import math
from typing import Sequence, TypeVar

from common.models.result import RunResult

T = TypeVar("T")

# Maximum data points for chart rendering
MAX_CHART_POINTS = 500

PERCENTILE_LABELS = [
    ("p10", "10%"),
    ("p25", "25%"),
    ("p50", "50%"),
    ("p75", "75%"),
    ("p90", "90%"),
    ("p95", "95%"),
    ("p99", "99%"),
]


def downsample(data: Sequence[T], max_points: int = MAX_CHART_POINTS) -> list[T]:
    """Reduce a series to at most ``max_points`` by uniform sampling.

    Keeps every ``ceil(len / max_points)``-th element starting with the
    first, and always the last element so the time range endpoint is kept.
    Order is preserved; dropped points are not aggregated.
    """
    if len(data) <= max_points:
        return list(data)

    stride = math.ceil(len(data) / max_points)
    last = len(data) - 1
    sampled = [data[i] for i in range(0, len(data), stride)]

    if last % stride != 0:
        # The endpoint takes the place of the final stride point when the
        # output is already full.
        if len(sampled) < max_points:
            sampled.append(data[last])
        else:
            sampled[-1] = data[last]

    return sampled


def build_chart_data(result: RunResult, max_points: int = MAX_CHART_POINTS) -> dict:
    """Chart-ready series for a run result."""
    return {
        "throughput": [p.model_dump() for p in downsample(result.throughput_over_time, max_points)],
        "latency": [p.model_dump() for p in downsample(result.latency_over_time, max_points)],
        "concurrency": [p.model_dump() for p in downsample(result.concurrency_over_time, max_points)],
        "timeline": [p.model_dump() for p in downsample(result.request_timeline, max_points)],
        "histogram": [
            {
                "name": f"{b.min_ms:.0f} ms",
                "count": b.count,
                "range": f"{b.min_ms:.0f}-{b.max_ms:.0f}ms",
            }
            for b in result.histogram
        ],
        "percentiles": [
            {
                "percentile": key,
                "value": getattr(result.percentiles, key),
                "label": label,
            }
            for key, label in PERCENTILE_LABELS
        ],
    }
