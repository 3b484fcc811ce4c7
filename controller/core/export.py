"""CSV and JSON export of run results."""

from __future__ import annotations

from datetime import datetime

from common.models.config import TestConfig
from common.models.result import RunResult

CSV_COLUMNS = "request_num,status,duration_ms,success,timestamp_ms,error"


def default_export_filename(fmt: str, now: datetime | None = None) -> str:
    now = now or datetime.utcnow()
    return f"zoyla-results-{now.strftime('%Y-%m-%d')}.{fmt}"


def _csv_quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def build_csv(result: RunResult, config: TestConfig, now: datetime | None = None) -> str:
    """CSV with a commented summary header and one row per request."""
    now = now or datetime.utcnow()
    lines = [
        "# Zoyla Test Results",
        f"# Exported: {now.isoformat()}",
        f"# URL: {config.url}",
        f"# Method: {config.method.value}",
        f"# Total Requests: {result.total_requests}",
        f"# Successful: {result.successful_requests}",
        f"# Failed: {result.failed_requests}",
        f"# Total Time: {result.total_time_secs:.4f}s",
        f"# Requests/sec: {result.requests_per_second:.2f}",
        f"# Avg Response: {result.avg_response_time_ms:.2f}ms",
        f"# Min Response: {result.min_response_time_ms:.2f}ms",
        f"# Max Response: {result.max_response_time_ms:.2f}ms",
        "",
        CSV_COLUMNS,
    ]

    for index, outcome in enumerate(result.results, start=1):
        error = _csv_quote(outcome.error) if outcome.error else ""
        lines.append(
            f"{index},{outcome.status},{outcome.duration_ms:.2f},"
            f"{'true' if outcome.success else 'false'},{outcome.timestamp_ms:.2f},{error}"
        )

    return "\n".join(lines)


def build_json(result: RunResult, config: TestConfig, now: datetime | None = None) -> dict:
    """JSON export document."""
    now = now or datetime.utcnow()
    return {
        "exportedAt": now.isoformat(),
        "config": {
            "url": config.url,
            "method": config.method.value,
            "numRequests": config.num_requests,
            "useHttp2": config.use_http2,
        },
        "summary": {
            "totalRequests": result.total_requests,
            "successfulRequests": result.successful_requests,
            "failedRequests": result.failed_requests,
            "totalTimeSecs": result.total_time_secs,
            "avgResponseTimeMs": result.avg_response_time_ms,
            "minResponseTimeMs": result.min_response_time_ms,
            "maxResponseTimeMs": result.max_response_time_ms,
            "requestsPerSecond": result.requests_per_second,
        },
        "percentiles": result.percentiles.model_dump(),
        "statusCodes": [s.model_dump() for s in result.status_codes],
        "histogram": [b.model_dump() for b in result.histogram],
        "throughputOverTime": [p.model_dump() for p in result.throughput_over_time],
        "latencyOverTime": [p.model_dump() for p in result.latency_over_time],
        "errorLogs": [e.model_dump(mode="json") for e in result.error_logs],
        "results": [r.model_dump(mode="json") for r in result.results],
    }
