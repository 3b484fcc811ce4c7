"""Concurrency recommendation heuristic.

Suggests a number of concurrent requests from the machine's CPU count and
the test configuration. Limits reflect connection-level constraints seen in
practice: the system DNS resolver has its own concurrency limits, and very
high concurrency (500+) produces connection bursts that can overwhelm or
trip protection on remote targets.
"""

from __future__ import annotations

import ipaddress
import math
from typing import Optional
from urllib.parse import urlparse

from common.models.recommendation import ConcurrencyFactors, ConcurrencyRecommendation

# Base concurrent requests per CPU core
BASE_PER_CORE = 15
# Maximum safe concurrent requests per CPU core
MAX_PER_CORE = 50
# Ceiling for external targets
EXTERNAL_RECOMMENDED_MAX = 200
# Ceiling for local targets (no DNS overhead, fast connections)
LOCAL_RECOMMENDED_MAX = 1000
# Hard cap on configurable concurrency
ABSOLUTE_MAX = 1000

MIN_SUGGESTED = 10
LOW_SUCCESS_RATE = 90


def is_local_target(url: str) -> bool:
    """Check whether a URL points at localhost or a private network."""
    if not url:
        return False

    try:
        hostname = (urlparse(url).hostname or "").lower()
    except ValueError:
        return False

    if not hostname:
        return False
    if hostname == "localhost" or hostname.endswith(".local"):
        return True

    try:
        address = ipaddress.ip_address(hostname)
    except ValueError:
        return False

    return address.is_loopback or address.is_private or address.is_unspecified


def _round_to_ten(value: float) -> int:
    # Half-up, so 125 rounds to 130 like the UI displays it
    return int(math.floor(value / 10 + 0.5)) * 10


def recommend(
    cpu_cores: int,
    use_http2: bool,
    disable_keep_alive: bool,
    target_url: str,
    past_success_rate: Optional[float] = None,
) -> ConcurrencyRecommendation:
    """Compute the recommended concurrency for a configuration.

    Multipliers are applied and listed in ``breakdown`` in a fixed order:
    HTTP/2, keep-alive, target locality, history. The same inputs always
    give the same output.
    """
    cpu_cores = max(1, int(cpu_cores))
    warnings: list[str] = []
    breakdown: list[str] = []

    base = cpu_cores * BASE_PER_CORE
    breakdown.append(f"Base: {cpu_cores} cores × {BASE_PER_CORE} = {base}")
    suggested = float(base)

    http2_multiplier = 2.0 if use_http2 else 1.0
    if use_http2:
        suggested *= http2_multiplier
        breakdown.append("HTTP/2: ×2.0 (multiplexed connections)")

    if disable_keep_alive:
        keep_alive_multiplier = 0.5
        breakdown.append("Keep-alive OFF: ×0.5 (new connection per request)")
    else:
        keep_alive_multiplier = 1.5
        breakdown.append("Keep-alive ON: ×1.5 (connection reuse)")
    suggested *= keep_alive_multiplier

    local = is_local_target(target_url)
    local_multiplier = 2.0 if local else 1.0
    if local:
        suggested *= local_multiplier
        breakdown.append("Local target: ×2.0 (minimal latency)")

    history_adjustment = 1.0
    if past_success_rate is not None and past_success_rate < LOW_SUCCESS_RATE:
        history_adjustment = 0.75
        suggested *= history_adjustment
        breakdown.append(f"Past success rate {past_success_rate:.0f}%: ×0.75")
        warnings.append(f"Previous tests had {100 - past_success_rate:.0f}% failure rate")

    system_max = cpu_cores * MAX_PER_CORE
    recommended_max = LOCAL_RECOMMENDED_MAX if local else EXTERNAL_RECOMMENDED_MAX
    max_value = min(system_max, recommended_max)

    rounded = _round_to_ten(suggested)
    rounded = max(MIN_SUGGESTED, min(rounded, max_value))

    breakdown.append(f"Recommended max: {max_value} ({'local' if local else 'external'} target)")

    return ConcurrencyRecommendation(
        suggested=rounded,
        max=max_value,
        factors=ConcurrencyFactors(
            base=base,
            http2_multiplier=http2_multiplier,
            keep_alive_multiplier=keep_alive_multiplier,
            local_multiplier=local_multiplier,
            history_adjustment=history_adjustment,
        ),
        warnings=warnings,
        breakdown=breakdown,
    )


def warnings_for(current_value: int, recommendation: ConcurrencyRecommendation) -> list[str]:
    """Warnings for a configured concurrency against a recommendation."""
    warnings = list(recommendation.warnings)

    if current_value > recommendation.max:
        warnings.append(
            f"Values above {recommendation.max} may cause DNS/connection errors - test incrementally"
        )
    elif current_value > recommendation.suggested * 2:
        warnings.append(
            f"Higher than recommended ({recommendation.suggested}) - monitor for errors"
        )

    if current_value < MIN_SUGGESTED:
        warnings.append("Very low concurrency may result in slow test completion")

    return warnings
