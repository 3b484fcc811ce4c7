"""Concurrency recommendation models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ConcurrencyFactors(BaseModel):
    """Multipliers applied when computing a recommendation."""
    base: float
    http2_multiplier: float = 1.0
    keep_alive_multiplier: float = 1.0
    local_multiplier: float = 1.0
    history_adjustment: float = 1.0


class ConcurrencyRecommendation(BaseModel):
    """Suggested concurrency for a configuration. Never persisted."""
    suggested: int = Field(..., description="Suggested concurrent requests")
    max: int = Field(..., description="System-safe maximum")
    factors: ConcurrencyFactors
    warnings: list[str] = Field(default_factory=list)
    breakdown: list[str] = Field(default_factory=list)
