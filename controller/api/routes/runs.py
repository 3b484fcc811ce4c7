"""Run control endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query

from common.models.config import TestConfig
from controller.config import get_settings
from controller.core import advisor
from controller.core.downsample import build_chart_data
from controller.dependencies import get_orchestrator

router = APIRouter()


@router.get("/state")
async def get_state():
    """Current run status, progress, result and error."""
    orchestrator = get_orchestrator()
    snapshot = orchestrator.state.snapshot()
    return {
        **snapshot.model_dump(mode="json", exclude={"result"}),
        "percent": snapshot.progress.percent if snapshot.progress else 0.0,
        "has_result": snapshot.result is not None,
        "can_start": orchestrator.can_start,
    }


@router.get("/result")
async def get_result():
    """Full result of the last completed run."""
    result = get_orchestrator().state.result
    if result is None:
        raise HTTPException(status_code=404, detail="No result available")
    return result.model_dump(mode="json")


@router.post("/start", status_code=202)
async def start_run(config: TestConfig, background_tasks: BackgroundTasks):
    """Start a load test; it keeps running after the response."""
    orchestrator = get_orchestrator()

    if not orchestrator.can_start:
        raise HTTPException(status_code=409, detail="A run is already in progress")

    error = orchestrator.check_config(config)
    if error:
        raise HTTPException(status_code=400, detail=error)

    run_id = orchestrator.begin_run(config)
    background_tasks.add_task(orchestrator.run, run_id, config)

    return {
        "message": "Run started",
        "run_id": run_id,
        "url": config.url,
        "num_requests": config.num_requests,
    }


@router.post("/cancel", status_code=202)
async def cancel_run():
    """Request cancellation of the current run."""
    await get_orchestrator().cancel()
    return {"message": "Cancellation requested"}


@router.post("/recommendation")
async def get_recommendation(config: TestConfig):
    """Concurrency recommendation and warnings for a config."""
    orchestrator = get_orchestrator()
    recommendation = await orchestrator.recommend(config)
    warnings = advisor.warnings_for(config.concurrency, recommendation)
    return {
        "recommendation": recommendation.model_dump(),
        "warnings": warnings,
    }


@router.get("/charts")
async def get_charts(max_points: Optional[int] = Query(default=None, ge=2)):
    """Downsampled chart data for the last completed run."""
    result = get_orchestrator().state.result
    if result is None:
        raise HTTPException(status_code=404, detail="No result available")
    return build_chart_data(result, max_points or get_settings().max_chart_points)
