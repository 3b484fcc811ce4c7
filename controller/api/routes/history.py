"""History endpoints."""

from __future__ import annotations

import json
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import Response
from pydantic import BaseModel

from controller.config import get_settings
from controller.core.downsample import build_chart_data
from controller.core.export import build_csv, build_json, default_export_filename
from controller.dependencies import get_ledger

router = APIRouter()


class SelectRequest(BaseModel):
    """Request model for selecting a history entry."""
    entry_id: Optional[str] = None


def _summary(entry) -> dict:
    return {
        "id": entry.id,
        "timestamp": entry.timestamp.isoformat(),
        "url": entry.config.url,
        "method": entry.config.method.value,
        "num_requests": entry.config.num_requests,
        "concurrency": entry.config.concurrency,
        "use_http2": entry.config.use_http2,
        "total_time_secs": entry.total_time_secs,
        "requests_per_second": entry.requests_per_second,
        "avg_response_ms": entry.avg_response_ms,
        "successful_requests": entry.successful_requests,
        "failed_requests": entry.failed_requests,
    }


def _get_entry_or_404(entry_id: str):
    entry = get_ledger().get(entry_id)
    if entry is None:
        raise HTTPException(
            status_code=404,
            detail=f"History entry '{entry_id}' not found"
        )
    return entry


@router.get("/")
async def list_history():
    """List history entries, newest first."""
    ledger = get_ledger()
    return {
        "entries": [_summary(e) for e in ledger.entries],
        "total": len(ledger),
        "selected_id": ledger.selected_id,
    }


@router.delete("/")
async def clear_history():
    """Delete all history entries."""
    await get_ledger().clear()
    return {"message": "History cleared"}


@router.post("/select")
async def select_entry(request: SelectRequest):
    """Select an entry, or clear the selection with a null id."""
    if request.entry_id is not None:
        _get_entry_or_404(request.entry_id)
    ledger = get_ledger()
    ledger.select(request.entry_id)
    selected = ledger.selected
    return {
        "selected_id": request.entry_id,
        "entry": _summary(selected) if selected else None,
    }


@router.get("/{entry_id}")
async def get_entry(entry_id: str):
    """Get a full history entry including its config and stats."""
    return _get_entry_or_404(entry_id).model_dump(mode="json")


@router.delete("/{entry_id}")
async def delete_entry(entry_id: str):
    """Delete a history entry."""
    deleted = await get_ledger().delete(entry_id)
    if not deleted:
        raise HTTPException(
            status_code=404,
            detail=f"History entry '{entry_id}' not found"
        )
    return {"message": f"History entry '{entry_id}' deleted"}


@router.get("/{entry_id}/charts")
async def get_entry_charts(entry_id: str, max_points: Optional[int] = Query(default=None, ge=2)):
    """Downsampled chart data for a history entry."""
    entry = _get_entry_or_404(entry_id)
    return build_chart_data(entry.stats, max_points or get_settings().max_chart_points)


@router.get("/{entry_id}/export")
async def export_entry(entry_id: str, format: str = Query(default="json", pattern="^(csv|json)$")):
    """Export a history entry as CSV or JSON."""
    entry = _get_entry_or_404(entry_id)
    filename = default_export_filename(format)
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}

    if format == "csv":
        return Response(
            content=build_csv(entry.stats, entry.config),
            media_type="text/csv",
            headers=headers,
        )

    return Response(
        content=json.dumps(build_json(entry.stats, entry.config), indent=2),
        media_type="application/json",
        headers=headers,
    )
