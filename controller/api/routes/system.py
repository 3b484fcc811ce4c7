"""System and preference endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ValidationError

from common.models.preferences import ThemeMode
from controller.config import get_settings
from controller.dependencies import get_orchestrator, get_preferences

router = APIRouter()


class PreferencesUpdate(BaseModel):
    """Request model for updating preferences."""
    layout: Optional[dict] = None
    theme: Optional[ThemeMode] = None
    show_error_logs: Optional[bool] = None


@router.get("/health")
async def health_check():
    """Check system health."""
    return {"status": "healthy"}


@router.get("/config")
async def get_config():
    """Get system configuration (non-sensitive)."""
    settings = get_settings()
    return {
        "app_name": settings.app_name,
        "app_version": settings.app_version,
        "data_path": str(settings.data_path),
        "progress_interval_ms": settings.progress_interval_ms,
        "max_history_entries": settings.max_history_entries,
        "max_chart_points": settings.max_chart_points,
    }


@router.get("/version")
async def get_version():
    """Get application version."""
    settings = get_settings()
    return {
        "name": settings.app_name,
        "version": settings.app_version,
    }


@router.get("/cpus")
async def get_cpus():
    """CPU count used for concurrency recommendations."""
    return {"cpus": await get_orchestrator().resolve_cpu_count()}


def _preferences_response(preferences) -> dict:
    return {
        "layout": preferences.layout.model_dump(),
        "theme": preferences.theme.value,
        "show_error_logs": preferences.show_error_logs,
    }


@router.get("/preferences")
async def get_preferences_view():
    """Layout, theme and panel flags."""
    return _preferences_response(get_preferences())


@router.put("/preferences")
async def update_preferences(update: PreferencesUpdate):
    """Update layout settings, theme or panel flags."""
    preferences = get_preferences()
    if update.layout:
        try:
            await preferences.update_layout(**update.layout)
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
    if update.theme is not None:
        await preferences.set_theme(update.theme)
    if update.show_error_logs is not None:
        preferences.set_show_error_logs(update.show_error_logs)
    return _preferences_response(preferences)
