"""Dependency injection for the controller."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from controller.core.orchestrator import RunOrchestrator
    from controller.storage.history import HistoryLedger
    from controller.storage.preferences import PreferencesStore

# These will be set by main.py during startup
_orchestrator = None
_preferences = None


def set_orchestrator(orchestrator) -> None:
    """Set the global orchestrator instance."""
    global _orchestrator
    _orchestrator = orchestrator


def set_preferences(preferences) -> None:
    """Set the global preferences instance."""
    global _preferences
    _preferences = preferences


def get_orchestrator() -> "RunOrchestrator":
    """Get the global orchestrator instance."""
    if _orchestrator is None:
        raise RuntimeError("Orchestrator not initialized")
    return _orchestrator


def get_ledger() -> "HistoryLedger":
    """Get the history ledger owned by the orchestrator."""
    return get_orchestrator().ledger


def get_preferences() -> "PreferencesStore":
    """Get the global preferences instance."""
    if _preferences is None:
        raise RuntimeError("Preferences not initialized")
    return _preferences
