"""Zoyla load test controller application."""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from common.messaging.redis_client import RedisClient
from controller.config import get_settings
from controller.core.engine import RedisEngine
from controller.core.orchestrator import RunOrchestrator
from controller.core.run_state import RunStateMachine
from controller.dependencies import set_orchestrator, set_preferences
from controller.storage.history import HistoryLedger
from controller.storage.key_value import SqliteKeyValueStore
from controller.storage.preferences import PreferencesStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    # Initialize persistence
    store = SqliteKeyValueStore(settings.store_path)
    ledger = HistoryLedger(store, max_entries=settings.max_history_entries)
    await ledger.load_from_storage()
    preferences = PreferencesStore(store)
    await preferences.load_from_storage()
    set_preferences(preferences)
    logger.info(f"Store initialized at {settings.store_path}")

    # Initialize engine proxy
    engine = RedisEngine(
        RedisClient(url=settings.redis_url, client_id=settings.client_id),
        query_timeout=settings.engine_query_timeout,
        run_timeout=settings.engine_run_timeout,
    )
    orchestrator = RunOrchestrator(
        engine=engine,
        state=RunStateMachine(),
        ledger=ledger,
        progress_interval=settings.progress_interval,
        on_error_logs=preferences.reveal_error_logs,
    )
    set_orchestrator(orchestrator)
    await orchestrator.open()

    engine_connected = False
    try:
        await engine.connect()
        engine_connected = True
        logger.info("Connected to load test engine")
    except Exception as e:
        logger.warning(f"Engine connection failed (history and settings remain available): {e}")

    try:
        yield
    finally:
        await orchestrator.close()
        if engine_connected:
            try:
                await engine.disconnect()
                logger.info("Disconnected from load test engine")
            except Exception as e:
                logger.warning(f"Error disconnecting from engine: {e}")
        logger.info("Controller shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Control layer for interactive HTTP load tests",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register exception handlers
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "error": str(exc)},
        )

    # Register routers
    from controller.api.routes import history, runs, system

    app.include_router(system.router, prefix="/api/v1/system", tags=["System"])
    app.include_router(runs.router, prefix="/api/v1/runs", tags=["Runs"])
    app.include_router(history.router, prefix="/api/v1/history", tags=["History"])

    # Root endpoint
    @app.get("/")
    async def root():
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "status": "running",
        }

    return app


# Create the app instance
app = create_app()


def main():
    """Entry point for running the controller."""
    settings = get_settings()

    # Configure logging level and format
    root_logger = logging.getLogger()
    root_logger.setLevel(settings.log_level.upper())
    for handler in root_logger.handlers:
        handler.setFormatter(logging.Formatter(settings.log_format))

    logger.info(f"Starting controller on {settings.host}:{settings.port}")

    uvicorn.run(
        "controller.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
