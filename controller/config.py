"""Controller configuration settings."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Zoyla Load Test Controller"
    app_version: str = "1.0.0"
    debug: bool = False

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # Data storage
    data_path: Path = Field(default=Path("./data"))
    store_file: str = "settings.db"

    # Engine connection
    redis_url: str = "redis://localhost:6379"
    client_id: str = "console"
    engine_query_timeout: float = 5.0  # seconds
    engine_run_timeout: float = Field(default=0, ge=0)  # seconds, 0 means no limit

    # Run settings
    progress_interval_ms: int = Field(default=200, ge=0)
    max_history_entries: int = Field(default=50, ge=1)
    max_chart_points: int = Field(default=500, ge=2)

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # CORS
    cors_origins: list[str] = ["*"]

    class Config:
        env_prefix = "ZOYLA_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def store_path(self) -> Path:
        return self.data_path / self.store_file

    @property
    def progress_interval(self) -> float:
        """Minimum interval between progress updates, in seconds."""
        return self.progress_interval_ms / 1000.0


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def init_settings(**kwargs) -> Settings:
    """Initialize settings with custom values."""
    global _settings
    _settings = Settings(**kwargs)
    return _settings
