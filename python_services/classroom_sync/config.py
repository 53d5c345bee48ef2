"""
Configuration for the classroom sync engine.
"""

import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

# Load python_services/.env regardless of CWD; real environment values win.
_dotenv_path = Path(__file__).resolve().parents[1] / ".env"
if _dotenv_path.exists():
    load_dotenv(_dotenv_path, override=False)


# ─── Timing (fixed, not negotiated) ──────────────────────────────────────────
RELAY_POLL_INTERVAL_SECONDS = 1.0      # student follows teacher slide
PRESENCE_POLL_INTERVAL_SECONDS = 1.0   # teacher refreshes student list
LESSON_REFRESH_INTERVAL_SECONDS = 5.0  # teacher refreshes lesson list
HEARTBEAT_INTERVAL_SECONDS = 5.0       # student stays inside the presence window
SYNC_THROTTLE_MS = 5_000
PRESENCE_THROTTLE_MS = 5_000
PRESENCE_WINDOW_MS = 10_000
SESSION_STALE_MS = 30_000
CIRCUIT_COOLDOWN_MS = 30_000
CIRCUIT_NOT_FOUND_COOLDOWN_MS = 60_000

ACCESS_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
ACCESS_CODE_LENGTH = 6


class Settings(BaseSettings):
    """Settings with environment variable support."""

    # Remote store
    remote_base_url: str = Field(default="http://localhost:3000", alias="CLASSROOM_API_URL")
    remote_timeout_seconds: float = Field(default=10.0, alias="CLASSROOM_API_TIMEOUT")

    # Local durable cache
    cache_path: str = Field(default="./storage/classroom_cache.sqlite", alias="CLASSROOM_CACHE_PATH")
    cache_namespace: str = Field(default="teachery", alias="CLASSROOM_CACHE_NAMESPACE")
    cache_table: str = Field(default="classroom", alias="CLASSROOM_CACHE_TABLE")

    # Service
    service_name: str = Field(default="classroom-sync", alias="SERVICE_NAME")
    service_port: int = Field(default=8010, alias="SERVICE_PORT")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ".env"
        case_sensitive = False
        populate_by_name = True
        extra = "ignore"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the process settings, created on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def debug_settings(settings: Optional[Settings] = None) -> None:
    """Log the effective settings."""
    settings = settings or get_settings()
    logger.info("Current settings:")
    logger.info(f"  Remote store: {settings.remote_base_url} (timeout {settings.remote_timeout_seconds}s)")
    logger.info(f"  Cache: {settings.cache_path} [{settings.cache_table}] namespace={settings.cache_namespace}")
    logger.info(f"  Service: {settings.service_name} on port {settings.service_port}")
    logger.info(f"  Debug: {settings.debug}, log level {settings.log_level}")
