"""Core configuration and environment loading."""

import os
from dotenv import load_dotenv

from xuibot.core.constants import Constants

# Load .env file for development
load_dotenv()


def _split_csv(value: str) -> list:
    return [part.strip() for part in value.split(",") if part.strip()]


class Config:
    """Application configuration."""
    
    # Telegram
    TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN")
    if not TELEGRAM_BOT_TOKEN:
        raise ValueError("TELEGRAM_BOT_TOKEN env var not set")
    
    # Global administrators
    ADMIN_IDS = [int(v) for v in _split_csv(os.getenv("ADMIN_IDS", ""))]
    if not ADMIN_IDS:
        raise ValueError("ADMIN_IDS env var not set")
    ADMIN_USERNAMES = [v.lstrip("@") for v in _split_csv(os.getenv("ADMIN_USERNAMES", ""))]
    
    # Database
    DATABASE_URL = os.getenv("DATABASE_URL")
    if not DATABASE_URL:
        raise ValueError("DATABASE_URL env var not set")
    
    # Cache
    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
    
    # Secrets
    ENCRYPTION_KEY = os.getenv("ENCRYPTION_KEY")
    if not ENCRYPTION_KEY:
        raise ValueError("ENCRYPTION_KEY env var not set")
    
    # Host monitor
    HOST_MONITOR_INTERVAL_MINUTES = int(os.getenv(
        "HOST_MONITOR_INTERVAL_MINUTES",
        str(Constants.DEFAULT_CHECK_INTERVAL_SECONDS // 60),
    ))
    HOST_MONITOR_AUTOSTART = os.getenv("HOST_MONITOR_AUTOSTART", "true").lower() == "true"
    HOST_MONITOR_MAX_CONCURRENCY = int(os.getenv(
        "HOST_MONITOR_MAX_CONCURRENCY", str(Constants.MAX_CONCURRENT_PROBES)
    ))
    
    # x-ui panels
    PANEL_TIMEOUT_SECONDS = float(os.getenv(
        "PANEL_TIMEOUT_SECONDS", str(Constants.PANEL_TIMEOUT_SECONDS)
    ))
    
    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("LOG_FILE") or None
