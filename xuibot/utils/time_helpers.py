"""Time helpers."""

from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """
    Current UTC time as a naive datetime.
    
    All timestamps are stored naive-UTC so they compare equally on
    PostgreSQL and SQLite.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def expires_in(seconds: float) -> datetime:
    """Return utcnow() + seconds."""
    return utcnow() + timedelta(seconds=seconds)


def is_expired(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """True when expires_at is set and already passed."""
    if expires_at is None:
        return False
    return (now or utcnow()) > expires_at


def seconds_to_human(seconds: int) -> str:
    """
    Convert seconds to human-readable format.
    
    Args:
        seconds: Number of seconds
    
    Returns:
        Formatted string (e.g., "5d 3h 2m 1s")
    
    Examples:
        >>> seconds_to_human(3661)
        '1h 1m 1s'
        >>> seconds_to_human(300)
        '5m'
    """
    if seconds is None or seconds < 0:
        return "0s"
    
    seconds = int(seconds)
    
    days, remainder = divmod(seconds, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, secs = divmod(remainder, 60)
    
    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs or not parts:
        parts.append(f"{secs}s")
    
    return " ".join(parts)


def format_timestamp(value: Optional[datetime]) -> str:
    """Format a timestamp the way notifications show it (dd.mm.yyyy HH:MM:SS)."""
    if value is None:
        return "-"
    return value.strftime("%d.%m.%Y %H:%M:%S")
