"""Utils module initialization."""

from xuibot.utils.time_helpers import (
    utcnow,
    expires_in,
    is_expired,
    seconds_to_human,
    format_timestamp,
)
from xuibot.utils.logger import setup_logging, JSONFormatter

__all__ = [
    "utcnow",
    "expires_in",
    "is_expired",
    "seconds_to_human",
    "format_timestamp",
    "setup_logging",
    "JSONFormatter",
]
