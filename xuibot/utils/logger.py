"""Structured logging setup."""

import json
import logging
import re
from datetime import datetime, timezone
from typing import Optional

# Fields passed through `extra=` that are copied into the JSON record
CONTEXT_FIELDS = ("user_id", "host_id", "host_url", "action")

# password=..., twoFactorCode=..., 3x-ui=<session>
SECRET_PATTERN = re.compile(r"(password|twoFactorCode|3x-ui)=([^&\s;]+)", re.IGNORECASE)


def redact(text: str) -> str:
    """Mask credential values in a log line."""
    return SECRET_PATTERN.sub(r"\1=***", text)


class JSONFormatter(logging.Formatter):
    """One JSON object per line, credentials masked."""
    
    def format(self, record):
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": redact(record.getMessage()),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value
        
        if record.exc_info:
            log_data["exception"] = redact(self.formatException(record.exc_info))
        
        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """
    Install JSON logging on the root logger.
    
    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())
    
    handlers = [logging.StreamHandler()]
    if log_file:
        try:
            handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
        except OSError as e:
            root_logger.warning(f"Could not setup file logging: {e}")
    
    for handler in handlers:
        handler.setFormatter(JSONFormatter())
        root_logger.addHandler(handler)
    
    # httpx logs every getUpdates poll at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    # aiohttp access logs only matter when debugging the fake panel
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    
    return root_logger
