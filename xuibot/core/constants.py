"""Application constants."""


class Constants:
    """Application constants."""
    
    # Actor recorded for automatic transitions
    SYSTEM_ACTOR_ID = 0
    SYSTEM_ACTOR_NAME = "system"
    
    # Host-add dialog
    ADD_HOST_TTL_SECONDS = 600  # 10 minutes
    
    # Host monitor
    DEFAULT_CHECK_INTERVAL_SECONDS = 300  # 5 minutes
    MAX_CONCURRENT_PROBES = 10
    
    # x-ui panel
    PANEL_TIMEOUT_SECONDS = 30
    SESSION_COOKIE_NAME = "3x-ui"
    
    # Pagination
    DEFAULT_PAGE_SIZE = 50
    
    # Rate limits
    RATE_LIMITS = {
        "user:start": {"limit": 10, "window": 60},
        "admin:add_host_input": {"limit": 10, "window": 600},
        "admin:check_hosts": {"limit": 5, "window": 60},
    }
    
    # Error codes
    ERROR_CODES = {
        "INTERNAL": "Internal error, please try again later",
        "INVALID_INPUT": "Invalid input",
        "INVALID_STATE": "Invalid state change target",
        "USER_NOT_FOUND": "User not found",
        "HOST_NOT_FOUND": "Host not found",
        "DUPLICATE_HOST": "Host is already registered",
        "NOT_IN_ADD_HOST_STATE": "No host registration in progress",
        "UNAUTHORIZED": "Only global administrators can perform this action",
        "PANEL_ERROR": "Panel request failed",
        "HOST_CONNECTION": "Could not connect to the panel",
        "STORAGE_ERROR": "Database error",
        "MONITOR_STATE": "Monitor is not in the required state",
        "RATE_LIMIT": "Too many requests, please try again later",
    }
