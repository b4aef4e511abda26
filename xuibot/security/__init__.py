"""Security module initialization."""

from xuibot.security.permissions import AuthorizationPolicy, AdminPolicy
from xuibot.security.secrets_manager import SecretsManager
from xuibot.security.rate_limiter import RateLimiter
from xuibot.security.audit_logger import AuditLogger
from xuibot.security.validators import InputValidator

__all__ = [
    "AuthorizationPolicy",
    "AdminPolicy",
    "SecretsManager",
    "RateLimiter",
    "AuditLogger",
    "InputValidator",
]
