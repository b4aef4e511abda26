"""Validation of admin command arguments."""

import re
import logging

logger = logging.getLogger(__name__)


class InputValidator:
    """Validate and sanitize command arguments."""
    
    MAX_REASON_LENGTH = 500
    MAX_SUSPEND_MINUTES = 60 * 24 * 365
    
    @staticmethod
    def validate_user_id(user_id: str) -> bool:
        """
        Validate Telegram user ID format.
        
        Args:
            user_id: User ID to validate
        
        Returns:
            True if valid positive integer
        """
        try:
            return int(user_id) > 0
        except (ValueError, TypeError):
            return False
    
    @staticmethod
    def validate_host_id(host_id: str) -> bool:
        """True if host_id is a positive integer."""
        try:
            return int(host_id) > 0
        except (ValueError, TypeError):
            return False
    
    @classmethod
    def validate_minutes(cls, minutes: str) -> bool:
        """Suspension length: 1 minute to one year."""
        try:
            value = int(minutes)
        except (ValueError, TypeError):
            return False
        return 0 < value <= cls.MAX_SUSPEND_MINUTES
    
    @staticmethod
    def validate_username(username: str) -> bool:
        """
        Validate Telegram username format.
        
        Telegram usernames: 5-32 characters, alphanumeric and underscores.
        """
        if not username:
            return False
        return bool(re.match(r'^[a-zA-Z0-9_]{5,32}$', username.lstrip('@')))
    
    @classmethod
    def sanitize_reason(cls, reason: str) -> str:
        """Collapse whitespace and cap the length of a free-text reason."""
        reason = " ".join((reason or "").split())
        return reason[:cls.MAX_REASON_LENGTH]
