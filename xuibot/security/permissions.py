"""Authorization policy for privileged operations."""

import logging
from typing import Iterable, Optional, Protocol

logger = logging.getLogger(__name__)


class AuthorizationPolicy(Protocol):
    """Decide whether an actor may run global-admin operations."""
    
    def is_privileged(self, user_id: int, username: Optional[str] = None) -> bool:
        ...


class AdminPolicy:
    """Global admins configured by Telegram id or username."""
    
    def __init__(self, admin_ids: Iterable[int], admin_usernames: Iterable[str] = ()):
        """
        Args:
            admin_ids: Telegram user IDs of global admins
            admin_usernames: Usernames (without @) also treated as admins
        """
        self.admin_ids = set(admin_ids)
        self.admin_usernames = {name.lstrip("@").lower() for name in admin_usernames if name}
    
    def is_privileged(self, user_id: int, username: Optional[str] = None) -> bool:
        if user_id in self.admin_ids:
            return True
        if username and username.lstrip("@").lower() in self.admin_usernames:
            return True
        return False
