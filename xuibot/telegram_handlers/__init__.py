"""Telegram handlers module initialization."""

from xuibot.telegram_handlers.base_handler import BaseHandler, security_handler
from xuibot.telegram_handlers.user_handlers import UserHandlers
from xuibot.telegram_handlers.admin_handlers import AdminHandlers

__all__ = [
    "BaseHandler",
    "security_handler",
    "UserHandlers",
    "AdminHandlers",
]
