"""Database module initialization."""

from xuibot.db.connection import DatabaseConnection
from xuibot.db.models import TelegramUser, UserStateHistory, XUIHost, AuditLog, Base
from xuibot.db.repository import (
    UserRepository,
    StateHistoryRepository,
    HostRepository,
    AuditLogRepository,
)

__all__ = [
    "DatabaseConnection",
    "TelegramUser",
    "UserStateHistory",
    "XUIHost",
    "AuditLog",
    "Base",
    "UserRepository",
    "StateHistoryRepository",
    "HostRepository",
    "AuditLogRepository",
]
