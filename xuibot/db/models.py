"""Database models using SQLAlchemy ORM."""

from sqlalchemy import (
    Column, Integer, BigInteger, String, Boolean, DateTime, Text, JSON
)
from sqlalchemy.orm import declarative_base

from xuibot.utils.time_helpers import utcnow

Base = declarative_base()


class TelegramUser(Base):
    """Telegram user and its current state."""
    
    __tablename__ = "telegram_users"
    
    id = Column(BigInteger, primary_key=True, autoincrement=False)  # Telegram user ID
    username = Column(String(64), nullable=True, index=True)
    first_name = Column(String(128), nullable=True)
    last_name = Column(String(128), nullable=True)
    is_bot = Column(Boolean, default=False)
    
    # State
    state = Column(String(32), default="active", nullable=False, index=True)
    expected_action = Column(String(32), default="none", nullable=False, index=True)
    state_changed_at = Column(DateTime, default=utcnow)
    state_reason = Column(Text, nullable=True)
    state_changed_by_id = Column(BigInteger, default=0)  # 0 = system
    state_changed_by_username = Column(String(64), nullable=True)
    state_expires_at = Column(DateTime, nullable=True, index=True)
    state_metadata = Column(JSON, default=dict)
    
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    last_activity = Column(DateTime, default=utcnow)


class UserStateHistory(Base):
    """One row per state transition (INSERT only)."""
    
    __tablename__ = "user_state_history"
    
    id = Column(Integer, primary_key=True)
    user_id = Column(BigInteger, nullable=False, index=True)
    old_state = Column(String(32), nullable=True)
    new_state = Column(String(32), nullable=False)
    old_expected_action = Column(String(32), nullable=True)
    new_expected_action = Column(String(32), nullable=False)
    reason = Column(Text, nullable=True)
    changed_by_id = Column(BigInteger, default=0)
    changed_by_username = Column(String(64), nullable=True)
    details = Column(JSON, default=dict)
    created_at = Column(DateTime, default=utcnow, index=True)


class XUIHost(Base):
    """Registered x-ui panel."""
    
    __tablename__ = "xui_hosts"
    
    id = Column(Integer, primary_key=True)
    url = Column(String(512), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    location = Column(String(255), default="")
    ip = Column(String(255), nullable=False)
    port = Column(Integer, nullable=False)
    
    # Credentials (Fernet encrypted)
    username = Column(String(255), nullable=False)
    password_encrypted = Column(String(1024), nullable=False)
    secret_key_encrypted = Column(String(1024), nullable=True)
    
    # Cache of the last probe result
    is_active = Column(Boolean, default=True, index=True)
    last_checked_at = Column(DateTime, nullable=True)
    last_error = Column(Text, nullable=True)
    
    added_by_id = Column(BigInteger, nullable=False, index=True)
    added_by_username = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class AuditLog(Base):
    """Immutable audit trail (INSERT only, never UPDATE/DELETE)."""
    
    __tablename__ = "audit_logs"
    
    id = Column(Integer, primary_key=True)
    user_id = Column(BigInteger, index=True)
    action = Column(String(100), nullable=False, index=True)  # host.added, monitor.started, etc
    resource_type = Column(String(50))  # host, user, monitor
    resource_id = Column(String(100))
    status = Column(String(20), index=True)  # success, failure
    error_code = Column(String(50))
    details = Column(JSON, default=dict)
    created_at = Column(DateTime, default=utcnow, index=True)
