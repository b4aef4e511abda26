"""Data access layer using repository pattern.

Every call opens its own session and commits before returning, so each
operation is atomic on its own and repositories are safe to share between
concurrent tasks.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Optional
import logging

from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import SQLAlchemyError

from xuibot.core.errors import StorageError
from xuibot.db.models import TelegramUser, UserStateHistory, XUIHost, AuditLog
from xuibot.utils.time_helpers import utcnow

logger = logging.getLogger(__name__)


class BaseRepository:
    """Session handling shared by repositories."""
    
    def __init__(self, db):
        """
        Args:
            db: DatabaseConnection instance
        """
        self.db = db
    
    @asynccontextmanager
    async def _session(self):
        try:
            async with self.db.session() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f"{type(self).__name__} storage error: {e}")
            raise StorageError(f"Database error: {e}") from e


class UserRepository(BaseRepository):
    """Data access for Telegram users and their state."""
    
    async def get_by_id(self, user_id: int) -> Optional[TelegramUser]:
        """Get user by Telegram ID."""
        async with self._session() as session:
            result = await session.execute(
                select(TelegramUser).where(TelegramUser.id == user_id)
            )
            return result.scalars().first()
    
    async def create(
        self,
        user_id: int,
        username: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        is_bot: bool = False,
        state: str = "active",
        expected_action: str = "none",
        reason: str = "",
    ) -> TelegramUser:
        """Create new user."""
        now = utcnow()
        user = TelegramUser(
            id=user_id,
            username=username,
            first_name=first_name,
            last_name=last_name,
            is_bot=is_bot,
            state=state,
            expected_action=expected_action,
            state_changed_at=now,
            state_reason=reason,
            state_changed_by_id=0,
            state_changed_by_username="system",
            state_metadata={},
            created_at=now,
            updated_at=now,
            last_activity=now,
        )
        async with self._session() as session:
            session.add(user)
            await session.commit()
        return user
    
    async def update_state(
        self,
        user_id: int,
        state: str,
        expected_action: str,
        reason: str,
        changed_by_id: int,
        changed_by_username: str,
        expires_at: Optional[datetime] = None,
        metadata: Optional[dict] = None,
    ) -> bool:
        """
        Overwrite every state field of one user.
        
        Returns:
            False when no row matched
        """
        now = utcnow()
        async with self._session() as session:
            result = await session.execute(
                update(TelegramUser).where(TelegramUser.id == user_id).values(
                    state=state,
                    expected_action=expected_action,
                    state_changed_at=now,
                    state_reason=reason,
                    state_changed_by_id=changed_by_id,
                    state_changed_by_username=changed_by_username,
                    state_expires_at=expires_at,
                    state_metadata=metadata or {},
                    updated_at=now,
                )
            )
            await session.commit()
            return result.rowcount > 0
    
    async def touch_activity(self, user_id: int, username: Optional[str] = None,
                             first_name: Optional[str] = None,
                             last_name: Optional[str] = None):
        """Refresh last-seen time and display names."""
        values = {"last_activity": utcnow()}
        if username is not None:
            values["username"] = username
        if first_name is not None:
            values["first_name"] = first_name
        if last_name is not None:
            values["last_name"] = last_name
        
        async with self._session() as session:
            await session.execute(
                update(TelegramUser).where(TelegramUser.id == user_id).values(**values)
            )
            await session.commit()
    
    async def list_by_state(self, state: str, limit: int = 50, offset: int = 0):
        """Users in a state, most recently changed first."""
        async with self._session() as session:
            result = await session.execute(
                select(TelegramUser)
                .where(TelegramUser.state == state)
                .order_by(TelegramUser.state_changed_at.desc())
                .limit(limit)
                .offset(offset)
            )
            return result.scalars().all()
    
    async def list_by_expected_action(self, action: str, limit: int = 50, offset: int = 0):
        """Users awaiting an action, most recently changed first."""
        async with self._session() as session:
            result = await session.execute(
                select(TelegramUser)
                .where(TelegramUser.expected_action == action)
                .order_by(TelegramUser.state_changed_at.desc())
                .limit(limit)
                .offset(offset)
            )
            return result.scalars().all()
    
    async def list_expired(self, now: Optional[datetime] = None):
        """Users whose state expiry has passed, oldest expiry first."""
        now = now or utcnow()
        async with self._session() as session:
            result = await session.execute(
                select(TelegramUser)
                .where(TelegramUser.state_expires_at.is_not(None))
                .where(TelegramUser.state_expires_at < now)
                .order_by(TelegramUser.state_expires_at.asc())
            )
            return result.scalars().all()
    
    async def state_statistics(self):
        """(state, expected_action, count) rows."""
        async with self._session() as session:
            result = await session.execute(
                select(
                    TelegramUser.state,
                    TelegramUser.expected_action,
                    func.count(TelegramUser.id),
                )
                .group_by(TelegramUser.state, TelegramUser.expected_action)
                .order_by(TelegramUser.state, TelegramUser.expected_action)
            )
            return [tuple(row) for row in result.all()]


class StateHistoryRepository(BaseRepository):
    """Data access for state transition history (INSERT + READ only)."""
    
    async def add(
        self,
        user_id: int,
        old_state: Optional[str],
        new_state: str,
        old_expected_action: Optional[str],
        new_expected_action: str,
        reason: str,
        changed_by_id: int,
        changed_by_username: str,
        details: Optional[dict] = None,
    ) -> UserStateHistory:
        """Record one transition."""
        entry = UserStateHistory(
            user_id=user_id,
            old_state=old_state,
            new_state=new_state,
            old_expected_action=old_expected_action,
            new_expected_action=new_expected_action,
            reason=reason,
            changed_by_id=changed_by_id,
            changed_by_username=changed_by_username,
            details=details or {},
            created_at=utcnow(),
        )
        async with self._session() as session:
            session.add(entry)
            await session.commit()
        return entry
    
    async def list_for_user(self, user_id: int, limit: int = 50, offset: int = 0):
        """Transitions of one user, newest first."""
        async with self._session() as session:
            result = await session.execute(
                select(UserStateHistory)
                .where(UserStateHistory.user_id == user_id)
                .order_by(UserStateHistory.created_at.desc(), UserStateHistory.id.desc())
                .limit(limit)
                .offset(offset)
            )
            return result.scalars().all()


class HostRepository(BaseRepository):
    """Data access for x-ui hosts."""
    
    async def get_by_id(self, host_id: int) -> Optional[XUIHost]:
        """Get host by ID."""
        async with self._session() as session:
            result = await session.execute(
                select(XUIHost).where(XUIHost.id == host_id)
            )
            return result.scalars().first()
    
    async def get_by_url(self, url: str) -> Optional[XUIHost]:
        """Get host by panel URL."""
        async with self._session() as session:
            result = await session.execute(
                select(XUIHost).where(XUIHost.url == url)
            )
            return result.scalars().first()
    
    async def list_hosts(self, active_only: Optional[bool] = None,
                         limit: int = 50, offset: int = 0):
        """
        Page through hosts, newest first.
        
        Args:
            active_only: True for active, False for inactive, None for all
        """
        query = select(XUIHost)
        if active_only is not None:
            query = query.where(XUIHost.is_active == active_only)
        
        async with self._session() as session:
            result = await session.execute(
                query.order_by(XUIHost.created_at.desc(), XUIHost.id.desc())
                .limit(limit)
                .offset(offset)
            )
            return result.scalars().all()
    
    async def list_all(self):
        """Every registered host, active or not."""
        async with self._session() as session:
            result = await session.execute(select(XUIHost).order_by(XUIHost.id))
            return result.scalars().all()
    
    async def count(self, active_only: Optional[bool] = None) -> int:
        """Count hosts."""
        query = select(func.count(XUIHost.id))
        if active_only is not None:
            query = query.where(XUIHost.is_active == active_only)
        
        async with self._session() as session:
            result = await session.execute(query)
            return result.scalar_one()
    
    async def create(
        self,
        url: str,
        name: str,
        ip: str,
        port: int,
        username: str,
        password_encrypted: str,
        added_by_id: int,
        added_by_username: Optional[str] = None,
        secret_key_encrypted: Optional[str] = None,
        location: str = "",
        is_active: bool = True,
    ) -> XUIHost:
        """Insert new host."""
        now = utcnow()
        host = XUIHost(
            url=url,
            name=name,
            location=location,
            ip=ip,
            port=port,
            username=username,
            password_encrypted=password_encrypted,
            secret_key_encrypted=secret_key_encrypted,
            is_active=is_active,
            last_checked_at=now,
            added_by_id=added_by_id,
            added_by_username=added_by_username,
            created_at=now,
            updated_at=now,
        )
        async with self._session() as session:
            session.add(host)
            await session.commit()
        return host
    
    async def set_active(self, host_id: int, is_active: bool,
                         error: Optional[str] = None) -> bool:
        """
        Store the last probe result.
        
        Returns:
            False when no row matched
        """
        now = utcnow()
        async with self._session() as session:
            result = await session.execute(
                update(XUIHost).where(XUIHost.id == host_id).values(
                    is_active=is_active,
                    last_checked_at=now,
                    last_error=None if is_active else error,
                    updated_at=now,
                )
            )
            await session.commit()
            return result.rowcount > 0
    
    async def delete(self, host_id: int) -> bool:
        """Delete host."""
        async with self._session() as session:
            result = await session.execute(
                delete(XUIHost).where(XUIHost.id == host_id)
            )
            await session.commit()
            return result.rowcount > 0


class AuditLogRepository(BaseRepository):
    """Data access for audit logs (READ ONLY)."""
    
    async def get_for_user(self, user_id: int, limit: int = 100):
        """Get audit logs for user."""
        async with self._session() as session:
            result = await session.execute(
                select(AuditLog)
                .where(AuditLog.user_id == user_id)
                .order_by(AuditLog.created_at.desc())
                .limit(limit)
            )
            return result.scalars().all()
    
    async def get_recent(self, hours: int = 24, limit: int = 1000):
        """Get recent audit logs."""
        cutoff = utcnow() - timedelta(hours=hours)
        async with self._session() as session:
            result = await session.execute(
                select(AuditLog)
                .where(AuditLog.created_at >= cutoff)
                .order_by(AuditLog.created_at.desc())
                .limit(limit)
            )
            return result.scalars().all()
