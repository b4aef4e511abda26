"""User state machine: transitions, lazy expiry and permission derivation."""

import logging
from datetime import timedelta
from typing import Optional, Tuple, Dict, Any

from xuibot.core.constants import Constants
from xuibot.core.errors import (
    InputError,
    InvalidStateError,
    StorageError,
    UserNotFoundError,
)
from xuibot.core.types import UserState, ExpectedAction
from xuibot.utils.time_helpers import utcnow, is_expired

logger = logging.getLogger(__name__)


# States whose expiry resolves back to Active on the next read
EXPIRING_STATES = (UserState.SUSPENDED, UserState.ADDING_HOST)

DENIAL_REASONS = {
    UserState.INACTIVE: "User is inactive",
    UserState.BLOCKED: "User is blocked",
    UserState.SUSPENDED: "User is suspended",
    UserState.PENDING_VERIFICATION: "Verification required",
    UserState.DELETED: "User is deleted",
}


class UserStateService:
    """
    Own every user state change.
    
    `set_state` is the only write path; the named operations (block,
    activate, suspend, ...) fill in a canonical state/action/reason and
    forward to it. Expired Suspended and AddingHost states are resolved
    lazily when the user is next read.
    """
    
    def __init__(self, user_repo, history_repo=None):
        """
        Args:
            user_repo: UserRepository (get_by_id, create, update_state, ...)
            history_repo: StateHistoryRepository, optional
        """
        self.user_repo = user_repo
        self.history_repo = history_repo
    
    async def ensure_user(self, user_id: int, username: Optional[str] = None,
                          first_name: Optional[str] = None,
                          last_name: Optional[str] = None,
                          is_bot: bool = False):
        """
        Create user on first contact (Active), refresh last activity otherwise.
        
        Returns:
            User record
        """
        user = await self.user_repo.get_by_id(user_id)
        if user:
            await self.user_repo.touch_activity(user_id, username, first_name, last_name)
            return user
        
        user = await self.user_repo.create(
            user_id=user_id,
            username=username,
            first_name=first_name,
            last_name=last_name,
            is_bot=is_bot,
            state=UserState.ACTIVE.value,
            expected_action=ExpectedAction.NONE.value,
            reason="user created automatically",
        )
        logger.info(f"Created user {user_id} (@{username})")
        return user
    
    async def get_user(self, user_id: int):
        """Raw read without expiry resolution; None if missing."""
        return await self.user_repo.get_by_id(user_id)
    
    async def get_user_state(self, user_id: int):
        """
        Read user, resolving an expired Suspended/AddingHost state first.
        
        Raises:
            UserNotFoundError: If user does not exist
        """
        user = await self.user_repo.get_by_id(user_id)
        if not user:
            raise UserNotFoundError(f"User {user_id} not found")
        
        if user.state in EXPIRING_STATES and is_expired(user.state_expires_at):
            logger.info(f"State '{user.state}' of user {user_id} expired, activating")
            await self.activate_user(
                user_id,
                Constants.SYSTEM_ACTOR_ID,
                Constants.SYSTEM_ACTOR_NAME,
                metadata={"expired_state": user.state},
            )
            user = await self.user_repo.get_by_id(user_id)
        
        return user
    
    async def set_state(
        self,
        user_id: int,
        new_state,
        expected_action,
        reason: str,
        actor_id: int,
        actor_name: str,
        expires_at=None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Overwrite all state fields of a user.
        
        Raises:
            InvalidStateError: Unknown state or expected action
            UserNotFoundError: If user does not exist
        """
        try:
            new_state = UserState(new_state)
            expected_action = ExpectedAction(expected_action)
        except ValueError as e:
            raise InvalidStateError(f"Invalid state change target: {e}")
        
        current = await self.user_repo.get_by_id(user_id)
        if not current:
            raise UserNotFoundError(f"User {user_id} not found")
        
        updated = await self.user_repo.update_state(
            user_id=user_id,
            state=new_state.value,
            expected_action=expected_action.value,
            reason=reason,
            changed_by_id=actor_id,
            changed_by_username=actor_name,
            expires_at=expires_at,
            metadata=metadata or {},
        )
        if not updated:
            raise UserNotFoundError(f"User {user_id} not found")
        
        logger.info(
            f"User {user_id} state {current.state} -> {new_state.value} "
            f"by {actor_name} ({actor_id}): {reason}"
        )
        await self._record_history(current, new_state, expected_action, reason,
                                   actor_id, actor_name, metadata)
    
    async def _record_history(self, current, new_state, expected_action, reason,
                              actor_id, actor_name, metadata):
        if not self.history_repo:
            return
        
        try:
            await self.history_repo.add(
                user_id=current.id,
                old_state=current.state,
                new_state=new_state.value,
                old_expected_action=current.expected_action,
                new_expected_action=expected_action.value,
                reason=reason,
                changed_by_id=actor_id,
                changed_by_username=actor_name,
                details=metadata or {},
            )
        except StorageError as e:
            logger.error(f"Failed to record state history for user {current.id}: {e}")
    
    # Named transitions
    
    async def block_user(self, user_id: int, reason: str, actor_id: int, actor_name: str):
        """Block user; reason required."""
        if not reason:
            raise InputError("Block reason is required")
        
        await self.set_state(
            user_id, UserState.BLOCKED, ExpectedAction.CONTACT_SUPPORT, reason,
            actor_id, actor_name,
            metadata={"blocked_at": utcnow().isoformat(), "block_reason": reason},
        )
    
    async def activate_user(self, user_id: int, actor_id: int, actor_name: str,
                            reason: str = "user activated",
                            metadata: Optional[Dict[str, Any]] = None):
        """Return user to Active with no expected action."""
        details = {"activated_at": utcnow().isoformat()}
        details.update(metadata or {})
        await self.set_state(
            user_id, UserState.ACTIVE, ExpectedAction.NONE, reason,
            actor_id, actor_name, metadata=details,
        )
    
    async def suspend_user(self, user_id: int, reason: str, duration: timedelta,
                           actor_id: int, actor_name: str):
        """Suspend user until now + duration."""
        if duration.total_seconds() <= 0:
            raise InputError("Suspension duration must be positive")
        
        now = utcnow()
        await self.set_state(
            user_id, UserState.SUSPENDED, ExpectedAction.CONTACT_SUPPORT, reason,
            actor_id, actor_name,
            expires_at=now + duration,
            metadata={
                "suspended_at": now.isoformat(),
                "suspend_reason": reason,
                "suspend_duration": str(duration),
            },
        )
    
    async def request_verification(self, user_id: int, reason: str,
                                   actor_id: int, actor_name: str):
        """Ask user to verify; reason required."""
        if not reason:
            raise InputError("Verification reason is required")
        
        await self.set_state(
            user_id, UserState.PENDING_VERIFICATION, ExpectedAction.VERIFY_EMAIL, reason,
            actor_id, actor_name,
            metadata={
                "verification_requested_at": utcnow().isoformat(),
                "verification_reason": reason,
            },
        )
    
    async def deactivate_user(self, user_id: int, reason: str, actor_id: int, actor_name: str):
        await self.set_state(
            user_id, UserState.INACTIVE, ExpectedAction.CONTACT_SUPPORT, reason,
            actor_id, actor_name,
            metadata={"deactivated_at": utcnow().isoformat()},
        )
    
    async def delete_user(self, user_id: int, reason: str, actor_id: int, actor_name: str):
        """Soft delete. Rows are never removed."""
        await self.set_state(
            user_id, UserState.DELETED, ExpectedAction.NONE, reason,
            actor_id, actor_name,
            metadata={"deleted_at": utcnow().isoformat()},
        )
    
    # Queries
    
    async def is_user_active(self, user_id: int) -> bool:
        try:
            user = await self.get_user_state(user_id)
        except UserNotFoundError:
            return False
        return user.state == UserState.ACTIVE
    
    async def can_perform_action(self, user_id: int) -> Tuple[bool, str]:
        """
        Derive whether the user may act right now.
        
        May activate the user as a side effect when a suspension has expired.
        
        Returns:
            (allowed, reason) where reason is empty when allowed
        """
        try:
            user = await self.get_user_state(user_id)
        except UserNotFoundError:
            return False, "User not found"
        
        try:
            state = UserState(user.state)
        except ValueError:
            return False, "Unknown state"
        
        if state in (UserState.ACTIVE, UserState.ADDING_HOST):
            return True, ""
        
        return False, DENIAL_REASONS[state]
    
    async def get_users_by_state(self, state, limit: int = Constants.DEFAULT_PAGE_SIZE,
                                 offset: int = 0):
        return await self.user_repo.list_by_state(UserState(state).value, limit, offset)
    
    async def get_users_by_expected_action(self, action,
                                           limit: int = Constants.DEFAULT_PAGE_SIZE,
                                           offset: int = 0):
        return await self.user_repo.list_by_expected_action(
            ExpectedAction(action).value, limit, offset
        )
    
    async def get_expired_states(self):
        """Users whose state expiry already passed but was not read since."""
        return await self.user_repo.list_expired(utcnow())
    
    async def get_state_statistics(self) -> Dict[str, Any]:
        """
        Count users by state, by expected action and by combination.
        
        Returns:
            {"total_users", "by_state", "by_action", "combinations"}
        """
        stats = {
            "total_users": 0,
            "by_state": {},
            "by_action": {},
            "combinations": {},
        }
        
        for state, action, count in await self.user_repo.state_statistics():
            stats["total_users"] += count
            stats["by_state"][state] = stats["by_state"].get(state, 0) + count
            stats["by_action"][action] = stats["by_action"].get(action, 0) + count
            stats["combinations"][f"{state}_{action}"] = count
        
        return stats
    
    async def get_state_history(self, user_id: int, limit: int = Constants.DEFAULT_PAGE_SIZE):
        if not self.history_repo:
            return []
        return await self.history_repo.list_for_user(user_id, limit=limit)
