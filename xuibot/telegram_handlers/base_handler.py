"""Base handler with user tracking, permission gate and error replies."""

import logging
from functools import wraps
from typing import Callable, Optional

from telegram import Update
from telegram.ext import ContextTypes

from xuibot.core.constants import Constants
from xuibot.core.errors import XUIBotError

logger = logging.getLogger(__name__)


class BaseHandler:
    """
    Base handler for all Telegram commands.
    
    Provides:
    - User registration on first contact
    - State-based permission gate
    - Admin checks through the authorization policy
    - Rate limiting
    - Audit logging
    - Translation of service errors into one reply
    """
    
    def __init__(self, user_state_service, policy, rate_limiter=None, audit_logger=None):
        """
        Args:
            user_state_service: UserStateService instance
            policy: AuthorizationPolicy instance
            rate_limiter: RateLimiter instance
            audit_logger: AuditLogger instance
        """
        self.user_state = user_state_service
        self.policy = policy
        self.rate_limiter = rate_limiter
        self.audit_logger = audit_logger
    
    async def ensure_user(self, update: Update):
        user = update.effective_user
        return await self.user_state.ensure_user(
            user.id,
            username=user.username,
            first_name=user.first_name,
            last_name=user.last_name,
            is_bot=user.is_bot,
        )
    
    def is_admin(self, update: Update) -> bool:
        user = update.effective_user
        return self.policy.is_privileged(user.id, user.username)
    
    @staticmethod
    def actor(update: Update):
        """(id, display name) for actor and audit fields; never for authorization."""
        user = update.effective_user
        return user.id, user.username or user.full_name or str(user.id)
    
    async def check_rate_limit(self, user_id: int, action: str) -> tuple:
        """
        Check rate limit for action.
        
        Args:
            user_id: User ID
            action: Key into Constants.RATE_LIMITS
        
        Returns:
            (allowed: bool, retry_after: int or None)
        """
        if not self.rate_limiter:
            return True, None
        
        rule = Constants.RATE_LIMITS[action]
        return await self.rate_limiter.check_limit(
            f"user:{user_id}:{action}", rule["limit"], rule["window"]
        )
    
    async def log_action(self, user_id: int, action: str, resource_type: str = "user",
                         resource_id: Optional[str] = None, status: str = "success",
                         error_code: Optional[str] = None, details: Optional[dict] = None):
        """Log action to audit trail."""
        if not self.audit_logger:
            return
        
        await self.audit_logger.log(
            user_id=user_id,
            action=action,
            status=status,
            resource_type=resource_type,
            resource_id=resource_id,
            error_code=error_code,
            details=details or {},
        )
    
    @staticmethod
    async def reply(update: Update, text: str, reply_markup=None,
                    parse_mode: Optional[str] = None):
        """Answer a message or a button press with a new message."""
        await update.effective_message.reply_text(
            text,
            reply_markup=reply_markup,
            parse_mode=parse_mode,
        )


def security_handler(gate=True, admin=False, rate_limit=None):
    """
    Decorator combining all checks for a handler method.
    
    Args:
        gate: Run the user state permission check
        admin: Require global admin
        rate_limit: Key into Constants.RATE_LIMITS
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(self, update: Update, context: ContextTypes.DEFAULT_TYPE, *args, **kwargs):
            if update.callback_query:
                await update.callback_query.answer()
            
            user_id = update.effective_user.id
            try:
                await self.ensure_user(update)
                
                if gate:
                    allowed, reason = await self.user_state.can_perform_action(user_id)
                    if not allowed:
                        await self.reply(update, f"⛔ Action not available: {reason}")
                        return
                
                if admin and not self.is_admin(update):
                    await self.reply(update, "❌ Admin only.")
                    return
                
                if rate_limit:
                    allowed, retry_after = await self.check_rate_limit(user_id, rate_limit)
                    if not allowed:
                        await self.reply(update, f"⏱️ Rate limited. Retry in {retry_after}s.")
                        return
                
                return await func(self, update, context, *args, **kwargs)
            except XUIBotError as e:
                logger.info(f"{func.__name__} rejected for {user_id}: {e.code}: {e.message}")
                await self.reply(update, f"❌ {e.message}")
        
        return wrapper
    
    return decorator
