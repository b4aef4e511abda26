"""Notification service for sending messages to admins and users."""

import html
import logging
from typing import Iterable, List, Optional

from xuibot.core.types import HostCheckResult
from xuibot.utils.time_helpers import format_timestamp

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Send Telegram messages. Delivery is best effort: failures are logged
    and reported as False, never raised.
    """
    
    def __init__(self, admin_ids: Iterable[int] = (), bot_application=None):
        """
        Args:
            admin_ids: Chat IDs that receive host reports
            bot_application: Telegram Application instance for sending messages
        """
        self.admin_ids = list(admin_ids)
        self.bot_application = bot_application
    
    def set_application(self, bot_application):
        """Attach the Application once it has been built."""
        self.bot_application = bot_application
    
    async def notify_user(self, user_id: int, message: str,
                          parse_mode: Optional[str] = "HTML") -> bool:
        """
        Send message to one chat.
        
        Returns:
            Success status
        """
        if not self.bot_application:
            logger.warning(f"Bot application not available for notification to {user_id}")
            return False
        
        try:
            await self.bot_application.bot.send_message(
                chat_id=user_id,
                text=message,
                parse_mode=parse_mode,
            )
            logger.info(f"Sent notification to {user_id}")
            return True
        
        except Exception as e:
            logger.error(f"Error sending notification to {user_id}: {e}")
            return False
    
    async def notify_admins(self, message: str, parse_mode: Optional[str] = "HTML") -> int:
        """
        Send message to every configured admin.
        
        Returns:
            Number of successful deliveries
        """
        sent = 0
        for admin_id in self.admin_ids:
            if await self.notify_user(admin_id, message, parse_mode):
                sent += 1
        return sent
    
    async def notify_inactive_hosts(self, results: List[HostCheckResult]) -> int:
        """One report listing every failing host with its error and check time."""
        message = "🚨 <b>Inactive hosts detected:</b>\n\n"
        for result in results:
            message += (
                f"❌ <b>{html.escape(result.host_name)}</b> "
                f"(<code>{html.escape(result.host_url)}</code>)\n"
                f"   Error: {html.escape(result.error or 'unknown')}\n"
                f"   Checked: {format_timestamp(result.checked_at)}\n\n"
            )
        message += "These hosts were disabled and will not be used for new VPN accounts."
        
        sent = await self.notify_admins(message)
        logger.info(f"Inactive hosts report ({len(results)} hosts) sent to {sent} admins")
        return sent
    
    async def notify_reactivated_hosts(self, results: List[HostCheckResult]) -> int:
        """One report listing every host that recovered."""
        message = "✅ <b>Hosts are reachable again:</b>\n\n"
        for result in results:
            message += (
                f"🟢 <b>{html.escape(result.host_name)}</b> "
                f"(<code>{html.escape(result.host_url)}</code>)\n"
                f"   Checked: {format_timestamp(result.checked_at)}\n\n"
            )
        message += "These hosts were enabled again."
        
        sent = await self.notify_admins(message)
        logger.info(f"Reactivated hosts report ({len(results)} hosts) sent to {sent} admins")
        return sent
    
