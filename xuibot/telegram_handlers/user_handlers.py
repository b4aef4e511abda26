"""User handlers for start, help, cancel and free-text input."""

import html
import logging

from telegram import Update, InlineKeyboardButton, InlineKeyboardMarkup
from telegram.ext import ContextTypes

from xuibot.core.errors import HostInputError
from xuibot.core.types import UserState
from xuibot.telegram_handlers.base_handler import BaseHandler, security_handler

logger = logging.getLogger(__name__)


USER_HELP = (
    "🆘 Help\n\n"
    "Commands:\n"
    "• /start - Show main menu\n"
    "• /help - Show this message\n"
    "• /cancel - Cancel the current operation\n"
)

ADMIN_HELP = (
    "\nAdmin commands:\n"
    "• /addhost - Register an x-ui panel\n"
    "• /hosts - List registered panels\n"
    "• /check_hosts - Check all panels now\n"
    "• /check_host <id> - Check one panel now\n"
    "• /monitor - Host monitor menu\n"
    "• /monitor_start, /monitor_stop, /monitor_status\n"
    "• /user_state <id> - Show user state\n"
    "• /block <id> <reason>\n"
    "• /activate <id>\n"
    "• /suspend <id> <minutes> <reason>\n"
    "• /verify <id> <reason>\n"
    "• /state_stats - User state statistics\n"
)


def admin_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([
        [InlineKeyboardButton("➕ Add host", callback_data="addhost")],
        [
            InlineKeyboardButton("🔍 Check hosts", callback_data="check_hosts"),
            InlineKeyboardButton("📊 Monitor status", callback_data="monitor_status"),
        ],
    ])


class UserHandlers(BaseHandler):
    """Handle commands available to every user."""
    
    def __init__(self, user_state_service, policy, host_add_service,
                 rate_limiter=None, audit_logger=None):
        super().__init__(user_state_service, policy, rate_limiter, audit_logger)
        self.host_add = host_add_service
    
    def help_text(self, update: Update) -> str:
        if self.is_admin(update):
            return USER_HELP + ADMIN_HELP
        return USER_HELP
    
    @security_handler(gate=False)
    async def start(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /start; always answers, with the denial reason if any."""
        user = update.effective_user
        allowed, reason = await self.user_state.can_perform_action(user.id)
        
        text = f"👋 Hello, {user.first_name or user.username or user.id}!\n\n"
        if not allowed:
            await self.reply(update, text + f"⛔ Your account is restricted: {reason}")
            return
        
        text += "This bot manages VPN accounts on x-ui panels.\nSend /help for commands."
        markup = admin_keyboard() if self.is_admin(update) else None
        await self.reply(update, text, reply_markup=markup)
    
    @security_handler(gate=False)
    async def help(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /help; always answers."""
        allowed, reason = await self.user_state.can_perform_action(update.effective_user.id)
        text = self.help_text(update)
        if not allowed:
            text += f"\n⛔ Your account is restricted: {reason}"
        await self.reply(update, text)
    
    @security_handler()
    async def cancel(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /cancel."""
        user = update.effective_user
        if not await self.host_add.is_in_add_host_state(user.id):
            await self.reply(update, "Nothing to cancel.")
            return
        
        await self.host_add.cancel_add_host_process(user.id, user.username)
        await self.reply(update, "✅ Host registration cancelled.")
    
    @security_handler(gate=False)
    async def handle_text(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """
        Route plain text.
        
        Users in AddingHost (expired or not) go to host registration, where an
        expired dialog is rejected; everyone else gets the permission check
        and the help message.
        """
        user_id = update.effective_user.id
        user = await self.user_state.get_user(user_id)
        
        if user and user.state == UserState.ADDING_HOST:
            await self.handle_host_input(update, context)
            return
        
        allowed, reason = await self.user_state.can_perform_action(user_id)
        if not allowed:
            await self.reply(update, f"⛔ Action not available: {reason}")
            return
        
        await self.reply(update, self.help_text(update))
    
    async def handle_host_input(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        user_id = update.effective_user.id
        
        allowed, retry_after = await self.check_rate_limit(user_id, "admin:add_host_input")
        if not allowed:
            await self.reply(update, f"⏱️ Rate limited. Retry in {retry_after}s.")
            return
        
        try:
            host = await self.host_add.process_host_data(
                user_id, update.message.text, update.effective_user.username
            )
        except HostInputError as e:
            if e.suggestion:
                await self.reply(
                    update,
                    f"🤔 Did you mean:\n<code>{html.escape(e.suggestion)}</code>\n\n"
                    f"If this is correct, send it again. Otherwise fix the input.\n"
                    f"Format: host login password [secret_key]",
                    parse_mode="HTML",
                )
            else:
                await self.reply(update, f"❌ {e.message}")
            return
        
        await self.reply(
            update,
            f"✅ Host added\n\n"
            f"ID: {host.id}\n"
            f"Name: {host.name}\n"
            f"IP: {host.ip}\n"
            f"Port: {host.port}",
        )
