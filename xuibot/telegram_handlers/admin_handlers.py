"""Admin handlers for host registration, host monitoring and user state management."""

import html
import logging
from datetime import timedelta

from telegram import Update, InlineKeyboardButton, InlineKeyboardMarkup
from telegram.ext import ContextTypes

from xuibot.core.constants import Constants
from xuibot.core.errors import InputError, MonitorStateError
from xuibot.security.validators import InputValidator
from xuibot.telegram_handlers.base_handler import BaseHandler, security_handler
from xuibot.utils.time_helpers import format_timestamp

logger = logging.getLogger(__name__)


def monitor_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([
        [
            InlineKeyboardButton("▶️ Start", callback_data="monitor_start"),
            InlineKeyboardButton("⏹️ Stop", callback_data="monitor_stop"),
        ],
        [
            InlineKeyboardButton("📊 Status", callback_data="monitor_status"),
            InlineKeyboardButton("🔍 Check now", callback_data="check_hosts"),
        ],
    ])


def parse_user_id(args) -> int:
    if not args or not InputValidator.validate_user_id(args[0]):
        raise InputError("Expected a numeric user ID")
    return int(args[0])


class AdminHandlers(BaseHandler):
    """Handle admin-only commands and callbacks."""
    
    def __init__(self, user_state_service, policy, host_add_service, host_monitor,
                 host_repo, rate_limiter=None, audit_logger=None):
        super().__init__(user_state_service, policy, rate_limiter, audit_logger)
        self.host_add = host_add_service
        self.monitor = host_monitor
        self.host_repo = host_repo
    
    # Host registration
    
    @security_handler()
    async def add_host(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /addhost and the addhost button."""
        user = update.effective_user
        await self.host_add.start_add_host_process(user.id, user.username)
        await self.reply(update, self.host_add.get_add_host_instructions(), parse_mode="Markdown")
    
    @security_handler(admin=True)
    async def list_hosts(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /hosts."""
        hosts = await self.host_repo.list_hosts(limit=Constants.DEFAULT_PAGE_SIZE)
        if not hosts:
            await self.reply(update, "No hosts registered. Use /addhost.")
            return
        
        total = await self.host_repo.count()
        lines = [f"🖥️ <b>Hosts</b> ({total})\n"]
        for host in hosts:
            icon = "🟢" if host.is_active else "🔴"
            lines.append(
                f"{icon} <b>{host.id}</b> {html.escape(host.name)}\n"
                f"   <code>{html.escape(host.url)}</code>\n"
                f"   Checked: {format_timestamp(host.last_checked_at)}"
            )
            if not host.is_active and host.last_error:
                lines.append(f"   Error: {html.escape(host.last_error)}")
        
        await self.reply(update, "\n".join(lines), parse_mode="HTML")
    
    # Host monitor
    
    @security_handler(admin=True)
    async def monitor_menu(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /monitor."""
        state = "running" if self.monitor.is_running() else "stopped"
        await self.reply(update, f"🩺 Host monitor is {state}.", reply_markup=monitor_keyboard())
    
    @security_handler(admin=True)
    async def monitor_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /monitor_start and its button."""
        try:
            await self.monitor.start()
        except MonitorStateError:
            await self.reply(update, "ℹ️ Host monitor is already running.")
            return
        
        await self.log_action(update.effective_user.id, "monitor.started", "monitor")
        await self.reply(update, "✅ Host monitor started.")
    
    @security_handler(admin=True)
    async def monitor_stop(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /monitor_stop and its button."""
        try:
            await self.monitor.stop()
        except MonitorStateError:
            await self.reply(update, "ℹ️ Host monitor is not running.")
            return
        
        await self.log_action(update.effective_user.id, "monitor.stopped", "monitor")
        await self.reply(update, "⏹️ Host monitor stopped.")
    
    @security_handler(admin=True)
    async def monitor_status(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /monitor_status and its button."""
        status = self.monitor.get_monitoring_status()
        summary = status["last_sweep_summary"]
        
        text = (
            f"📊 Host monitor\n\n"
            f"Running: {'yes' if status['is_running'] else 'no'}\n"
            f"Interval: {status['check_interval']}\n"
            f"Max concurrent probes: {status['max_concurrency']}\n"
            f"Last sweep: {format_timestamp(status['last_sweep_at'])}"
        )
        if summary:
            text += (
                f"\nChecked: {summary['checked']}, failed: {summary['failed']}, "
                f"reactivated: {summary['reactivated']}"
            )
        await self.reply(update, text)
    
    @security_handler(admin=True, rate_limit="admin:check_hosts")
    async def check_hosts(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /check_hosts and its button: run one sweep now."""
        await self.reply(update, "🔍 Checking all hosts...")
        report = await self.monitor.check_all_hosts()
        
        text = (
            f"✅ Check finished\n\n"
            f"Checked: {report.checked}\n"
            f"Failed: {len(report.failed)}\n"
            f"Reactivated: {len(report.reactivated)}"
        )
        for result in report.failed:
            text += f"\n❌ {result.host_name}: {result.error}"
        await self.reply(update, text)
    
    @security_handler(admin=True, rate_limit="admin:check_hosts")
    async def check_host(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /check_host <id>."""
        if not context.args or not InputValidator.validate_host_id(context.args[0]):
            raise InputError("Usage: /check_host <host_id>")
        
        result = await self.monitor.check_host_now(int(context.args[0]))
        if result.success:
            await self.reply(update, f"🟢 {result.host_name} is reachable.")
        else:
            await self.reply(update, f"🔴 {result.host_name} is unreachable: {result.error}")
    
    # User state management
    
    @security_handler(admin=True)
    async def user_state_info(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /user_state <id>."""
        target_id = parse_user_id(context.args)
        user = await self.user_state.get_user_state(target_id)
        history = await self.user_state.get_state_history(target_id, limit=5)
        
        text = (
            f"👤 User {user.id} (@{user.username or '-'})\n\n"
            f"State: {user.state}\n"
            f"Expected action: {user.expected_action}\n"
            f"Reason: {user.state_reason or '-'}\n"
            f"Changed: {format_timestamp(user.state_changed_at)} "
            f"by {user.state_changed_by_username or user.state_changed_by_id}\n"
            f"Expires: {format_timestamp(user.state_expires_at)}"
        )
        if history:
            text += "\n\nRecent changes:"
            for entry in history:
                text += (
                    f"\n• {format_timestamp(entry.created_at)} "
                    f"{entry.old_state} → {entry.new_state} ({entry.reason})"
                )
        await self.reply(update, text)
    
    @security_handler(admin=True)
    async def block(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /block <id> <reason>."""
        target_id = parse_user_id(context.args)
        reason = InputValidator.sanitize_reason(" ".join(context.args[1:]))
        if not reason:
            raise InputError("Usage: /block <user_id> <reason>")
        
        actor_id, actor_name = self.actor(update)
        await self.user_state.block_user(target_id, reason, actor_id, actor_name)
        await self.log_action(actor_id, "user.blocked", "user", target_id, details={"reason": reason})
        await self.reply(update, f"🚫 User {target_id} blocked.")
    
    @security_handler(admin=True)
    async def activate(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /activate <id>."""
        target_id = parse_user_id(context.args)
        actor_id, actor_name = self.actor(update)
        await self.user_state.activate_user(target_id, actor_id, actor_name)
        await self.log_action(actor_id, "user.activated", "user", target_id)
        await self.reply(update, f"✅ User {target_id} activated.")
    
    @security_handler(admin=True)
    async def suspend(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /suspend <id> <minutes> <reason>."""
        target_id = parse_user_id(context.args)
        if len(context.args) < 3 or not InputValidator.validate_minutes(context.args[1]):
            raise InputError("Usage: /suspend <user_id> <minutes> <reason>")
        
        minutes = int(context.args[1])
        reason = InputValidator.sanitize_reason(" ".join(context.args[2:]))
        actor_id, actor_name = self.actor(update)
        await self.user_state.suspend_user(
            target_id, reason, timedelta(minutes=minutes), actor_id, actor_name
        )
        await self.log_action(
            actor_id, "user.suspended", "user", target_id,
            details={"reason": reason, "minutes": minutes},
        )
        await self.reply(update, f"⏸️ User {target_id} suspended for {minutes} min.")
    
    @security_handler(admin=True)
    async def verify(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /verify <id> <reason>."""
        target_id = parse_user_id(context.args)
        reason = InputValidator.sanitize_reason(" ".join(context.args[1:]))
        if not reason:
            raise InputError("Usage: /verify <user_id> <reason>")
        
        actor_id, actor_name = self.actor(update)
        await self.user_state.request_verification(target_id, reason, actor_id, actor_name)
        await self.log_action(
            actor_id, "user.verification_requested", "user", target_id,
            details={"reason": reason},
        )
        await self.reply(update, f"📧 Verification requested from user {target_id}.")
    
    @security_handler(admin=True)
    async def state_stats(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /state_stats."""
        stats = await self.user_state.get_state_statistics()
        expired = await self.user_state.get_expired_states()
        
        text = f"📊 Users: {stats['total_users']}\n\nBy state:"
        for state, count in sorted(stats["by_state"].items()):
            text += f"\n• {state}: {count}"
        text += "\n\nBy expected action:"
        for action, count in sorted(stats["by_action"].items()):
            text += f"\n• {action}: {count}"
        text += f"\n\nExpired, not yet resolved: {len(expired)}"
        await self.reply(update, text)
