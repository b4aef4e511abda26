"""Bot entry point: wire services and handlers, then poll."""

import logging

from telegram import Update
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from xuibot.core.constants import Constants
from xuibot.db import (
    DatabaseConnection,
    UserRepository,
    StateHistoryRepository,
    HostRepository,
)
from xuibot.security import AdminPolicy, AuditLogger, RateLimiter, SecretsManager
from xuibot.services import (
    HostAddService,
    HostMonitorService,
    NotificationService,
    PanelProbe,
    UserStateService,
)
from xuibot.telegram_handlers import AdminHandlers, UserHandlers
from xuibot.utils.logger import setup_logging

logger = logging.getLogger(__name__)


async def on_error(update: object, context: ContextTypes.DEFAULT_TYPE):
    """Log unhandled handler errors and tell the user something went wrong."""
    logger.error(f"Unhandled error: {context.error}", exc_info=context.error)
    if isinstance(update, Update) and update.effective_message:
        await update.effective_message.reply_text(f"❌ {Constants.ERROR_CODES['INTERNAL']}")


def build_application(config) -> Application:
    """
    Build the Telegram application with every service wired in.
    
    Args:
        config: Config class (or any object with the same attributes)
    """
    db = DatabaseConnection(config.DATABASE_URL)
    user_repo = UserRepository(db)
    history_repo = StateHistoryRepository(db)
    host_repo = HostRepository(db)
    
    policy = AdminPolicy(config.ADMIN_IDS, config.ADMIN_USERNAMES)
    secrets_manager = SecretsManager(config.ENCRYPTION_KEY)
    audit_logger = AuditLogger(db)
    rate_limiter = RateLimiter.from_url(config.REDIS_URL) if config.RATE_LIMIT_ENABLED else None
    
    probe = PanelProbe(secrets_manager, timeout=config.PANEL_TIMEOUT_SECONDS)
    notifier = NotificationService(admin_ids=config.ADMIN_IDS)
    user_state = UserStateService(user_repo, history_repo)
    host_add = HostAddService(
        user_state, host_repo, probe, policy, secrets_manager, audit_logger=audit_logger
    )
    monitor = HostMonitorService(
        host_repo,
        probe,
        notifier,
        check_interval=config.HOST_MONITOR_INTERVAL_MINUTES * 60,
        max_concurrency=config.HOST_MONITOR_MAX_CONCURRENCY,
    )
    
    user_handlers = UserHandlers(
        user_state, policy, host_add, rate_limiter=rate_limiter, audit_logger=audit_logger
    )
    admin_handlers = AdminHandlers(
        user_state, policy, host_add, monitor, host_repo,
        rate_limiter=rate_limiter, audit_logger=audit_logger,
    )
    
    async def post_init(application: Application):
        await db.ping()
        await db.create_tables()
        notifier.set_application(application)
        if config.HOST_MONITOR_AUTOSTART:
            await monitor.start()
    
    async def post_shutdown(application: Application):
        if monitor.is_running():
            await monitor.stop()
        if rate_limiter:
            await rate_limiter.close()
        await db.close()
    
    app = (
        ApplicationBuilder()
        .token(config.TELEGRAM_BOT_TOKEN)
        .post_init(post_init)
        .post_shutdown(post_shutdown)
        .build()
    )
    
    # Commands
    app.add_handler(CommandHandler("start", user_handlers.start))
    app.add_handler(CommandHandler("help", user_handlers.help))
    app.add_handler(CommandHandler("cancel", user_handlers.cancel))
    app.add_handler(CommandHandler("addhost", admin_handlers.add_host))
    app.add_handler(CommandHandler("hosts", admin_handlers.list_hosts))
    app.add_handler(CommandHandler("monitor", admin_handlers.monitor_menu))
    app.add_handler(CommandHandler("monitor_start", admin_handlers.monitor_start))
    app.add_handler(CommandHandler("monitor_stop", admin_handlers.monitor_stop))
    app.add_handler(CommandHandler("monitor_status", admin_handlers.monitor_status))
    app.add_handler(CommandHandler("check_hosts", admin_handlers.check_hosts))
    app.add_handler(CommandHandler("check_host", admin_handlers.check_host))
    app.add_handler(CommandHandler("user_state", admin_handlers.user_state_info))
    app.add_handler(CommandHandler("block", admin_handlers.block))
    app.add_handler(CommandHandler("activate", admin_handlers.activate))
    app.add_handler(CommandHandler("suspend", admin_handlers.suspend))
    app.add_handler(CommandHandler("verify", admin_handlers.verify))
    app.add_handler(CommandHandler("state_stats", admin_handlers.state_stats))
    
    # Buttons
    app.add_handler(CallbackQueryHandler(admin_handlers.add_host, pattern="^addhost$"))
    app.add_handler(CallbackQueryHandler(admin_handlers.check_hosts, pattern="^check_hosts$"))
    app.add_handler(CallbackQueryHandler(admin_handlers.monitor_start, pattern="^monitor_start$"))
    app.add_handler(CallbackQueryHandler(admin_handlers.monitor_stop, pattern="^monitor_stop$"))
    app.add_handler(CallbackQueryHandler(admin_handlers.monitor_status, pattern="^monitor_status$"))
    
    # Free text (host registration input, otherwise help)
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, user_handlers.handle_text))
    
    app.add_error_handler(on_error)
    return app


def main():
    from xuibot.core.config import Config
    
    setup_logging(Config.LOG_LEVEL, Config.LOG_FILE)
    app = build_application(Config)
    
    logger.info("Starting x-ui bot")
    app.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    main()
