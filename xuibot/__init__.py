"""Telegram bot for x-ui panels: user state, host registration and host monitoring."""

__version__ = "0.4.0"
