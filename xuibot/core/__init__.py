"""Core module initialization."""

from xuibot.core.constants import Constants

try:
    from xuibot.core.config import Config
    __all__ = ["Config", "Constants"]
except ValueError:
    # Config requires environment variables - that's OK for testing
    __all__ = ["Constants"]
    Config = None
