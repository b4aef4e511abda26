"""x-ui panel client module."""

from xuibot.xui.client import XUIClient

__all__ = [
    "XUIClient",
]
