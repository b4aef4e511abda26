"""Services module initialization."""

from xuibot.services.panel_probe import PanelProbe
from xuibot.services.user_state_service import UserStateService
from xuibot.services.host_add_service import HostAddService
from xuibot.services.host_monitor_service import HostMonitorService
from xuibot.services.notification_service import NotificationService

__all__ = [
    "PanelProbe",
    "UserStateService",
    "HostAddService",
    "HostMonitorService",
    "NotificationService",
]
