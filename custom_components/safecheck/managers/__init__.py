"""Manager modules for SafeCheck integration.

Managers own the stateful workflows and talk to the document store:
- checkin_manager: Check-in transaction, history, vacation mode, SOS, registration
- schedule_manager: Atomic schedule add/remove and next-expected recompute
- monitor_manager: Change-feed subscriptions, deadline timers, missed check-ins
- notification_manager: Alert delivery behind the persisted cooldown gate
"""

from .base_manager import BaseManager
from .checkin_manager import CheckInManager
from .monitor_manager import MonitorManager
from .notification_manager import NotificationManager
from .schedule_manager import ScheduleManager

__all__ = [
    "BaseManager",
    "CheckInManager",
    "MonitorManager",
    "NotificationManager",
    "ScheduleManager",
]
