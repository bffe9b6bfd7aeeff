"""
View synchronisation: event bus, poll scheduler, API client and view models.
"""

from .bus import EventBus, sync_bus
from .cache import PendingRequestCache
from .client import RecordsAPIClient
from .scheduler import PollScheduler
from .views import NotificationFeed, ResidentView, AdminView

__all__ = [
    "EventBus",
    "sync_bus",
    "PendingRequestCache",
    "RecordsAPIClient",
    "PollScheduler",
    "NotificationFeed",
    "ResidentView",
    "AdminView",
]
