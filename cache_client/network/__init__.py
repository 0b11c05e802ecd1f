"""Network module for the cache client."""

from .connection import ConnectionDriver
from .notifications import NotificationChannel
from .subscription import SubscriptionLifecycle

__all__ = [
    "ConnectionDriver",
    "NotificationChannel",
    "SubscriptionLifecycle",
]
