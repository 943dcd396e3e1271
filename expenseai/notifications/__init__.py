"""Real-time notifications package."""

from expenseai.notifications.broadcaster import (
    ClientConnection,
    NotificationBroadcaster,
)

__all__ = ["ClientConnection", "NotificationBroadcaster"]
