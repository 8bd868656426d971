"""Account notification delivery."""

from .dispatcher import (
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    dispatch_safely,
    get_notification_dispatcher,
    set_notification_dispatcher,
)

__all__ = [
    "LoggingNotificationDispatcher",
    "NotificationDispatcher",
    "dispatch_safely",
    "get_notification_dispatcher",
    "set_notification_dispatcher",
]
