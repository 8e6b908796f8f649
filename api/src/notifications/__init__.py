"""Notifications module for user notifications.

Provides:
- Notification creation for learning events
- Notification listing
- Mark as read functionality
- Unread counts

Note: Router and service are imported directly in main.py to avoid circular imports.
"""

from src.notifications.models import (
    NOTIFICATIONS_TABLES_CQL,
    Notification,
    NotificationMetadata,
    NotificationPriority,
    NotificationType,
)


__all__ = [
    "NOTIFICATIONS_TABLES_CQL",
    "Notification",
    "NotificationMetadata",
    "NotificationPriority",
    "NotificationType",
]
