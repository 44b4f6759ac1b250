"""
Notifications module - In-app notifications and the activity feed.
"""

from app.modules.notifications.models import (
    ACTIVITY_ACTION_MARKED_OVERDUE,
    NOTIFICATION_TYPE_OVERDUE_PAYMENT,
    ActivityLog,
    Notification,
)

__all__ = [
    "ActivityLog",
    "Notification",
    "ACTIVITY_ACTION_MARKED_OVERDUE",
    "NOTIFICATION_TYPE_OVERDUE_PAYMENT",
]
