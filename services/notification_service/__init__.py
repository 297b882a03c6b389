"""
Notification service - mention/reply notifications derived from the transcript.
"""

from .models import Notification, NotificationType
from .notification_engine import NotificationEngine

__all__ = [
    'Notification',
    'NotificationType',
    'NotificationEngine'
]
