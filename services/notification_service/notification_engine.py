"""
Notification engine - derives mention and reply notifications from the transcript.
Purely local; nothing here is sent to the server.
"""

from typing import Iterable, List, Optional, Set, Tuple

from config.app_config import get_config
from services.auth_service.models import User
from services.chat_service.models import Message
from services.notification_service.models import Notification, NotificationType
from utils.logging_config import get_logger


class NotificationEngine:
    """
    Keeps the newest-first notification list and the unread counter.
    """

    def __init__(self, max_notifications: int = None):
        self.logger = get_logger(__name__)
        self.max_notifications = max_notifications or get_config().notifications.max_notifications

        self._notifications: List[Notification] = []
        self.unread_count = 0
        # Ids of loaded messages already turned into a notification for the
        # current user; clearing or capping the list must not resurrect them
        self._notified_message_ids: Set[str] = set()
        self._user_id: Optional[str] = None

    @property
    def notifications(self) -> Tuple[Notification, ...]:
        """Notifications, most recent first"""
        return tuple(self._notifications)

    def get(self, notification_id: str) -> Optional[Notification]:
        for notification in self._notifications:
            if notification.id == notification_id:
                return notification
        return None

    @staticmethod
    def classify(message: Message, user: User) -> Optional[NotificationType]:
        """
        Decide whether a message concerns the user

        A reply to the user wins over a mention. Mentions are a plain
        case-insensitive substring test on "@username".
        """
        if message.reply_to is not None and message.reply_to.username == user.username:
            return NotificationType.REPLY
        if f"@{user.username.lower()}" in message.text.lower():
            return NotificationType.MENTION
        return None

    def process(self, messages: Iterable[Message], user: Optional[User]) -> List[Notification]:
        """
        Create notifications for newly observed messages

        Args:
            messages: Current transcript, oldest first
            user: Current user (nothing happens when logged out)

        Returns:
            The notifications created by this call, most recent first
        """
        if user is None:
            return []
        if user.id != self._user_id:
            self.reset()
            self._user_id = user.id

        messages = list(messages)
        # Ids that left the loaded transcript never come back
        self._notified_message_ids &= {message.id for message in messages}

        created = []
        for message in messages:
            if message.user_id == user.id:
                continue
            if message.id in self._notified_message_ids:
                continue

            kind = self.classify(message, user)
            if kind is None:
                continue

            created.append(Notification(
                id=f"notif-{message.id}",
                message_id=message.id,
                sender_name=message.username,
                text=message.text,
                timestamp=message.timestamp,
                type=kind,
            ))
            self._notified_message_ids.add(message.id)

        if not created:
            return []

        created.reverse()
        self._notifications = (created + self._notifications)[:self.max_notifications]
        self.unread_count += len(created)

        self.logger.debug(f"Created {len(created)} notifications for {user.username}")
        return created

    def mark_read(self, notification_id: str) -> Optional[Notification]:
        """Mark one notification read; the unread counter never goes below zero"""
        notification = self.get(notification_id)
        if notification is None:
            return None

        if not notification.is_read:
            notification.is_read = True
            self.unread_count = max(0, self.unread_count - 1)

        return notification

    def clear_all(self):
        self._notifications = []
        self.unread_count = 0

    def reset(self):
        """Forget everything, including which messages already notified (logout or user change)"""
        self.clear_all()
        self._notified_message_ids = set()
        self._user_id = None
