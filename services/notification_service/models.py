"""
Notification data models.
"""

from dataclasses import dataclass
from enum import Enum


class NotificationType(Enum):
    MENTION = "mention"
    REPLY = "reply"


@dataclass
class Notification:
    """Local-only projection of a message that mentions or replies to the current user"""
    id: str
    message_id: str
    sender_name: str
    text: str
    timestamp: int
    type: NotificationType
    is_read: bool = False
