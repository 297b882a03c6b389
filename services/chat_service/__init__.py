"""
Chat service - messages and the dual-backend transcript.
The session controller lives in services.chat_service.chat_controller.
"""

from .models import Message, ReplyInfo, ConnectivityState, ChatState
from .message_store import MessageStore

__all__ = [
    'Message',
    'ReplyInfo',
    'ConnectivityState',
    'ChatState',
    'MessageStore'
]
