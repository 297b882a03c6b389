"""
Chat service data models for messages and transcript state.
"""

import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


def now_ms() -> int:
    """Current epoch time in milliseconds"""
    return int(time.time() * 1000)


def generate_message_id(timestamp: Optional[int] = None) -> str:
    """Send-time id: epoch millis followed by five random digits"""
    timestamp = timestamp if timestamp is not None else now_ms()
    return f"{timestamp}{random.randint(0, 99999):05d}"


@dataclass(frozen=True)
class ReplyInfo:
    """Frozen copy of the message being replied to"""
    id: str
    username: str
    text: str

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "username": self.username, "text": self.text}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ReplyInfo':
        return cls(id=str(data["id"]), username=str(data.get("username") or ""), text=str(data.get("text") or ""))


@dataclass(frozen=True)
class Message:
    """Single chat message; never edited after it is sent"""
    id: str
    user_id: str
    username: str
    text: str
    timestamp: int  # epoch milliseconds
    avatar: Optional[str] = None
    user_color: Optional[str] = None  # sender colour at send time
    is_ai: bool = False
    reply_to: Optional[ReplyInfo] = None

    def snapshot(self) -> ReplyInfo:
        """Reply snapshot pointing at this message"""
        return ReplyInfo(id=self.id, username=self.username, text=self.text)

    def to_dict(self) -> Dict[str, Any]:
        """Wire/cache form (camelCase); replyTo omitted when absent"""
        data = {
            "id": self.id,
            "userId": self.user_id,
            "username": self.username,
            "avatar": self.avatar,
            "text": self.text,
            "timestamp": self.timestamp,
            "isAi": self.is_ai,
            "userColor": self.user_color,
        }
        if self.reply_to is not None:
            data["replyTo"] = self.reply_to.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Message':
        """Build a message from its wire/cache form"""
        reply = data.get("replyTo")
        return cls(
            id=str(data["id"]),
            user_id=str(data.get("userId") or ""),
            username=str(data.get("username") or ""),
            text=str(data.get("text") or ""),
            timestamp=int(data.get("timestamp") or 0),
            avatar=data.get("avatar"),
            user_color=data.get("userColor"),
            is_ai=bool(data.get("isAi")),
            reply_to=ReplyInfo.from_dict(reply) if reply and reply.get("id") else None,
        )


class ConnectivityState(Enum):
    """Whether the remote message log answered the last poll"""
    ONLINE = "online"
    OFFLINE = "offline"


class ChatState(Enum):
    """Chat session controller lifecycle"""
    LOADING = "loading"
    READY = "ready"
