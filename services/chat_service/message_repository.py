"""
Message repository - server-side message log behind /api/chat.
"""

import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Any, Dict, List, Optional

from config.app_config import get_config
from utils.logging_config import get_logger


class MessageRepository:
    """
    Append-only message log with bounded retention.
    """

    def __init__(self, db_path: str = None, retention_limit: int = None):
        """
        Initialize message repository

        Args:
            db_path: Path to message database (defaults to config setting)
            retention_limit: Newest messages kept after each append
        """
        self.logger = get_logger(__name__)
        config = get_config()
        self.db_path = db_path or config.server.message_db_path
        self.retention_limit = retention_limit or config.chat.remote_retention_limit
        self._init_database()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_database(self):
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        with closing(self._connect()) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    id TEXT PRIMARY KEY,
                    user_id TEXT,
                    username TEXT,
                    avatar TEXT,
                    text TEXT,
                    timestamp INTEGER,
                    is_ai BOOLEAN,
                    reply_to_id TEXT,
                    reply_to_username TEXT,
                    reply_to_text TEXT,
                    user_color TEXT
                )
            """)
            conn.commit()

        self.logger.info("Message database initialized")

    @staticmethod
    def _row_to_dict(row: sqlite3.Row) -> Dict[str, Any]:
        message = {
            "id": row["id"],
            "userId": row["user_id"],
            "username": row["username"],
            "avatar": row["avatar"],
            "text": row["text"],
            "timestamp": int(row["timestamp"] or 0),
            "isAi": bool(row["is_ai"]),
            "userColor": row["user_color"],
        }
        if row["reply_to_id"]:
            message["replyTo"] = {
                "id": row["reply_to_id"],
                "username": row["reply_to_username"],
                "text": row["reply_to_text"],
            }
        return message

    def list_recent(self, limit: int = None) -> List[Dict[str, Any]]:
        """
        Most recent messages in wire form

        Args:
            limit: How many of the newest messages to return

        Returns:
            Messages ascending by timestamp
        """
        limit = limit or get_config().chat.remote_fetch_limit
        with closing(self._connect()) as conn:
            rows = conn.execute(
                "SELECT * FROM messages ORDER BY timestamp DESC LIMIT ?", (limit,)
            ).fetchall()

        return [self._row_to_dict(row) for row in reversed(rows)]

    def append(self, message: Dict[str, Any]) -> None:
        """
        Store one wire-form message, then prune to the retention limit

        Raises:
            ValueError: Missing text or username
        """
        if not message.get("text") or not message.get("username"):
            raise ValueError("Missing required fields")

        reply_to: Optional[Dict[str, Any]] = message.get("replyTo") or {}

        with closing(self._connect()) as conn:
            conn.execute("""
                INSERT INTO messages (id, user_id, username, avatar, text, timestamp, is_ai,
                                      reply_to_id, reply_to_username, reply_to_text, user_color)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (message.get("id"), message.get("userId"), message["username"], message.get("avatar"),
                  message["text"], int(message.get("timestamp") or 0), bool(message.get("isAi", False)),
                  reply_to.get("id"), reply_to.get("username"), reply_to.get("text"),
                  message.get("userColor")))
            conn.commit()

            try:
                conn.execute("""
                    DELETE FROM messages WHERE id NOT IN (
                        SELECT id FROM messages ORDER BY timestamp DESC LIMIT ?
                    )
                """, (self.retention_limit,))
                conn.commit()
            except sqlite3.Error as e:
                self.logger.error(f"Message cleanup failed: {e}")

    def count(self) -> int:
        with closing(self._connect()) as conn:
            return conn.execute("SELECT COUNT(*) FROM messages").fetchone()[0]


# Global message repository instance
_message_repository: Optional[MessageRepository] = None


def get_message_repository() -> MessageRepository:
    """Get the global message repository instance"""
    global _message_repository
    if _message_repository is None:
        _message_repository = MessageRepository()
    return _message_repository
