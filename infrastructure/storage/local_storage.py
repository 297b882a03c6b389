"""
Client-side durable key/value storage.

Values are plain strings (callers serialize JSON themselves), the whole store
is one JSON document on disk and every write replaces the file atomically.
"""

import json
import os
import re
import tempfile
import threading
import uuid
from pathlib import Path
from typing import Dict, Optional

from config.app_config import get_config
from utils.logging_config import get_logger


class LocalStorage:
    """
    Durable string key/value store backed by a single JSON file.
    """

    def __init__(self, path: str = None):
        """
        Initialize local storage

        Args:
            path: Path to the backing JSON file (defaults to config setting)
        """
        self.logger = get_logger(__name__)
        self.path = Path(path or get_config().storage.local_storage_path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._items: Dict[str, str] = self._load()

    def _load(self) -> Dict[str, str]:
        """Read the backing file; unreadable contents count as empty"""
        if not self.path.exists():
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as e:
            self.logger.error(f"Local storage unreadable, starting empty: {e}")
            return {}

        if not isinstance(data, dict):
            self.logger.error("Local storage root is not an object, starting empty")
            return {}

        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _flush(self):
        """Atomically rewrite the backing file"""
        fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), prefix=".ls-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self._items, fh, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value for key, or None"""
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        """Store value under key and persist"""
        self._items[key] = value
        self._flush()

    def remove_item(self, key: str) -> None:
        """Remove key if present and persist"""
        if key in self._items:
            del self._items[key]
            self._flush()

    def clear(self) -> None:
        """Remove every key"""
        self._items = {}
        self._flush()

    def keys(self):
        return list(self._items.keys())


# Global local storage instance
_local_storage: Optional[LocalStorage] = None


def get_local_storage() -> LocalStorage:
    """Get the global local storage instance"""
    global _local_storage
    if _local_storage is None:
        _local_storage = LocalStorage()
    return _local_storage


# One store per browser session, each in its own file
SESSION_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")

_session_storages: Dict[str, LocalStorage] = {}
_session_lock = threading.Lock()


def new_session_id() -> str:
    return uuid.uuid4().hex


def get_session_storage(session_id: str, base_dir: str = None) -> LocalStorage:
    """
    Get the storage private to one browser session

    Args:
        session_id: 32 hex characters, as produced by new_session_id()
        base_dir: Directory holding the per-session files (defaults to config setting)

    Raises:
        ValueError: If the session id is malformed
    """
    if not isinstance(session_id, str) or not SESSION_ID_PATTERN.match(session_id):
        raise ValueError(f"Invalid session id: {session_id!r}")

    path = str(Path(base_dir or get_config().storage.session_dir) / f"{session_id}.json")
    with _session_lock:
        if path not in _session_storages:
            _session_storages[path] = LocalStorage(path)
        return _session_storages[path]
