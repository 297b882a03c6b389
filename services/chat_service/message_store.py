"""
Message store - one ordered transcript reconciled from the remote message log
and a bounded local cache.

Remote reads replace the transcript wholesale (skipped when the tail is
unchanged). When the remote log is unreachable the local cache is adopted only
if it would not shrink the transcript. Sends are applied locally and cached
before the remote write is attempted; a failed remote write is logged and
otherwise ignored.
"""

import asyncio
import json
from typing import Callable, List, Optional, Sequence, Tuple

from config.app_config import get_config
from services.chat_service.models import Message, ConnectivityState
from infrastructure.external.chat_api_client import ChatApiClient, TransportError, get_chat_api_client
from infrastructure.resilience.background_tasks import BackgroundTasks
from infrastructure.storage.local_storage import LocalStorage, get_local_storage
from utils.logging_config import get_logger, log_chat_event

CACHE_KEY = "chat_messages"


class MessageStore:
    """
    Dual-backend transcript: remote message log first, local cache as fallback.
    """

    def __init__(self, remote: ChatApiClient = None, storage: LocalStorage = None,
                 cache_limit: int = None):
        """
        Initialize message store

        Args:
            remote: Remote message log (list_messages / append_message)
            storage: Local storage holding the message cache
            cache_limit: Most recent messages kept in the local cache
        """
        self.logger = get_logger(__name__)
        self.remote = remote or get_chat_api_client()
        self.storage = storage or get_local_storage()
        self.cache_limit = cache_limit or get_config().chat.local_cache_limit

        self._messages: Tuple[Message, ...] = ()
        self.connectivity = ConnectivityState.ONLINE
        self.version = 0  # bumped on every transcript change

        self._listeners: List[Callable[[Tuple[Message, ...]], None]] = []
        self._writes = BackgroundTasks("message-persist")
        self._closed = False
        self._generation = 0  # bumped by close(); polls dispatched earlier are discarded

    @property
    def messages(self) -> Tuple[Message, ...]:
        """Current transcript, oldest first"""
        return self._messages

    @property
    def is_offline(self) -> bool:
        return self.connectivity == ConnectivityState.OFFLINE

    def add_listener(self, callback: Callable[[Tuple[Message, ...]], None]):
        """Register a callback fired with the transcript whenever it changes"""
        self._listeners.append(callback)

    def find(self, message_id: str) -> Optional[Message]:
        for message in self._messages:
            if message.id == message_id:
                return message
        return None

    def _replace(self, messages: Tuple[Message, ...]):
        self._messages = messages
        self.version += 1
        for callback in list(self._listeners):
            callback(self._messages)

    # ------------------------------------------------------------------ local cache

    def load_cache(self) -> List[Message]:
        """Read the cached transcript; unreadable cache counts as empty"""
        raw = self.storage.get_item(CACHE_KEY)
        if not raw:
            return []

        try:
            return [Message.from_dict(item) for item in json.loads(raw)]
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            self.logger.error(f"Local message cache unreadable: {e}")
            return []

    def _save_cache(self, messages: Sequence[Message]):
        recent = list(messages)[-self.cache_limit:]
        try:
            self.storage.set_item(CACHE_KEY, json.dumps([m.to_dict() for m in recent], ensure_ascii=False))
        except OSError as e:
            self.logger.error(f"Local message cache write failed: {e}")

    # ------------------------------------------------------------------ connectivity

    def _set_connectivity(self, state: ConnectivityState, reason: str = ""):
        if state == self.connectivity:
            return
        self.connectivity = state
        if state == ConnectivityState.OFFLINE:
            self.logger.warning(f"Message log unreachable, switching to local cache: {reason}")
        log_chat_event(self.logger, state.value, connectivity=state.value, reason=reason)

    # ------------------------------------------------------------------ reads

    def _is_unchanged(self, incoming: Tuple[Message, ...]) -> bool:
        current = self._messages
        if len(incoming) != len(current):
            return False
        if not incoming:
            return True
        return incoming[-1].id == current[-1].id

    async def fetch_latest(self) -> bool:
        """
        Poll the remote log and reconcile

        Returns:
            True if the transcript changed
        """
        generation = self._generation
        try:
            payload = await asyncio.to_thread(self.remote.list_messages)
            incoming = tuple(Message.from_dict(item) for item in payload)
        except (TransportError, ValueError, TypeError, KeyError, AttributeError) as e:
            if self._is_stale(generation):
                return False
            return self._fall_back_to_cache(e)

        if self._is_stale(generation):
            return False

        self._set_connectivity(ConnectivityState.ONLINE)

        if self._is_unchanged(incoming):
            return False

        self._replace(incoming)
        return True

    def _fall_back_to_cache(self, error: Exception) -> bool:
        self._set_connectivity(ConnectivityState.OFFLINE, reason=str(error))

        cached = self.load_cache()
        current = self._messages

        # Never shrink the transcript; an empty one (fresh start) takes any cache
        if (not current and cached) or len(cached) > len(current):
            self._replace(tuple(cached))
            return True

        return False

    # ------------------------------------------------------------------ writes

    def append(self, message: Message):
        """
        Show a message immediately and cache it, then persist it remotely in the background

        Must be called from inside the running event loop.
        """
        updated = self._messages + (message,)
        self._save_cache(updated)
        self._replace(updated)

        self._writes.spawn(self._persist_remote(message), label=message.id)

    async def _persist_remote(self, message: Message):
        try:
            await asyncio.to_thread(self.remote.append_message, message.to_dict())
        except TransportError as e:
            self.logger.info(f"Message {message.id} kept locally only (offline mode): {e}")
            log_chat_event(self.logger, "persist_failed", message_id=message.id)

    # ------------------------------------------------------------------ lifecycle

    def _is_stale(self, generation: int) -> bool:
        return self._closed or generation != self._generation

    def open(self):
        """Apply poll results again after close(); polls dispatched before the close stay discarded"""
        self._closed = False

    def close(self):
        """Stop applying poll results; dispatched polls finish and are discarded, sends still complete"""
        self._closed = True
        self._generation += 1

    async def drain(self):
        """Wait for in-flight remote persists"""
        await self._writes.drain()
