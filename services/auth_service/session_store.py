"""
Session store - durable identity of the logged-in user.

The cached snapshot lives in local storage and is checked against the
credential service at startup. An explicit rejection logs the user out; an
unreachable server leaves the cached identity trusted (offline mode).
"""

import asyncio
import json
from typing import Any, Callable, Dict, List, Optional

from services.auth_service.models import User, SessionState, PATCHABLE_FIELDS
from infrastructure.external.chat_api_client import (
    ChatApiClient,
    CredentialRejectedError,
    TransportError,
    get_chat_api_client,
)
from infrastructure.resilience.background_tasks import BackgroundTasks
from infrastructure.storage.local_storage import LocalStorage, get_local_storage
from utils.logging_config import get_logger

SESSION_KEY = "chat_current_session"


class SessionError(Exception):
    """Operation needs a logged-in user"""


class SessionStore:
    """
    Owns the current identity, its cached snapshot and its lifecycle state.
    """

    def __init__(self, storage: LocalStorage = None, client: ChatApiClient = None):
        self.logger = get_logger(__name__)
        self.storage = storage or get_local_storage()
        self.client = client or get_chat_api_client()

        self._user: Optional[User] = None
        self.state = SessionState.ABSENT
        self.offline_trusted = False

        self._listeners: List[Callable[[Optional[User]], None]] = []
        self._sync = BackgroundTasks("session-sync")

    @property
    def current_user(self) -> Optional[User]:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self.state == SessionState.AUTHENTICATED and self._user is not None

    def add_listener(self, callback: Callable[[Optional[User]], None]):
        """Register a callback fired with the new identity after every change"""
        self._listeners.append(callback)

    def _notify(self):
        for callback in list(self._listeners):
            callback(self._user)

    def _persist(self):
        self.storage.set_item(SESSION_KEY, json.dumps(self._user.to_dict(), ensure_ascii=False))

    def _adopt(self, user: User, persist: bool = True):
        self._user = user
        self.state = SessionState.AUTHENTICATED
        if persist:
            self._persist()
        self._notify()

    def load_cached(self) -> Optional[User]:
        """
        Read the persisted snapshot

        Returns:
            Cached user, or None when nothing usable is stored. Corrupt entries
            and snapshots without a token are removed.
        """
        raw = self.storage.get_item(SESSION_KEY)
        if raw is None:
            return None

        try:
            user = User.from_dict(json.loads(raw))
        except (ValueError, TypeError) as e:
            self.logger.error(f"Discarding corrupt cached session: {e}")
            self.storage.remove_item(SESSION_KEY)
            return None

        if not user.token:
            self.logger.info(f"Discarding cached session without token for user: {user.id}")
            self.storage.remove_item(SESSION_KEY)
            return None

        return user

    async def verify(self, user: User) -> Optional[User]:
        """
        Confirm a cached identity with the credential service

        Args:
            user: Cached snapshot (must carry a token)

        Returns:
            The identity now in effect, or None if the session was rejected
        """
        self.state = SessionState.PENDING_VERIFICATION
        self.offline_trusted = False

        try:
            payload = await asyncio.to_thread(self.client.verify, user.id, user.token)
            verified = User.from_dict(payload)
        except CredentialRejectedError as e:
            self.logger.info(f"Session rejected for user {user.id}: {e}")
            self.logout()
            return None
        except (TransportError, ValueError) as e:
            self.logger.warning(f"Session verify unavailable, trusting cached identity for {user.id}: {e}")
            self.offline_trusted = True
            self._adopt(user, persist=False)
            return user

        if not verified.token:
            verified = verified.with_changes(token=user.token)

        self._adopt(verified)
        self.logger.info(f"Session verified for user: {verified.id}")
        return verified

    async def restore(self) -> Optional[User]:
        """Startup path: load the cached snapshot and verify it if present"""
        cached = self.load_cached()
        if cached is None:
            self.state = SessionState.ABSENT
            return None
        return await self.verify(cached)

    def login(self, user: User):
        """Adopt a freshly authenticated identity and persist it with its token"""
        if not user.token:
            self.logger.warning(f"Logging in user {user.id} without a session token")
        self.offline_trusted = False
        self._adopt(user)
        self.logger.info(f"User logged in: {user.id}")

    def logout(self):
        """Forget the identity and its persisted snapshot"""
        user_id = self._user.id if self._user else None
        self._user = None
        self.state = SessionState.ABSENT
        self.offline_trusted = False
        self.storage.remove_item(SESSION_KEY)
        self._notify()
        if user_id:
            self.logger.info(f"User logged out: {user_id}")

    def update_local(self, patch: Dict[str, Any]) -> User:
        """
        Apply a profile patch locally, then push it to the server in the background

        The token is never taken from the patch. The local change stands even
        if the push fails. Must be called from inside the running event loop.

        Args:
            patch: Wire-style field changes (username, avatar, nameColor, credits, ...)

        Returns:
            The updated user
        """
        if self._user is None:
            raise SessionError("No user is logged in")

        changes = {}
        for key, value in patch.items():
            field_name = PATCHABLE_FIELDS.get(key)
            if field_name is None:
                self.logger.debug(f"Ignoring non-patchable profile field: {key}")
                continue
            changes[field_name] = value

        if "credits" in changes and int(changes["credits"]) < 0:
            raise ValueError("Credits cannot go negative")

        updated = self._user.with_changes(**changes)
        self._user = updated
        self._persist()
        self._notify()

        self._sync.spawn(self._push_update(updated), label=f"update:{updated.id}")
        return updated

    async def _push_update(self, user: User):
        try:
            await asyncio.to_thread(self.client.update, user.to_dict())
        except (TransportError, CredentialRejectedError) as e:
            self.logger.error(f"Sync to server failed for user {user.id}: {e}")

    async def drain(self):
        """Wait for in-flight profile pushes"""
        await self._sync.drain()
