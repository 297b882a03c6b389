"""
End-to-end: client stores talking to the real API app over its test transport
"""

import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, Mock

from api.server import create_app
from config.app_config import AppConfig
from infrastructure.external.chat_api_client import ChatApiClient
from infrastructure.storage.local_storage import LocalStorage
from services.auth_service.auth_manager import AuthManager
from services.auth_service.session_store import SessionStore
from services.auth_service.user_repository import UserRepository
from services.chat_service.chat_controller import ChatController
from services.chat_service.message_repository import MessageRepository
from services.chat_service.message_store import MessageStore
from services.notification_service.notification_engine import NotificationEngine


class TestEndToEnd:

    @pytest.fixture(autouse=True)
    def setup_stack(self, tmp_path):
        self.tmp_path = tmp_path
        self.users = UserRepository(str(tmp_path / "server" / "users.db"))
        self.http = TestClient(create_app(self.users, MessageRepository(str(tmp_path / "server" / "messages.db"))))

        self.config = AppConfig()
        self.config.chat.ai_reply_delay_seconds = 0.01
        self.responder = Mock()
        self.responder.complete = AsyncMock(return_value="Welcome to the reef!")

    def build_client(self, name):
        storage = LocalStorage(str(self.tmp_path / f"{name}.json"))
        api = ChatApiClient(storage=storage, http=self.http)
        api.set_base_url("http://testserver")
        session_store = SessionStore(storage=storage, client=api)
        controller = ChatController(
            session_store=session_store,
            message_store=MessageStore(remote=api, storage=storage),
            notification_engine=NotificationEngine(),
            ai_responder=self.responder,
            config=self.config,
        )
        return storage, session_store, AuthManager(session_store, api), controller

    @pytest.mark.asyncio
    async def test_register_chat_and_ai_reply(self):
        _, session_store, auth, controller = self.build_client("diver")

        user = await auth.register("diver01", "Diver", "abc123")
        assert user.credits == 50

        await controller.start()
        message = await controller.send_message("hi @gemini")
        await controller.drain()
        await controller.stop()

        assert session_store.current_user.credits == 51
        assert self.users.verify("diver01", user.token).credits == 51

        _, _, _, observer = self.build_client("observer")
        await observer.refresh()
        remote = observer.messages
        assert [m.text for m in remote] == ["hi @gemini", "Welcome to the reef!"]
        assert remote[1].is_ai is True
        assert remote[1].reply_to.id == message.id

    @pytest.mark.asyncio
    async def test_restart_restores_verified_session(self):
        storage, session_store, auth, _ = self.build_client("diver")
        await auth.register("diver01", "Diver", "abc123")

        restarted = SessionStore(storage=storage, client=session_store.client)
        user = await restarted.restore()

        assert user.id == "diver01"
        assert restarted.offline_trusted is False

    @pytest.mark.asyncio
    async def test_login_elsewhere_expires_old_session(self):
        storage, session_store, auth, _ = self.build_client("laptop")
        await auth.register("diver01", "Diver", "abc123")

        _, _, other_auth, _ = self.build_client("phone")
        await other_auth.login("diver01", "abc123")

        restarted = SessionStore(storage=storage, client=session_store.client)
        assert await restarted.restore() is None
        assert restarted.current_user is None

    @pytest.mark.asyncio
    async def test_mention_notifies_other_user(self):
        _, _, alice_auth, alice = self.build_client("alice")
        _, _, bob_auth, bob = self.build_client("bob")
        await alice_auth.register("alice01", "Alice", "abc123")
        await bob_auth.register("bobby01", "Bob", "abc123")

        await alice.send_message("hey @bob")
        await alice.drain()
        await bob.refresh()

        assert bob.unread_count == 1
        notification = bob.notifications.notifications[0]
        assert notification.sender_name == "Alice"
        assert bob.open_notification(notification.id).text == "hey @bob"
