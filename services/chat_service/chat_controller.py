"""
Chat session controller - the single owner of chat UI state.

Presentation code reads the exposed state and calls the named operations;
nothing else mutates the session, the transcript or the notifications.
"""

import asyncio
from typing import Optional, Sequence

from config.app_config import AppConfig, get_config
from services.auth_service.models import User
from services.auth_service.session_store import SessionStore
from services.chat_service.models import Message, ChatState, now_ms, generate_message_id
from services.chat_service.message_store import MessageStore
from services.notification_service.models import Notification
from services.notification_service.notification_engine import NotificationEngine
from services.ai_service.ai_responder import AIResponder
from services.shop_service.shop import ShopService
from infrastructure.resilience.background_tasks import BackgroundTasks
from utils.logging_config import get_logger, log_chat_event, log_user_interaction


class ChatError(Exception):
    """Chat operation could not be carried out"""


class MessageTooOldError(ChatError):
    """The message behind a notification is no longer in the loaded transcript"""


class ProfileUpdateError(ChatError):
    """Profile edit rejected"""


class ChatController:
    """
    Drives polling, sending, AI replies, selection and notifications for one
    logged-in user.
    """

    def __init__(self, session_store: SessionStore, message_store: MessageStore,
                 notification_engine: NotificationEngine, ai_responder: AIResponder,
                 shop: ShopService = None, config: AppConfig = None):
        self.logger = get_logger(__name__)
        self.config = config or get_config()
        self.session_store = session_store
        self.message_store = message_store
        self.notifications = notification_engine
        self.ai_responder = ai_responder
        self.shop = shop or ShopService(session_store)

        self.state = ChatState.LOADING
        self.ai_thinking = False
        self.input_text = ""
        self.reply_target: Optional[Message] = None
        self.selected_message_id: Optional[str] = None

        self._ticker: Optional[asyncio.Task] = None
        self._polls = BackgroundTasks("chat-poll")

        self.message_store.add_listener(self._on_messages_changed)
        self.session_store.add_listener(self._on_user_changed)

    # ------------------------------------------------------------------ read-only views

    @property
    def current_user(self) -> Optional[User]:
        return self.session_store.current_user

    @property
    def messages(self) -> Sequence[Message]:
        return self.message_store.messages

    @property
    def is_offline(self) -> bool:
        return self.message_store.is_offline

    @property
    def unread_count(self) -> int:
        return self.notifications.unread_count

    # ------------------------------------------------------------------ polling

    def _on_messages_changed(self, messages: Sequence[Message]):
        self.notifications.process(messages, self.session_store.current_user)

    def _on_user_changed(self, user: Optional[User]):
        # A new login sees mentions already in the loaded transcript
        self.notifications.process(self.message_store.messages, user)

    async def refresh(self) -> bool:
        """Run one poll of the message log"""
        try:
            return await self.message_store.fetch_latest()
        finally:
            if self.state == ChatState.LOADING:
                self.state = ChatState.READY
                log_chat_event(self.logger, "ready", messages=len(self.message_store.messages))

    async def start(self):
        """Load the transcript, then keep polling in the background"""
        self.message_store.open()
        await self.refresh()
        if self._ticker is None or self._ticker.done():
            self._ticker = asyncio.get_running_loop().create_task(self._poll_forever())

    async def _poll_forever(self):
        interval = self.config.chat.poll_interval_seconds
        while True:
            await asyncio.sleep(interval)
            # Each tick is its own task; a slow poll does not hold back the next one
            self._polls.spawn(self.refresh(), label="poll")

    async def stop(self):
        """Stop polling; polls already dispatched run to completion and their results are discarded"""
        if self._ticker is not None:
            self._ticker.cancel()
            try:
                await self._ticker
            except asyncio.CancelledError:
                pass
            self._ticker = None
        self.message_store.close()

    # ------------------------------------------------------------------ sending

    def _require_user(self) -> User:
        user = self.session_store.current_user
        if user is None:
            raise ChatError("Log in to chat")
        return user

    async def send_message(self, text: str = None, reply_target: Message = None) -> Optional[Message]:
        """
        Send a message, earning one credit, and answer it with the AI when it mentions the assistant

        Args:
            text: Message text (defaults to the current input draft)
            reply_target: Message being replied to (defaults to the pending reply target)

        Returns:
            The sent message, or None when the text is blank
        """
        text = self.input_text if text is None else text
        reply_target = reply_target or self.reply_target

        trimmed = (text or "").strip()
        if not trimmed:
            return None

        user = self._require_user()
        user = self.session_store.update_local({"credits": user.credits + 1})

        timestamp = now_ms()
        message = Message(
            id=generate_message_id(timestamp),
            user_id=user.id,
            username=user.username,
            text=trimmed,
            timestamp=timestamp,
            avatar=user.avatar,
            user_color=user.name_color,
            reply_to=reply_target.snapshot() if reply_target is not None else None,
        )

        self.input_text = ""
        self.reply_target = None

        context_messages = self.message_store.messages[-self.config.chat.ai_context_window:]
        self.message_store.append(message)
        log_user_interaction(self.logger, "send_message", user_id=message.user_id, message_id=message.id,
                             reply=message.reply_to is not None)

        if self.config.chat.ai_trigger in trimmed.lower():
            await self._answer_with_ai(message, text, context_messages)

        return message

    async def _answer_with_ai(self, message: Message, original_text: str, context_messages: Sequence[Message]):
        context = "\n".join(f"{m.username}: {m.text}" for m in context_messages)

        self.ai_thinking = True
        try:
            try:
                reply = await self.ai_responder.complete(original_text, context)
            except Exception as e:
                self.logger.error(f"AI responder raised: {e.__class__.__name__}: {e}")
                reply = ""
            await asyncio.sleep(self.config.chat.ai_reply_delay_seconds)
        finally:
            self.ai_thinking = False

        chat = self.config.chat
        timestamp = now_ms()
        self.message_store.append(Message(
            id=f"ai-{timestamp}",
            user_id=chat.ai_user_id,
            username=chat.ai_username,
            text=(reply or "").strip() or chat.ai_empty_reply,
            timestamp=timestamp,
            avatar=chat.ai_avatar,
            is_ai=True,
            reply_to=message.snapshot(),
        ))
        log_chat_event(self.logger, "ai_reply", message_id=message.id, user_id=message.user_id)

    # ------------------------------------------------------------------ selection and replies

    def select_message(self, message_id: str) -> Optional[str]:
        """Toggle the expanded message; at most one message is expanded"""
        if self.selected_message_id == message_id:
            self.selected_message_id = None
        else:
            self.selected_message_id = message_id
        return self.selected_message_id

    def reply_to(self, message: Message):
        self.reply_target = message

    def cancel_reply(self):
        self.reply_target = None

    # ------------------------------------------------------------------ notifications

    def open_notification(self, notification_id: str) -> Message:
        """
        Mark a notification read and expand the message it points at

        Raises:
            ChatError: Unknown notification
            MessageTooOldError: Message no longer in the loaded transcript
        """
        notification = self.notifications.mark_read(notification_id)
        if notification is None:
            raise ChatError(f"Unknown notification: {notification_id}")

        message = self.message_store.find(notification.message_id)
        if message is None:
            raise MessageTooOldError("This message may be too old to show.")

        self.selected_message_id = message.id
        return message

    def mark_notification_read(self, notification_id: str) -> Optional[Notification]:
        return self.notifications.mark_read(notification_id)

    def clear_notifications(self):
        self.notifications.clear_all()

    # ------------------------------------------------------------------ profile and shop

    def update_profile(self, username: str, avatar: str = None) -> User:
        """
        Change display name and avatar

        Raises:
            ProfileUpdateError: Blank username
        """
        user = self._require_user()
        username = (username or "").strip()
        if not username:
            raise ProfileUpdateError("Display name cannot be empty")

        avatar = (avatar or "").strip() or user.avatar
        updated = self.session_store.update_local({"username": username, "avatar": avatar})
        log_user_interaction(self.logger, "update_profile", user_id=updated.id)
        return updated

    def purchase_color(self, item_id: str) -> User:
        """Buy a name colour; raises ShopError / InsufficientCreditsError"""
        return self.shop.purchase(item_id)

    # ------------------------------------------------------------------ lifecycle

    async def logout(self):
        await self.stop()
        self.session_store.logout()
        self.notifications.reset()
        self.input_text = ""
        self.reply_target = None
        self.selected_message_id = None

    async def drain(self):
        """Wait for background polls and writes (teardown and tests)"""
        await self._polls.drain()
        await self.message_store.drain()
        await self.session_store.drain()
