"""
OceanChat - Streamlit front-end.

Presentation only: every state change goes through the ChatController,
AuthManager or SessionStore. The async core runs on one background event
loop shared by the whole Streamlit process.
"""

import asyncio
import threading
from datetime import datetime

import streamlit as st

from config.app_config import get_config
from infrastructure.external.chat_api_client import ChatApiClient
from infrastructure.storage.local_storage import get_session_storage, new_session_id
from services.ai_service import get_ai_responder
from services.auth_service import AuthManager, AuthenticationError, SessionStore, PasswordStrength, evaluate_password_strength
from services.chat_service import MessageStore
from services.chat_service.chat_controller import ChatController, ChatError
from services.notification_service import NotificationEngine
from services.shop_service import ShopError, ShopService
from utils.logging_config import initialize_logging, get_logger

# Initialize logging and error tracking
error_tracker = initialize_logging()
logger = get_logger(__name__)

# Get configuration
config = get_config()

STRENGTH_LABELS = {
    PasswordStrength.NONE: "too short",
    PasswordStrength.WEAK: "weak",
    PasswordStrength.MEDIUM: "medium",
    PasswordStrength.STRONG: "strong",
}


@st.cache_resource
def get_event_loop() -> asyncio.AbstractEventLoop:
    """Background loop that owns every store and controller"""
    loop = asyncio.new_event_loop()
    threading.Thread(target=loop.run_forever, name="chat-core", daemon=True).start()
    return loop


def run(coro):
    """Run a coroutine on the core loop and wait for its result"""
    return asyncio.run_coroutine_threadsafe(coro, get_event_loop()).result()


def call(func, *args):
    """Run a plain callable on the core loop (it may schedule background writes)"""
    async def _call():
        return func(*args)
    return run(_call())


def get_app():
    """Per-browser-session wiring of the core components"""
    if "chat_app" not in st.session_state:
        # Each browser session gets its own storage file
        if "storage_id" not in st.session_state:
            st.session_state.storage_id = new_session_id()
        storage = get_session_storage(st.session_state.storage_id)
        client = ChatApiClient(storage=storage)
        session_store = SessionStore(storage=storage, client=client)
        message_store = MessageStore(remote=client, storage=storage)
        controller = ChatController(
            session_store=session_store,
            message_store=message_store,
            notification_engine=NotificationEngine(),
            ai_responder=get_ai_responder(),
            shop=ShopService(session_store),
        )
        st.session_state.chat_app = {
            "session": session_store,
            "auth": AuthManager(session_store, client),
            "controller": controller,
            "started": False,
        }
        run(session_store.restore())
    return st.session_state.chat_app


def render_login(app):
    st.title(config.ui.app_title)
    register_tab, login_tab, settings_tab = st.tabs(["Register", "Login", "Server"])

    with register_tab:
        with st.form("register"):
            user_id = st.text_input("ID (at least 5 characters)")
            username = st.text_input("Display name")
            password = st.text_input("Password", type="password")
            submitted = st.form_submit_button("Create account")
        if password:
            strength = evaluate_password_strength(password, config.auth.password_min_length)
            st.caption(f"Password strength: {STRENGTH_LABELS[strength]}")
        if submitted:
            try:
                run(app["auth"].register(user_id, username, password))
                st.rerun()
            except AuthenticationError as e:
                st.error(str(e))

    with login_tab:
        with st.form("login"):
            login_id = st.text_input("ID")
            login_password = st.text_input("Password", type="password")
            submitted = st.form_submit_button("Log in")
        if submitted:
            try:
                run(app["auth"].login(login_id, login_password))
                st.rerun()
            except AuthenticationError as e:
                st.error(str(e))

    with settings_tab:
        server_url = st.text_input("Server address (empty = default server)", value=app["auth"].get_server_url())
        if st.button("Save server"):
            app["auth"].set_server_url(server_url)
            st.success("Server address saved")


def render_sidebar(app):
    controller: ChatController = app["controller"]
    user = controller.current_user

    with st.sidebar:
        st.image(user.avatar or f"https://ui-avatars.com/api/?name={user.username}", width=64)
        st.markdown(f"**{user.username}** · 💰 {user.credits} credits")

        with st.expander(f"🔔 Notifications ({controller.unread_count})"):
            for notification in controller.notifications.notifications:
                label = f"{'•' if not notification.is_read else ' '} {notification.sender_name}: {notification.text[:40]}"
                if st.button(label, key=notification.id):
                    try:
                        call(controller.open_notification, notification.id)
                    except ChatError as e:
                        st.warning(str(e))
            if st.button("Clear all"):
                call(controller.clear_notifications)

        with st.expander("🛒 Shop"):
            for item in controller.shop.list_items():
                if st.button(f"{item.name} ({item.price})", key=f"shop-{item.id}"):
                    try:
                        call(controller.purchase_color, item.id)
                        st.success(f"Equipped {item.name}")
                    except ShopError as e:
                        st.error(str(e))

        with st.expander("👤 Profile"):
            username = st.text_input("Display name", value=user.username)
            avatar = st.selectbox("Avatar", config.auth.avatars)
            if st.button("Save profile"):
                try:
                    call(controller.update_profile, username, avatar)
                except ChatError as e:
                    st.error(str(e))

        if st.button("Log out"):
            run(controller.logout())
            app["started"] = False
            st.rerun()


@st.fragment(run_every=config.chat.poll_interval_seconds)
def render_messages(controller: ChatController):
    if controller.is_offline:
        st.caption(f"🔴 {config.ui.offline_label}")
    else:
        st.caption(f"🟢 {config.ui.online_label}")

    for message in controller.messages:
        with st.chat_message("assistant" if message.is_ai else "user", avatar=message.avatar):
            if message.reply_to is not None:
                st.caption(f"↪ {message.reply_to.username}: {message.reply_to.text[:60]}")
            st.markdown(f"**{message.username}**: {message.text}")
            if st.button("⋯", key=f"sel-{message.id}"):
                call(controller.select_message, message.id)
            if controller.selected_message_id == message.id:
                st.caption(datetime.fromtimestamp(message.timestamp / 1000).strftime("%H:%M:%S"))
                if st.button("Reply", key=f"reply-{message.id}"):
                    call(controller.reply_to, message)

    if controller.ai_thinking:
        st.caption(f"{config.chat.ai_username} is typing...")


def main_app(app):
    controller: ChatController = app["controller"]
    if not app["started"]:
        run(controller.start())
        app["started"] = True

    render_sidebar(app)
    st.title(config.ui.app_title)
    render_messages(controller)

    if controller.reply_target is not None:
        st.info(f"Replying to {controller.reply_target.username}")
        if st.button("Cancel reply"):
            call(controller.cancel_reply)

    prompt = st.chat_input("Message (mention @gemini to ask the AI)")
    if prompt:
        try:
            run(controller.send_message(prompt))
        except ChatError as e:
            error_tracker.track_error(e, "send_message")
            st.error(str(e))
        st.rerun()


def main():
    st.set_page_config(page_title=config.ui.app_title, page_icon="🌊")
    app = get_app()
    if app["session"].is_authenticated:
        main_app(app)
    else:
        render_login(app)


main()
