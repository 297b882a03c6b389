"""
Authentication manager - registration and login flows of the login view.
"""

import asyncio
import random
from typing import Optional

from config.app_config import get_config
from services.auth_service.models import User, PasswordStrength, evaluate_password_strength
from services.auth_service.session_store import SessionStore
from infrastructure.external.chat_api_client import (
    ChatApiClient,
    CredentialRejectedError,
    TransportError,
    get_chat_api_client,
)
from utils.logging_config import get_logger, log_user_interaction

SERVER_UNREACHABLE = "Cannot reach the server! Check the server address in settings."


class AuthenticationError(Exception):
    """Registration or login refused; the message is shown to the user as is"""


class AuthManager:
    """
    Validates credentials client-side, calls the credential service and hands
    the authenticated identity to the session store.
    """

    def __init__(self, session_store: SessionStore, client: ChatApiClient = None):
        self.logger = get_logger(__name__)
        self.config = get_config()
        self.session_store = session_store
        self.client = client or get_chat_api_client()

    def validate_registration(self, user_id: str, username: str, password: str):
        """
        Client-side registration checks

        Raises:
            AuthenticationError: With the message to show
        """
        if not user_id or not username or not password:
            raise AuthenticationError("Please fill in all fields!")

        if len(user_id) < self.config.auth.min_id_length:
            raise AuthenticationError(
                f"ID too short! It must have at least {self.config.auth.min_id_length} characters."
            )

        strength = evaluate_password_strength(password, self.config.auth.password_min_length)
        if strength < PasswordStrength.MEDIUM:
            if len(password) < self.config.auth.password_min_length:
                raise AuthenticationError(
                    f"Password too short (at least {self.config.auth.password_min_length} characters)."
                )
            raise AuthenticationError("Password too weak! Use both letters and numbers.")

    async def register(self, user_id: str, username: str, password: str) -> User:
        """
        Create an account and log it in

        Args:
            user_id: Chosen login id
            username: Display name
            password: Plain text password

        Returns:
            The logged-in user (with token)

        Raises:
            AuthenticationError: Validation failure, rejection or unreachable server
        """
        user_id = (user_id or "").strip()
        username = (username or "").strip()
        password = (password or "").strip()

        self.validate_registration(user_id, username, password)

        candidate = User(
            id=user_id,
            username=username,
            avatar=random.choice(self.config.auth.avatars),
            color=random.choice(self.config.auth.colors),
            name_color=self.config.auth.default_name_color,
            credits=self.config.auth.starting_credits,
        )
        payload = candidate.to_dict(include_token=False)
        payload["password"] = password

        user = await self._call(self.client.register, payload, failure="Registration failed")
        self.session_store.login(user)
        log_user_interaction(self.logger, "register", user_id=user.id)
        return user

    async def login(self, user_id: str, password: str) -> User:
        """
        Log in with id and password

        Raises:
            AuthenticationError: Missing fields, rejection or unreachable server
        """
        user_id = (user_id or "").strip()
        password = (password or "").strip()

        if not user_id or not password:
            raise AuthenticationError("Please enter your ID and password!")

        user = await self._call(self.client.login, user_id, password, failure="Login failed")
        self.session_store.login(user)
        log_user_interaction(self.logger, "login", user_id=user.id)
        return user

    async def _call(self, func, *args, failure: str) -> User:
        try:
            payload = await asyncio.to_thread(func, *args)
            return User.from_dict(payload)
        except CredentialRejectedError as e:
            self.logger.info(f"{failure}: {e.code}")
            raise AuthenticationError(str(e) or failure) from e
        except TransportError as e:
            self.logger.warning(f"{failure}, server unreachable: {e}")
            raise AuthenticationError(SERVER_UNREACHABLE) from e
        except ValueError as e:
            self.logger.error(f"{failure}, malformed user payload: {e}")
            raise AuthenticationError(failure) from e

    def get_server_url(self) -> str:
        return self.client.get_base_url()

    def set_server_url(self, url: Optional[str]):
        """Persist the server address override; takes effect on the next request"""
        self.client.set_base_url(url or "")
