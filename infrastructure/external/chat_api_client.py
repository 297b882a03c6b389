"""
HTTP adapter for the remote chat backend.
Talks to the credential endpoint (/api/users) and the message log (/api/chat).

All methods are blocking; async callers run them through asyncio.to_thread.
"""

from typing import Any, Dict, List, Optional
import requests

from config.app_config import get_config
from infrastructure.storage.local_storage import LocalStorage, get_local_storage
from utils.logging_config import get_logger

API_URL_KEY = "chat_api_url"


class TransportError(Exception):
    """The remote side could not be reached or did not give a usable answer"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CredentialRejectedError(Exception):
    """The credential service explicitly refused the request"""

    def __init__(self, message: str, code: str = "invalid_request", status_code: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.status_code = status_code


class ChatApiClient:
    """
    Client for the chat backend REST endpoints.
    The base URL comes from a user-configured override kept in local storage.
    """

    def __init__(self, storage: LocalStorage = None, http=None, timeout: Optional[float] = None):
        """
        Initialize API client

        Args:
            storage: Local storage holding the endpoint override
            http: requests-compatible session (defaults to a new requests.Session)
            timeout: Per-request timeout in seconds, None for the transport default
        """
        self.logger = get_logger(__name__)
        self.config = get_config()
        self.storage = storage or get_local_storage()
        self.http = http or requests.Session()
        self.timeout = timeout if timeout is not None else self.config.server.request_timeout

    # ------------------------------------------------------------------ endpoint

    def get_base_url(self) -> str:
        """Configured base URL without trailing slash"""
        base_url = self.storage.get_item(API_URL_KEY)
        if not base_url:
            base_url = self.config.server.default_base_url
        return base_url.strip().rstrip("/")

    def set_base_url(self, url: str) -> None:
        """Persist a new base URL override; empty string restores the configured default"""
        self.storage.set_item(API_URL_KEY, (url or "").strip())
        self.logger.info(f"API base URL set to: {self.get_base_url()}")

    def url(self, endpoint: str) -> str:
        return f"{self.get_base_url()}{endpoint}"

    # ------------------------------------------------------------------ plumbing

    def _request(self, method: str, endpoint: str, **kwargs):
        """Send a request, turning connection problems into TransportError"""
        try:
            return self.http.request(method, self.url(endpoint), timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise TransportError(f"{method} {endpoint} failed: {e}") from e

    @staticmethod
    def _json(response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise TransportError("Response body is not JSON", response.status_code) from e
        if not isinstance(data, dict):
            raise TransportError("Response body is not an object", response.status_code)
        return data

    def _users_call(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST an action to the credential endpoint and classify the outcome"""
        response = self._request("POST", self.config.server.users_path, json=payload)

        if response.status_code >= 500:
            raise TransportError(f"Credential service error {response.status_code}", response.status_code)

        data = self._json(response)

        if 400 <= response.status_code < 500:
            raise CredentialRejectedError(
                data.get("error") or "Request rejected",
                code=data.get("code") or "invalid_request",
                status_code=response.status_code,
            )

        if not data.get("success"):
            raise TransportError("Credential service returned an unexpected body", response.status_code)

        return data

    # ------------------------------------------------------------------ credentials

    def register(self, user: Dict[str, Any]) -> Dict[str, Any]:
        """Register a candidate user (including password); returns the user with token"""
        data = self._users_call({"action": "register", "user": user})
        return self._require_user(data)

    def login(self, user_id: str, password: str) -> Dict[str, Any]:
        """Authenticate; returns the user with a fresh token"""
        data = self._users_call({"action": "login", "id": user_id, "password": password})
        return self._require_user(data)

    def verify(self, user_id: str, token: str) -> Dict[str, Any]:
        """Check a cached (id, token) pair; returns the server's view of the user"""
        data = self._users_call({"action": "verify", "id": user_id, "token": token})
        return self._require_user(data)

    def update(self, user: Dict[str, Any]) -> None:
        """Push a profile/credit update"""
        self._users_call({"action": "update", "user": user})

    @staticmethod
    def _require_user(data: Dict[str, Any]) -> Dict[str, Any]:
        user = data.get("user")
        if not isinstance(user, dict):
            raise TransportError("Credential service response is missing the user")
        return user

    # ------------------------------------------------------------------ messages

    def list_messages(self) -> List[Dict[str, Any]]:
        """Fetch the most recent messages, ascending by timestamp"""
        response = self._request(
            "GET",
            self.config.server.chat_path,
            headers={"Cache-Control": "no-cache"},
        )
        if not 200 <= response.status_code < 300:
            raise TransportError(f"Message fetch failed with {response.status_code}", response.status_code)

        messages = self._json(response).get("messages")
        if not isinstance(messages, list):
            raise TransportError("Message fetch returned no message list", response.status_code)
        return messages

    def append_message(self, message: Dict[str, Any]) -> None:
        """Persist one message to the remote log"""
        response = self._request("POST", self.config.server.chat_path, json=message)
        if not 200 <= response.status_code < 300:
            raise TransportError(f"Message persist failed with {response.status_code}", response.status_code)


# Global client instance
_chat_api_client: Optional[ChatApiClient] = None


def get_chat_api_client() -> ChatApiClient:
    """Get the global chat API client instance"""
    global _chat_api_client
    if _chat_api_client is None:
        _chat_api_client = ChatApiClient()
    return _chat_api_client
