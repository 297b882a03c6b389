"""
Tests for the remote chat backend client
"""

import pytest
import requests
from unittest.mock import Mock

from infrastructure.external.chat_api_client import (
    API_URL_KEY,
    ChatApiClient,
    CredentialRejectedError,
    TransportError,
)
from infrastructure.storage.local_storage import LocalStorage


def make_response(status_code=200, body=None, json_error=False):
    response = Mock()
    response.status_code = status_code
    if json_error:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = body
    return response


class TestEndpoint:

    def setup_method(self):
        self.http = Mock()

    def test_override_is_persisted_and_trailing_slash_stripped(self, tmp_path):
        storage = LocalStorage(str(tmp_path / "ls.json"))
        client = ChatApiClient(storage=storage, http=self.http)

        client.set_base_url(" https://chat.example.com/ ")

        assert storage.get_item(API_URL_KEY) == "https://chat.example.com/"
        assert client.url("/api/chat") == "https://chat.example.com/api/chat"

    def test_empty_override_restores_default_server(self, tmp_path):
        client = ChatApiClient(storage=LocalStorage(str(tmp_path / "ls.json")), http=self.http)
        client.set_base_url("https://chat.example.com")

        client.set_base_url("")

        assert client.url("/api/users") == client.config.server.default_base_url.rstrip("/") + "/api/users"
        assert client.url("/api/users").startswith("http")

    def test_request_uses_configured_url_and_timeout(self, tmp_path):
        storage = LocalStorage(str(tmp_path / "ls.json"))
        storage.set_item(API_URL_KEY, "http://host:9000")
        self.http.request.return_value = make_response(body={"messages": []})
        client = ChatApiClient(storage=storage, http=self.http, timeout=2.5)

        client.list_messages()

        args, kwargs = self.http.request.call_args
        assert args == ("GET", "http://host:9000/api/chat")
        assert kwargs["timeout"] == 2.5
        assert kwargs["headers"]["Cache-Control"] == "no-cache"


class TestCredentialCalls:

    def setup_method(self):
        self.http = Mock()

    def client(self, tmp_path):
        storage = LocalStorage(str(tmp_path / "ls.json"))
        storage.set_item(API_URL_KEY, "http://host")
        return ChatApiClient(storage=storage, http=self.http)

    def test_login_success_returns_user(self, tmp_path):
        self.http.request.return_value = make_response(
            body={"success": True, "user": {"id": "diver01", "username": "Diver", "token": "t"}}
        )

        user = self.client(tmp_path).login("diver01", "abc123")

        assert user["token"] == "t"
        assert self.http.request.call_args.kwargs["json"] == {
            "action": "login", "id": "diver01", "password": "abc123"
        }

    def test_rejection_carries_code(self, tmp_path):
        self.http.request.return_value = make_response(
            401, {"error": "Session expired", "code": "session_expired"}
        )

        with pytest.raises(CredentialRejectedError) as exc_info:
            self.client(tmp_path).verify("diver01", "stale")

        assert exc_info.value.code == "session_expired"
        assert exc_info.value.status_code == 401
        assert str(exc_info.value) == "Session expired"

    def test_server_error_is_transport_failure(self, tmp_path):
        self.http.request.return_value = make_response(500, {"error": "Server Error"})

        with pytest.raises(TransportError):
            self.client(tmp_path).verify("diver01", "t")

    def test_connection_error_is_transport_failure(self, tmp_path):
        self.http.request.side_effect = requests.ConnectionError("refused")

        with pytest.raises(TransportError):
            self.client(tmp_path).login("diver01", "abc123")

    def test_malformed_body_is_transport_failure(self, tmp_path):
        self.http.request.return_value = make_response(200, json_error=True)

        with pytest.raises(TransportError):
            self.client(tmp_path).login("diver01", "abc123")

    def test_success_without_user_is_transport_failure(self, tmp_path):
        self.http.request.return_value = make_response(200, {"success": True})

        with pytest.raises(TransportError):
            self.client(tmp_path).register({"id": "diver01"})

    def test_update_sends_user(self, tmp_path):
        self.http.request.return_value = make_response(200, {"success": True})

        self.client(tmp_path).update({"id": "diver01", "credits": 51})

        assert self.http.request.call_args.kwargs["json"] == {
            "action": "update", "user": {"id": "diver01", "credits": 51}
        }


class TestMessageCalls:

    def setup_method(self):
        self.http = Mock()

    def client(self, tmp_path):
        return ChatApiClient(storage=LocalStorage(str(tmp_path / "ls.json")), http=self.http)

    def test_list_messages(self, tmp_path):
        self.http.request.return_value = make_response(body={"messages": [{"id": "1"}]})

        assert self.client(tmp_path).list_messages() == [{"id": "1"}]

    def test_list_messages_non_2xx(self, tmp_path):
        self.http.request.return_value = make_response(500, {"messages": [], "error": "db"})

        with pytest.raises(TransportError) as exc_info:
            self.client(tmp_path).list_messages()
        assert exc_info.value.status_code == 500

    def test_list_messages_missing_list(self, tmp_path):
        self.http.request.return_value = make_response(200, {"messages": None})

        with pytest.raises(TransportError):
            self.client(tmp_path).list_messages()

    def test_append_message_failure(self, tmp_path):
        self.http.request.return_value = make_response(400, {"error": "Missing required fields"})

        with pytest.raises(TransportError):
            self.client(tmp_path).append_message({"id": "1"})
