"""
FastAPI server exposing the credential service (/api/users) and the shared
message log (/api/chat).

Run with: python -m api.server
"""

from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from config.app_config import get_config
from services.auth_service.user_repository import (
    CredentialError,
    UserRepository,
    get_user_repository,
)
from services.chat_service.message_repository import MessageRepository, get_message_repository
from utils.logging_config import get_logger, initialize_logging

logger = get_logger(__name__)


# Schemas for requests
class UsersRequest(BaseModel):
    action: str
    id: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None
    user: Optional[Dict[str, Any]] = None


class ReplyPayload(BaseModel):
    id: Optional[str] = None
    username: Optional[str] = None
    text: Optional[str] = None


class ChatMessagePayload(BaseModel):
    id: Optional[str] = None
    userId: Optional[str] = None
    username: Optional[str] = None
    avatar: Optional[str] = None
    text: Optional[str] = None
    timestamp: Optional[int] = None
    isAi: bool = False
    userColor: Optional[str] = None
    replyTo: Optional[ReplyPayload] = None


def error_response(message: str, status_code: int, code: str = "invalid_request") -> JSONResponse:
    return JSONResponse({"error": message, "code": code}, status_code=status_code)


def create_app(user_repository: UserRepository = None,
               message_repository: MessageRepository = None) -> FastAPI:
    """
    Build the API application

    Args:
        user_repository: Credential store (defaults to the global one)
        message_repository: Message log (defaults to the global one)
    """
    users = user_repository or get_user_repository()
    messages = message_repository or get_message_repository()
    config = get_config()

    app = FastAPI(title=f"{config.ui.app_title} API")

    @app.post(config.server.users_path)
    def users_endpoint(payload: UsersRequest):
        try:
            if payload.action == "register":
                candidate = dict(payload.user or {})
                password = candidate.pop("password", None) or payload.password
                user = users.register(candidate, password)
                return {"success": True, "user": user.to_dict()}

            if payload.action == "login":
                user = users.login(payload.id or "", payload.password or "")
                return {"success": True, "user": user.to_dict()}

            if payload.action == "verify":
                user = users.verify(payload.id or "", payload.token or "")
                return {"success": True, "user": user.to_dict()}

            if payload.action == "update":
                users.update(payload.user or {})
                return {"success": True}

            return error_response("Invalid action", 400)

        except CredentialError as e:
            return error_response(str(e), e.status_code, e.code)
        except Exception as e:
            logger.error(f"User API error ({payload.action}): {e.__class__.__name__}: {e}")
            return error_response("Server Error", 500, "server_error")

    @app.get(config.server.chat_path)
    def list_messages():
        try:
            return {"messages": messages.list_recent()}
        except Exception as e:
            logger.error(f"Message fetch failed: {e}")
            return JSONResponse({"messages": [], "error": "Database connection failed"}, status_code=500)

    @app.post(config.server.chat_path)
    def append_message(payload: ChatMessagePayload):
        if not payload.text or not payload.username:
            return error_response("Missing required fields", 400)

        try:
            messages.append(payload.model_dump(exclude_none=True))
        except Exception as e:
            logger.error(f"Message persist failed: {e}")
            return error_response("Failed to send message", 500, "server_error")

        return {"success": True}

    return app


def main():
    initialize_logging()
    config = get_config()
    uvicorn.run("api.server:create_app", factory=True, host=config.server.host, port=config.server.port)


if __name__ == "__main__":
    main()
