"""
Unified Configuration System for OceanChat

This module provides a centralized configuration system that consolidates all application settings,
supports environment-based overrides, and provides type-safe configuration access.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional, List
import streamlit as st
import os
from pathlib import Path


@dataclass
class APIConfig:
    """API configuration settings"""
    openai_api_key: str = ""

    @classmethod
    def from_secrets(cls) -> 'APIConfig':
        """Load API config from Streamlit secrets"""
        # In test environment, prefer environment variables
        if os.getenv("PYTEST_CURRENT_TEST") is not None:
            return cls(openai_api_key=os.getenv("OPENAI_API_KEY", ""))

        try:
            return cls(openai_api_key=st.secrets.get("OPENAI_API_KEY", ""))
        except Exception:
            # Fallback to environment variables if secrets not available
            return cls(openai_api_key=os.getenv("OPENAI_API_KEY", ""))


@dataclass
class ServerConfig:
    """Remote endpoint and server-side persistence settings"""
    default_base_url: str = field(default_factory=lambda: os.getenv("CHAT_API_URL", "http://localhost:8000"))
    users_path: str = "/api/users"
    chat_path: str = "/api/chat"
    request_timeout: Optional[float] = None  # None keeps the transport default
    host: str = "0.0.0.0"
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    user_db_path: str = "data/users.db"
    message_db_path: str = "data/messages.db"


@dataclass
class ChatConfig:
    """Chat session behaviour"""
    poll_interval_seconds: float = 3.0
    local_cache_limit: int = 100
    remote_fetch_limit: int = 100
    remote_retention_limit: int = 1000
    ai_trigger: str = "@gemini"
    ai_context_window: int = 10
    ai_reply_delay_seconds: float = 1.0
    ai_user_id: str = "gemini-ai"
    ai_username: str = "Gemini AI"
    ai_avatar: str = "https://avatar.vercel.sh/gemini"
    ai_empty_reply: str = "..."


@dataclass
class NotificationConfig:
    """Mention/reply notification settings"""
    max_notifications: int = 50


@dataclass
class AuthConfig:
    """Registration and session settings"""
    min_id_length: int = 5
    starting_credits: int = 50
    password_min_length: int = 6
    default_name_color: str = "text-cyan-400"
    avatars: List[str] = field(default_factory=lambda: [
        "https://i.postimg.cc/J7cRW2Y6/86DE4C.png",
        "https://i.postimg.cc/v8LGdN23/9765.png",
        "https://i.postimg.cc/qBXpd5Dy/9766.png",
        "https://i.postimg.cc/v8LGdN2v/C2CF6E8.png",
    ])
    colors: List[str] = field(default_factory=lambda: [
        "bg-blue-500",
        "bg-green-500",
        "bg-purple-500",
        "bg-pink-500",
        "bg-yellow-500",
        "bg-indigo-500",
    ])


@dataclass
class ShopConfig:
    """Cosmetic shop catalogue"""
    items: List[Dict[str, Any]] = field(default_factory=lambda: [
        {"id": "neon-blue", "name": "Neon Blue", "style": "text-cyan-400", "price": 10},
        {"id": "gold", "name": "Golden Legend", "style": "text-yellow-400", "price": 10},
        {"id": "rose", "name": "Rose Pink", "style": "text-pink-400", "price": 10},
        {"id": "lime", "name": "Toxic Lime", "style": "text-lime-400", "price": 10},
        {"id": "red", "name": "Red Alert", "style": "text-red-500", "price": 10},
        {"id": "purple", "name": "Royal Purple", "style": "text-purple-400", "price": 10},
    ])


@dataclass
class LLMConfig:
    """Language model configuration"""
    model_name: str = "gpt-4o-mini"
    temperature: float = 0.8
    top_p: float = 0.95
    max_tokens: int = 200
    apology_text: str = "Oops, something went wrong on my side! 😅"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for LangChain compatibility"""
        return {
            "model_name": self.model_name,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "max_tokens": self.max_tokens
        }


@dataclass
class StorageConfig:
    """Local durable storage"""
    local_storage_path: str = field(
        default_factory=lambda: os.getenv("CHAT_LOCAL_STORAGE", ".oceanchat/local_storage.json")
    )
    session_dir: str = field(
        default_factory=lambda: os.getenv("CHAT_SESSION_DIR", ".oceanchat/sessions")
    )


@dataclass
class UIConfig:
    """User interface configuration"""
    app_title: str = "OceanChat"
    online_label: str = "LIVE"
    offline_label: str = "LOST SIGNAL"


@dataclass
class LoggingConfig:
    """Logging and monitoring configuration"""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    enable_file_logging: bool = True
    log_file: str = "logs/app.log"


@dataclass
class AppConfig:
    """Main application configuration"""
    api: APIConfig = field(default_factory=APIConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    chat: ChatConfig = field(default_factory=ChatConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    shop: ShopConfig = field(default_factory=ShopConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Environment settings
    environment: str = field(default_factory=lambda: os.getenv("APP_ENV", "development"))
    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")

    @classmethod
    def load(cls) -> 'AppConfig':
        """Load configuration with environment overrides"""
        config = cls()

        # Load API configuration from secrets/environment
        config.api = APIConfig.from_secrets()

        # Apply environment-specific overrides
        if config.environment == "production":
            config.debug = False
            config.logging.level = "WARNING"
        elif config.environment == "development":
            config.debug = True
            config.logging.level = "DEBUG"

        return config

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors"""
        errors = []

        # The AI responder degrades to its apology text without a key
        if not self.api.openai_api_key:
            errors.append("OpenAI API key is not set, AI replies will use the fallback text")

        if self.chat.poll_interval_seconds <= 0:
            errors.append("Poll interval must be positive")

        if self.chat.local_cache_limit <= 0 or self.chat.remote_retention_limit <= 0:
            errors.append("Message retention limits must be positive")

        if self.notifications.max_notifications <= 0:
            errors.append("Notification cap must be positive")

        # Check file paths exist
        storage_dir = Path(self.storage.local_storage_path).parent
        if not storage_dir.exists():
            storage_dir.mkdir(parents=True, exist_ok=True)

        if self.logging.enable_file_logging:
            log_dir = Path(self.logging.log_file).parent
            if not log_dir.exists():
                log_dir.mkdir(parents=True, exist_ok=True)

        for item in self.shop.items:
            if item.get("price", 0) < 0:
                errors.append(f"Shop item '{item.get('id')}' has a negative price")

        return errors


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance"""
    global _config
    if _config is None:
        from config.environments import get_environment_config
        _config = get_environment_config()

        # Validate configuration
        errors = _config.validate()
        if errors:
            import warnings
            for error in errors:
                warnings.warn(f"Configuration error: {error}")

    return _config


def reload_config() -> AppConfig:
    """Reload configuration (useful for testing)"""
    global _config
    _config = None
    return get_config()


def get_openai_api_key() -> str:
    """Get OpenAI API key"""
    return get_config().api.openai_api_key
