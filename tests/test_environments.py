"""
Test environment-specific configurations
"""

import os
import pytest
from config.environments import get_environment_config
from config.environments.development import get_development_config
from config.environments.production import get_production_config


class TestEnvironmentConfigs:
    """Test environment-specific configuration loading"""

    def test_development_config(self, monkeypatch):
        monkeypatch.delenv("CHAT_API_URL", raising=False)
        config = get_development_config()

        assert config.environment == "development"
        assert config.debug == True
        assert config.logging.level == "DEBUG"
        assert "DEV" in config.ui.app_title
        assert config.server.default_base_url == "http://localhost:8000"
        assert config.storage.local_storage_path.endswith("dev_local_storage.json")

    def test_development_keeps_explicit_server(self, monkeypatch):
        monkeypatch.setenv("CHAT_API_URL", "https://staging.example.com")

        config = get_development_config()

        assert config.server.default_base_url == "https://staging.example.com"

    def test_production_config(self):
        config = get_production_config()

        assert config.environment == "production"
        assert config.debug == False
        assert config.logging.level == "INFO"
        assert "DEV" not in config.ui.app_title
        assert config.llm.temperature == 0.6
        assert config.llm.max_tokens == 150

    def test_environment_selection_development(self, monkeypatch):
        monkeypatch.setenv("APP_ENV", "development")

        config = get_environment_config()

        assert config.environment == "development"
        assert config.debug == True

    def test_environment_selection_production(self, monkeypatch):
        monkeypatch.setenv("APP_ENV", "production")

        config = get_environment_config()

        assert config.environment == "production"
        assert config.debug == False

    def test_environment_selection_test(self, monkeypatch):
        monkeypatch.setenv("APP_ENV", "test")

        config = get_environment_config()

        assert config.logging.enable_file_logging is False

    def test_default_environment(self, monkeypatch):
        monkeypatch.delenv("APP_ENV", raising=False)

        config = get_environment_config()

        assert config.environment == "development"

    def test_config_validation(self):
        for config in [get_development_config(), get_production_config()]:
            errors = config.validate()
            # A missing API key is expected in tests
            assert [e for e in errors if "API key" not in e] == []
