"""Tests for application settings."""
import pytest
from pydantic import ValidationError

from tutor_relay.config import Settings


class TestSettings:
    """Tests for Settings validation."""

    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.RATE_LIMIT_MAX_REQUESTS == 15
        assert settings.RATE_LIMIT_WINDOW_SECONDS == 60
        assert settings.MAX_MESSAGES == 50
        assert settings.MAX_MESSAGE_LENGTH == 4000
        assert settings.cors_origins == "*"

    def test_credentials_stripped(self):
        settings = Settings(_env_file=None, GATEWAY_API_KEY="  key \n")
        assert settings.GATEWAY_API_KEY == "key"

    def test_cors_origins_list(self):
        settings = Settings(_env_file=None, CORS_ORIGINS="https://a.example, https://b.example")
        assert settings.cors_origins == ["https://a.example", "https://b.example"]

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, LOG_LEVEL="LOUD")

    def test_default_secret_rejected_in_production(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, FLASK_ENV="production")

    def test_base_url_trailing_slash(self):
        settings = Settings(_env_file=None, GATEWAY_BASE_URL="https://gw.example/v1/")
        assert settings.GATEWAY_BASE_URL == "https://gw.example/v1"

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("RATE_LIMIT_MAX_REQUESTS", "3")
        assert Settings(_env_file=None).RATE_LIMIT_MAX_REQUESTS == 3
