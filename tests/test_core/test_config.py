"""
Unit tests for settings loading
"""

import pytest
from pydantic import ValidationError

from statusboard.core.config import (
    APISettings,
    ApplicationSettings,
    AuthSettings,
    PollingSettings,
    RemoteHostSettings,
    RetentionSettings,
)


class TestRemoteHostSettings:
    """Test SSH target configuration"""

    def test_configured_requires_all_credentials(self, monkeypatch):
        for name in ("VPS_HOST", "VPS_USERNAME", "VPS_PASSWORD"):
            monkeypatch.delenv(name, raising=False)

        assert RemoteHostSettings(VPS_HOST="h", VPS_USERNAME="u", VPS_PASSWORD="p").is_configured
        assert not RemoteHostSettings(VPS_HOST="h", VPS_USERNAME="u").is_configured
        assert not RemoteHostSettings(VPS_USERNAME="u", VPS_PASSWORD="p").is_configured

    def test_environment_variables(self, monkeypatch):
        monkeypatch.setenv("VPS_HOST", "vps.example.com")
        monkeypatch.setenv("VPS_PORT", "2222")
        monkeypatch.setenv("SSH_COMMAND_TIMEOUT", "5")

        settings = RemoteHostSettings()

        assert settings.vps_host == "vps.example.com"
        assert settings.vps_port == 2222
        assert settings.ssh_command_timeout == 5

    def test_invalid_port(self):
        with pytest.raises(ValidationError):
            RemoteHostSettings(VPS_PORT=70000)


class TestApplicationSettings:
    """Test defaults and the combined settings object"""

    def test_polling_defaults(self, monkeypatch):
        for name in ("POLLING_METRICS_INTERVAL", "POLLING_BROADCAST_INTERVAL", "POLLING_SERVICE_INTERVAL"):
            monkeypatch.delenv(name, raising=False)

        polling = PollingSettings()

        assert polling.metrics_interval == 5
        assert polling.broadcast_interval == 2
        assert polling.service_interval == 5
        assert polling.incident_interval == 30

    def test_retention_must_be_positive(self):
        with pytest.raises(ValidationError):
            RetentionSettings(METRICS_HISTORY_CAPACITY=0)

    def test_cors_origins_from_environment(self, monkeypatch):
        monkeypatch.setenv("CORS_ORIGINS", "https://status.example.com, https://ops.example.com")
        assert APISettings().cors_origins == ["https://status.example.com", "https://ops.example.com"]

    def test_cors_origins_load_with_application_settings(self, monkeypatch):
        monkeypatch.setenv("CORS_ORIGINS", "https://status.example.com")

        assert ApplicationSettings().api.cors_origins == ["https://status.example.com"]
        assert APISettings(CORS_ORIGINS=["http://a", "http://b"]).cors_origins == ["http://a", "http://b"]
        assert APISettings(CORS_ORIGINS="http://a,,http://b ").cors_origins == ["http://a", "http://b"]

    def test_sections_can_be_overridden(self):
        settings = ApplicationSettings(auth=AuthSettings(API_KEY="secret"), ENVIRONMENT="production")

        assert settings.auth.api_key == "secret"
        assert not settings.is_development
