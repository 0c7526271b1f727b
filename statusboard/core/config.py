"""
Status Board - Configuration Management

This module handles all configuration settings including the remote host
connection, polling intervals, retention, WebSocket delivery and the API
server.
"""

from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def parse_cors_origins(v: str | list[str]) -> list[str]:
    """Parse CORS_ORIGINS from a comma separated string, lists pass through"""
    if isinstance(v, str):
        return [origin.strip() for origin in v.split(",") if origin.strip()]
    return v


class RemoteHostSettings(BaseSettings):
    """SSH target for metric collection"""

    vps_host: str | None = Field(default=None, validation_alias="VPS_HOST")
    vps_port: int = Field(default=22, validation_alias="VPS_PORT")
    vps_username: str | None = Field(default=None, validation_alias="VPS_USERNAME")
    vps_password: str | None = Field(default=None, validation_alias="VPS_PASSWORD")
    recheck_interval: int = Field(default=60, validation_alias="VPS_RECHECK_INTERVAL")

    ssh_connect_timeout: int = Field(default=30, validation_alias="SSH_CONNECT_TIMEOUT")
    ssh_keepalive_interval: int = Field(default=10, validation_alias="SSH_KEEPALIVE_INTERVAL")
    ssh_command_timeout: int = Field(default=15, validation_alias="SSH_COMMAND_TIMEOUT")
    ssh_reconnect_delay: float = Field(default=2.0, validation_alias="SSH_RECONNECT_DELAY")

    @property
    def is_configured(self) -> bool:
        """Host, username and password must all be present to enable SSH"""
        return bool(self.vps_host and self.vps_username and self.vps_password)

    @field_validator("vps_port")
    def validate_port(cls, v: int) -> int:
        if v < 1 or v > 65535:
            raise ValueError("VPS_PORT must be between 1 and 65535")
        return v

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


class PollingSettings(BaseSettings):
    """Polling intervals and data collection settings"""

    metrics_interval: float = Field(default=5, validation_alias="POLLING_METRICS_INTERVAL")
    broadcast_interval: float = Field(default=2, validation_alias="POLLING_BROADCAST_INTERVAL")
    service_interval: float = Field(default=5, validation_alias="POLLING_SERVICE_INTERVAL")
    incident_interval: float = Field(default=30, validation_alias="POLLING_INCIDENT_INTERVAL")

    # Startup timing: jobs begin after startup_delay, SSH is attempted after connect_grace
    startup_delay: float = Field(default=1, validation_alias="POLLING_STARTUP_DELAY")
    connect_grace: float = Field(default=2, validation_alias="POLLING_CONNECT_GRACE")

    process_limit: int = Field(default=50, validation_alias="PROCESS_LIMIT")
    broadcast_process_limit: int = Field(default=20, validation_alias="BROADCAST_PROCESS_LIMIT")
    container_monitoring_enabled: bool = Field(
        default=True, validation_alias="CONTAINER_MONITORING_ENABLED"
    )
    port_discovery_enabled: bool = Field(default=True, validation_alias="PORT_DISCOVERY_ENABLED")

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


class RetentionSettings(BaseSettings):
    """Bounded in-memory retention"""

    metrics_history_capacity: int = Field(default=1000, validation_alias="METRICS_HISTORY_CAPACITY")

    @field_validator("metrics_history_capacity")
    def validate_capacity(cls, v: int) -> int:
        if v < 1:
            raise ValueError("METRICS_HISTORY_CAPACITY must be at least 1")
        return v

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


class WebSocketSettings(BaseSettings):
    """WebSocket server configuration for real-time streaming"""

    websocket_send_timeout: float = Field(default=1.0, validation_alias="WEBSOCKET_SEND_TIMEOUT")
    websocket_max_connections: int = Field(default=50, validation_alias="WEBSOCKET_MAX_CONNECTIONS")

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


class AuthSettings(BaseSettings):
    """Authentication and security settings"""

    # Bearer key for administrative routes; unset means admin routes are closed
    api_key: str | None = Field(default=None, validation_alias="API_KEY")

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


class LoggingSettings(BaseSettings):
    """Logging configuration settings"""

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: str = Field(default="json", validation_alias="LOG_FORMAT")

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


class APISettings(BaseSettings):
    """FastAPI REST API server configuration settings"""

    api_host: str = Field(default="0.0.0.0", validation_alias="API_HOST")
    api_port: int = Field(default=5000, validation_alias="API_PORT")
    api_log_level: str = Field(default="info", validation_alias="API_LOG_LEVEL")

    # Comma separated in the environment, so JSON decoding is disabled
    cors_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:5000",
        ],
        validation_alias="CORS_ORIGINS",
    )

    rate_limit_enabled: bool = Field(default=True, validation_alias="RATE_LIMIT_ENABLED")
    rate_limit_requests_per_minute: int = Field(
        default=120, validation_alias="RATE_LIMIT_REQUESTS_PER_MINUTE"
    )

    @field_validator("cors_origins", mode="before")
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_cors_origins(v)

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


class ApplicationSettings(BaseSettings):
    """Main application settings combining all configuration sections"""

    environment: str = Field(default="development", validation_alias="ENVIRONMENT")
    debug: bool = Field(default=False, validation_alias="DEBUG")

    remote: RemoteHostSettings = Field(default_factory=RemoteHostSettings)
    polling: PollingSettings = Field(default_factory=PollingSettings)
    retention: RetentionSettings = Field(default_factory=RetentionSettings)
    websocket: WebSocketSettings = Field(default_factory=WebSocketSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    api: APISettings = Field(default_factory=APISettings)

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


@lru_cache
def get_settings() -> ApplicationSettings:
    """Get cached application settings instance"""
    return ApplicationSettings()
