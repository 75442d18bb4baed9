"""Configuration management using pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BRIDGE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = Field(default="0.0.0.0", description="Address the HTTPS listener binds to")
    port: int = Field(default=3321, description="Port the HTTPS listener binds to", ge=1, le=65535)
    request_timeout: float = Field(default=30.0, description="Request timeout in seconds", gt=0)
    max_body_size: int = Field(default=50 * 1024 * 1024, description="Maximum request body size in bytes", gt=0)
    max_pending_requests: int | None = Field(
        default=None, description="Optional cap on requests awaiting a reply", ge=1
    )
    shutdown_timeout: float = Field(default=10.0, description="Grace period for in-flight requests on shutdown", ge=0)
    log_level: str = Field(default="INFO", description="Logging level")

    channel: Literal["websocket", "nats"] = Field(default="websocket", description="Peer channel kind")
    peer_url: str = Field(default="ws://127.0.0.1:3322/bridge", description="Peer WebSocket endpoint")
    nats_url: str = Field(default="nats://127.0.0.1:4222", description="NATS server URL")
    request_subject: str = Field(default="bridge.requests", description="NATS subject for outbound requests")
    response_subject: str = Field(default="bridge.responses", description="NATS subject for inbound responses")

    tls_enabled: bool = Field(default=True, description="Serve HTTPS instead of plain HTTP")
    cert_file: Path | None = Field(default=None, description="PEM certificate supplied by a provisioner")
    key_file: Path | None = Field(default=None, description="PEM private key supplied by a provisioner")
    cert_dir: Path = Field(
        default=Path.home() / ".ipc-bridge" / "certs",
        description="Directory for the generated self-signed certificate",
    )

    app_name: str = Field(default="IPC Bridge", description="Name published in the manifest")
    manifest_path: Path | None = Field(default=None, description="JSON file replacing the built-in manifest")
    trust_public_key: str | None = Field(
        default=None, description="Public key published in the manifest trust block; omitted when unset"
    )
    trust_note: str = Field(default="Allows basic payments between counterparties", description="Manifest trust note")
    trust_icon: str | None = Field(default=None, description="Manifest trust icon URL, defaults to the bridge favicon")


@lru_cache
def get_settings() -> Settings:
    """Get the application settings instance."""
    return Settings()
