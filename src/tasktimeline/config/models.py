"""Pydantic models for configuration sub-sections."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from tasktimeline.config.constants import (
    DEFAULT_CORS_ORIGIN,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_SERVER_URL,
    RECONNECT_BASE_DELAY_SECONDS,
    RECONNECT_MAX_ATTEMPTS,
    TICK_INTERVAL_SECONDS,
)


class ServerConfig(BaseModel):
    """HTTP/WebSocket server settings."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    cors_origin: str = DEFAULT_CORS_ORIGIN  # comma-separated, "*" = any
    tick_interval: float = Field(default=TICK_INTERVAL_SECONDS, gt=0)

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origin.split(",") if o.strip()]


class ClientConfig(BaseModel):
    """Settings used by the sync client (``tasktimeline watch`` etc.)."""

    server_url: str = DEFAULT_SERVER_URL
    reconnect_base_delay: float = Field(default=RECONNECT_BASE_DELAY_SECONDS, gt=0)
    reconnect_max_attempts: int = Field(default=RECONNECT_MAX_ATTEMPTS, ge=1)

    @field_validator("server_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def ws_url(self) -> str:
        """Push channel URL derived from the HTTP base URL."""
        if self.server_url.startswith("https://"):
            return "wss://" + self.server_url[len("https://"):] + "/ws"
        if self.server_url.startswith("http://"):
            return "ws://" + self.server_url[len("http://"):] + "/ws"
        return self.server_url + "/ws"
