"""
Configuration management for BlogDB Server.

All configuration is done via environment variables - no config files.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - ServerConfig.from_env() validates before returning

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep from_env() and the dataclass defaults in sync
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from .events import DEFAULT_MAX_QUEUE_SIZE

logger = logging.getLogger(__name__)

LOG_FORMATS = ("json", "text")


def _split_csv(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


@dataclass(frozen=True)
class HttpConfig:
    """HTTP server configuration.

    Attributes:
        host: Address to bind
        port: Port to listen on
        cors_origins: Allowed CORS origins ("*" allows any)
        sse_keepalive_seconds: Idle interval after which an SSE keepalive
            comment is sent to subscribers
    """

    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: tuple[str, ...] = ("*",)
    sse_keepalive_seconds: float = 15.0

    @classmethod
    def from_env(cls) -> HttpConfig:
        """Load configuration from environment variables."""
        return cls(
            host=os.getenv("HTTP_HOST", "0.0.0.0"),
            port=int(os.getenv("HTTP_PORT", "8080")),
            cors_origins=_split_csv(os.getenv("HTTP_CORS_ORIGINS", "*")),
            sse_keepalive_seconds=float(os.getenv("SSE_KEEPALIVE_SECONDS", "15")),
        )


@dataclass(frozen=True)
class EventBusConfig:
    """Event bus configuration.

    Attributes:
        queue_size: Per-subscription buffer bound; beyond it the oldest
            buffered event is dropped
    """

    queue_size: int = DEFAULT_MAX_QUEUE_SIZE

    @classmethod
    def from_env(cls) -> EventBusConfig:
        """Load configuration from environment variables."""
        return cls(
            queue_size=int(os.getenv("EVENT_QUEUE_SIZE", str(DEFAULT_MAX_QUEUE_SIZE))),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json").lower(),
        )


@dataclass
class ServerConfig:
    """Complete server configuration.

    Attributes:
        http: HTTP server configuration
        events: Event bus configuration
        observability: Logging configuration
    """

    http: HttpConfig = field(default_factory=HttpConfig)
    events: EventBusConfig = field(default_factory=EventBusConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Load complete configuration from environment variables.

        Returns:
            ServerConfig with all sections populated from environment.

        Raises:
            ValueError: If configuration is missing or invalid.
        """
        config = cls(
            http=HttpConfig.from_env(),
            events=EventBusConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not 0 < self.http.port < 65536:
            raise ValueError(f"HTTP_PORT must be between 1 and 65535, got {self.http.port}")
        if self.http.sse_keepalive_seconds <= 0:
            raise ValueError("SSE_KEEPALIVE_SECONDS must be positive")
        if self.events.queue_size < 1:
            raise ValueError(f"EVENT_QUEUE_SIZE must be >= 1, got {self.events.queue_size}")
        if self.observability.log_format not in LOG_FORMATS:
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. "
                f"Must be one of: {', '.join(LOG_FORMATS)}"
            )
        if not self.http.cors_origins:
            logger.warning("HTTP_CORS_ORIGINS is empty, cross-origin requests will be rejected")

    def log_config(self) -> None:
        """Log the effective configuration."""
        logger.info(
            "Server configuration loaded",
            extra={
                "http_bind": f"{self.http.host}:{self.http.port}",
                "cors_origins": list(self.http.cors_origins),
                "sse_keepalive_seconds": self.http.sse_keepalive_seconds,
                "event_queue_size": self.events.queue_size,
                "log_level": self.observability.log_level,
                "log_format": self.observability.log_format,
            },
        )
