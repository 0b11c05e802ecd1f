"""
Cache Client Configuration Settings

This module contains the configuration defaults for the cache client and
the immutable ClientOptions a client instance is built from.
"""

import os
from dataclasses import dataclass, field


@dataclass
class Settings:
    """Client configuration settings."""

    # Network settings
    HOST: str = os.environ.get("CACHE_CLIENT_HOST", "localhost")
    PORT: int = int(os.environ.get("CACHE_CLIENT_PORT", "5050"))
    NOTIFICATION_PORT: int = int(os.environ.get("CACHE_CLIENT_NOTIFICATION_PORT", "5051"))

    # Timeout for CRUD connect/send/receive (never the notification stream)
    TIMEOUT_MILLISECONDS: int = int(os.environ.get("CACHE_CLIENT_TIMEOUT_MS", "5000"))

    # Connection settings
    READ_BUFFER_SIZE: int = 4096
    NOTIFICATION_BUFFER_SIZE: int = 8192
    NOTIFICATION_POLL_INTERVAL: float = 0.25  # Seconds between cancellation checks
    UNSUBSCRIBE_WAIT_SECONDS: float = 2.0

    # Logging settings
    DEBUG: bool = os.environ.get("CACHE_CLIENT_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("CACHE_CLIENT_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()


@dataclass(frozen=True)
class ClientOptions:
    """
    Connection options owned by a CacheClient for its whole lifetime.

    Attributes:
        host: Cache server host name or address
        port: Port of the CRUD endpoint
        notification_port: Port of the event notification endpoint
        timeout_milliseconds: Timeout applied to CRUD connect, send and
            receive. The notification connection blocks indefinitely.
    """
    host: str = field(default_factory=lambda: settings.HOST)
    port: int = field(default_factory=lambda: settings.PORT)
    notification_port: int = field(default_factory=lambda: settings.NOTIFICATION_PORT)
    timeout_milliseconds: int = field(default_factory=lambda: settings.TIMEOUT_MILLISECONDS)

    def __post_init__(self):
        """Validate options after initialization."""
        if not self.host:
            raise ValueError("host must not be empty")
        for name in ("port", "notification_port"):
            value = getattr(self, name)
            if not isinstance(value, int) or not 0 < value < 65536:
                raise ValueError(f"{name} must be between 1 and 65535, got {value!r}")
        if not isinstance(self.timeout_milliseconds, int) or self.timeout_milliseconds <= 0:
            raise ValueError(
                f"timeout_milliseconds must be a positive integer, got {self.timeout_milliseconds!r}"
            )

    @property
    def timeout_seconds(self) -> float:
        """The CRUD timeout in seconds, as the socket layer expects it."""
        return self.timeout_milliseconds / 1000.0

    @classmethod
    def from_settings(cls, source: Settings = None) -> "ClientOptions":
        """Build options from the (environment-backed) settings."""
        source = source if source is not None else settings
        return cls(
            host=source.HOST,
            port=source.PORT,
            notification_port=source.NOTIFICATION_PORT,
            timeout_milliseconds=source.TIMEOUT_MILLISECONDS,
        )
