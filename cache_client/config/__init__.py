"""Configuration module for the cache client."""

from .settings import ClientOptions, Settings, settings

__all__ = [
    "ClientOptions",
    "Settings",
    "settings",
]
