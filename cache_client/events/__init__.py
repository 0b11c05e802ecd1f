"""Event dispatch module for the cache client."""

from .dispatcher import EventDispatcher, Observer

__all__ = [
    "EventDispatcher",
    "Observer",
]
