"""
Event Dispatcher Module

Routes decoded cache events to the observers registered for their event
type, then to the catch-all observers.
"""

import logging
from typing import Callable, Dict, List, Optional

from ..protocol.commands import CacheEvent, EventNotification, EventType

logger = logging.getLogger(__name__)

Observer = Callable[[EventNotification], None]


class EventDispatcher:
    """
    In-process publish step from one event to many observers.

    Observers are plain callables taking an EventNotification. Each event
    type has its own ordered list of observers, and one further list
    receives every event. Observers run on the thread that calls
    dispatch() (the notification listener), so a slow observer delays
    delivery of the events behind it.

    Usage:
        dispatcher = EventDispatcher()
        dispatcher.add_listener(print, EventType.ItemAdded)
        dispatcher.add_listener(audit_log)            # catch-all
        dispatcher.dispatch(event)
    """

    def __init__(self):
        self._observers: Dict[EventType, List[Observer]] = {
            event_type: [] for event_type in EventType
        }
        self._catch_all: List[Observer] = []

    def _bucket(self, event_type: Optional[EventType]) -> List[Observer]:
        if event_type is None:
            return self._catch_all
        return self._observers[EventType.parse(event_type)]

    def add_listener(self, callback: Observer, event_type: Optional[EventType] = None) -> Observer:
        """
        Register an observer.

        Args:
            callback: Callable invoked with an EventNotification
            event_type: Event type to observe, or None for every event

        Returns:
            The callback, so this can be used as a decorator
        """
        if not callable(callback):
            raise TypeError(f"observer must be callable, got {type(callback).__name__}")
        self._bucket(event_type).append(callback)
        return callback

    def remove_listener(self, callback: Observer, event_type: Optional[EventType] = None) -> bool:
        """
        Unregister an observer.

        Returns:
            True if the observer was registered and has been removed
        """
        bucket = self._bucket(event_type)
        try:
            bucket.remove(callback)
        except ValueError:
            return False
        return True

    def listener_count(self, event_type: Optional[EventType] = None) -> int:
        """Number of observers registered for event_type (None = catch-all)."""
        return len(self._bucket(event_type))

    def clear(self) -> None:
        """Remove every registered observer."""
        for bucket in self._observers.values():
            bucket.clear()
        self._catch_all.clear()

    def dispatch(self, event: CacheEvent) -> EventNotification:
        """
        Deliver one event to its type-specific observers, then to the
        catch-all observers.

        An exception raised by an observer is logged and discarded; the
        remaining observers still run.

        Returns:
            The EventNotification handed to the observers
        """
        notification = EventNotification.from_event(event)

        # Snapshot so an observer may (un)register without skipping peers
        for callback in list(self._observers[event.event_type]):
            self._invoke(callback, notification)
        for callback in list(self._catch_all):
            self._invoke(callback, notification)

        return notification

    def _invoke(self, callback: Observer, notification: EventNotification) -> None:
        try:
            callback(notification)
        except Exception:
            logger.exception(
                f"Observer {callback!r} failed for {notification.event_type.value} "
                f"on key {notification.key!r}"
            )
