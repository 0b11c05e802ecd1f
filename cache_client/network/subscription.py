"""
Subscription Lifecycle Module

Gates use of the notification channel: a client is either Unsubscribed
(no channel) or Subscribed (one open channel with one running listener).
"""

import logging
from typing import Callable, Iterable, Optional

from ..config.settings import ClientOptions, settings
from ..events.dispatcher import EventDispatcher
from ..exceptions import AlreadySubscribedError
from ..protocol.commands import EventType
from .notifications import NotificationChannel

logger = logging.getLogger(__name__)

ChannelFactory = Callable[[ClientOptions, EventDispatcher], NotificationChannel]


class SubscriptionLifecycle:
    """
    Unsubscribed/Subscribed state machine for one client.

    The AlreadySubscribed guard is what keeps a client to a single listener;
    there is no lock. State changes happen on the caller's thread, before
    the listener starts (subscribe) or after it has been stopped or its
    socket closed (unsubscribe).

    Attributes:
        wait_seconds: How long unsubscribe() waits for the listener to exit
            before closing the connection anyway
    """

    def __init__(
            self,
            options: ClientOptions,
            dispatcher: EventDispatcher,
            channel_factory: ChannelFactory = None,
            wait_seconds: float = None,
    ):
        self.options = options
        self.dispatcher = dispatcher
        self.channel_factory = channel_factory if channel_factory is not None else NotificationChannel
        self.wait_seconds = wait_seconds if wait_seconds is not None else settings.UNSUBSCRIBE_WAIT_SECONDS
        self._channel: Optional[NotificationChannel] = None

    @property
    def channel(self) -> Optional[NotificationChannel]:
        """The current notification channel, if any."""
        return self._channel

    @property
    def is_subscribed(self) -> bool:
        """Live check: a channel exists and its connection is still up."""
        channel = self._channel
        return channel is not None and channel.is_connected

    def subscribe(self, key_pattern: Optional[str] = None, event_types: Iterable[EventType] = ()) -> None:
        """
        Open the notification channel and start listening.

        Args:
            key_pattern: Only report matching keys (trailing '*' = prefix)
            event_types: Only report these event types; empty for all

        Raises:
            AlreadySubscribedError: If a subscription is already active
            CacheConnectionError: If the notification endpoint is unreachable
        """
        if self.is_subscribed:
            raise AlreadySubscribedError("Already subscribed. Call unsubscribe() first.")

        if self._channel is not None:
            # The previous stream ended on its own; release what is left of it
            logger.debug("Releasing notification channel that was closed by the server")
            self._channel.close(wait_seconds=0)
            self._channel = None

        channel = self.channel_factory(self.options, self.dispatcher)
        channel.open(key_pattern, tuple(event_types))
        self._channel = channel

    def unsubscribe(self) -> None:
        """
        Stop listening and close the notification channel.

        A no-op when not subscribed. Sending UNSUBSCRIBE is best-effort; the
        connection is closed even if the listener does not stop in time.
        """
        channel = self._channel
        if channel is None:
            return

        if channel.is_connected:
            channel.send_unsubscribe()
        channel.close(self.wait_seconds)
        self._channel = None
        logger.debug("Unsubscribed from notifications")
