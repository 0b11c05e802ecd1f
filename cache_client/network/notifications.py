"""
Notification Channel Module

Owns the long-lived connection to the notification endpoint: sends the
SUBSCRIBE handshake, then runs a background listener thread that frames,
decodes and dispatches server-pushed events until it is cancelled or the
server closes the connection.

The stream ends silently. When the server goes away the listener logs the
reason and exits, is_connected turns False, and nothing reconnects. Poll
CacheClient.is_subscribed if you need to notice this.
"""

import logging
import selectors
import socket
import threading
from typing import Iterable, Optional

from ..config.settings import ClientOptions, settings
from ..events.dispatcher import EventDispatcher
from ..exceptions import CacheConnectionError, ProtocolError
from ..protocol.commands import EventType, Request
from ..protocol.framing import FrameReader
from ..protocol.parser import ProtocolCodec

logger = logging.getLogger(__name__)


class NotificationChannel:
    """
    One subscription connection plus the thread that listens on it.

    The connection has no receive deadline: events arrive whenever the
    server produces them. The listener waits for data in short polls so it
    notices the cancellation signal between reads; close() also closes the
    socket, which is the only way to interrupt a listener that is stuck
    (for instance inside a slow observer).

    Open a channel once. The subscription lifecycle creates a fresh channel
    for every subscribe rather than reopening a closed one.
    """

    def __init__(
            self,
            options: ClientOptions,
            dispatcher: EventDispatcher,
            codec: ProtocolCodec = None,
            buffer_size: int = None,
            poll_interval: float = None,
    ):
        self.options = options
        self.dispatcher = dispatcher
        self.codec = codec if codec is not None else ProtocolCodec()
        self.buffer_size = buffer_size if buffer_size is not None else settings.NOTIFICATION_BUFFER_SIZE
        self.poll_interval = (
            poll_interval if poll_interval is not None else settings.NOTIFICATION_POLL_INTERVAL
        )

        self._socket: Optional[socket.socket] = None
        self._listener: Optional[threading.Thread] = None
        self._cancel: Optional[threading.Event] = None
        self._lost = False

        # Listener statistics
        self.messages_received = 0
        self.decode_failures = 0
        self.events_dispatched = 0

    @property
    def is_connected(self) -> bool:
        """True while the socket is open and the listener has not seen it end."""
        sock = self._socket
        return sock is not None and sock.fileno() != -1 and not self._lost

    @property
    def is_listening(self) -> bool:
        """True while the background listener thread is running."""
        listener = self._listener
        return listener is not None and listener.is_alive()

    def open(self, key_pattern: Optional[str] = None, event_types: Iterable[EventType] = ()) -> None:
        """
        Connect, send the SUBSCRIBE request and start the listener thread.

        Args:
            key_pattern: Only report keys matching this pattern (trailing '*'
                is a prefix match); None for every key
            event_types: Only report these event types; empty for all

        Raises:
            CacheConnectionError: If connecting or sending the handshake fails
            ValueError: If an event type is unknown
        """
        if self._socket is not None or self._cancel is not None:
            raise RuntimeError("notification channel is already open")

        request = Request.subscribe(key_pattern, event_types)
        payload = self.codec.encode_request(request)
        address = (self.options.host, self.options.notification_port)

        try:
            sock = socket.create_connection(address)
        except OSError as exc:
            raise CacheConnectionError(
                f"could not connect to notification endpoint {address[0]}:{address[1]}: {exc}"
            ) from exc

        try:
            sock.settimeout(None)
            sock.sendall(payload)
        except OSError as exc:
            sock.close()
            raise CacheConnectionError(f"SUBSCRIBE failed: {exc}") from exc

        self._socket = sock
        self._lost = False
        self._cancel = threading.Event()
        self._listener = threading.Thread(
            target=self._listen,
            args=(sock, self._cancel),
            name=f"cache-notifications-{address[0]}:{address[1]}",
            daemon=True,
        )
        self._listener.start()

        logger.debug(
            f"Subscribed on {address[0]}:{address[1]} "
            f"(pattern={key_pattern!r}, types={[e.value for e in request.subscribed_event_types] or 'all'})"
        )

    def send_unsubscribe(self) -> None:
        """Send UNSUBSCRIBE on the open connection. Failures are logged and ignored."""
        sock = self._socket
        if sock is None:
            return
        try:
            sock.sendall(self.codec.encode_request(Request.unsubscribe()))
        except OSError as exc:
            logger.debug(f"Error during unsubscribe: {exc}")

    def close(self, wait_seconds: float = None) -> None:
        """
        Stop the listener and close the connection.

        Signals cancellation, waits up to wait_seconds for the listener to
        exit, then closes the socket whether or not it did. Safe to call
        more than once, and from the listener thread itself.
        """
        wait = wait_seconds if wait_seconds is not None else settings.UNSUBSCRIBE_WAIT_SECONDS
        cancel, listener, sock = self._cancel, self._listener, self._socket

        if cancel is not None:
            cancel.set()

        if listener is not None and listener is not threading.current_thread():
            listener.join(wait)
            if listener.is_alive():
                logger.debug(f"Notification listener still running after {wait}s, closing socket")

        if sock is not None:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            sock.close()

        self._socket = None
        self._listener = None
        self._cancel = None

    def get_stats(self) -> dict:
        """
        Get listener statistics.

        A decode_failures count that keeps growing points at a server that
        speaks a different protocol, since malformed messages are otherwise
        only logged.
        """
        return {
            "connected": self.is_connected,
            "listening": self.is_listening,
            "messages_received": self.messages_received,
            "decode_failures": self.decode_failures,
            "events_dispatched": self.events_dispatched,
        }

    def _listen(self, sock: socket.socket, cancel: threading.Event) -> None:
        """Background read loop: frame, decode and dispatch until stopped."""
        reader = FrameReader()
        selector = selectors.DefaultSelector()

        try:
            selector.register(sock, selectors.EVENT_READ)
        except (OSError, ValueError) as exc:
            # Closed before the listener got to run
            logger.debug(f"Notification listener not started: {exc}")
            selector.close()
            self._lost = True
            return

        try:
            while not cancel.is_set():
                try:
                    if not selector.select(self.poll_interval):
                        continue
                    data = sock.recv(self.buffer_size)
                except OSError as exc:
                    if cancel.is_set():
                        logger.debug(f"Notification listener stopped: {exc}")
                    else:
                        logger.warning(f"Notification listener error: {exc}")
                    break

                if not data:
                    logger.debug("Notification connection closed by server")
                    break

                for message in reader.feed(data):
                    if cancel.is_set():
                        break
                    self._handle(message)
        finally:
            selector.close()
            self._lost = True
            if reader.pending:
                logger.debug(f"Discarding {len(reader.pending)} chars of incomplete notification")

    def _handle(self, message: str) -> None:
        self.messages_received += 1
        try:
            response = self.codec.decode_response(message)
        except ProtocolError as exc:
            self.decode_failures += 1
            logger.warning(f"Malformed notification message: {exc}")
            return

        if response.is_notification and response.event is not None:
            self.events_dispatched += 1
            self.dispatcher.dispatch(response.event)
        else:
            logger.debug(f"Ignoring non-notification message: {message[:80]!r}")
