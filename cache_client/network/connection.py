"""
CRUD Connection Driver

Performs one synchronous request/response exchange per call, each over its
own freshly opened TCP connection.
"""

import logging
import socket
from typing import Optional

from ..config.settings import ClientOptions, settings
from ..exceptions import CacheConnectionError, ProtocolError, RemoteError
from ..protocol.commands import Request, Response
from ..protocol.parser import ProtocolCodec

logger = logging.getLogger(__name__)


class ConnectionDriver:
    """
    Request/response driver for the CRUD endpoint.

    Every send() opens a new connection to (host, port), writes one
    request, reads until one complete response decodes, and closes the
    connection whatever the outcome. There is no pooling and no retry, and
    since calls share no state they may run concurrently from any number
    of threads.

    Attributes:
        options: Host, port and timeout to use
        codec: The ProtocolCodec used to encode requests and decode responses
    """

    def __init__(
            self,
            options: ClientOptions,
            codec: ProtocolCodec = None,
            buffer_size: int = None,
    ):
        self.options = options
        self.codec = codec if codec is not None else ProtocolCodec()
        self.buffer_size = buffer_size if buffer_size is not None else settings.READ_BUFFER_SIZE

    def send(self, request: Request) -> Response:
        """
        Send one request and return the server's response.

        Args:
            request: The request to send

        Returns:
            The decoded Response

        Raises:
            ValueError: If the request is not valid for its operation
            CacheConnectionError: On connect, timeout or I/O failure
            ProtocolError: If the response cannot be decoded
            RemoteError: If the server returned an error message
        """
        payload = self.codec.encode_request(request)
        address = (self.options.host, self.options.port)
        operation = request.operation.value

        logger.debug(f"{operation} {request.key!r} -> {address[0]}:{address[1]}")

        try:
            sock = socket.create_connection(address, timeout=self.options.timeout_seconds)
        except OSError as exc:
            raise CacheConnectionError(
                f"could not connect to {address[0]}:{address[1]}: {exc}"
            ) from exc

        try:
            sock.sendall(payload)
            response = self._receive(sock)
        except socket.timeout as exc:
            raise CacheConnectionError(
                f"{operation} timed out after {self.options.timeout_milliseconds} ms"
            ) from exc
        except OSError as exc:
            raise CacheConnectionError(f"{operation} failed: {exc}") from exc
        finally:
            try:
                sock.close()
            except OSError:
                pass

        if response.has_error:
            logger.debug(f"{operation} {request.key!r} rejected: {response.error}")
            raise RemoteError(response.error)

        return response

    def _receive(self, sock: socket.socket) -> Response:
        """Read until a complete response decodes or the peer closes."""
        buffer = bytearray()
        while True:
            chunk = sock.recv(self.buffer_size)
            if not chunk:
                break
            scanned = len(buffer)
            buffer += chunk

            # Only the new bytes need scanning for the delimiter
            newline = buffer.find(b"\n", scanned)
            while newline >= 0 and not buffer[:newline].strip():
                del buffer[:newline + 1]
                newline = buffer.find(b"\n")
            if newline >= 0:
                return self._decode(bytes(buffer[:newline]))

            # An unterminated response can only be complete once a read ends its object
            if chunk.rstrip().endswith(b"}"):
                response = self._try_decode(buffer)
                if response is not None:
                    return response

        if not buffer.strip():
            raise ProtocolError("connection closed before a response was received")
        return self._decode(bytes(buffer))

    def _try_decode(self, buffer: bytearray) -> Optional[Response]:
        """Decode an unterminated buffer, or return None while more bytes are needed."""
        try:
            text = buffer.decode("utf-8")
        except UnicodeDecodeError:
            # possibly a multi-byte character cut by the read boundary
            return None
        try:
            response = self.codec.decode_response(text)
        except ProtocolError:
            return None
        return self._check(response)

    def _decode(self, data: bytes) -> Response:
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ProtocolError(f"response is not valid UTF-8: {exc}") from exc
        return self._check(self.codec.decode_response(text))

    @staticmethod
    def _check(response: Response) -> Response:
        if response.is_notification:
            raise ProtocolError("unexpected notification on the request connection")
        return response
