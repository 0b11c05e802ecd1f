"""
Protocol Codec Module

This module handles encoding of requests and decoding of responses and
event notifications.

Wire Format:
    JSON objects with PascalCase field names, UTF-8 encoded, each message
    terminated by a single newline. json.dumps escapes control characters,
    so an encoded message never contains a raw newline.
"""

import json
import re
from datetime import datetime, timezone
from typing import Any, Mapping

from ..exceptions import ProtocolError
from .commands import CacheEvent, EventType, Operation, Request, Response

DELIMITER = "\n"

# Fractional seconds of any precision and an optional 'Z' designator
_ISO_FRACTION = re.compile(r"(\.\d+)(?=(?:[+-]\d{2}:?\d{2}|Z)?$)")

# Offsets written without a colon (+HHMM), which fromisoformat rejects before 3.11
_COMPACT_OFFSET = re.compile(r"([+-]\d{2})(\d{2})$")


class ProtocolCodec:
    """
    Stateless codec for the cache server's JSON protocol.

    Request:
        {"Operation": "CREATE", "Key": "age", "Value": 40, "ExpirationSeconds": 60}\\n

    Response:
        {"Success": true, "Value": 40, "Error": null}

    Notification:
        {"Success": true, "IsNotification": true,
         "Event": {"EventType": "ItemAdded", "Key": "age", "Value": 40,
                   "Timestamp": "2024-05-01T10:00:00.1234567Z", "Reason": null}}
    """

    def encode_request(self, request: Request) -> bytes:
        """
        Encode a request into a newline-terminated UTF-8 payload.

        Args:
            request: Request to encode (validated first)

        Returns:
            Encoded bytes ready to be written to the socket

        Raises:
            ValueError: If the request is not valid for its operation
        """
        request.validate()
        payload = {"Operation": request.operation.value}

        if request.operation == Operation.SUBSCRIBE:
            payload["SubscribedEventTypes"] = (
                [event_type.value for event_type in request.subscribed_event_types]
                if request.subscribed_event_types else None
            )
            payload["KeyPattern"] = request.key_pattern
        elif request.operation != Operation.UNSUBSCRIBE:
            payload["Key"] = request.key
            payload["Value"] = request.value
            payload["ExpirationSeconds"] = request.expiration_seconds

        try:
            text = json.dumps(payload, separators=(",", ":"))
        except (TypeError, ValueError) as exc:
            raise ValueError(f"value is not JSON serializable: {exc}") from exc
        return (text + DELIMITER).encode("utf-8")

    def decode_response(self, text: str) -> Response:
        """
        Decode one response or notification message.

        Args:
            text: A single message, with or without its trailing newline

        Returns:
            The decoded Response

        Raises:
            ProtocolError: If the text is not a valid response object
        """
        try:
            data = json.loads(text)
        except ValueError as exc:
            raise ProtocolError(f"invalid JSON payload: {exc}") from exc

        if not isinstance(data, dict):
            raise ProtocolError(f"expected a JSON object, got {type(data).__name__}")

        event = None
        raw_event = data.get("Event")
        if raw_event is not None:
            event = self.decode_event(raw_event)

        error = data.get("Error")
        return Response(
            success=bool(data.get("Success", False)),
            value=data.get("Value"),
            error=str(error) if error is not None else None,
            is_notification=bool(data.get("IsNotification", False)),
            event=event,
        )

    def decode_event(self, data: Mapping[str, Any]) -> CacheEvent:
        """
        Decode the Event object of a notification.

        Raises:
            ProtocolError: If the event type, key or timestamp is invalid
        """
        if not isinstance(data, Mapping):
            raise ProtocolError("Event must be a JSON object")

        try:
            event_type = EventType.parse(data.get("EventType"))
        except ValueError as exc:
            raise ProtocolError(str(exc)) from exc

        key = data.get("Key")
        if not isinstance(key, str):
            raise ProtocolError("Event is missing its Key")

        reason = data.get("Reason")
        return CacheEvent(
            event_type=event_type,
            key=key,
            value=data.get("Value"),
            timestamp=self.parse_timestamp(data.get("Timestamp")),
            reason=str(reason) if reason is not None else None,
        )

    @staticmethod
    def parse_timestamp(raw: Any) -> datetime:
        """
        Parse an event timestamp into an aware UTC datetime.

        Accepts ISO 8601 strings (any fractional precision, 'Z', +HH:MM or
        +HHMM suffix, naive values taken as UTC) and numeric Unix epochs. A
        missing timestamp yields the current time.
        """
        if raw is None:
            return datetime.now(timezone.utc)

        if isinstance(raw, (int, float)) and not isinstance(raw, bool):
            try:
                return datetime.fromtimestamp(raw, tz=timezone.utc)
            except (OverflowError, OSError, ValueError) as exc:
                raise ProtocolError(f"invalid epoch timestamp: {raw!r}") from exc

        if not isinstance(raw, str):
            raise ProtocolError(f"invalid timestamp: {raw!r}")

        text = raw.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        # fromisoformat only accepts 3 or 6 fractional digits on older Pythons
        text = _ISO_FRACTION.sub(lambda m: "." + m.group(1)[1:7].ljust(6, "0"), text)
        text = _COMPACT_OFFSET.sub(r"\1:\2", text)

        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ProtocolError(f"invalid timestamp: {raw!r}") from exc

        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
