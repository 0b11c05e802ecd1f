#!/usr/bin/env python3
"""
Interactive Cache Client

A command-line shell for manually exercising a cache server.

Usage:
    cache-client                              # Connect to localhost:5050/5051
    cache-client --host 1.2.3.4               # Connect to specific host
    cache-client --port 6000 --notification-port 6001
    cache-client --timeout 2000 --debug

Environment Variables:
    CACHE_CLIENT_HOST, CACHE_CLIENT_PORT, CACHE_CLIENT_NOTIFICATION_PORT,
    CACHE_CLIENT_TIMEOUT_MS, CACHE_CLIENT_DEBUG, CACHE_CLIENT_LOG_LEVEL
"""

import argparse
import json
import logging
import shlex
import sys
from typing import Any, List, Optional

from .client import CacheClient
from .config.settings import ClientOptions, settings
from .exceptions import CacheClientError
from .protocol.commands import EventNotification, EventType

# Enable command history with arrow keys (works on Unix systems)
try:
    import readline  # noqa: F401
except ImportError:
    pass  # readline not available on Windows by default

logger = logging.getLogger(__name__)

HELP = """
Cache Commands:
---------------
  CREATE <key> <value> [ttl]        Add a new key (optional TTL in seconds)
  READ <key>                        Retrieve the value for a key
  UPDATE <key> <value> [ttl]        Replace the value of an existing key
  DELETE <key>                      Delete a key
  CLEAR                             Delete every key
  SUBSCRIBE [pattern] [EventType..] Print cache events as they arrive
  UNSUBSCRIBE                       Stop printing cache events

Client Commands:
----------------
  help                              Show this help message
  status                            Show connection and subscription status
  exit                              Exit the client

Values are parsed as JSON when possible ("42", "[1, 2]", '{"a": 1}'),
otherwise sent as plain strings. Event types: ItemAdded, ItemUpdated,
ItemRemoved, ItemExpired, ItemEvicted.
"""


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Interactive client for a key-value cache server",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--host", type=str, default=settings.HOST, help="Server host")
    parser.add_argument("--port", type=int, default=settings.PORT, help="CRUD port")
    parser.add_argument(
        "--notification-port",
        type=int,
        default=settings.NOTIFICATION_PORT,
        help="Notification port",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=settings.TIMEOUT_MILLISECONDS,
        help="CRUD timeout in milliseconds",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    if debug or settings.DEBUG:
        level = logging.DEBUG
    else:
        level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )


def parse_value(text: str) -> Any:
    """Interpret a command-line value as JSON, falling back to the raw string."""
    try:
        return json.loads(text)
    except ValueError:
        return text


def format_event(notification: EventNotification) -> str:
    """Render one event notification as a single line."""
    line = (
        f"[{notification.timestamp.isoformat()}] {notification.event_type.value} "
        f"{notification.key} = {json.dumps(notification.value)}"
    )
    if notification.reason:
        line += f" ({notification.reason})"
    return line


def _ttl(parts: List[str], index: int) -> Optional[int]:
    if len(parts) <= index:
        return None
    return int(parts[index])


def execute_command(client: CacheClient, line: str) -> str:
    """
    Execute one cache command and return the text to print.

    Cache failures are reported as 'ERROR <message>' rather than raised.
    """
    try:
        parts = shlex.split(line)
    except ValueError as exc:
        return f"ERROR {exc}"
    if not parts:
        return ""

    command = parts[0].upper()
    args = parts[1:]

    try:
        if command in ("CREATE", "UPDATE"):
            if len(args) not in (2, 3):
                return f"ERROR usage: {command} <key> <value> [ttl]"
            method = client.add if command == "CREATE" else client.update
            method(args[0], parse_value(args[1]), _ttl(args, 2))
            return "OK"

        if command == "READ":
            if len(args) != 1:
                return "ERROR usage: READ <key>"
            return f"OK {json.dumps(client.get(args[0]))}"

        if command == "DELETE":
            if len(args) != 1:
                return "ERROR usage: DELETE <key>"
            client.remove(args[0])
            return "OK"

        if command == "CLEAR":
            client.clear()
            return "OK"

        if command == "SUBSCRIBE":
            pattern = None
            if args and not _is_event_type(args[0]):
                pattern, args = args[0], args[1:]
            event_types = [EventType.parse(name) for name in args]
            client.subscribe(pattern, *event_types)
            return "OK subscribed"

        if command == "UNSUBSCRIBE":
            client.unsubscribe()
            return "OK unsubscribed"

    except CacheClientError as exc:
        return f"ERROR {exc}"
    except ValueError as exc:
        return f"ERROR {exc}"

    return f"ERROR unknown command: {parts[0]}"


def _is_event_type(text: str) -> bool:
    try:
        EventType.parse(text)
    except ValueError:
        return False
    return True


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the interactive client."""
    args = parse_args(argv)
    setup_logging(debug=args.debug)

    try:
        options = ClientOptions(
            host=args.host,
            port=args.port,
            notification_port=args.notification_port,
            timeout_milliseconds=args.timeout,
        )
    except ValueError as exc:
        print(f"Invalid options: {exc}")
        sys.exit(2)

    print("Cache Client")
    print("============")
    print(f"Server {options.host}:{options.port} (notifications on {options.notification_port})")
    print("Type 'help' for commands.\n")

    client = CacheClient(options)
    client.on_cache_event(lambda notification: print(format_event(notification)))
    client.initialize()

    try:
        while True:
            try:
                command = input(">>> ").strip()

                if not command:
                    continue

                lower_cmd = command.lower()

                if lower_cmd == "help":
                    print(HELP)
                    continue

                if lower_cmd in ("exit", "quit"):
                    print("Goodbye!")
                    break

                if lower_cmd == "status":
                    subscribed = "yes" if client.is_subscribed else "no"
                    print(f"Server: {options.host}:{options.port}")
                    print(f"Subscribed: {subscribed}")
                    stats = client.notification_stats()
                    if stats:
                        print(f"Notifications: {stats}")
                    continue

                print(execute_command(client, command))

            except EOFError:
                print("\nGoodbye!")
                break

    except KeyboardInterrupt:
        print("\n\nInterrupted. Goodbye!")
    finally:
        client.close()
        logger.debug("Client closed")


if __name__ == "__main__":
    main()
