"""
Stream Framing Module

Reassembles newline-delimited messages out of raw socket reads, which may
split a message across several reads or coalesce several messages into one.
"""

import codecs
from typing import List

from .parser import DELIMITER


class FrameReader:
    """
    Incremental splitter for a newline-delimited message stream.

    One FrameReader belongs to one connection. It performs no I/O: the
    caller feeds it whatever each read returned and gets back the messages
    completed by that read.

    Example:
        >>> reader = FrameReader()
        >>> reader.feed(b'{"a": 1}\\n{"b"')
        ['{"a": 1}']
        >>> reader.feed(b': 2}\\n')
        ['{"b": 2}']
    """

    def __init__(self, encoding: str = "utf-8"):
        # Incremental decoding keeps a multi-byte character split across
        # two reads intact instead of turning it into replacement chars.
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""

    def feed(self, data: bytes) -> List[str]:
        """
        Append one read's worth of bytes and return every completed message.

        Args:
            data: Bytes returned by a single read (may be empty)

        Returns:
            Complete messages in arrival order, without delimiters. Empty
            messages produced by consecutive delimiters are dropped.
        """
        self._buffer += self._decoder.decode(data)

        last = self._buffer.rfind(DELIMITER)
        if last < 0:
            return []

        complete = self._buffer[:last]
        self._buffer = self._buffer[last + 1:]
        return [message for message in complete.split(DELIMITER) if message.strip()]

    @property
    def pending(self) -> str:
        """Text received after the last delimiter (the partial next message)."""
        return self._buffer

    def reset(self) -> None:
        """Discard any partial message and decoder state."""
        self._decoder.reset()
        self._buffer = ""
