"""Byte buffer that yields complete lines from an arbitrarily split stream."""

from __future__ import annotations

from typing import Iterator

# Compact the underlying bytearray once this many consumed bytes pile up
_COMPACT_THRESHOLD = 64 * 1024


class LineBuffer:
    """Accumulates raw bytes and hands out complete ``\\n``-terminated lines.

    Read boundaries of the transport are irrelevant: a line split over many
    reads is returned once, whole, and several lines delivered by a single
    read are returned one by one.  Lines are decoded as UTF-8 only once
    complete, so multibyte characters cut in half by a read survive.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._position = 0

    def append(self, data: bytes) -> None:
        """Add *data* to the buffer.  Empty appends are no-ops."""
        if data:
            self._buffer.extend(data)

    def read_line(self) -> str | None:
        """Remove and return the next complete line, or None.

        The trailing ``\\n`` and an optional ``\\r`` are stripped.  A partial
        line stays buffered until its terminator arrives.
        """
        eol = self._buffer.find(b"\n", self._position)
        if eol < 0:
            return None
        raw = bytes(self._buffer[self._position:eol])
        self._position = eol + 1
        if self._position >= _COMPACT_THRESHOLD:
            self.clear()
        if raw.endswith(b"\r"):
            raw = raw[:-1]
        return raw.decode("utf-8", errors="replace")

    def lines(self) -> Iterator[str]:
        """Yield every complete line currently buffered."""
        while True:
            line = self.read_line()
            if line is None:
                return
            yield line

    def flush(self) -> str | None:
        """Return the unterminated tail (end of stream) and empty the buffer."""
        raw = bytes(self._buffer[self._position:])
        self._buffer.clear()
        self._position = 0
        if not raw:
            return None
        return raw.rstrip(b"\r").decode("utf-8", errors="replace")

    def clear(self) -> None:
        """Drop already-consumed bytes, keeping any partial line."""
        if self._position > 0:
            del self._buffer[:self._position]
            self._position = 0

    @property
    def is_empty(self) -> bool:
        return len(self._buffer) <= self._position

    def __len__(self) -> int:
        return len(self._buffer) - self._position
