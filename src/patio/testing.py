"""Test utilities for patio.

Provides in-memory channels that misbehave on purpose: they fragment,
stall, throttle and fail. These are NOT transport adapters. They exist to
exercise the suspend/resume engine deterministically in tests and
examples.

For real I/O, hand patio any object with ``readinto``/``write`` following
the non-blocking io.RawIOBase contract.
"""

from __future__ import annotations

from collections.abc import Iterable


class ChunkedReader:
    """Deliver ``chunks`` one at a time, reporting not-ready between them.

    After the last chunk the reader signals end of stream.

    >>> from patio import U16, consume
    >>> reader = ChunkedReader([b"\\x00", b"\\x07"])
    >>> op = consume(U16.be(), reader)
    >>> op.poll()
    PENDING
    >>> op.poll().value
    7
    """

    def __init__(self, chunks: Iterable[bytes], *, stall_first: bool = False) -> None:
        self._chunks = [bytes(c) for c in chunks]
        self._index = 0
        self._offset = 0
        self._stalled = not stall_first
        self.position = 0
        self.stalls = 0

    @classmethod
    def bytewise(cls, data: bytes) -> ChunkedReader:
        """One byte per chunk: the most fragmented delivery possible."""
        return cls([data[i : i + 1] for i in range(len(data))])

    def readinto(self, buffer: memoryview, /) -> int | None:
        if self._index == len(self._chunks):
            return 0
        if not self._stalled:
            self._stalled = True
            self.stalls += 1
            return None
        chunk = self._chunks[self._index]
        n = min(len(buffer), len(chunk) - self._offset)
        buffer[:n] = chunk[self._offset : self._offset + n]
        self._offset += n
        self.position += n
        if self._offset == len(chunk):
            self._index += 1
            self._offset = 0
            self._stalled = False
        return n

    @property
    def remaining(self) -> bytes:
        """Bytes not yet delivered."""
        rest = self._chunks[self._index :]
        if not rest:
            return b""
        return rest[0][self._offset :] + b"".join(rest[1:])


class ThrottledWriter:
    """Accept at most ``limit`` bytes per write, not-ready in between.

    ``capacity`` bounds the total; once reached, writes return 0 (the
    channel is closed for writing).
    """

    def __init__(self, limit: int = 1, *, capacity: int | None = None) -> None:
        self._limit = limit
        self._capacity = capacity
        self._ready = True
        self.data = bytearray()
        self.stalls = 0

    def write(self, data: memoryview, /) -> int | None:
        if not self._ready:
            self._ready = True
            self.stalls += 1
            return None
        n = min(self._limit, len(data))
        if self._capacity is not None:
            n = min(n, self._capacity - len(self.data))
        self.data += data[:n]
        self._ready = False
        return n

    def getvalue(self) -> bytes:
        return bytes(self.data)


class FailingReader:
    """Deliver ``data``, then raise ``error`` instead of signalling end."""

    def __init__(self, data: bytes, error: OSError) -> None:
        self._data = data
        self._error = error
        self.position = 0

    def readinto(self, buffer: memoryview, /) -> int:
        if self.position == len(self._data):
            raise self._error
        n = min(len(buffer), len(self._data) - self.position)
        buffer[:n] = self._data[self.position : self.position + n]
        self.position += n
        return n
