"""Channel capability: the byte mover patio drives but never implements.

A channel follows Python's non-blocking raw I/O contract (io.RawIOBase):

- ``readinto(buffer)`` returns the number of bytes read, 0 at end of
  stream, or None when no data is available right now.
- ``write(data)`` returns the number of bytes accepted, or None when the
  channel cannot take data right now.

``BlockingIOError`` and ``InterruptedError`` are read as "not ready" too,
which covers buffered streams and raw sockets. Anything else the channel
raises, such as an OSError or the ValueError of a closed file, is a
channel error. io.BytesIO, unbuffered files and
``socket.makefile("rwb", buffering=0)`` all qualify.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from patio._errors import ChannelError


@runtime_checkable
class Reader(Protocol):
    """Source side: move up to ``len(buffer)`` bytes into ``buffer``."""

    def readinto(self, buffer: memoryview, /) -> int | None: ...


@runtime_checkable
class Writer(Protocol):
    """Sink side: move up to ``len(data)`` bytes out of ``data``."""

    def write(self, data: memoryview, /) -> int | None: ...


class Sink:
    """A writer that accepts and discards everything."""

    def write(self, data: memoryview, /) -> int:
        return len(data)


class Counter:
    """Wrap a channel and count the bytes moved through it in each direction.

    >>> import io
    >>> counter = Counter(io.BytesIO(b"abc"))
    >>> counter.readinto(memoryview(bytearray(2)))
    2
    >>> counter.read_size
    2
    """

    def __init__(self, inner: Any) -> None:
        self.inner = inner
        self.read_size = 0
        self.written_size = 0

    def readinto(self, buffer: memoryview, /) -> int | None:
        n = self.inner.readinto(buffer)
        if n:
            self.read_size += n
        return n

    def write(self, data: memoryview, /) -> int | None:
        n = self.inner.write(data)
        if n:
            self.written_size += n
        return n


def read_some(channel: Reader, window: memoryview, consumed: int) -> int | None:
    """Attempt exactly one read. Returns bytes moved, or None if not ready.

    Raises:
        ChannelError: the channel raised anything other than not-ready.
    """
    try:
        n = channel.readinto(window)
    except (BlockingIOError, InterruptedError):
        return None
    except Exception as e:
        raise ChannelError(e, consumed=consumed) from e
    if n is not None and not 0 <= n <= len(window):
        msg = f"readinto() returned {n} for a {len(window)}-byte buffer"
        raise ChannelError(ValueError(msg), consumed=consumed)
    return n


def write_some(channel: Writer, window: memoryview, consumed: int) -> int | None:
    """Attempt exactly one write. Returns bytes moved, or None if not ready.

    A BlockingIOError that reports a partial write counts as that many
    bytes moved; the next attempt will surface the not-ready condition.

    Raises:
        ChannelError: the channel raised anything other than not-ready.
    """
    try:
        n = channel.write(window)
    except BlockingIOError as e:
        written = getattr(e, "characters_written", 0)
        return written if written > 0 else None
    except InterruptedError:
        return None
    except Exception as e:
        raise ChannelError(e, consumed=consumed) from e
    if n is not None and not 0 <= n <= len(window):
        msg = f"write() returned {n} for a {len(window)}-byte buffer"
        raise ChannelError(ValueError(msg), consumed=consumed)
    return n
