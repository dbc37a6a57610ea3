"""Consuming frames: how each pattern variant reads from a channel.

``start(pattern)`` is the single dispatch point over the Pattern union.
Leaf frames ask for exactly the bytes they still need; composites hand
out children one at a time.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from patio._errors import PatternLogicError, UnexpectedEofError
from patio._frames import Done, Frame, expect_pattern, invoke
from patio._pattern import (
    NATIVE_ORDER,
    AndThen,
    BigEndian,
    Branch,
    Bytes,
    Chain,
    Const,
    Delimited,
    Eos,
    Float,
    Int,
    LittleEndian,
    Map,
    Partial,
    Pattern,
    Remaining,
    Repeat,
)


def start(p: Pattern) -> Frame:
    """Create the frame that will read ``p``."""
    match p:
        case Bytes(size=n):
            return _Fixed(n, bytes)
        case Int() | Float():
            return _Fixed(p.width, lambda data: p.decode(data, NATIVE_ORDER))
        case BigEndian(inner=leaf) | LittleEndian(inner=leaf):
            order = p.byteorder
            return _Fixed(leaf.width, lambda data: leaf.decode(data, order))
        case Partial(size=n):
            return _Partial(n)
        case Eos():
            return _Eos()
        case Remaining(chunk_size=chunk):
            return _ToEnd(chunk)
        case Delimited(delimiter=delim, max_size=limit):
            return _Delimited(delim, limit)
        case Const(value=v):
            return Done(v)
        case Map():
            return _Map(p)
        case AndThen():
            return _AndThen(p)
        case Chain(patterns=ps):
            return _Chain(ps)
        case Repeat(pattern=inner, count=n):
            return _Repeat(inner, n)
        case Branch():
            selected = p.select()
            if selected is None:
                msg = f"no alternative for discriminant {p.discriminant!r}"
                raise PatternLogicError(msg)
            return start(selected)
        case _:  # pragma: no cover
            msg = f"unknown pattern type: {type(p).__name__}"
            raise PatternLogicError(msg)


# ═══════════════════════════════════════════════════════════════════════════════
# Leaves
# ═══════════════════════════════════════════════════════════════════════════════


class _Fixed:
    """Exactly ``size`` bytes, accepted across any number of partial moves."""

    __slots__ = ("_buffer", "_decode", "cursor")
    leaf = True

    def __init__(self, size: int, decode: Callable[[bytes], Any]) -> None:
        self._buffer = bytearray(size)
        self._decode = decode
        self.cursor = 0

    @property
    def done(self) -> bool:
        return self.cursor == len(self._buffer)

    def window(self) -> memoryview:
        return memoryview(self._buffer)[self.cursor :]

    def advance(self, n: int) -> None:
        self.cursor += n

    def end_of_stream(self) -> None:
        raise UnexpectedEofError(len(self._buffer), consumed=self.cursor)

    def finish(self) -> Any:
        return self._decode(bytes(self._buffer))


class _Partial:
    __slots__ = ("_buffer", "cursor", "_moved")
    leaf = True

    def __init__(self, size: int) -> None:
        self._buffer = bytearray(size)
        self.cursor = 0
        self._moved = size == 0

    @property
    def done(self) -> bool:
        return self._moved

    def window(self) -> memoryview:
        return memoryview(self._buffer)

    def advance(self, n: int) -> None:
        self.cursor = n
        self._moved = True

    def end_of_stream(self) -> None:
        raise UnexpectedEofError(1, consumed=0)

    def finish(self) -> bytes:
        return bytes(self._buffer[: self.cursor])


class _Eos:
    __slots__ = ("_probe", "cursor", "_at_end")
    leaf = True

    def __init__(self) -> None:
        self._probe = bytearray(1)
        self.cursor = 0
        self._at_end = False

    @property
    def done(self) -> bool:
        return self._at_end or self.cursor == 1

    def window(self) -> memoryview:
        return memoryview(self._probe)

    def advance(self, n: int) -> None:
        self.cursor += n

    def end_of_stream(self) -> None:
        self._at_end = True

    def finish(self) -> int | None:
        return None if self._at_end else self._probe[0]


class _ToEnd:
    __slots__ = ("_chunks", "_chunk_size", "_buffer", "cursor", "_at_end")
    leaf = True

    def __init__(self, chunk_size: int) -> None:
        self._chunks: list[bytes] = []
        self._chunk_size = chunk_size
        self._buffer = bytearray(chunk_size)
        self.cursor = 0
        self._at_end = False

    @property
    def done(self) -> bool:
        return self._at_end

    def window(self) -> memoryview:
        return memoryview(self._buffer)

    def advance(self, n: int) -> None:
        self._chunks.append(bytes(self._buffer[:n]))
        self.cursor += n

    def end_of_stream(self) -> None:
        self._at_end = True

    def finish(self) -> bytes:
        return b"".join(self._chunks)


class _Delimited:
    __slots__ = ("_delimiter", "_limit", "_data", "_byte", "cursor", "_complete")
    leaf = True

    def __init__(self, delimiter: bytes, limit: int) -> None:
        self._delimiter = delimiter
        self._limit = limit
        self._data = bytearray()
        self._byte = bytearray(1)
        self.cursor = 0
        self._complete = False

    @property
    def done(self) -> bool:
        return self._complete

    def window(self) -> memoryview:
        return memoryview(self._byte)

    def advance(self, n: int) -> None:
        self.cursor += n
        self._data += self._byte
        if self._data.endswith(self._delimiter):
            del self._data[-len(self._delimiter) :]
            self._complete = True
        elif len(self._data) - (len(self._delimiter) - 1) > self._limit:
            # The last len(delimiter) - 1 bytes may still start the delimiter.
            self._too_long()

    def end_of_stream(self) -> None:
        if not self._data:
            raise UnexpectedEofError(None, consumed=self.cursor)
        if len(self._data) > self._limit:
            self._too_long()
        self._complete = True

    def _too_long(self) -> None:
        msg = f"no delimiter {self._delimiter!r} within {self._limit} bytes"
        raise PatternLogicError(msg, consumed=self.cursor)

    def finish(self) -> bytes:
        return bytes(self._data)


# ═══════════════════════════════════════════════════════════════════════════════
# Composites
# ═══════════════════════════════════════════════════════════════════════════════


class _Map:
    __slots__ = ("_pattern", "_started", "_value")
    leaf = False

    def __init__(self, pattern: Map) -> None:
        self._pattern = pattern
        self._started = False
        self._value: Any = None

    def child(self) -> Frame | None:
        if self._started:
            return None
        self._started = True
        return start(self._pattern.pattern)

    def accept(self, value: Any) -> None:
        self._value = value

    def finish(self) -> Any:
        return invoke(self._pattern.func, self._value, "map function")


class _AndThen:
    """Phase 0: dependency not started. 1: dependency running.
    2: continuation running."""

    __slots__ = ("_pattern", "_phase", "_value")
    leaf = False

    def __init__(self, pattern: AndThen) -> None:
        self._pattern = pattern
        self._phase = 0
        self._value: Any = None

    def child(self) -> Frame | None:
        if self._phase == 0:
            self._phase = 1
            return start(self._pattern.pattern)
        if self._phase == 1:
            self._phase = 2
            built = invoke(self._pattern.func, self._value, "continuation")
            return start(expect_pattern(built, "continuation"))
        return None

    def accept(self, value: Any) -> None:
        self._value = value

    def finish(self) -> Any:
        return self._value


class _Chain:
    __slots__ = ("_patterns", "_values")
    leaf = False

    def __init__(self, patterns: tuple[Pattern, ...]) -> None:
        self._patterns = patterns
        self._values: list[Any] = []

    def child(self) -> Frame | None:
        index = len(self._values)
        if index == len(self._patterns):
            return None
        return start(self._patterns[index])

    def accept(self, value: Any) -> None:
        self._values.append(value)

    def finish(self) -> tuple[Any, ...]:
        return tuple(self._values)


class _Repeat:
    __slots__ = ("_pattern", "_count", "_values")
    leaf = False

    def __init__(self, pattern: Pattern, count: int) -> None:
        self._pattern = pattern
        self._count = count
        self._values: list[Any] = []

    def child(self) -> Frame | None:
        if len(self._values) == self._count:
            return None
        return start(self._pattern)

    def accept(self, value: Any) -> None:
        self._values.append(value)

    def finish(self) -> list[Any]:
        return self._values
