"""Producing frames: how each pattern variant writes a value to a channel.

The mirror of ``patio._consume``: ``start(pattern, value)`` dispatches
over the Pattern union once. Leaves encode their value up front and then
hand out the unwritten remainder as their window. Composites split the
value between children, one child at a time.
"""

from __future__ import annotations

import struct
from collections.abc import Sequence
from typing import Any

from patio._errors import PatternLogicError, UnexpectedEofError
from patio._frames import Done, Frame, expect_pattern, invoke
from patio._pattern import (
    NATIVE_ORDER,
    AndThen,
    BigEndian,
    Branch,
    ByteOrder,
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


def start(p: Pattern, value: Any) -> Frame:
    """Create the frame that will write ``value`` as ``p``."""
    match p:
        case Bytes(size=n):
            data = _as_bytes(value, "Bytes")
            if len(data) != n:
                msg = f"Bytes({n}) cannot produce a value of {len(data)} bytes"
                raise PatternLogicError(msg)
            return _Buffer(data)
        case Int() | Float():
            return _Buffer(_encode_number(p, value, NATIVE_ORDER))
        case BigEndian(inner=leaf) | LittleEndian(inner=leaf):
            return _Buffer(_encode_number(leaf, value, p.byteorder))
        case Partial(size=n):
            data = _as_bytes(value, "Partial")
            if len(data) > n:
                msg = f"Partial({n}) cannot produce a value of {len(data)} bytes"
                raise PatternLogicError(msg)
            return _PartialBuffer(data)
        case Remaining():
            return _Buffer(_as_bytes(value, "Remaining"))
        case Delimited(delimiter=delim, max_size=limit):
            data = _as_bytes(value, "Delimited")
            # The appended delimiter must be its first occurrence, overlaps
            # with the end of the value included.
            if (data + delim).find(delim) != len(data):
                msg = f"Delimited value contains its delimiter {delim!r}"
                raise PatternLogicError(msg)
            if len(data) > limit:
                msg = f"Delimited value of {len(data)} bytes exceeds max_size {limit}"
                raise PatternLogicError(msg)
            return _Buffer(data + delim)
        case Eos() | Const():
            return Done(None)
        case Map(pattern=inner, encode=encode):
            if encode is None:
                msg = "map without an encode function cannot produce"
                raise PatternLogicError(msg)
            return _Single(inner, invoke(encode, value, "map encode function"))
        case AndThen():
            return _AndThen(p, value)
        case Chain(patterns=ps):
            return _Sequence(_as_items(value, len(ps), "Chain"), patterns=ps)
        case Repeat(pattern=inner, count=n):
            return _Sequence(_as_items(value, n, "Repeat"), element=inner)
        case Branch():
            selected = p.select()
            if selected is None:
                msg = f"no alternative for discriminant {p.discriminant!r}"
                raise PatternLogicError(msg)
            return start(selected, value)
        case _:  # pragma: no cover
            msg = f"unknown pattern type: {type(p).__name__}"
            raise PatternLogicError(msg)


def _as_bytes(value: Any, owner: str) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    msg = f"{owner} produces bytes-like values, got {type(value).__name__}"
    raise PatternLogicError(msg)


def _as_items(value: Any, n: int, owner: str) -> Sequence[Any]:
    if not isinstance(value, (tuple, list)):
        msg = f"{owner} produces a tuple or list, got {type(value).__name__}"
        raise PatternLogicError(msg)
    if len(value) != n:
        msg = f"{owner} expects {n} items, got {len(value)}"
        raise PatternLogicError(msg)
    return value


def _encode_number(leaf: Int | Float, value: Any, order: ByteOrder) -> bytes:
    try:
        return leaf.encode(value, order)
    except (TypeError, OverflowError, struct.error) as e:
        msg = f"cannot produce {value!r} as {leaf!r}: {e}"
        raise PatternLogicError(msg) from e


# ═══════════════════════════════════════════════════════════════════════════════
# Leaves
# ═══════════════════════════════════════════════════════════════════════════════


class _Buffer:
    """All of ``data``, accepted by the channel across any number of moves."""

    __slots__ = ("_data", "cursor")
    leaf = True

    def __init__(self, data: bytes) -> None:
        self._data = data
        self.cursor = 0

    @property
    def done(self) -> bool:
        return self.cursor == len(self._data)

    def window(self) -> memoryview:
        return memoryview(self._data)[self.cursor :]

    def advance(self, n: int) -> None:
        self.cursor += n

    def end_of_stream(self) -> None:
        raise UnexpectedEofError(len(self._data), consumed=self.cursor)

    def finish(self) -> None:
        return None


class _PartialBuffer(_Buffer):
    """As much of ``data`` as one non-empty move takes."""

    __slots__ = ()

    @property
    def done(self) -> bool:
        return self.cursor > 0 or not self._data


# ═══════════════════════════════════════════════════════════════════════════════
# Composites
# ═══════════════════════════════════════════════════════════════════════════════


class _Single:
    """One child with a precomputed value (Map after encoding)."""

    __slots__ = ("_pattern", "_value", "_started")
    leaf = False

    def __init__(self, pattern: Pattern, value: Any) -> None:
        self._pattern = pattern
        self._value = value
        self._started = False

    def child(self) -> Frame | None:
        if self._started:
            return None
        self._started = True
        return start(self._pattern, self._value)

    def accept(self, value: Any) -> None:
        pass

    def finish(self) -> None:
        return None


class _AndThen:
    """Write the dependency extracted by ``head``, then the continuation
    built from it, carrying the full value."""

    __slots__ = ("_pattern", "_value", "_dependency", "_phase")
    leaf = False

    def __init__(self, pattern: AndThen, value: Any) -> None:
        if pattern.head is None:
            msg = "and_then without a head function cannot produce"
            raise PatternLogicError(msg)
        self._pattern = pattern
        self._value = value
        self._dependency = invoke(pattern.head, value, "and_then head function")
        self._phase = 0

    def child(self) -> Frame | None:
        if self._phase == 0:
            self._phase = 1
            return start(self._pattern.pattern, self._dependency)
        if self._phase == 1:
            self._phase = 2
            built = invoke(self._pattern.func, self._dependency, "continuation")
            return start(expect_pattern(built, "continuation"), self._value)
        return None

    def accept(self, value: Any) -> None:
        pass

    def finish(self) -> None:
        return None


class _Sequence:
    """Chain and Repeat: item ``i`` of the value goes to child ``i``."""

    __slots__ = ("_items", "_patterns", "_element", "_index")
    leaf = False

    def __init__(
        self,
        items: Sequence[Any],
        *,
        patterns: Sequence[Pattern] = (),
        element: Pattern | None = None,
    ) -> None:
        self._items = items
        self._patterns = patterns
        self._element = element
        self._index = 0

    def child(self) -> Frame | None:
        if self._index == len(self._items):
            return None
        i = self._index
        self._index += 1
        p = self._patterns[i] if self._element is None else self._element
        return start(p, self._items[i])

    def accept(self, value: Any) -> None:
        pass

    def finish(self) -> None:
        return None
