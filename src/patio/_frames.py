"""Frame protocol shared by the consuming and producing engines.

A frame is one live node of an executing pattern (the "matcher"). The
driver keeps the frames of the active path on a stack: the root at the
bottom, the leaf currently moving bytes on top. Two shapes exist:

Leaf frames (``leaf = True``) own an explicit cursor:

- ``done``: True once no more bytes are needed.
- ``window()``: the buffer request for the next move.
- ``advance(n)``: record ``n > 0`` bytes moved.
- ``end_of_stream()``: the channel moved zero bytes; either complete or
  raise UnexpectedEofError.
- ``finish()``: the leaf's value.

Composite frames (``leaf = False``) own their position among children:

- ``child()``: start and return the next child frame, or None when done.
- ``accept(value)``: receive the value of the child that just finished.
- ``finish()``: the composite's value.

A composite never starts its next child before the previous one has
been accepted, which is what keeps sequencing strict and continuations
lazy.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

from patio._errors import OperationError, PatternLogicError
from patio._pattern import Pattern, is_pattern


class LeafFrame(Protocol):
    leaf: bool
    cursor: int

    @property
    def done(self) -> bool: ...

    def window(self) -> memoryview: ...

    def advance(self, n: int) -> None: ...

    def end_of_stream(self) -> None: ...

    def finish(self) -> Any: ...


class CompositeFrame(Protocol):
    leaf: bool

    def child(self) -> Frame | None: ...

    def accept(self, value: Any) -> None: ...

    def finish(self) -> Any: ...


type Frame = LeafFrame | CompositeFrame


class Done:
    """A frame that is complete before it starts (Const, empty writes)."""

    __slots__ = ("_value",)
    leaf = False

    def __init__(self, value: Any) -> None:
        self._value = value

    def child(self) -> None:
        return None

    def accept(self, value: Any) -> None:  # pragma: no cover - never has children
        pass

    def finish(self) -> Any:
        return self._value


def invoke(func: Callable[[Any], Any], arg: Any, role: str) -> Any:
    """Call a user callback, turning its failure into a PatternLogicError."""
    try:
        return func(arg)
    except OperationError:
        raise
    except Exception as e:
        msg = f"{role} raised {type(e).__name__}: {e}"
        raise PatternLogicError(msg) from e


def expect_pattern(obj: Any, role: str) -> Pattern:
    if not is_pattern(obj):
        msg = f"{role} returned {type(obj).__name__}, expected a pattern"
        raise PatternLogicError(msg)
    return obj
