"""Operations: suspend/resume units that execute a pattern on a channel.

``consume(pattern, reader)`` and ``produce(pattern, writer, value)`` return
an Operation. Nothing happens until a scheduler polls it:

    op = consume(chain(U8, U16.be()), reader)
    result = op.poll()   # PENDING | Ready(channel, value) | Failed(error)

One driver loop serves both directions. It keeps the live frames of the
active path on an explicit stack, so executing deeply nested patterns
never grows the Python call stack, and finished frames are dropped as
soon as their value has been handed to their parent.

Each step performs at most one move against the channel, and a
not-ready channel always ends the poll with PENDING, never a retry.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Generator
from dataclasses import dataclass
from typing import Any

from patio import _consume, _produce
from patio._channel import Reader, Writer, read_some, write_some
from patio._errors import (
    OperationCancelled,
    OperationError,
    PatternError,
    PatternLogicError,
)
from patio._frames import Frame
from patio._pattern import Pattern, is_pattern

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Poll results
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Pending:
    """The channel is not ready; poll again later. State is preserved."""

    def __repr__(self) -> str:
        return "PENDING"


PENDING = Pending()


@dataclass(frozen=True, slots=True)
class Ready[T]:
    """The operation completed. The channel is handed back."""

    channel: Any
    value: T


@dataclass(frozen=True, slots=True)
class Failed:
    """The operation failed. ``error.channel`` holds the channel."""

    error: OperationError

    @property
    def channel(self) -> Any:
        return self.error.channel


type Poll[T] = Pending | Ready[T] | Failed


# ═══════════════════════════════════════════════════════════════════════════════
# Operation
# ═══════════════════════════════════════════════════════════════════════════════


class Operation[T](ABC):
    """A suspend/resume computation yielding ``(channel, value)``.

    Drive it with ``poll()`` from any scheduler, with ``patio.wait()``, or
    with ``await``. Operations compose like patterns do: ``map``,
    ``and_then`` and ``then`` apply to already-started operations too.
    """

    @abstractmethod
    def poll(self) -> Poll[T]:
        """Advance as far as the channel allows.

        Raises:
            RuntimeError: the operation has already completed or failed.
        """

    @abstractmethod
    def cancel(self) -> None:
        """Abandon the operation. Bytes already moved are not restored.

        The next poll reports OperationCancelled with the channel.
        """

    def map[U](self, func: Callable[[T], U]) -> Operation[U]:
        """Transform the value once the operation completes."""
        return _MapOperation(self, func)

    def and_then[U](self, func: Callable[[Any, T], Operation[U]]) -> Operation[U]:
        """Continue with the operation ``func(channel, value)`` builds."""
        return _AndThenOperation(self, func)

    def then[U](self, func: Callable[[Any], Operation[U]]) -> Operation[tuple[T, U]]:
        """Run an independent operation on the same channel afterwards.

        Value: ``(this value, next value)``.
        """
        return self.and_then(lambda channel, value: func(channel).map(lambda v: (value, v)))

    def __await__(self) -> Generator[None, None, tuple[Any, T]]:
        """Poll once per event-loop iteration until done.

        The bare yield never waits for channel readiness, so awaiting an
        operation on a channel that stays not-ready keeps the loop busy.
        Use ``patio.wait_async(op, ready)`` to wait for readiness between
        polls.
        """
        while True:
            result = self.poll()
            match result:
                case Ready(channel=channel, value=value):
                    return channel, value
                case Failed(error=error):
                    raise error
            try:
                # Bare yield: give the event loop one iteration.
                yield
            except BaseException:
                self.cancel()
                raise


class _Driver[T](Operation[T]):
    """The state machine shared by consuming and producing operations."""

    def __init__(self, channel: Any, begin: Callable[[], Frame], label: str) -> None:
        self._channel = channel
        self._begin: Callable[[], Frame] | None = begin
        self._stack: list[Frame] = []
        self._value: Any = None
        self._moved = 0
        self._label = label
        self._cancelled: OperationCancelled | None = None
        self._finished = False

    @property
    def moved(self) -> int:
        """Total bytes moved so far."""
        return self._moved

    def poll(self) -> Poll[T]:
        if self._finished:
            msg = f"{self._label} operation already completed"
            raise RuntimeError(msg)
        if self._cancelled is not None:
            return self._fail(self._cancelled)
        try:
            if self._begin is not None:
                logger.debug("%s operation started", self._label)
                self._stack.append(self._begin())
                self._begin = None
            while True:
                leaf = self._settle()
                if leaf is None:
                    return self._complete()
                if not self._step(leaf):
                    logger.debug(
                        "%s operation suspended (moved=%d, leaf cursor=%d)",
                        self._label,
                        self._moved,
                        leaf.cursor,
                    )
                    return PENDING
        except OperationError as e:
            return self._fail(e)

    def cancel(self) -> None:
        if self._finished or self._cancelled is not None:
            return
        self._cancelled = OperationCancelled(consumed=self._active_cursor())
        self._stack.clear()

    def _settle(self) -> Any:
        """Descend to the leaf that needs bytes, finishing what is complete.

        Returns None once the root frame has finished.
        """
        stack = self._stack
        while stack:
            top = stack[-1]
            if top.leaf:
                if not top.done:
                    return top
            else:
                child = top.child()
                if child is not None:
                    stack.append(child)
                    continue
            value = top.finish()
            stack.pop()
            if stack:
                stack[-1].accept(value)
            else:
                self._value = value
        return None

    def _step(self, leaf: Any) -> bool:
        """Perform one move for ``leaf``. Returns False when not ready."""
        n = self._move(leaf.window(), leaf.cursor)
        if n is None:
            return False
        if n == 0:
            leaf.end_of_stream()
        else:
            leaf.advance(n)
            self._moved += n
        return True

    def _active_cursor(self) -> int | None:
        if self._stack and self._stack[-1].leaf:
            return self._stack[-1].cursor
        return None

    def _complete(self) -> Ready[T]:
        self._finished = True
        logger.debug("%s operation completed (moved=%d)", self._label, self._moved)
        return Ready(self._channel, self._result())

    def _fail(self, error: OperationError) -> Failed:
        if error.consumed is None:
            error.consumed = self._active_cursor()
        error.channel = self._channel
        self._finished = True
        self._stack.clear()
        logger.debug(
            "%s operation failed (%s, moved=%d): %s",
            self._label,
            error.kind,
            self._moved,
            error,
        )
        return Failed(error)

    @abstractmethod
    def _move(self, window: memoryview, cursor: int) -> int | None: ...

    @abstractmethod
    def _result(self) -> T: ...


class _ConsumeOperation[T](_Driver[T]):
    def _move(self, window: memoryview, cursor: int) -> int | None:
        return read_some(self._channel, window, cursor)

    def _result(self) -> T:
        return self._value


class _ProduceOperation(_Driver[int]):
    def _move(self, window: memoryview, cursor: int) -> int | None:
        return write_some(self._channel, window, cursor)

    def _result(self) -> int:
        return self._moved


# ═══════════════════════════════════════════════════════════════════════════════
# Operation combinators
# ═══════════════════════════════════════════════════════════════════════════════


class _MapOperation[T, U](Operation[U]):
    def __init__(self, inner: Operation[T], func: Callable[[T], U]) -> None:
        self._inner = inner
        self._func = func

    def poll(self) -> Poll[U]:
        result = self._inner.poll()
        if not isinstance(result, Ready):
            return result
        try:
            value = self._func(result.value)
        except Exception as e:
            error = PatternLogicError(f"map function raised {type(e).__name__}: {e}")
            error.__cause__ = e
            error.channel = result.channel
            return Failed(error)
        return Ready(result.channel, value)

    def cancel(self) -> None:
        self._inner.cancel()


class _AndThenOperation[T, U](Operation[U]):
    def __init__(self, inner: Operation[T], func: Callable[[Any, T], Operation[U]]) -> None:
        self._first: Operation[T] | None = inner
        self._func = func
        self._second: Operation[U] | None = None

    def poll(self) -> Poll[U]:
        if self._first is not None:
            result = self._first.poll()
            if not isinstance(result, Ready):
                return result
            self._first = None
            try:
                second = self._func(result.channel, result.value)
            except Exception as e:
                error = PatternLogicError(
                    f"operation continuation raised {type(e).__name__}: {e}"
                )
                error.__cause__ = e
                error.channel = result.channel
                return Failed(error)
            if not isinstance(second, Operation):
                error = PatternLogicError(
                    f"operation continuation returned {type(second).__name__}, "
                    "expected an operation"
                )
                error.channel = result.channel
                return Failed(error)
            self._second = second
        assert self._second is not None
        return self._second.poll()

    def cancel(self) -> None:
        if self._first is not None:
            self._first.cancel()
        elif self._second is not None:
            self._second.cancel()


# ═══════════════════════════════════════════════════════════════════════════════
# Entry points
# ═══════════════════════════════════════════════════════════════════════════════


def consume(pattern: Pattern, reader: Reader) -> Operation[Any]:
    """Read a value described by ``pattern`` from ``reader``.

    The returned operation yields ``Ready(reader, value)``.
    """
    _check_entry(pattern)
    return _ConsumeOperation(reader, lambda: _consume.start(pattern), "consume")


def produce(pattern: Pattern, writer: Writer, value: Any) -> Operation[int]:
    """Write ``value`` to ``writer`` as described by ``pattern``.

    The returned operation yields ``Ready(writer, bytes_written)``.
    """
    _check_entry(pattern)
    return _ProduceOperation(writer, lambda: _produce.start(pattern, value), "produce")


def _check_entry(pattern: object) -> None:
    if not is_pattern(pattern):
        msg = f"expected a pattern, got {type(pattern).__name__}"
        raise PatternError(msg)
