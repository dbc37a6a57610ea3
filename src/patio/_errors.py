"""Error taxonomy for patio.

Two families:

- PatternError: raised eagerly while *building* a pattern (or loading one
  from config). Nothing has touched a channel yet.
- OperationError: the failure of a running operation. Delivered in
  ``Failed.error`` by ``Operation.poll()`` and raised by ``wait()`` and
  ``await``. Always carries the channel so the caller gets it back.

Bytes moved before an OperationError are never rolled back.
"""

from __future__ import annotations

from typing import Any


class PatternError(Exception):
    """Invalid pattern construction."""


class OperationError(Exception):
    """Base class for run-time failures of an operation.

    Attributes:
        channel: the channel that was lent to the operation, handed back.
        consumed: bytes the active leaf had moved before the failure, or
            None when no leaf was active.
    """

    kind = "operation"

    def __init__(self, message: str, *, consumed: int | None = None) -> None:
        self.message = message
        self.channel: Any = None
        self.consumed = consumed
        super().__init__(message)

    def __str__(self) -> str:
        if self.consumed is None:
            return self.message
        return f"{self.message} (active leaf had moved {self.consumed} bytes)"


class ChannelError(OperationError):
    """The channel itself reported an error. The cause is passed through."""

    kind = "channel"

    def __init__(self, cause: BaseException, *, consumed: int | None = None) -> None:
        self.cause = cause
        super().__init__(f"channel error: {cause!r}", consumed=consumed)


class UnexpectedEofError(OperationError):
    """End of stream reached while the active leaf still needed bytes."""

    kind = "eof"

    def __init__(self, required: int | None, *, consumed: int = 0) -> None:
        self.required = required
        if required is None:
            msg = "unexpected end of stream"
        else:
            msg = f"unexpected end of stream: leaf required {required} bytes"
        super().__init__(msg, consumed=consumed)


class PatternLogicError(OperationError):
    """A pattern could not proceed: a user callback failed, a branch had no
    matching case, or a value could not be produced by the pattern."""

    kind = "logic"


class OperationCancelled(OperationError):
    """The caller abandoned the operation before it finished."""

    kind = "cancelled"

    def __init__(self, *, consumed: int | None = None) -> None:
        super().__init__("operation cancelled", consumed=consumed)


class TrailingBytesError(OperationError):
    """decode() finished with input left over."""

    kind = "trailing"

    def __init__(self, remaining: int) -> None:
        self.remaining = remaining
        super().__init__(f"{remaining} trailing bytes after the pattern completed")
