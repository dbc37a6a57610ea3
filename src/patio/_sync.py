"""Blocking and coroutine conveniences on top of operations.

``wait()`` is the simplest possible scheduler: poll until the operation
stops being pending. With blocking or in-memory channels it never spins;
with non-blocking ones pass ``idle`` (for example a ``select`` call) to
wait for readiness between polls.

``wait_async()`` does the same from a coroutine, awaiting a readiness
signal between polls instead of busy-polling the event loop.
"""

from __future__ import annotations

import io
from collections.abc import Awaitable, Callable
from typing import Any

from patio._channel import Sink
from patio._errors import TrailingBytesError
from patio._operation import Failed, Operation, Ready, consume, produce
from patio._pattern import Pattern


def wait[T](op: Operation[T], idle: Callable[[], object] | None = None) -> tuple[Any, T]:
    """Drive ``op`` to completion and return ``(channel, value)``.

    Raises:
        OperationError: the operation failed; ``error.channel`` holds the
            channel.
    """
    while True:
        match op.poll():
            case Ready(channel=channel, value=value):
                return channel, value
            case Failed(error=error):
                raise error
        if idle is not None:
            idle()


async def wait_async[T](
    op: Operation[T], ready: Callable[[], Awaitable[object]]
) -> tuple[Any, T]:
    """Drive ``op`` from a coroutine, awaiting ``ready()`` while pending.

    ``ready`` returns an awaitable that completes when the channel may be
    able to move bytes again, for example a future resolved by
    ``loop.add_reader``. Cancelling the awaiting task cancels ``op``.

    Raises:
        OperationError: the operation failed; ``error.channel`` holds the
            channel.
    """
    while True:
        match op.poll():
            case Ready(channel=channel, value=value):
                return channel, value
            case Failed(error=error):
                raise error
        try:
            await ready()
        except BaseException:
            op.cancel()
            raise


def decode(pattern: Pattern, data: bytes, *, exact: bool = True) -> Any:
    """Consume ``data`` with ``pattern`` and return the value.

    >>> from patio import U8, U16, chain
    >>> decode(chain(U8, U16.be()), b"\\x01\\x00\\x02")
    (1, 2)

    Raises:
        UnexpectedEofError: ``data`` ends before the pattern completes.
        TrailingBytesError: ``exact`` is set and bytes are left over.
    """
    reader = io.BytesIO(data)
    _, value = wait(consume(pattern, reader))
    remaining = len(data) - reader.tell()
    if exact and remaining:
        error = TrailingBytesError(remaining)
        error.channel = reader
        raise error
    return value


def encode(pattern: Pattern, value: Any) -> bytes:
    """Produce ``value`` with ``pattern`` and return the bytes."""
    writer = io.BytesIO()
    wait(produce(pattern, writer, value))
    return writer.getvalue()


def encoded_size(pattern: Pattern, value: Any) -> int:
    """Bytes ``encode(pattern, value)`` would produce, without keeping them."""
    _, written = wait(produce(pattern, Sink(), value))
    return written
