"""Tests for Operation: polling, composition, cancellation, await and logging."""

from __future__ import annotations

import asyncio
import io
import logging

import pytest

from patio import (
    PENDING,
    U8,
    U16,
    U32,
    Bytes,
    Failed,
    OperationCancelled,
    PatternError,
    PatternLogicError,
    Ready,
    UnexpectedEofError,
    chain,
    consume,
    length_prefixed,
    produce,
    wait,
    wait_async,
)
from patio.testing import ChunkedReader, ThrottledWriter


class NeverReady:
    """A reader with no data, ever."""

    def readinto(self, buffer: memoryview) -> None:
        return None


class TestPollResults:
    def test_pending_repr(self) -> None:
        assert repr(PENDING) == "PENDING"

    def test_failed_exposes_channel(self) -> None:
        reader = io.BytesIO(b"")
        result = consume(U8, reader).poll()
        assert isinstance(result, Failed)
        assert result.channel is reader
        assert result.error.kind == "eof"

    def test_not_ready_preserves_state(self) -> None:
        op = consume(U16.be(), ChunkedReader([b"\x12", b"\x34"]))
        assert op.poll() == PENDING
        assert op.moved == 1
        result = op.poll()
        assert isinstance(result, Ready)
        assert result.value == 0x1234

    def test_entry_points_reject_non_patterns(self) -> None:
        with pytest.raises(PatternError, match="expected a pattern"):
            consume(b"\x00", io.BytesIO())  # type: ignore[arg-type]
        with pytest.raises(PatternError, match="expected a pattern"):
            produce(None, io.BytesIO(), 1)  # type: ignore[arg-type]


class TestWait:
    def test_idle_called_while_pending(self) -> None:
        idles: list[None] = []
        reader = ChunkedReader.bytewise(b"\x00\x00\x00\x2a")
        _, value = wait(consume(U32.be(), reader), idle=lambda: idles.append(None))
        assert value == 42
        assert len(idles) == reader.stalls == 3

    def test_failure_is_raised(self) -> None:
        with pytest.raises(UnexpectedEofError) as excinfo:
            wait(consume(U16.be(), io.BytesIO(b"\x01")))
        assert excinfo.value.channel is not None


class TestComposition:
    def test_map(self) -> None:
        _, value = wait(consume(U8, io.BytesIO(b"\x15")).map(lambda v: v * 2))
        assert value == 42

    def test_map_failure(self) -> None:
        reader = io.BytesIO(b"\x00")
        result = consume(U8, reader).map(lambda v: 1 // v).poll()
        assert isinstance(result, Failed)
        assert isinstance(result.error, PatternLogicError)
        assert isinstance(result.error.__cause__, ZeroDivisionError)
        assert result.channel is reader

    def test_and_then_continues_on_returned_channel(self) -> None:
        reader = io.BytesIO(b"\x02hi!")
        op = consume(U8, reader).and_then(lambda ch, n: consume(Bytes(n), ch))
        channel, value = wait(op)
        assert channel is reader
        assert value == b"hi"
        assert reader.tell() == 3

    def test_and_then_must_return_operation(self) -> None:
        op = consume(U8, io.BytesIO(b"\x01")).and_then(lambda ch, n: U8)
        with pytest.raises(PatternLogicError, match="expected an operation"):
            wait(op)

    def test_then_pairs_values(self) -> None:
        reader = ChunkedReader.bytewise(b"\x01\x02")
        _, value = wait(consume(U8, reader).then(lambda ch: consume(U8, ch)))
        assert value == (1, 2)

    def test_produce_then_consume(self) -> None:
        channel = io.BytesIO()
        op = produce(length_prefixed(U8), channel, b"abc")
        _, written = wait(op)
        assert written == 4
        channel.seek(0)
        _, value = wait(consume(length_prefixed(U8), channel))
        assert value == b"abc"


class TestCancellation:
    def test_cancel_returns_channel_with_progress(self) -> None:
        reader = ChunkedReader([b"\x01", b"\x02\x03\x04"])
        op = consume(U32.be(), reader)
        assert op.poll() == PENDING
        op.cancel()
        result = op.poll()
        assert isinstance(result, Failed)
        assert isinstance(result.error, OperationCancelled)
        assert result.error.consumed == 1
        assert result.channel is reader
        # bytes already moved are not restored
        assert reader.position == 1

    def test_cancel_before_first_poll(self) -> None:
        op = consume(U8, io.BytesIO(b"\x01"))
        op.cancel()
        result = op.poll()
        assert isinstance(result, Failed)
        assert result.error.consumed is None

    def test_poll_after_cancellation_reported(self) -> None:
        op = consume(U8, NeverReady())
        op.cancel()
        assert isinstance(op.poll(), Failed)
        with pytest.raises(RuntimeError):
            op.poll()

    def test_cancel_after_completion_is_noop(self) -> None:
        op = consume(U8, io.BytesIO(b"\x01"))
        assert isinstance(op.poll(), Ready)
        op.cancel()

    def test_cancel_reaches_composed_operation(self) -> None:
        reader = ChunkedReader([b"\x02", b"a", b"b"])
        op = consume(U8, reader).and_then(lambda ch, n: consume(Bytes(n), ch))
        assert op.poll() == PENDING
        assert op.poll() == PENDING
        op.cancel()
        result = op.poll()
        assert isinstance(result, Failed)
        assert isinstance(result.error, OperationCancelled)
        assert result.error.consumed == 1


class TestAwait:
    def test_await_record(self) -> None:
        async def main() -> tuple[object, object]:
            reader = ChunkedReader.bytewise(b"\x01\x00\x03ABC\x6a")
            pattern = chain(U8, length_prefixed(U16.be()), U8)
            return await consume(pattern, reader)

        _, value = asyncio.run(main())
        assert value == (1, b"ABC", 0x6A)

    def test_await_raises_operation_error(self) -> None:
        async def main() -> None:
            await consume(U16.be(), io.BytesIO(b"\x00"))

        with pytest.raises(UnexpectedEofError):
            asyncio.run(main())

    def test_concurrent_operations_interleave(self) -> None:
        writer = ThrottledWriter(limit=1)
        reader = ChunkedReader.bytewise(b"\x00\x07")

        async def main() -> list[object]:
            return await asyncio.gather(
                produce(Bytes(4), writer, b"abcd"),
                consume(U16.be(), reader),
            )

        (_, written), (_, value) = asyncio.run(main())
        assert written == 4
        assert value == 7

    def test_timeout_cancels_operation(self) -> None:
        reader = NeverReady()
        op = consume(U8, reader)

        async def main() -> None:
            await asyncio.wait_for(op, timeout=0.05)

        with pytest.raises(TimeoutError):
            asyncio.run(main())
        result = op.poll()
        assert isinstance(result, Failed)
        assert isinstance(result.error, OperationCancelled)
        assert result.channel is reader

    def test_task_cancellation_cancels_operation(self) -> None:
        op = consume(U8, NeverReady())

        async def run() -> object:
            return await op

        async def main() -> None:
            task = asyncio.create_task(run())
            await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(main())
        result = op.poll()
        assert isinstance(result, Failed)
        assert isinstance(result.error, OperationCancelled)

    def test_wait_async_awaits_readiness_between_polls(self) -> None:
        reader = ChunkedReader.bytewise(b"\x00\x00\x00\x2a")
        signals: list[None] = []

        async def ready() -> None:
            signals.append(None)
            await asyncio.sleep(0)

        _, value = asyncio.run(wait_async(consume(U32.be(), reader), ready))
        assert value == 42
        assert len(signals) == reader.stalls == 3

    def test_wait_async_timeout_cancels_operation(self) -> None:
        reader = NeverReady()
        op = consume(U8, reader)

        async def main() -> None:
            never = asyncio.Event()
            await asyncio.wait_for(wait_async(op, never.wait), timeout=0.05)

        with pytest.raises(TimeoutError):
            asyncio.run(main())
        result = op.poll()
        assert isinstance(result, Failed)
        assert isinstance(result.error, OperationCancelled)
        assert result.channel is reader


class TestLogging:
    def test_lifecycle_logged_at_debug(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.DEBUG, logger="patio")
        wait(consume(U16.be(), ChunkedReader([b"\x00", b"\x01"])))
        messages = [r.getMessage() for r in caplog.records]
        assert "consume operation started" in messages
        assert any(m.startswith("consume operation suspended") for m in messages)
        assert "consume operation completed (moved=2)" in messages

    def test_failure_logged_with_kind(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.DEBUG, logger="patio")
        result = produce(U8, io.BytesIO(), 999).poll()
        assert isinstance(result, Failed)
        assert any(
            r.getMessage().startswith("produce operation failed (logic")
            for r in caplog.records
        )
