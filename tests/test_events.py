"""Tests for the remix progress event stream."""

import json

import pytest

from remix.events import RemixEventStream, StreamInterruptedError, encode_sse, read_sse_events


async def _collect(aiter):
    return [item async for item in aiter]


async def _lines(*lines):
    for line in lines:
        yield line


class TestRemixEventStream:
    @pytest.mark.asyncio
    async def test_events_arrive_in_order_and_end_with_done(self):
        stream = RemixEventStream()
        stream.log("one")
        stream.log("two")
        stream.done()

        assert await _collect(stream.events()) == [{"log": "one"}, {"log": "two"}, {"done": True}]
        assert stream.closed is True
        assert stream.terminal == {"done": True}

    @pytest.mark.asyncio
    async def test_error_is_terminal(self):
        stream = RemixEventStream()
        stream.log("working")
        stream.error("boom")
        assert await _collect(stream.events()) == [{"log": "working"}, {"error": "boom"}]

    def test_only_one_terminal_event(self):
        stream = RemixEventStream()
        stream.done()
        with pytest.raises(RuntimeError):
            stream.error("late")
        with pytest.raises(RuntimeError):
            stream.done()

    def test_no_logs_after_terminal(self):
        stream = RemixEventStream()
        stream.error("boom")
        with pytest.raises(RuntimeError):
            stream.log("after")

    @pytest.mark.asyncio
    async def test_sse_frames(self):
        stream = RemixEventStream()
        stream.log("✅ ok")
        stream.done()
        frames = await _collect(stream.sse())
        assert frames == ['data: {"log": "✅ ok"}\n\n', 'data: {"done": true}\n\n']


class TestReadSseEvents:
    @pytest.mark.asyncio
    async def test_parses_until_terminal(self):
        events = await _collect(read_sse_events(_lines(
            encode_sse({"log": "a"}).strip(),
            "",
            ": keep-alive",
            encode_sse({"error": "nope"}).strip(),
            encode_sse({"log": "ignored"}).strip(),
        )))
        assert events == [{"log": "a"}, {"error": "nope"}]

    @pytest.mark.asyncio
    async def test_abrupt_end_is_a_failure(self):
        received = []
        with pytest.raises(StreamInterruptedError):
            async for event in read_sse_events(_lines(f"data: {json.dumps({'log': 'a'})}")):
                received.append(event)
        assert received == [{"log": "a"}]
