"""
Unit tests for streaming handler utilities.

WHAT: Test relay_stream, emit and StreamAccumulator
WHY: Streamed text must reach callers intact while buffer writes stay throttled
HOW: Hand-built token chunk streams and recording callbacks
"""

import pytest

from supplyscout.llm.streaming_handler import StreamAccumulator, emit, relay_stream
from supplyscout.llm.types import TokenChunk


async def make_chunk_stream(tokens: list[str]):
    """Helper to create token chunk stream."""
    for i, token in enumerate(tokens):
        yield TokenChunk(token=token, index=i, is_end=False)
    yield TokenChunk(token="", index=len(tokens), is_end=True)


@pytest.mark.unit
class TestRelayStream:
    """Test forwarding tokens while collecting the full text."""

    @pytest.mark.asyncio
    async def test_relay_basic(self):
        received = []
        text = await relay_stream(make_chunk_stream(["Hello", " ", "world", "!"]), received.append)
        assert text == "Hello world!"
        assert received == ["Hello", " ", "world", "!"]

    @pytest.mark.asyncio
    async def test_relay_without_callback(self):
        assert await relay_stream(make_chunk_stream(["a", "b"])) == "ab"

    @pytest.mark.asyncio
    async def test_relay_empty_stream(self):
        received = []
        assert await relay_stream(make_chunk_stream([]), received.append) == ""
        assert received == []

    @pytest.mark.asyncio
    async def test_empty_tokens_are_not_forwarded(self):
        received = []
        await relay_stream(make_chunk_stream(["a", "", "b"]), received.append)
        assert received == ["a", "b"]

    @pytest.mark.asyncio
    async def test_stops_at_end_chunk(self):
        async def stream():
            yield TokenChunk(token="kept", index=0)
            yield TokenChunk(token="", index=1, is_end=True)
            yield TokenChunk(token="ignored", index=2)

        assert await relay_stream(stream()) == "kept"

    @pytest.mark.asyncio
    async def test_async_callback(self):
        received = []

        async def on_token(text):
            received.append(text)

        await relay_stream(make_chunk_stream(["x", "y"]), on_token)
        assert received == ["x", "y"]


@pytest.mark.unit
class TestEmit:

    @pytest.mark.asyncio
    async def test_none_callback_is_ignored(self):
        await emit(None, "text")

    @pytest.mark.asyncio
    async def test_empty_text_is_not_emitted(self):
        received = []
        await emit(received.append, "")
        assert received == []


@pytest.mark.unit
class TestStreamAccumulator:

    def test_flush_every_n_chunks(self):
        accumulator = StreamAccumulator(flush_every=3)
        flushes = [accumulator.add(token) for token in ["a", "b", "c", "d", "e", "f", "g"]]
        assert flushes == [False, False, True, False, False, True, False]
        assert accumulator.text == "abcdefg"

    def test_flush_every_is_at_least_one(self):
        accumulator = StreamAccumulator(flush_every=0)
        assert accumulator.add("a") is True
        assert accumulator.add("b") is True
