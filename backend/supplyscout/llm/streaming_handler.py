"""
Streaming utilities for LLM responses.

WHAT: Helpers to relay token streams and throttle buffer persistence
WHY: Callers see text as it is produced, while the session's streaming
     buffer is only written every few chunks
HOW: Async relay over TokenChunk iterators plus a small counting accumulator
"""

import inspect
from typing import AsyncIterator, Awaitable, Callable

from .types import TokenChunk
from ..utils.logger import get_logger

logger = get_logger(__name__)

TokenCallback = Callable[[str], Awaitable[None] | None]


async def emit(callback: TokenCallback | None, text: str) -> None:
    """Call a sync or async text callback."""
    if callback is None or not text:
        return
    result = callback(text)
    if inspect.isawaitable(result):
        await result


async def relay_stream(
    chunks: AsyncIterator[TokenChunk],
    on_token: TokenCallback | None = None
) -> str:
    """
    Consume a token stream, forwarding each token as it arrives.

    Args:
        chunks: Source token chunks
        on_token: Called with every non-empty token

    Returns:
        The full concatenated text
    """
    parts: list[str] = []
    async for chunk in chunks:
        if chunk.is_end:
            break
        if chunk.token:
            parts.append(chunk.token)
            await emit(on_token, chunk.token)
    logger.debug(f"Relayed {len(parts)} stream chunks")
    return "".join(parts)


class StreamAccumulator:
    """
    Collect streamed text and signal when a persistence flush is due.

    WHAT: Running buffer of a turn's visible text
    WHY: Writing the buffer on every token would hammer the database
    HOW: add() returns True once every `flush_every` chunks
    """

    def __init__(self, flush_every: int = 5):
        self.flush_every = max(1, flush_every)
        self._parts: list[str] = []
        self._since_flush = 0

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def add(self, text: str) -> bool:
        """Append a chunk; True when the caller should persist `text` now."""
        self._parts.append(text)
        self._since_flush += 1
        if self._since_flush >= self.flush_every:
            self._since_flush = 0
            return True
        return False
