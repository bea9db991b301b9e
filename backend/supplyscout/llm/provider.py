"""
LLM provider protocol definition.

WHAT: Abstract interface for LLM providers
WHY: Decouple the orchestrator from specific provider implementations
HOW: Protocol with async ping/generate/stream plus a tool-calling capability flag
"""

from typing import Protocol, AsyncIterator, Any
from .types import ChatMessage, LLMResult, TokenChunk, ProviderStatus


class LLMProvider(Protocol):
    """Protocol defining the interface all LLM providers must implement."""

    # True when the provider accepts `tools=` and returns structured tool calls
    supports_tools: bool

    async def ping(self) -> ProviderStatus:
        """Check provider health and availability."""
        ...

    async def generate(
        self,
        messages: list[ChatMessage],
        *,
        temperature: float,
        max_tokens: int,
        stop: list[str] | None = None,
        model: str | None = None,
        tools: list[dict[str, Any]] | None = None
    ) -> LLMResult:
        """Generate a complete response (non-streaming)."""
        ...

    def stream(
        self,
        messages: list[ChatMessage],
        *,
        temperature: float,
        max_tokens: int,
        stop: list[str] | None = None,
        model: str | None = None
    ) -> AsyncIterator[TokenChunk]:
        """Stream response tokens as they're generated."""
        ...

    async def close(self) -> None:
        """Release the HTTP client."""
        ...
