"""
LLM provider types, dataclasses, and exceptions.

WHAT: Standard type definitions for LLM interactions
WHY: Ensure consistent contracts across all providers
HOW: TypedDict for messages, dataclasses for results/status, custom exceptions for errors
"""

from typing import TypedDict, Literal, Any
from dataclasses import dataclass, field


# Message format compatible with OpenAI-style chat completions, including
# assistant tool_calls and tool-role results
ChatMessage = TypedDict(
    "ChatMessage",
    {
        "role": Literal["system", "user", "assistant", "tool"],
        "content": str | None,
        "tool_calls": list[dict[str, Any]],
        "tool_call_id": str,
    },
    total=False,
)


@dataclass
class TokenChunk:
    """Individual token from a streaming response."""
    token: str
    index: int
    is_end: bool = False


@dataclass
class ToolCallRequest:
    """Structured function call returned by a tool-capable model."""
    id: str
    name: str
    raw_arguments: str


@dataclass
class LLMResult:
    """Complete LLM generation result."""
    text: str
    usage: dict
    model: str
    tool_calls: list[ToolCallRequest] = field(default_factory=list)


@dataclass
class ProviderStatus:
    """Health status of an LLM provider."""
    available: bool
    base_url: str
    models: list[str] | None = None
    error: str | None = None


# Provider exceptions
class ProviderTimeoutError(Exception):
    """Request to provider timed out."""
    pass


class ProviderUnavailableError(Exception):
    """Provider is not reachable or down."""
    pass


class ProviderDisabledError(Exception):
    """Provider is not configured (missing credentials)."""
    pass


class ProviderResponseError(Exception):
    """Provider returned an invalid or error response."""
    pass
