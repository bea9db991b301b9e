"""LLM provider layer."""

from .types import (
    ChatMessage,
    TokenChunk,
    ToolCallRequest,
    LLMResult,
    ProviderStatus,
    ProviderTimeoutError,
    ProviderUnavailableError,
    ProviderDisabledError,
    ProviderResponseError,
)
from .provider import LLMProvider
from .provider_factory import close_provider, get_provider, reset_provider

__all__ = [
    "ChatMessage",
    "TokenChunk",
    "ToolCallRequest",
    "LLMResult",
    "ProviderStatus",
    "ProviderTimeoutError",
    "ProviderUnavailableError",
    "ProviderDisabledError",
    "ProviderResponseError",
    "LLMProvider",
    "get_provider",
    "reset_provider",
    "close_provider",
]
