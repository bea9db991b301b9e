"""
LM Studio provider implementation.

WHAT: Local inference through LM Studio's OpenAI-compatible server
WHY: Run the assistant without a hosted API key
HOW: No native function calling; tool calls come back as <tool_call> text and
     are recovered by the response parser. Reasoning blocks are stripped.
"""

import re

from .openai_compat import OpenAICompatibleProvider
from .types import ChatMessage
from ..core.config import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

_THINK_BLOCK = re.compile(r'<think(?:ing)?>.*?</think(?:ing)?>\s*', re.DOTALL | re.IGNORECASE)
_THINK_TAG = re.compile(r'</?think(?:ing)?>\s*', re.IGNORECASE)


class LMStudioProvider(OpenAICompatibleProvider):
    """Text-only local provider."""

    label = "LM Studio"
    supports_tools = False

    def __init__(
        self,
        *,
        base_url: str | None = None,
        default_model: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None
    ):
        super().__init__(
            base_url=base_url or settings.LM_STUDIO_BASE_URL,
            default_model=default_model or settings.LM_STUDIO_DEFAULT_MODEL,
            timeout=timeout or settings.LM_STUDIO_TIMEOUT,
            max_retries=settings.LLM_MAX_RETRIES if max_retries is None else max_retries,
            retry_delay=settings.LLM_RETRY_DELAY if retry_delay is None else retry_delay,
        )
        logger.info(f"LM Studio provider initialized ({self.base_url}, model: {self.default_model})")

    def _prepare_messages(self, messages: list[ChatMessage]) -> list[ChatMessage]:
        """
        Append the /no_think soft switch to the system prompt.

        Qwen3 models otherwise spend the token budget on reasoning blocks.
        """
        prepared = [dict(m) for m in messages]
        for message in prepared:
            if message.get("role") == "system":
                content = message.get("content") or ""
                if "/no_think" not in content:
                    message["content"] = f"{content}\n\n/no_think"
                break
        return prepared

    def _clean_text(self, text: str) -> str:
        """Remove <think>...</think> blocks the model emitted anyway."""
        return _THINK_TAG.sub("", _THINK_BLOCK.sub("", text)).strip()
