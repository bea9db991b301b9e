"""
OpenAI provider implementation.

WHAT: Hosted chat completions with native function calling
WHY: Structured tool calls are the reliable path for side-effecting tools
HOW: OpenAI-compatible base client with bearer auth; works against any
     gateway speaking the same API (OpenRouter, proxies) via OPENAI_BASE_URL
"""

from .openai_compat import OpenAICompatibleProvider
from .types import ProviderDisabledError
from ..core.config import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)


class OpenAIProvider(OpenAICompatibleProvider):
    """Tool-capable provider backed by an OpenAI-style API key."""

    label = "OpenAI"
    supports_tools = True

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        default_model: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None
    ):
        """
        Raises:
            ProviderDisabledError: If no API key is configured
        """
        api_key = settings.OPENAI_API_KEY if api_key is None else api_key
        if not api_key or not api_key.strip():
            logger.warning("OPENAI_API_KEY is not set; chat runs in preview mode")
            raise ProviderDisabledError(
                "OPENAI_API_KEY is not set. Add it to your .env file to enable the assistant."
            )

        super().__init__(
            base_url=base_url or settings.OPENAI_BASE_URL,
            default_model=default_model or settings.OPENAI_DEFAULT_MODEL,
            timeout=timeout or settings.OPENAI_TIMEOUT,
            max_retries=settings.LLM_MAX_RETRIES if max_retries is None else max_retries,
            retry_delay=settings.LLM_RETRY_DELAY if retry_delay is None else retry_delay,
            headers={
                "Authorization": f"Bearer {api_key}",
                "X-Title": settings.APP_NAME,
            },
        )
        masked = "*" * 10 + api_key[-4:] if len(api_key) > 4 else "***"
        logger.info(f"OpenAI provider initialized (model: {self.default_model}, key: {masked})")
