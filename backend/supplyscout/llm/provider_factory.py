"""
LLM provider factory with singleton pattern.

WHAT: Factory to get the configured LLM provider
WHY: Centralize provider selection and avoid multiple HTTP client pools
HOW: Read LLM_PROVIDER from config, cache singleton, log selection
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .provider import LLMProvider

# Singleton instance
_provider_instance: "LLMProvider | None" = None


def get_provider() -> "LLMProvider":
    """
    Get the configured LLM provider singleton.

    Returns:
        LLMProvider instance based on settings.LLM_PROVIDER

    Raises:
        ProviderDisabledError: Provider selected but credentials missing
        ValueError: If provider name is unknown
    """
    global _provider_instance

    if _provider_instance is None:
        # Import here to avoid circular dependencies
        from ..core.config import settings
        from ..utils.logger import get_logger

        logger = get_logger(__name__)
        provider_name = settings.LLM_PROVIDER

        if provider_name == "openai":
            from .openai_provider import OpenAIProvider
            _provider_instance = OpenAIProvider()
        elif provider_name == "lm_studio":
            from .lm_studio import LMStudioProvider
            _provider_instance = LMStudioProvider()
        else:
            raise ValueError(f"Unknown LLM provider: {provider_name}")

        logger.info(f"LLM provider initialized: {provider_name}")

    return _provider_instance


def reset_provider() -> None:
    """Reset the provider singleton (useful for testing and key rotation)."""
    global _provider_instance
    _provider_instance = None


async def close_provider() -> None:
    """Close the provider's HTTP client, if one was created."""
    global _provider_instance
    if _provider_instance is not None:
        await _provider_instance.close()
    _provider_instance = None
