"""
Shared client for OpenAI-compatible chat completion endpoints.

WHAT: HTTP plumbing common to every provider we talk to
WHY: OpenAI, OpenRouter and LM Studio speak the same wire format; only auth,
     tool support and output cleanup differ
HOW: httpx AsyncClient with pooled connections, exponential-backoff retries,
     SSE line parsing for streams
"""

import asyncio
import json
from typing import Any, AsyncIterator

import httpx

from .types import (
    ChatMessage,
    LLMResult,
    TokenChunk,
    ToolCallRequest,
    ProviderStatus,
    ProviderTimeoutError,
    ProviderUnavailableError,
    ProviderResponseError,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)


class OpenAICompatibleProvider:
    """
    Base provider for /chat/completions style APIs.

    Subclasses set `label`, `supports_tools`, and may override
    `_prepare_messages` / `_clean_text`.
    """

    label = "openai-compatible"
    supports_tools = False

    def __init__(
        self,
        *,
        base_url: str,
        default_model: str,
        timeout: float,
        max_retries: int,
        retry_delay: float,
        headers: dict[str, str] | None = None
    ):
        self.base_url = base_url.rstrip("/")
        self.default_model = default_model
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay

        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(5.0, read=timeout),
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
            headers=headers or {},
        )

    def _prepare_messages(self, messages: list[ChatMessage]) -> list[ChatMessage]:
        """Hook for provider-specific prompt tweaks."""
        return messages

    def _clean_text(self, text: str) -> str:
        """Hook for provider-specific output cleanup."""
        return text

    def _build_payload(
        self,
        messages: list[ChatMessage],
        *,
        temperature: float,
        max_tokens: int,
        stop: list[str] | None,
        model: str | None,
        tools: list[dict[str, Any]] | None,
        stream: bool
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": model or self.default_model,
            "messages": self._prepare_messages(messages),
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": stream,
        }
        if stop:
            payload["stop"] = stop
        if tools and self.supports_tools:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"
        return payload

    async def ping(self) -> ProviderStatus:
        """
        Check availability by listing models.

        Returns:
            ProviderStatus, never raises
        """
        try:
            response = await self.client.get(f"{self.base_url}/models", timeout=10.0)
            response.raise_for_status()
            models = [m.get("id") for m in response.json().get("data", [])]
            return ProviderStatus(
                available=True,
                base_url=self.base_url,
                models=models[:10] if models else None,
            )
        except httpx.TimeoutException:
            logger.warning(f"{self.label} ping timed out")
            return ProviderStatus(available=False, base_url=self.base_url, error="Request timed out")
        except httpx.ConnectError:
            logger.warning(f"{self.label} not reachable")
            return ProviderStatus(available=False, base_url=self.base_url, error="Connection refused")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"{self.label} ping failed: {e}")
            return ProviderStatus(available=False, base_url=self.base_url, error=str(e))

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
        """
        Generate complete response (non-streaming).

        Returns:
            LLMResult with text, usage, model and any structured tool calls

        Raises:
            ProviderTimeoutError: Request timed out on every attempt
            ProviderUnavailableError: Endpoint not reachable
            ProviderResponseError: Invalid or error response
        """
        payload = self._build_payload(
            messages,
            temperature=temperature,
            max_tokens=max_tokens,
            stop=stop,
            model=model,
            tools=tools,
            stream=False,
        )
        data = await self._post_with_retries(payload)

        try:
            message = data["choices"][0]["message"]
            tool_calls = [
                ToolCallRequest(
                    id=call.get("id") or f"call_{index}",
                    name=call["function"]["name"],
                    raw_arguments=call["function"].get("arguments") or "{}",
                )
                for index, call in enumerate(message.get("tool_calls") or [])
            ]
        except (KeyError, IndexError, TypeError) as e:
            logger.error(f"Invalid response from {self.label}: {e}")
            raise ProviderResponseError(f"Invalid response format: {e}") from e

        usage = data.get("usage", {})
        response_model = data.get("model", payload["model"])
        logger.info(
            f"{self.label} generate success (model: {response_model}, "
            f"tool_calls: {len(tool_calls)}, tokens: {usage.get('total_tokens', 'unknown')})"
        )
        return LLMResult(
            text=self._clean_text(message.get("content") or ""),
            usage=usage,
            model=response_model,
            tool_calls=tool_calls,
        )

    async def _post_with_retries(self, payload: dict[str, Any]) -> dict[str, Any]:
        """POST /chat/completions with exponential backoff on transient failures."""
        for attempt in range(self.max_retries):
            try:
                response = await self.client.post(f"{self.base_url}/chat/completions", json=payload)
                response.raise_for_status()
                return response.json()

            except httpx.TimeoutException as e:
                logger.warning(f"{self.label} timeout (attempt {attempt + 1}/{self.max_retries})")
                if attempt == self.max_retries - 1:
                    raise ProviderTimeoutError(f"Request timed out after {self.max_retries} attempts") from e

            except httpx.ConnectError as e:
                logger.error(f"{self.label} connection refused (attempt {attempt + 1}/{self.max_retries})")
                if attempt == self.max_retries - 1:
                    raise ProviderUnavailableError(f"{self.label} is not reachable") from e

            except httpx.RequestError as e:
                logger.error(
                    f"{self.label} transport error {type(e).__name__} "
                    f"(attempt {attempt + 1}/{self.max_retries})"
                )
                if attempt == self.max_retries - 1:
                    raise ProviderUnavailableError(f"{self.label} connection failed: {type(e).__name__}") from e

            except httpx.HTTPStatusError as e:
                if e.response.status_code < 500:
                    # Client errors don't retry
                    raise ProviderResponseError(f"HTTP {e.response.status_code}: {e.response.text}") from e
                logger.error(
                    f"{self.label} server error {e.response.status_code} "
                    f"(attempt {attempt + 1}/{self.max_retries})"
                )
                if attempt == self.max_retries - 1:
                    raise ProviderResponseError(f"Server error: {e.response.status_code}") from e

            except json.JSONDecodeError as e:
                raise ProviderResponseError(f"Invalid response format: {e}") from e

            await asyncio.sleep(self.retry_delay * (2 ** attempt))

        raise ProviderResponseError("No response received")

    async def stream(
        self,
        messages: list[ChatMessage],
        *,
        temperature: float,
        max_tokens: int,
        stop: list[str] | None = None,
        model: str | None = None
    ) -> AsyncIterator[TokenChunk]:
        """
        Stream response tokens as they're generated.

        Yields:
            TokenChunk per content delta, then one is_end chunk

        Raises:
            ProviderTimeoutError: Request timed out
            ProviderUnavailableError: Endpoint not reachable
            ProviderResponseError: Invalid streaming response
        """
        payload = self._build_payload(
            messages,
            temperature=temperature,
            max_tokens=max_tokens,
            stop=stop,
            model=model,
            tools=None,
            stream=True,
        )

        index = 0
        try:
            async with self.client.stream(
                "POST", f"{self.base_url}/chat/completions", json=payload
            ) as response:
                response.raise_for_status()

                async for line in response.aiter_lines():
                    line = line.strip()
                    if not line.startswith("data: "):
                        continue

                    data_str = line[6:]
                    if data_str == "[DONE]":
                        break

                    try:
                        choice = json.loads(data_str)["choices"][0]
                    except (KeyError, IndexError, json.JSONDecodeError) as e:
                        logger.error(f"Invalid SSE chunk: {line[:100]}")
                        raise ProviderResponseError(f"Invalid streaming chunk: {e}") from e

                    token = (choice.get("delta") or {}).get("content") or ""
                    if token:
                        yield TokenChunk(token=token, index=index)
                        index += 1
                    if choice.get("finish_reason"):
                        break

            logger.info(f"{self.label} stream completed ({index} chunks)")
            yield TokenChunk(token="", index=index, is_end=True)

        except httpx.TimeoutException as e:
            logger.error(f"{self.label} streaming timeout")
            raise ProviderTimeoutError("Streaming request timed out") from e

        except httpx.ConnectError as e:
            logger.error(f"{self.label} connection refused during streaming")
            raise ProviderUnavailableError(f"{self.label} is not reachable") from e

        except httpx.RequestError as e:
            logger.error(f"{self.label} transport error during streaming: {type(e).__name__}")
            raise ProviderUnavailableError(f"{self.label} connection failed: {type(e).__name__}") from e

        except httpx.HTTPStatusError as e:
            logger.error(f"{self.label} streaming HTTP error: {e.response.status_code}")
            raise ProviderResponseError(f"HTTP {e.response.status_code}") from e

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
