"""
Mock LLM provider for deterministic testing.

WHAT: Fake LLM provider that returns scripted responses
WHY: Test the orchestrator and chat flows without a real model
HOW: Implement the LLMProvider protocol over a script of canned steps
"""

import json
from typing import AsyncIterator, Dict, List, Union

from supplyscout.llm.types import (
    ChatMessage,
    LLMResult,
    ProviderStatus,
    TokenChunk,
    ToolCallRequest,
)

# One step per model call: text, structured tool calls, or an error to raise
ScriptStep = Union[str, List[ToolCallRequest], Exception]


class MockLLMProvider:
    """
    Mock LLM provider with scripted responses.

    Steps are consumed in order, one per generate()/stream() call; the last
    step repeats once the script runs out.
    """

    def __init__(self, script: List[ScriptStep] | None = None, *, supports_tools: bool = False, chunk_size: int = 4):
        self.script = script or ["Mock response"]
        self.supports_tools = supports_tools
        self.chunk_size = chunk_size
        self.call_count = 0
        self.calls: List[Dict] = []
        self.closed = False

    def _next_step(self) -> ScriptStep:
        step = self.script[min(self.call_count, len(self.script) - 1)]
        self.call_count += 1
        if isinstance(step, Exception):
            raise step
        return step

    async def ping(self) -> ProviderStatus:
        return ProviderStatus(available=True, base_url="http://mock:1234/v1", models=["mock-model"])

    async def generate(
        self,
        messages: List[ChatMessage],
        *,
        temperature: float,
        max_tokens: int,
        stop: List[str] | None = None,
        model: str | None = None,
        tools: List[dict] | None = None
    ) -> LLMResult:
        self.calls.append({
            "method": "generate",
            "messages": messages,
            "max_tokens": max_tokens,
            "model": model,
            "tools": tools,
        })
        step = self._next_step()
        if isinstance(step, list):
            return LLMResult(text="", usage={}, model=model or "mock-model", tool_calls=step)
        return LLMResult(
            text=step,
            usage={"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
            model=model or "mock-model",
        )

    async def stream(
        self,
        messages: List[ChatMessage],
        *,
        temperature: float,
        max_tokens: int,
        stop: List[str] | None = None,
        model: str | None = None
    ) -> AsyncIterator[TokenChunk]:
        self.calls.append({
            "method": "stream",
            "messages": messages,
            "max_tokens": max_tokens,
            "model": model,
        })
        step = self._next_step()
        text = step if isinstance(step, str) else ""

        pieces = [text[i:i + self.chunk_size] for i in range(0, len(text), self.chunk_size)]
        for idx, piece in enumerate(pieces):
            yield TokenChunk(token=piece, index=idx)
        yield TokenChunk(token="", index=len(pieces), is_end=True)

    async def close(self) -> None:
        self.closed = True


def tool_call_text(name: str, arguments: dict) -> str:
    """<tool_call> block as a text-only model would write it."""
    return f'<tool_call>{json.dumps({"name": name, "arguments": arguments})}</tool_call>'
