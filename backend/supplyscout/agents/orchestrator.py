"""
Conversation orchestrator.

WHAT: Drives one assistant turn from user text to the messages it appends
WHY: The model decides when to run side-effecting tools; the orchestrator
     runs them, feeds results back and gets a final answer
HOW: AWAITING_LLM -> TOOL_REQUESTED (0..n) -> SUMMARIZING -> DONE.
     Tool calls come from the provider's structured output when it
     supports function calling, otherwise from the text parser.
     Every failure ends the turn with explanatory text, never an exception.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List

from ..core.config import settings
from ..llm.provider import LLMProvider
from ..llm.streaming_handler import TokenCallback, emit, relay_stream
from ..llm.types import (
    ChatMessage,
    ProviderResponseError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from ..models.chat import Message, ToolInvocation
from ..services.email_client import ResendEmailClient, get_email_client
from ..tools.base import ToolContext
from ..tools.registry import ToolRegistry, get_tool_registry
from ..utils.exceptions import ToolCallParseError
from ..utils.logger import get_logger
from .prompts import render_summary_messages, render_system_prompt, render_turn_messages
from .tool_call_parser import load_tool_arguments, parse_tool_call

logger = get_logger(__name__)

PROVIDER_ERRORS = (ProviderTimeoutError, ProviderUnavailableError, ProviderResponseError)

REPHRASE_MESSAGE = (
    "I tried to use a tool but couldn't understand my own request. "
    "Could you please try rephrasing your question?"
)
SUMMARY_FALLBACK = "Data retrieved successfully, but failed to generate a summary."
EMPTY_REPLY = "No response"


class TurnPhase(str, Enum):
    AWAITING_LLM = "awaiting_llm"
    TOOL_REQUESTED = "tool_requested"
    SUMMARIZING = "summarizing"
    DONE = "done"


@dataclass
class TurnResult:
    """Outcome of one turn, before it is appended to the session."""
    content: str
    tool_invocations: List[ToolInvocation] = field(default_factory=list)
    is_preview: bool = False
    failed: bool = False

    def to_messages(self) -> List[Message]:
        """
        Messages to append after the user message.

        With tools: assistant (tool-call record), one tool message per
        result, assistant (summary). Without: one assistant message.
        """
        if not self.tool_invocations:
            return [Message(role="assistant", content=self.content)]

        messages = [Message(role="assistant", content="", tool_calls=list(self.tool_invocations))]
        for invocation in self.tool_invocations:
            messages.append(Message(
                role="tool",
                content=json.dumps(invocation.result, default=str),
                tool_call_id=invocation.id,
            ))
        messages.append(Message(role="assistant", content=self.content))
        return messages


@dataclass
class _RequestedCall:
    name: str
    arguments: dict[str, Any]
    call_id: str | None = None


class ConversationOrchestrator:
    """
    Runs assistant turns against one provider and tool registry.

    Usage:
        orchestrator = ConversationOrchestrator(get_provider())
        result = await orchestrator.run_turn(history, "find hex bolts", session_id="abc")
    """

    def __init__(
        self,
        provider: LLMProvider,
        registry: ToolRegistry | None = None,
        email_client: ResendEmailClient | None = None
    ):
        self.provider = provider
        self.registry = registry or get_tool_registry()
        self.email_client = email_client

    async def run_turn(
        self,
        history: List[Message],
        user_text: str,
        *,
        session_id: str | None,
        model: str | None = None,
        on_chunk: TokenCallback | None = None
    ) -> TurnResult:
        """
        Execute one turn.

        Args:
            history: Prior session messages (not including user_text)
            user_text: The new user message
            session_id: Injected into outreach tools so tracking finds the session
            model: Model override for this turn
            on_chunk: Receives visible text as it is produced

        Returns:
            TurnResult; failures are reported in its content
        """
        structured = bool(getattr(self.provider, "supports_tools", False))
        system_prompt = render_system_prompt(self.registry, include_tool_format=not structured)
        turn_messages = render_turn_messages(system_prompt, history, user_text)

        phase = TurnPhase.AWAITING_LLM
        logger.info(f"Turn for session {session_id}: {phase.value} (structured tools: {structured})")
        try:
            text, requested = await self._first_response(turn_messages, model, structured, on_chunk)
        except ToolCallParseError as e:
            logger.warning(f"Could not parse tool call for session {session_id}: {e}; raw: {e.raw!r}")
            return TurnResult(content=REPHRASE_MESSAGE, failed=True)
        except PROVIDER_ERRORS as e:
            logger.error(f"Model call failed for session {session_id}: {e}")
            return TurnResult(content=f"Error calling AI: {e}", failed=True)

        if not requested:
            phase = TurnPhase.DONE
            logger.info(f"Turn for session {session_id}: {phase.value} (no tools)")
            return TurnResult(content=text or EMPTY_REPLY)

        phase = TurnPhase.TOOL_REQUESTED
        invocations = await self._run_tools(requested, session_id)
        logger.info(
            f"Turn for session {session_id}: {phase.value} "
            f"({', '.join(i.name for i in invocations)})"
        )

        phase = TurnPhase.SUMMARIZING
        summary = await self._summarize(turn_messages, user_text, invocations, model, structured, on_chunk)

        phase = TurnPhase.DONE
        logger.info(f"Turn for session {session_id}: {phase.value} ({len(invocations)} tool calls)")
        return TurnResult(content=summary, tool_invocations=invocations)

    async def _first_response(
        self,
        messages: List[ChatMessage],
        model: str | None,
        structured: bool,
        on_chunk: TokenCallback | None
    ) -> tuple[str, List[_RequestedCall]]:
        if structured:
            result = await self.provider.generate(
                messages,
                temperature=settings.LLM_DEFAULT_TEMPERATURE,
                max_tokens=settings.LLM_DEFAULT_MAX_TOKENS,
                model=model,
                tools=self.registry.definitions(),
            )
            requested = [
                _RequestedCall(call.name, load_tool_arguments(call.raw_arguments), call.id)
                for call in result.tool_calls
            ]
            if not requested:
                await emit(on_chunk, result.text)
            return result.text, requested

        if on_chunk is not None:
            text = await relay_stream(
                self.provider.stream(
                    messages,
                    temperature=settings.LLM_DEFAULT_TEMPERATURE,
                    max_tokens=settings.LLM_DEFAULT_MAX_TOKENS,
                    model=model,
                ),
                on_chunk,
            )
        else:
            result = await self.provider.generate(
                messages,
                temperature=settings.LLM_DEFAULT_TEMPERATURE,
                max_tokens=settings.LLM_DEFAULT_MAX_TOKENS,
                model=model,
            )
            text = result.text

        parsed = parse_tool_call(text)
        if parsed is None:
            return text, []
        return text, [_RequestedCall(parsed.name, parsed.arguments)]

    async def _run_tools(self, requested: List[_RequestedCall], session_id: str | None) -> List[ToolInvocation]:
        context = ToolContext(session_id=session_id, email_client=self.email_client or get_email_client())
        invocations = []
        for call in requested:
            arguments = dict(call.arguments)
            if "session_id" in self.registry.injected_fields(call.name):
                arguments["session_id"] = session_id

            result = await self.registry.execute(call.name, arguments, context)
            fields = {"name": call.name, "arguments": arguments, "result": result}
            if call.call_id:
                fields["id"] = call.call_id
            invocations.append(ToolInvocation(**fields))
        return invocations

    async def _summarize(
        self,
        turn_messages: List[ChatMessage],
        user_text: str,
        invocations: List[ToolInvocation],
        model: str | None,
        structured: bool,
        on_chunk: TokenCallback | None
    ) -> str:
        messages = render_summary_messages(turn_messages, user_text, invocations)
        try:
            if on_chunk is not None:
                if not structured:
                    # Separates the streamed tool-call text from the answer
                    await emit(on_chunk, "\n\n")
                summary = await relay_stream(
                    self.provider.stream(
                        messages,
                        temperature=settings.LLM_DEFAULT_TEMPERATURE,
                        max_tokens=settings.LLM_SUMMARY_MAX_TOKENS,
                        model=model,
                    ),
                    on_chunk,
                )
            else:
                result = await self.provider.generate(
                    messages,
                    temperature=settings.LLM_DEFAULT_TEMPERATURE,
                    max_tokens=settings.LLM_SUMMARY_MAX_TOKENS,
                    model=model,
                )
                summary = result.text
        except PROVIDER_ERRORS as e:
            logger.error(f"Summary generation failed: {e}")
            await emit(on_chunk, SUMMARY_FALLBACK)
            return SUMMARY_FALLBACK

        return summary.strip() or SUMMARY_FALLBACK
