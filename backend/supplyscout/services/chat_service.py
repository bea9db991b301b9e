"""
Chat service.

WHAT: Runs a user turn against a session and records everything it produces
WHY: Endpoints, the notifier and tests share one path for turns, so the
     processing flag and streaming buffer are always reset
HOW: The session's turn lock is held from dispatch(UserMessageReceived) through
     the orchestrator turn to dispatch(TurnCompleted), so turns never
     interleave; TurnAborted on cancellation or crash
"""

import asyncio

from ..agents.orchestrator import ConversationOrchestrator, TurnResult
from ..core.chat_state import (
    MessagesCleared,
    ModelSwitched,
    StreamingProgress,
    TurnAborted,
    TurnCompleted,
    UserMessageReceived,
)
from ..core.config import settings
from ..core.session_manager import SessionManager, session_manager
from ..llm.provider_factory import get_provider
from ..llm.streaming_handler import StreamAccumulator, TokenCallback, emit
from ..llm.types import ProviderDisabledError
from ..models.chat import ChatState, Message
from ..utils.logger import get_logger

logger = get_logger(__name__)


def preview_message(error: Exception) -> str:
    return (
        f"AI not configured: {error}. "
        "SupplyScout is running in preview mode; set the LLM credentials in .env to enable the assistant."
    )


class ChatService:
    """Turn execution on top of the session manager."""

    def __init__(self, manager: SessionManager | None = None):
        self.sessions = manager or session_manager

    def get_state(self, session_id: str) -> ChatState:
        return self.sessions.get_state(session_id)

    def clear_messages(self, session_id: str) -> ChatState:
        return self.sessions.dispatch(session_id, MessagesCleared())

    def switch_model(self, session_id: str, model: str) -> ChatState:
        logger.info(f"Session {session_id} switched model to {model}")
        return self.sessions.dispatch(session_id, ModelSwitched(model=model))

    async def send_message(
        self,
        session_id: str,
        text: str,
        *,
        model: str | None = None,
        on_chunk: TokenCallback | None = None,
        system_origin: bool = False
    ) -> ChatState:
        """
        Append a user message, run one turn, append its output.

        Args:
            session_id: Target session (created on first message)
            text: Message text
            model: Optional model override, kept for later turns
            on_chunk: Receives assistant text as it is produced
            system_origin: The prompt came from a background process rather
                than the user (flagged as a system notification)

        Returns:
            Session state after the turn
        """
        async with self.sessions.turn_lock(session_id):
            user_message = Message(role="user", content=text, is_system_notification=system_origin)
            state = self.sessions.dispatch(session_id, UserMessageReceived(message=user_message, model=model))
            history = state.messages[:-1]

            try:
                result = await self._run_turn(session_id, history, text, state.model, on_chunk)
            except (asyncio.CancelledError, Exception) as e:
                logger.warning(f"Turn for session {session_id} aborted: {type(e).__name__}")
                self.sessions.dispatch(session_id, TurnAborted(reason=type(e).__name__))
                raise

            logger.info(
                f"Turn for session {session_id} finished "
                f"(preview: {result.is_preview}, failed: {result.failed}, tools: {len(result.tool_invocations)})"
            )
            return self.sessions.dispatch(session_id, TurnCompleted(messages=result.to_messages()))

    async def _run_turn(
        self,
        session_id: str,
        history: list[Message],
        text: str,
        model: str,
        on_chunk: TokenCallback | None
    ) -> TurnResult:
        try:
            provider = get_provider()
        except ProviderDisabledError as e:
            logger.warning(f"Preview mode for session {session_id}: {e}")
            result = TurnResult(content=preview_message(e), is_preview=True)
            await emit(on_chunk, result.content)
            return result

        relay = None
        if on_chunk is not None:
            accumulator = StreamAccumulator(flush_every=settings.STREAM_PERSIST_EVERY)

            async def relay(chunk: str) -> None:
                if accumulator.add(chunk):
                    self.sessions.dispatch(session_id, StreamingProgress(text=accumulator.text))
                await emit(on_chunk, chunk)

        orchestrator = ConversationOrchestrator(provider)
        return await orchestrator.run_turn(
            history,
            text,
            session_id=session_id,
            model=model,
            on_chunk=relay,
        )


# Global chat service instance
chat_service = ChatService()
