"""
Chat endpoints.

WHAT: Send messages, read and clear a session's log, switch its model
WHY: The conversational API of the assistant
HOW: Plain JSON turns, or SSE (`chunk` events then `done`) when stream=true.
     Streamed turns run in their own task so a disconnecting client does
     not abort them.
"""

import asyncio
import json
from typing import AsyncIterator

from fastapi import APIRouter
from sse_starlette.sse import EventSourceResponse

from ....models.api_schemas import SendMessageRequest, SwitchModelRequest
from ....models.chat import ChatState
from ....services.chat_service import chat_service
from ....utils.exceptions import ValidationException
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()

# Strong references to running streamed turns
_turn_tasks: set[asyncio.Task] = set()


async def turn_event_generator(session_id: str, request: SendMessageRequest) -> AsyncIterator[dict]:
    """
    Generate SSE events for one turn.

    Yields:
        `chunk` events with text as it is produced, then one `done` event
        carrying the final ChatState (or one `error` event)
    """
    queue: asyncio.Queue = asyncio.Queue()

    async def on_chunk(text: str) -> None:
        await queue.put(("chunk", text))

    async def run_turn() -> None:
        try:
            state = await chat_service.send_message(
                session_id, request.message, model=request.model, on_chunk=on_chunk
            )
            await queue.put(("done", state))
        except Exception as e:
            logger.exception(f"Streamed turn failed for session {session_id}")
            await queue.put(("error", str(e)))

    task = asyncio.create_task(run_turn())
    _turn_tasks.add(task)
    task.add_done_callback(_turn_tasks.discard)

    while True:
        kind, payload = await queue.get()
        if kind == "chunk":
            yield {"event": "chunk", "data": json.dumps({"content": payload})}
        elif kind == "done":
            yield {"event": "done", "data": payload.model_dump_json()}
            return
        else:
            yield {
                "event": "error",
                "data": json.dumps({"error": "TURN_FAILED", "message": payload}),
            }
            return


@router.post("/chat/{session_id}/messages")
async def send_message(session_id: str, request: SendMessageRequest):
    """
    Run one assistant turn.

    Returns the ChatState after the turn, or an SSE stream when
    request.stream is true.
    """
    logger.info(f"Message for session {session_id} (stream: {request.stream})")
    if request.stream:
        return EventSourceResponse(turn_event_generator(session_id, request))
    return await chat_service.send_message(session_id, request.message, model=request.model)


@router.get("/chat/{session_id}/messages", response_model=ChatState)
async def get_messages(session_id: str):
    """Current state snapshot (empty for sessions that never spoke)."""
    return chat_service.get_state(session_id)


@router.delete("/chat/{session_id}/messages", response_model=ChatState)
async def clear_messages(session_id: str):
    return chat_service.clear_messages(session_id)


@router.put("/chat/{session_id}/model", response_model=ChatState)
async def switch_model(session_id: str, request: SwitchModelRequest):
    model = request.model.strip()
    if not model:
        raise ValidationException("model must not be blank", [{"field": "model", "error": "blank"}])
    return chat_service.switch_model(session_id, model)
