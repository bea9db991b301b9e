"""
Conversation history flattening and truncation.

WHAT: Turn a session's message log into a bounded plain-text chat context
WHY: Context windows are limited, and models without native function
     calling only understand tool traffic written out as text
HOW: Keep the most recent messages, render tool calls as <tool_call> blocks,
     tool results as "Tool Result:" user messages and tracker updates as
     "[System update]" assistant messages, then trim oldest by characters
"""

import json
from typing import List

from ..llm.types import ChatMessage
from ..models.chat import Message
from ..utils.logger import get_logger

logger = get_logger(__name__)


def format_tool_call(name: str, arguments: dict) -> str:
    return "<tool_call>" + json.dumps({"name": name, "arguments": arguments}, default=str) + "</tool_call>"


def render_tool_calls(message: Message) -> str:
    """Assistant tool-call record as <tool_call> text."""
    blocks = [format_tool_call(call.name, call.arguments) for call in message.tool_calls or []]
    return "\n".join(part for part in [message.content, *blocks] if part)


def flatten_message(message: Message) -> ChatMessage | None:
    """Single log entry as a text-only chat message (None to skip)."""
    if message.role == "system":
        return None
    if message.role == "tool":
        return {"role": "user", "content": f"Tool Result: {message.content}"}
    if message.role == "assistant":
        if message.tool_calls:
            return {"role": "assistant", "content": render_tool_calls(message)}
        if message.is_system_notification:
            return {"role": "assistant", "content": f"[System update] {message.content}"}
    return {"role": message.role, "content": message.content}


def truncate_conversation_history(
    history: List[Message],
    max_messages: int = 10,
    max_chars: int = 12000
) -> List[ChatMessage]:
    """
    Flatten the most recent part of a conversation.

    Strategy:
    1. Keep the last max_messages log entries
    2. Flatten each one to plain text
    3. Drop the oldest flattened messages while the total exceeds max_chars,
       always keeping the most recent one

    Args:
        history: Session message log, oldest first
        max_messages: Maximum number of log entries to consider
        max_chars: Maximum total characters of flattened content

    Returns:
        Chat messages ready to follow the system prompt
    """
    if not history:
        return []

    window = history[-max_messages:] if len(history) > max_messages else list(history)
    flattened = [m for m in (flatten_message(msg) for msg in window) if m is not None]

    total_chars = sum(len(m.get("content") or "") for m in flattened)
    dropped = 0
    while total_chars > max_chars and len(flattened) > 1:
        removed = flattened.pop(0)
        total_chars -= len(removed.get("content") or "")
        dropped += 1

    if dropped or len(window) < len(history):
        logger.debug(
            f"Truncated conversation history: {len(history)} -> {len(flattened)} messages "
            f"({total_chars}/{max_chars} chars)"
        )

    return flattened
