"""
Chat domain models.

WHAT: Messages, tool invocations and the per-session chat state
WHY: One immutable shape shared by the reducer, persistence and the API
HOW: Frozen pydantic v2 models; state changes produce new instances
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Literal
from datetime import datetime
from uuid import uuid4


MessageRole = Literal["user", "assistant", "system", "tool"]


class ToolInvocation(BaseModel):
    """A tool the model asked for, plus its result once executed."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"call_{uuid4().hex[:12]}")
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    result: Any | None = None


class Message(BaseModel):
    """Single entry in a session's append-only log."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    role: MessageRole
    content: str = ""
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    tool_calls: list[ToolInvocation] | None = None
    tool_call_id: str | None = None
    is_system_notification: bool = False


class ChatState(BaseModel):
    """
    Everything the conversation needs for one session.

    Only the session reducer produces new ChatState values.
    """

    model_config = ConfigDict(frozen=True)

    session_id: str
    messages: list[Message] = Field(default_factory=list)
    model: str
    is_processing: bool = False
    streaming_message: str = ""


class SessionInfo(BaseModel):
    """Registry entry shown in the session list."""

    id: str
    title: str
    created_at: datetime
    last_active: datetime
