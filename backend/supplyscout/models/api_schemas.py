"""
Pydantic API schemas.

WHAT: Request and response models for the chat, session and webhook endpoints
WHY: Type-safe validation and serialization for the frontend
HOW: Pydantic v2 models with validators and constraints
"""

from typing import Optional, List
from pydantic import BaseModel, Field, field_validator

from .chat import SessionInfo


# ========== Chat ==========

class SendMessageRequest(BaseModel):
    """User message for one turn."""
    message: str = Field(..., min_length=1, max_length=8000, description="Message text")
    model: Optional[str] = Field(default=None, max_length=100, description="Model override")
    stream: bool = Field(default=False, description="Stream the reply as server-sent events")

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("message must not be blank")
        return value.strip()


class SwitchModelRequest(BaseModel):
    model: str = Field(..., min_length=1, max_length=100)


# ========== Sessions ==========

class CreateSessionRequest(BaseModel):
    """Explicit session creation; all fields optional."""
    session_id: Optional[str] = Field(default=None, min_length=1, max_length=64)
    title: Optional[str] = Field(default=None, max_length=200)
    first_message: Optional[str] = Field(default=None, description="Used to auto-title the session")


class RenameSessionRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)


class SessionListResponse(BaseModel):
    sessions: List[SessionInfo]


class DeleteSessionsResponse(BaseModel):
    success: bool = True
    deleted: int


# ========== Webhooks ==========

class WebhookAck(BaseModel):
    """Always returned by the inbound email webhook."""
    success: bool = True
