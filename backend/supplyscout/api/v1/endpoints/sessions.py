"""
Session registry endpoints.

WHAT: Create, list, rename and delete chat sessions
WHY: The chat UI's session sidebar
HOW: Thin wrappers over session_manager
"""

from typing import Optional

from fastapi import APIRouter

from ....core.session_manager import session_manager
from ....models.api_schemas import (
    CreateSessionRequest,
    DeleteSessionsResponse,
    RenameSessionRequest,
    SessionListResponse,
)
from ....models.chat import SessionInfo
from ....utils.exceptions import SessionNotFoundException, ValidationException
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions():
    return SessionListResponse(sessions=session_manager.list_sessions())


@router.post("/sessions", response_model=SessionInfo)
async def create_session(request: Optional[CreateSessionRequest] = None):
    """Create a session; the title defaults to one built from first_message."""
    request = request or CreateSessionRequest()
    return session_manager.create_session(
        session_id=request.session_id,
        title=request.title.strip() if request.title and request.title.strip() else None,
        first_message=request.first_message,
    )


@router.delete("/sessions", response_model=DeleteSessionsResponse)
async def delete_all_sessions():
    return DeleteSessionsResponse(deleted=session_manager.delete_all_sessions())


@router.put("/sessions/{session_id}/title", response_model=SessionInfo)
async def rename_session(session_id: str, request: RenameSessionRequest):
    title = request.title.strip()
    if not title:
        raise ValidationException("Title must not be blank", [{"field": "title", "error": "blank"}])
    return session_manager.rename_session(session_id, title)


@router.delete("/sessions/{session_id}")
async def delete_session(session_id: str):
    if not session_manager.delete_session(session_id):
        logger.warning(f"Delete requested for unknown session {session_id}")
        raise SessionNotFoundException(session_id)
    return {"success": True, "session_id": session_id}
