"""
Session manager for chat sessions.

WHAT: Owner of every session's ChatState and the session registry
WHY: Turns, streaming flushes and webhook notifications all write to the same
     log; each session must see those writes one at a time
HOW: One lock per session id; dispatch = load -> reduce -> persist under that
     lock. In-memory cache in front of the chat_sessions/chat_messages tables.
"""

import asyncio
import threading
from datetime import datetime
from typing import Dict, List
from uuid import uuid4

from .chat_state import (
    ChatEvent,
    MessagesCleared,
    ModelSwitched,
    UserMessageReceived,
    reduce_chat_state,
)
from .config import settings
from .database import get_db
from .models import ChatMessageRecord, ChatSession
from ..models.chat import ChatState, Message, SessionInfo, ToolInvocation
from ..utils.exceptions import SessionNotFoundException
from ..utils.logger import get_logger
from ..utils.text import build_session_title

logger = get_logger(__name__)

# Events allowed to create a registry row for an unknown session
_CREATING_EVENTS = (UserMessageReceived, ModelSwitched)


def default_model() -> str:
    """Model used by sessions that never switched."""
    if settings.LLM_PROVIDER == "lm_studio":
        return settings.LM_STUDIO_DEFAULT_MODEL
    return settings.OPENAI_DEFAULT_MODEL


class SessionManager:
    """
    Serialize and persist chat state mutations per session.

    WHAT: Central hub for session state and registry CRUD
    WHY: No write to a session may interleave with another write to it
    HOW: Per-session threading.Lock; critical sections never await
    """

    def __init__(self):
        """Initialize session manager with in-memory cache."""
        self._states: Dict[str, ChatState] = {}
        self._session_locks: Dict[str, threading.Lock] = {}
        self._turn_locks: Dict[str, asyncio.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, session_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._session_locks.get(session_id)
            if lock is None:
                lock = threading.Lock()
                self._session_locks[session_id] = lock
            return lock

    def turn_lock(self, session_id: str) -> asyncio.Lock:
        """
        Lock held for the whole of one assistant turn.

        Turns on a session run one after another; notifications and
        streaming flushes do not take it.
        """
        with self._locks_guard:
            lock = self._turn_locks.get(session_id)
            if lock is None:
                lock = asyncio.Lock()
                self._turn_locks[session_id] = lock
            return lock

    def reset_cache(self) -> None:
        """Drop cached states (tests and database swaps)."""
        with self._locks_guard:
            self._states.clear()
            self._session_locks.clear()
            self._turn_locks.clear()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def session_exists(self, session_id: str) -> bool:
        with get_db() as db:
            return db.get(ChatSession, session_id) is not None

    def get_state(self, session_id: str) -> ChatState:
        """
        Current state for a session.

        Unknown sessions get an empty, unsaved state.
        """
        with self._lock_for(session_id):
            return self._load_state(session_id)

    def dispatch(self, session_id: str, event: ChatEvent) -> ChatState:
        """
        Apply one event to a session and persist the result.

        WHAT: The only write path into a session
        WHY: Serialized read-modify-write per session
        HOW: Load (cache or DB) -> reduce_chat_state -> write diff -> cache

        Returns:
            The new ChatState
        """
        with self._lock_for(session_id):
            current = self._load_state(session_id)
            updated = reduce_chat_state(current, event)
            if self._persist(current, updated, event):
                self._states[session_id] = updated
            return updated

    def _load_state(self, session_id: str) -> ChatState:
        cached = self._states.get(session_id)
        if cached is not None:
            return cached

        with get_db() as db:
            row = db.get(ChatSession, session_id)
            if row is None:
                return ChatState(session_id=session_id, model=default_model())

            state = ChatState(
                session_id=session_id,
                messages=[_record_to_message(record) for record in row.messages],
                model=row.model or default_model(),
                is_processing=row.is_processing,
                streaming_message=row.streaming_message or "",
            )

        self._states[session_id] = state
        return state

    def _persist(self, previous: ChatState, updated: ChatState, event: ChatEvent) -> bool:
        """
        Write the difference between two states.

        Returns:
            False when the event targets a session that no longer exists
        """
        session_id = updated.session_id
        now = datetime.utcnow()

        with get_db() as db:
            row = db.get(ChatSession, session_id)
            if row is None:
                if not isinstance(event, _CREATING_EVENTS):
                    logger.warning(
                        f"Dropping {type(event).__name__} for unknown session {session_id}"
                    )
                    return False
                row = ChatSession(
                    session_id=session_id,
                    title=build_session_title(_first_user_text(updated)),
                    created_at=now,
                )
                db.add(row)
                logger.info(f"Created chat session {session_id} ({row.title})")

            row.model = updated.model
            row.is_processing = updated.is_processing
            row.streaming_message = updated.streaming_message
            row.last_active = now

            if isinstance(event, MessagesCleared):
                db.query(ChatMessageRecord).filter(
                    ChatMessageRecord.session_id == session_id
                ).delete(synchronize_session=False)
                logger.info(f"Cleared messages for session {session_id}")

            known_ids = {m.id for m in previous.messages}
            for position, message in enumerate(updated.messages):
                if message.id in known_ids:
                    continue
                db.add(_message_to_record(session_id, position, message))

        return True

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def create_session(
        self,
        session_id: str | None = None,
        title: str | None = None,
        first_message: str | None = None,
    ) -> SessionInfo:
        """
        Register a session (idempotent for an existing id).

        An explicit title renames an existing session; otherwise the
        existing title is kept.
        """
        session_id = session_id or str(uuid4())
        now = datetime.utcnow()
        with self._lock_for(session_id):
            with get_db() as db:
                row = db.get(ChatSession, session_id)
                if row is None:
                    row = ChatSession(
                        session_id=session_id,
                        title=title or build_session_title(first_message),
                        model=default_model(),
                        created_at=now,
                        last_active=now,
                    )
                    db.add(row)
                    db.flush()
                    logger.info(f"Registered session {session_id}")
                elif title:
                    row.title = title
                return _row_to_info(row)

    def list_sessions(self) -> List[SessionInfo]:
        """All sessions, most recently active first."""
        with get_db() as db:
            rows = db.query(ChatSession).order_by(ChatSession.last_active.desc()).all()
            return [_row_to_info(row) for row in rows]

    def rename_session(self, session_id: str, title: str) -> SessionInfo:
        """
        Raises:
            SessionNotFoundException: If the session does not exist
        """
        with self._lock_for(session_id):
            with get_db() as db:
                row = db.get(ChatSession, session_id)
                if row is None:
                    raise SessionNotFoundException(session_id)
                row.title = title
                return _row_to_info(row)

    def delete_session(self, session_id: str) -> bool:
        """Delete one session and its messages. Returns False if absent."""
        with self._lock_for(session_id):
            with get_db() as db:
                row = db.get(ChatSession, session_id)
                if row is None:
                    return False
                db.delete(row)
            self._states.pop(session_id, None)
        logger.info(f"Deleted session {session_id}")
        return True

    def delete_all_sessions(self) -> int:
        """Delete every session. Returns the number removed."""
        with get_db() as db:
            db.query(ChatMessageRecord).delete(synchronize_session=False)
            count = db.query(ChatSession).delete(synchronize_session=False)
        with self._locks_guard:
            self._states.clear()
        logger.info(f"Deleted all sessions ({count})")
        return count


def _first_user_text(state: ChatState) -> str | None:
    for message in state.messages:
        if message.role == "user" and not message.is_system_notification:
            return message.content
    return None


def _row_to_info(row: ChatSession) -> SessionInfo:
    return SessionInfo(
        id=row.session_id,
        title=row.title,
        created_at=row.created_at,
        last_active=row.last_active,
    )


def _message_to_record(session_id: str, position: int, message: Message) -> ChatMessageRecord:
    return ChatMessageRecord(
        message_id=message.id,
        session_id=session_id,
        position=position,
        role=message.role,
        content=message.content,
        tool_calls=(
            [call.model_dump(mode="json") for call in message.tool_calls]
            if message.tool_calls else None
        ),
        tool_call_id=message.tool_call_id,
        is_system_notification=message.is_system_notification,
        created_at=message.timestamp,
    )


def _record_to_message(record: ChatMessageRecord) -> Message:
    return Message(
        id=record.message_id,
        role=record.role,
        content=record.content or "",
        timestamp=record.created_at,
        tool_calls=(
            [ToolInvocation(**call) for call in record.tool_calls]
            if record.tool_calls else None
        ),
        tool_call_id=record.tool_call_id,
        is_system_notification=record.is_system_notification,
    )


# Global session manager instance
session_manager = SessionManager()
