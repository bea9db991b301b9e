"""
Chat state reducer.

WHAT: Pure function from (ChatState, event) to the next ChatState
WHY: A turn, a streaming flush and a webhook notification may touch the same
     session at once; describing each change as an event means the session
     manager can apply them one at a time without partial-object merges
HOW: Frozen dataclass events, model_copy on a frozen pydantic state
"""

from dataclasses import dataclass, field

from ..models.chat import ChatState, Message


@dataclass(frozen=True)
class UserMessageReceived:
    """A user (or system-originated) prompt starts a turn."""
    message: Message
    model: str | None = None


@dataclass(frozen=True)
class StreamingProgress:
    """Partial assistant text produced so far in the current turn."""
    text: str


@dataclass(frozen=True)
class TurnCompleted:
    """Messages produced by a finished turn, in log order."""
    messages: list[Message] = field(default_factory=list)


@dataclass(frozen=True)
class TurnAborted:
    """The turn ended without producing messages (cancelled or crashed)."""
    reason: str = ""


@dataclass(frozen=True)
class NotificationDelivered:
    """Out-of-band message injected by the procurement tracker."""
    message: Message


@dataclass(frozen=True)
class MessagesCleared:
    """User asked to empty the log."""


@dataclass(frozen=True)
class ModelSwitched:
    model: str


ChatEvent = (
    UserMessageReceived
    | StreamingProgress
    | TurnCompleted
    | TurnAborted
    | NotificationDelivered
    | MessagesCleared
    | ModelSwitched
)


def reduce_chat_state(state: ChatState, event: ChatEvent) -> ChatState:
    """
    Apply one event to a session state.

    The message log only grows, except for MessagesCleared. Every event that
    ends a turn resets is_processing and the streaming buffer.

    Raises:
        TypeError: For objects that are not chat events
    """
    if isinstance(event, UserMessageReceived):
        return state.model_copy(update={
            "messages": [*state.messages, event.message],
            "model": event.model or state.model,
            "is_processing": True,
            "streaming_message": "",
        })

    if isinstance(event, StreamingProgress):
        return state.model_copy(update={"streaming_message": event.text})

    if isinstance(event, TurnCompleted):
        return state.model_copy(update={
            "messages": [*state.messages, *event.messages],
            "is_processing": False,
            "streaming_message": "",
        })

    if isinstance(event, TurnAborted):
        return state.model_copy(update={
            "is_processing": False,
            "streaming_message": "",
        })

    if isinstance(event, NotificationDelivered):
        return state.model_copy(update={
            "messages": [*state.messages, event.message],
        })

    if isinstance(event, MessagesCleared):
        return state.model_copy(update={
            "messages": [],
            "is_processing": False,
            "streaming_message": "",
        })

    if isinstance(event, ModelSwitched):
        return state.model_copy(update={"model": event.model})

    raise TypeError(f"Unsupported chat event: {type(event).__name__}")
