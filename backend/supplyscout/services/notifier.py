"""
Session notifier.

WHAT: Puts tracker updates into the conversation they belong to
WHY: Supplier replies arrive while the session is idle; the user sees them
     on the next poll or stream
HOW: Each notification is one NotificationDelivered dispatch (a pure append
     under the session lock). Analysis prompts run a normal turn.
"""

from typing import Iterable

from ..agents.prompts import render_analysis_prompt
from ..core.chat_state import NotificationDelivered
from ..core.session_manager import SessionManager, session_manager
from ..models.chat import ChatState, Message
from ..models.procurement import TrackerNotification
from ..utils.logger import get_logger
from .chat_service import ChatService

logger = get_logger(__name__)


class SessionNotifier:
    """Deliver tracker notifications and follow-up analysis turns."""

    def __init__(self, manager: SessionManager | None = None, chat: ChatService | None = None):
        self.sessions = manager or session_manager
        self.chat = chat or ChatService(self.sessions)

    def deliver(self, notification: TrackerNotification) -> bool:
        """
        Append one system notification.

        Returns:
            False when the session no longer exists
        """
        if not self.sessions.session_exists(notification.session_id):
            logger.info(
                f"Skipping {notification.kind} notification for request {notification.request_id}: "
                f"session {notification.session_id} not found"
            )
            return False

        message = Message(role="assistant", content=notification.text, is_system_notification=True)
        self.sessions.dispatch(notification.session_id, NotificationDelivered(message=message))
        logger.info(
            f"Delivered {notification.kind} notification for request {notification.request_id} "
            f"to session {notification.session_id}"
        )
        return True

    def deliver_all(self, notifications: Iterable[TrackerNotification]) -> int:
        return sum(1 for notification in notifications if self.deliver(notification))

    async def request_analysis(self, session_id: str, part_description: str) -> ChatState | None:
        """Run one assistant turn asking it to analyze the replies received so far."""
        if not self.sessions.session_exists(session_id):
            return None
        logger.info(f"Requesting quote analysis in session {session_id} for '{part_description}'")
        return await self.chat.send_message(
            session_id,
            render_analysis_prompt(part_description),
            system_origin=True,
        )


# Global notifier instance
session_notifier = SessionNotifier()
