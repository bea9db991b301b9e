"""
Text processing utilities.

WHAT: Small string helpers shared by sessions and notifications
WHY: Keep title and list formatting consistent across the API and the log
HOW: Plain string operations
"""

from datetime import datetime


TITLE_PREVIEW_LIMIT = 35


def build_session_title(first_message: str | None, now: datetime | None = None) -> str:
    """
    Derive a session title from its first user message.

    "Need 200 M8 hex bolts | 03/14, 09:30", or "Inquiry 03/14, 09:30" when
    there is nothing to preview. Long messages are cut to 32 chars + "...".
    """
    stamp = (now or datetime.now()).strftime("%m/%d, %H:%M")
    text = " ".join((first_message or "").split())
    if not text:
        return f"Inquiry {stamp}"
    if len(text) > TITLE_PREVIEW_LIMIT:
        text = text[:TITLE_PREVIEW_LIMIT - 3] + "..."
    return f"{text} | {stamp}"


def join_names(names: list[str]) -> str:
    """'A', 'A and B', 'A, B and C'."""
    names = [n for n in names if n]
    if not names:
        return ""
    if len(names) == 1:
        return names[0]
    return f"{', '.join(names[:-1])} and {names[-1]}"
