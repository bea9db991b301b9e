"""
Procurement domain models.

WHAT: Value objects passed between the tracker, the notifier and tools
WHY: Keep ORM rows inside the services that own them
HOW: Dataclasses for internal results, pydantic for validated input
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class SupplierContact(BaseModel):
    """Supplier addressed by an outreach tool."""

    email: str = Field(..., min_length=3, description="Supplier email address")
    name: str = Field(default="", description="Supplier display name")


@dataclass
class Supplier:
    """Supplier derived from a historical purchase order."""
    name: str
    email: str
    part_number: str
    part_description: str
    last_purchased: datetime | None
    price: float | None
    rating: float | None = None


@dataclass
class ProcurementProgress:
    """Responded/contacted counts for one request after a reply arrives."""
    request_id: str
    session_id: str
    part_description: str
    contacted: int
    responded: int
    pending_suppliers: list[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.responded >= self.contacted


NotificationKind = Literal["response", "status", "completed", "expired"]


@dataclass
class TrackerNotification:
    """Message the tracker wants delivered into a session's log."""
    session_id: str
    request_id: str
    kind: NotificationKind
    text: str


@dataclass
class InboundEmail:
    """Normalized inbound email reply."""
    sender_email: str
    sender_name: str
    subject: str
    body: str
    email_id: str | None = None
