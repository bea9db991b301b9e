"""
ORM models for database persistence.

WHAT: SQLAlchemy models for all database tables
WHY: Persist the parts catalog, purchase ledger, supplier replies,
     procurement tracking and chat session logs
HOW: Declarative models with constraints, relationships, and indexes
"""

from datetime import datetime
from uuid import uuid4
from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime, Text, JSON,
    ForeignKey, CheckConstraint, UniqueConstraint, Index, Enum as SQLEnum
)
from sqlalchemy.orm import relationship
import enum

from .database import Base


class ProcurementStatus(str, enum.Enum):
    """Procurement request status values."""
    PENDING = "pending"
    COMPLETED = "completed"
    EXPIRED = "expired"


class Part(Base):
    """
    Parts catalog.

    WHAT: Known part numbers with free-text descriptions
    WHY: Supplier discovery starts from a description match
    HOW: Natural key on part_number
    """
    __tablename__ = "parts"

    part_number = Column(String(64), primary_key=True)
    part_description = Column(Text, nullable=False)

    def __repr__(self):
        return f"<Part(part_number={self.part_number}, description={self.part_description[:30]})>"


class PurchaseOrder(Base):
    """
    Purchase order ledger.

    WHAT: Append-only record of past and newly placed orders
    WHY: Historical orders define who supplies which part
    HOW: One row per order; never updated
    """
    __tablename__ = "purchase_orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    supplier_name = Column(String(200), nullable=False)
    supplier_email = Column(String(255), nullable=False)
    part_number = Column(String(64), nullable=False)
    order_date = Column(DateTime, nullable=False, default=datetime.utcnow)
    quantity = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="check_order_quantity_positive"),
        CheckConstraint("price >= 0", name="check_order_price_non_negative"),
        Index("idx_po_part_date", "part_number", "order_date"),
    )

    def __repr__(self):
        return f"<PurchaseOrder(id={self.id}, supplier={self.supplier_email}, part={self.part_number})>"


class SupplierResponse(Base):
    """
    Latest reply per supplier.

    WHAT: Inbound email reply with the price extracted from it (if any)
    WHY: Quote comparison needs one current data point per supplier
    HOW: UNIQUE supplier_email, rows are upserted so the latest reply wins
    """
    __tablename__ = "supplier_responses"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    supplier_email = Column(String(255), nullable=False, unique=True)
    supplier_name = Column(String(200), nullable=True)
    price = Column(Float, nullable=True)
    response_text = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self):
        return f"<SupplierResponse(email={self.supplier_email}, price={self.price})>"


class ProcurementRequest(Base):
    """
    Outstanding request-for-quote sent to a set of suppliers.

    WHAT: Tracks which contacted suppliers have replied, per chat session
    WHY: Replies arrive hours or days later and must find their conversation
    HOW: JSON list of {email, name, contacted_at}; status moves only
         pending -> completed or pending -> expired
    """
    __tablename__ = "procurement_requests"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    session_id = Column(String(64), nullable=True)
    part_description = Column(Text, nullable=False)
    suppliers_contacted = Column(JSON, nullable=False, default=list)
    status = Column(SQLEnum(ProcurementStatus), nullable=False, default=ProcurementStatus.PENDING)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False)
    last_check_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_procurement_status_expiry", "status", "expires_at"),
        Index("idx_procurement_session", "session_id"),
    )

    def contacted_emails(self) -> list[str]:
        """Lower-cased emails of every contacted supplier."""
        return [s["email"].lower() for s in (self.suppliers_contacted or []) if s.get("email")]

    def __repr__(self):
        return f"<ProcurementRequest(id={self.id}, session={self.session_id}, status={self.status})>"


class ChatSession(Base):
    """
    Chat session registry row plus the session's scalar state.

    WHAT: One conversation with the procurement assistant
    WHY: Sessions survive restarts and are listed/renamed by the UI
    HOW: Primary key on the client-visible session_id, messages cascade
    """
    __tablename__ = "chat_sessions"

    session_id = Column(String(64), primary_key=True)
    title = Column(String(200), nullable=False)
    model = Column(String(100), nullable=True)
    is_processing = Column(Boolean, nullable=False, default=False)
    streaming_message = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    last_active = Column(DateTime, nullable=False, default=datetime.utcnow)

    messages = relationship(
        "ChatMessageRecord",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="ChatMessageRecord.position",
    )

    def __repr__(self):
        return f"<ChatSession(session_id={self.session_id}, title={self.title})>"


class ChatMessageRecord(Base):
    """
    Append-only message log entry.

    WHAT: One message in a session (user, assistant, tool, or system)
    WHY: Rebuild conversation context and show history after restarts
    HOW: Ordered by position within the session; tool calls stored as JSON
    """
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    message_id = Column(String(36), nullable=False, unique=True)
    session_id = Column(String(64), ForeignKey("chat_sessions.session_id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)
    role = Column(String(16), nullable=False)
    content = Column(Text, nullable=False, default="")
    tool_calls = Column(JSON, nullable=True)
    tool_call_id = Column(String(64), nullable=True)
    is_system_notification = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("session_id", "position", name="uq_message_position"),
        CheckConstraint(
            "role IN ('user', 'assistant', 'system', 'tool')",
            name="check_message_role"
        ),
    )

    session = relationship("ChatSession", back_populates="messages")

    def __repr__(self):
        return f"<ChatMessageRecord(session={self.session_id}, position={self.position}, role={self.role})>"
