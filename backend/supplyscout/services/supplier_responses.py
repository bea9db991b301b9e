"""
Supplier response store.

WHAT: Upsert inbound replies and rank the recorded quotes
WHY: Exactly one current data point per supplier email; the latest reply wins
HOW: Query-then-update inside one transaction, retried as an update if a
     concurrent insert wins the UNIQUE(supplier_email) race
"""

from datetime import datetime
from typing import Iterable
from uuid import uuid4

from sqlalchemy.exc import IntegrityError

from ..core.database import get_db
from ..core.models import SupplierResponse
from ..utils.logger import get_logger

logger = get_logger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def upsert_supplier_response(
    *,
    supplier_email: str,
    supplier_name: str | None,
    price: float | None,
    response_text: str,
    received_at: datetime | None = None
) -> SupplierResponse:
    """
    Insert or overwrite the reply for one supplier.

    Args:
        supplier_email: Natural key (normalized to lower case)
        supplier_name: Display name; an empty name keeps the stored one
        price: Extracted unit price or None
        response_text: Reply body
        received_at: Defaults to now

    Returns:
        The stored row (detached)
    """
    email = normalize_email(supplier_email)
    values = {
        "supplier_name": supplier_name,
        "price": price,
        "response_text": response_text,
        "created_at": received_at or datetime.utcnow(),
    }
    try:
        return _write_response(email, values)
    except IntegrityError:
        logger.info(f"Concurrent insert for {email}; retrying as update")
        return _write_response(email, values)


def _write_response(email: str, values: dict) -> SupplierResponse:
    with get_db() as db:
        row = db.query(SupplierResponse).filter(SupplierResponse.supplier_email == email).first()
        created = row is None
        if created:
            row = SupplierResponse(id=str(uuid4()), supplier_email=email)
            db.add(row)

        row.supplier_name = values["supplier_name"] or row.supplier_name or email
        row.price = values["price"]
        row.response_text = values["response_text"]
        row.created_at = values["created_at"]

    logger.info(
        f"{'Recorded' if created else 'Updated'} supplier response from {email} (price: {values['price']})"
    )
    return row


def latest_response_times(emails: Iterable[str] | None = None) -> dict[str, datetime]:
    """Map of supplier email -> when its current reply was received."""
    with get_db() as db:
        query = db.query(SupplierResponse.supplier_email, SupplierResponse.created_at)
        if emails is not None:
            query = query.filter(SupplierResponse.supplier_email.in_([normalize_email(e) for e in emails]))
        return {email: created_at for email, created_at in query.all()}


def rank_responses(emails: Iterable[str] | None = None) -> list[SupplierResponse]:
    """
    Recorded replies, best quote first.

    Priced replies ascending by price; ties go to the earliest reply, then
    the email address. Replies without a price follow, oldest first.
    """
    with get_db() as db:
        query = db.query(SupplierResponse)
        if emails is not None:
            query = query.filter(SupplierResponse.supplier_email.in_([normalize_email(e) for e in emails]))
        rows = query.all()

    priced = sorted(
        (r for r in rows if r.price is not None),
        key=lambda r: (r.price, r.created_at, r.supplier_email),
    )
    unpriced = sorted(
        (r for r in rows if r.price is None),
        key=lambda r: (r.created_at, r.supplier_email),
    )
    return priced + unpriced
